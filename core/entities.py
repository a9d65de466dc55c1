# core/entities.py
from dataclasses import dataclass, field
from datetime import date
from types import MappingProxyType
from typing import Mapping, Optional

# Clasificaciones canónicas
POSITIVA = "Positiva"
NEGATIVA = "Negativa"
NEUTRAL = "Neutral"
CLASIFICACIONES = (POSITIVA, NEGATIVA, NEUTRAL)

# Origen de cada registro crudo
FUENTE_CSV = "CSV"
FUENTE_DATABASE = "Database"
FUENTE_API = "API"

POSITIVE_THRESHOLD = 0.2
NEGATIVE_THRESHOLD = -0.2


def classify_score(score: float) -> str:
    if score >= POSITIVE_THRESHOLD:
        return POSITIVA
    if score <= NEGATIVE_THRESHOLD:
        return NEGATIVA
    return NEUTRAL


@dataclass(frozen=True)
class RawOpinion:
    """
    Opinión tal como llega de la fuente, ya mapeada a una forma común.
    La producen los extractores y la consume una única vez el transformador.
    """
    id_original: str
    fuente_origen: str
    cliente_id_raw: Optional[str] = None
    cliente_nombre: Optional[str] = None
    cliente_email: Optional[str] = None
    producto_id_raw: Optional[str] = None
    producto_nombre: Optional[str] = None
    categoria: Optional[str] = None
    fecha_raw: Optional[str] = None
    comentario_raw: Optional[str] = None
    rating_raw: Optional[str] = None
    clasificacion_raw: Optional[str] = None
    metadata: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))


@dataclass(frozen=True)
class SentimentScore:
    score: float
    positivo: float
    negativo: float
    neutral: float

    @property
    def clasificacion(self) -> str:
        return classify_score(self.score)

    @classmethod
    def neutral_score(cls) -> "SentimentScore":
        return cls(score=0.0, positivo=0.0, negativo=0.0, neutral=1.0)


@dataclass
class Opinion:
    """
    Hecho canónico listo para FactOpiniones.
    id_fecha e id_fuente valen 0 hasta que el loader los resuelve.
    """
    id_cliente: str
    id_producto: str
    fecha: date
    comentario: str
    clasificacion: str
    puntaje_satisfaccion: float
    canal_original: str
    id_original: str = ""
    fuente_origen: str = ""
    cliente_nombre: Optional[str] = None
    cliente_email: Optional[str] = None
    producto_nombre: Optional[str] = None
    categoria: Optional[str] = None
    id_fecha: int = 0
    id_fuente: int = 0


@dataclass
class Cliente:
    id_cliente: str
    nombre: str
    email: Optional[str] = None


@dataclass
class Producto:
    id_producto: str
    nombre_producto: str
    categoria: Optional[str] = None
    precio: Optional[float] = None

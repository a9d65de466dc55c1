import logging
import math
import re
import unicodedata
import uuid
from datetime import date, datetime
from typing import Dict, Mapping, Optional

import numpy as np
import pandas as pd

from core.entities import (
    FUENTE_API,
    FUENTE_CSV,
    FUENTE_DATABASE,
    NEGATIVA,
    NEUTRAL,
    POSITIVA,
)

log = logging.getLogger(__name__)

MAX_COMMENT_LENGTH = 5000

CLIENTE_PREFIX = "C"
PRODUCTO_PREFIX = "P"
CLIENTE_ANONIMO_PREFIX = "CANON"
PRODUCTO_DESCONOCIDO = "P0000"

# Se prueban en este orden antes del parseo genérico
DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%m/%d/%Y", "%Y/%m/%d", "%d-%m-%Y")

MESES = (
    "enero", "febrero", "marzo", "abril", "mayo", "junio",
    "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
)

MIN_PUNTAJE = 1.0
MAX_PUNTAJE = 5.0
DEFAULT_RATING = 3.0

CANAL_POR_FUENTE = {
    FUENTE_CSV: "EncuestaInterna",
    FUENTE_DATABASE: "Web",
}
CANAL_REDES = "RedSocial"
CANAL_DESCONOCIDO = "Desconocido"

_NUMERIC_ID = re.compile(r"[0-9]+")
_WHITESPACE = re.compile(r"\s+")


def normalize_text(s: pd.Series) -> pd.Series:
    return (s.astype(str)
              .str.strip()
              .str.replace(r"\s+", " ", regex=True))


def strip_accents(value: str) -> str:
    return "".join(
        c for c in unicodedata.normalize("NFKD", value) if not unicodedata.combining(c)
    )


def standardize_columns(df: pd.DataFrame) -> pd.DataFrame:
    # "PuntajeSatisfacción " -> "puntajesatisfaccion"
    df = df.copy()
    df.columns = [strip_accents(str(c)).strip().lower().replace(" ", "_") for c in df.columns]
    return df


def clean_comment(comentario: Optional[str]) -> str:
    if comentario is None or not comentario.strip():
        return ""
    comentario = _WHITESPACE.sub(" ", comentario.strip())
    return comentario[:MAX_COMMENT_LENGTH]


def _normalize_id(raw_id: str, prefix: str) -> str:
    value = raw_id.strip().upper()
    if value.startswith(prefix):
        return value
    if _NUMERIC_ID.fullmatch(value):
        return f"{prefix}{value}"
    return value


def generate_cliente_anonimo() -> str:
    return f"{CLIENTE_ANONIMO_PREFIX}{uuid.uuid4().hex[:8].upper()}"


def normalize_cliente_id(raw_id: Optional[str]) -> str:
    if raw_id is None or not raw_id.strip():
        return generate_cliente_anonimo()
    return _normalize_id(raw_id, CLIENTE_PREFIX)


def normalize_producto_id(raw_id: Optional[str]) -> str:
    if raw_id is None or not raw_id.strip():
        return PRODUCTO_DESCONOCIDO
    return _normalize_id(raw_id, PRODUCTO_PREFIX)


def parse_fecha(fecha_raw: Optional[str], today: Optional[date] = None) -> date:
    """
    Formatos explícitos primero, luego pandas. Nunca lanza: si no se puede
    interpretar se usa la fecha de hoy.
    """
    today = today or date.today()
    if fecha_raw is None or not str(fecha_raw).strip():
        return today

    value = str(fecha_raw).strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue

    try:
        ts = pd.to_datetime(value, errors="coerce")
    except (ValueError, TypeError, OverflowError):
        ts = pd.NaT
    if pd.isna(ts):
        log.warning(f"No se pudo interpretar la fecha '{value}', se usa hoy")
        return today
    return ts.date()


def _parse_number(raw: Optional[str]) -> Optional[float]:
    if raw is None or not str(raw).strip():
        return None
    try:
        value = float(str(raw).strip().replace(",", "."))
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def clamp_puntaje(value: float) -> float:
    return float(np.clip(value, MIN_PUNTAJE, MAX_PUNTAJE))


def parse_rating(rating_raw: Optional[str]) -> float:
    value = _parse_number(rating_raw)
    return DEFAULT_RATING if value is None else clamp_puntaje(value)


def puntaje_from_clasificacion(clasificacion: str) -> float:
    return {POSITIVA: 4.5, NEGATIVA: 1.5}.get(clasificacion, 3.0)


def parse_puntaje(puntaje_raw: Optional[str], clasificacion: str) -> float:
    value = _parse_number(puntaje_raw)
    if value is None:
        return puntaje_from_clasificacion(clasificacion)
    return clamp_puntaje(value)


def normalize_clasificacion(clasificacion_raw: str) -> str:
    value = strip_accents(clasificacion_raw).strip().lower()
    if value in ("positiva", "positive", "positivo"):
        return POSITIVA
    if value in ("negativa", "negative", "negativo"):
        return NEGATIVA
    # "neutra", "neutral" y cualquier texto desconocido
    return NEUTRAL


def clasificacion_from_rating(rating: float) -> str:
    if rating >= 4:
        return POSITIVA
    if rating <= 2:
        return NEGATIVA
    return NEUTRAL


def sentiment_to_puntaje(score: float) -> float:
    # -1..1 -> 1..5
    puntaje = ((score + 1) / 2) * 4 + 1
    return round(clamp_puntaje(puntaje), 2)


def determine_canal(fuente_origen: str, metadata: Mapping[str, str]) -> str:
    if fuente_origen == FUENTE_API:
        return metadata.get("Platform") or CANAL_REDES
    return CANAL_POR_FUENTE.get(fuente_origen, CANAL_DESCONOCIDO)


def derive_fecha_key(d: date) -> int:
    return int(d.strftime("%Y%m%d"))


def fecha_from_key(fecha_key: int) -> date:
    return datetime.strptime(str(fecha_key), "%Y%m%d").date()


def build_fecha_row(d: date) -> Dict[str, object]:
    return {
        "IdFecha": derive_fecha_key(d),
        "Anio": d.year,
        "Mes": d.month,
        "Trimestre": (d.month - 1) // 3 + 1,
        "NombreMes": MESES[d.month - 1],
    }

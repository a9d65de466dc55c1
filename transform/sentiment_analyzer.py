"""
Análisis de sentimiento para comentarios de clientes.

Combina un léxico en español con pesos por palabra/frase (70%) y el
compound de VADER (30%), que cubre anglicismos y jerga que el léxico no ve.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from types import MappingProxyType
from typing import Callable, Iterable, List, Optional

from core.entities import SentimentScore

log = logging.getLogger(__name__)

LEXICON_WEIGHT = 0.7
SECONDARY_WEIGHT = 0.3

POSITIVE_LEXICON = MappingProxyType({
    # Muy positivas
    "excelente": 0.9, "increíble": 0.9, "perfecto": 0.9,
    "maravilloso": 0.85, "fantástico": 0.85, "excepcional": 0.9,
    "espectacular": 0.85, "impresionante": 0.8,
    # Positivas
    "genial": 0.7, "bueno": 0.6, "bien": 0.5,
    "recomendable": 0.7, "recomiendo": 0.7, "satisfecho": 0.7,
    "contento": 0.7, "feliz": 0.7, "encantado": 0.8,
    # Calidad y características
    "calidad": 0.5, "rápido": 0.5, "funciona": 0.4,
    "mejor": 0.6, "gran": 0.5, "útil": 0.5,
    "práctico": 0.5, "eficiente": 0.6, "duradero": 0.6,
    # Emociones
    "me gusta": 0.6, "me encanta": 0.8, "amo": 0.8,
    "perfección": 0.9, "superó expectativas": 0.8,
})

NEGATIVE_LEXICON = MappingProxyType({
    # Muy negativas
    "pésimo": -0.9, "terrible": -0.9, "horrible": -0.9,
    "basura": -0.95, "fraude": -0.95, "estafa": -0.95,
    "desastre": -0.85, "nefasto": -0.85,
    # Negativas
    "malo": -0.7, "mal": -0.6, "defectuoso": -0.8,
    "roto": -0.7, "decepcionante": -0.7, "decepcionado": -0.7,
    "insatisfecho": -0.7, "molesto": -0.6,
    # Problemas
    "no funciona": -0.8, "no sirve": -0.8, "falló": -0.7,
    "falla": -0.7, "error": -0.6, "problema": -0.6,
    "defecto": -0.7, "rompió": -0.7, "dañado": -0.7,
    # Recomendación negativa
    "no recomiendo": -0.8, "no lo compren": -0.85,
    "mala calidad": -0.8, "peor": -0.6,
    # Tiempo
    "lento": -0.5, "demora": -0.5, "tardó": -0.4,
})

NEGATIONS = frozenset({"no", "nunca", "jamás", "tampoco", "ni", "sin"})

_PUNCTUATION = ",.!?;:"


def _lookup(term: str) -> Optional[float]:
    if term in POSITIVE_LEXICON:
        return POSITIVE_LEXICON[term]
    if term in NEGATIVE_LEXICON:
        return NEGATIVE_LEXICON[term]
    return None


def lexicon_score(text: str) -> float:
    """
    Promedio de los pesos encontrados, en [-1, 1]. Una negación invierte el
    siguiente peso encontrado. Sin coincidencias devuelve 0.
    """
    tokens = [t.strip(_PUNCTUATION) for t in text.lower().split()]
    tokens = [t for t in tokens if t]

    total = 0.0
    found = 0
    negation = 1
    i = 0
    while i < len(tokens):
        token = tokens[i]

        # La negación se consume sola: nunca abre una frase del léxico
        if token in NEGATIONS:
            negation = -1
            i += 1
            continue

        weight = _lookup(token)
        consumed = 1
        if weight is None and i + 1 < len(tokens):
            weight = _lookup(f"{token} {tokens[i + 1]}")
            consumed = 2

        if weight is not None:
            total += weight * negation
            found += 1
            negation = 1
            i += consumed
        else:
            i += 1

    if found == 0:
        return 0.0
    return max(-1.0, min(1.0, total / found))


def _vader_scorer() -> Callable[[str], float]:
    from vaderSentiment.vaderSentiment import SentimentIntensityAnalyzer

    analyzer = SentimentIntensityAnalyzer()
    return lambda text: analyzer.polarity_scores(text)["compound"]


class SentimentAnalyzer:
    def __init__(self, secondary_scorer: Optional[Callable[[str], float]] = None, max_workers: int = 4):
        self.secondary_scorer = secondary_scorer or _vader_scorer()
        self.max_workers = max_workers

    def analyze(self, texto: Optional[str]) -> SentimentScore:
        if texto is None or not texto.strip():
            return SentimentScore.neutral_score()

        try:
            secondary = self.secondary_scorer(texto)
            lexicon = lexicon_score(texto)
            compuesto = max(-1.0, min(1.0, LEXICON_WEIGHT * lexicon + SECONDARY_WEIGHT * secondary))
        except Exception:
            log.exception(f"Error analizando sentimiento: '{texto[:50]}'")
            return SentimentScore.neutral_score()

        log.debug(f"Sentimiento: '{texto[:50]}' -> {compuesto:.3f}")
        return SentimentScore(
            score=compuesto,
            positivo=max(0.0, compuesto),
            negativo=max(0.0, -compuesto),
            neutral=1 - abs(compuesto),
        )

    def analyze_batch(self, textos: Iterable[str]) -> List[SentimentScore]:
        # Cada texto es independiente; map conserva el orden de entrada
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            return list(pool.map(self.analyze, textos))

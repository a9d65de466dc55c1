import logging
from typing import Iterable, List, Optional

from core.entities import Opinion, RawOpinion
from core.errors import TransformationError
from .clean_data import (
    clasificacion_from_rating,
    clean_comment,
    determine_canal,
    normalize_clasificacion,
    normalize_cliente_id,
    normalize_producto_id,
    parse_fecha,
    parse_puntaje,
    parse_rating,
    sentiment_to_puntaje,
)
from .sentiment_analyzer import SentimentAnalyzer

log = logging.getLogger(__name__)


def _present(value: Optional[str]) -> bool:
    return value is not None and bool(value.strip())


class OpinionTransformer:
    def __init__(self, analyzer: Optional[SentimentAnalyzer] = None):
        self.analyzer = analyzer or SentimentAnalyzer()

    def _clasificar(self, raw: RawOpinion, comentario: str):
        # 1) Ya viene clasificada (encuestas)
        if _present(raw.clasificacion_raw):
            clasificacion = normalize_clasificacion(raw.clasificacion_raw)
            return clasificacion, parse_puntaje(raw.rating_raw, clasificacion)

        # 2) Trae rating (reseñas web)
        if _present(raw.rating_raw):
            rating = parse_rating(raw.rating_raw)
            return clasificacion_from_rating(rating), rating

        # 3) Sólo texto (redes sociales): análisis de sentimiento
        sentimiento = self.analyzer.analyze(comentario)
        return sentimiento.clasificacion, sentiment_to_puntaje(sentimiento.score)

    def transform(self, raw: RawOpinion) -> Opinion:
        try:
            comentario = clean_comment(raw.comentario_raw)
            id_cliente = normalize_cliente_id(raw.cliente_id_raw)
            id_producto = normalize_producto_id(raw.producto_id_raw)
            fecha = parse_fecha(raw.fecha_raw)
            clasificacion, puntaje = self._clasificar(raw, comentario)
            opinion = Opinion(
                id_cliente=id_cliente,
                id_producto=id_producto,
                fecha=fecha,
                comentario=comentario,
                clasificacion=clasificacion,
                puntaje_satisfaccion=puntaje,
                canal_original=determine_canal(raw.fuente_origen, raw.metadata),
                id_original=raw.id_original,
                fuente_origen=raw.fuente_origen,
                cliente_nombre=raw.cliente_nombre,
                cliente_email=raw.cliente_email,
                producto_nombre=raw.producto_nombre,
                categoria=raw.categoria,
            )
        except Exception as e:
            log.error(f"Error transformando opinión de {raw.fuente_origen}: {e}")
            raise TransformationError(raw.id_original, raw.fuente_origen, e) from e

        log.debug(
            f"Transformada: cliente={opinion.id_cliente}, producto={opinion.id_producto}, "
            f"clasificacion={opinion.clasificacion}"
        )
        return opinion

    def transform_batch(self, raws: Iterable[RawOpinion]) -> List[Opinion]:
        transformed = []
        for raw in raws:
            try:
                transformed.append(self.transform(raw))
            except TransformationError as e:
                log.warning(f"Se omite opinión de {raw.fuente_origen}: {e}")
        return transformed

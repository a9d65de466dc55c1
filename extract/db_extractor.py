# extract/db_extractor.py
import logging
from datetime import date, datetime
from threading import Event
from typing import List, Optional, Union

import pandas as pd
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from core.entities import FUENTE_DATABASE, RawOpinion
from core.errors import ExtractionError
from transform.clean_data import standardize_columns
from .base_extractor import IExtractor, is_cancelled

log = logging.getLogger(__name__)

DEFAULT_QUERY = """
    SELECT
        IdReview,
        IdCliente,
        IdProducto,
        Fecha,
        Comentario,
        Rating,
        IsVerified
    FROM WebReviews
    WHERE Fecha >= :start_date
"""


def _text(v) -> Optional[str]:
    if v is None or pd.isna(v):
        return None
    if isinstance(v, float) and v.is_integer():
        v = int(v)
    v = str(v).strip()
    return v or None


def _fecha(v) -> Optional[str]:
    if v is None or pd.isna(v):
        return None
    ts = pd.to_datetime(v, errors="coerce")
    return None if pd.isna(ts) else ts.strftime("%Y-%m-%d")


def _verified(v) -> str:
    if v is None or pd.isna(v):
        return "false"
    return "true" if str(v).strip().lower() in ("1", "true", "yes", "si", "sí") else "false"


class DatabaseExtractor(IExtractor):
    """Reseñas web desde la BD relacional de origen (una sola consulta)."""

    def __init__(self, engine: Engine, query: Optional[str] = None,
                 start_date: Optional[Union[date, str]] = None):
        self.engine = engine
        self.query = query or DEFAULT_QUERY
        self.start_date = start_date

    @property
    def source_name(self) -> str:
        return "Database (Web Reviews)"

    def _start_date(self) -> date:
        if self.start_date is None:
            # Por defecto, el último año
            return (pd.Timestamp.today() - pd.DateOffset(years=1)).date()
        if isinstance(self.start_date, str):
            return datetime.strptime(self.start_date, "%Y-%m-%d").date()
        return self.start_date

    def extract(self, cancel_event: Optional[Event] = None) -> List[RawOpinion]:
        try:
            log.info("Consultando base de datos de reseñas web...")
            with self.engine.connect() as conn:
                df = pd.read_sql(text(self.query), conn, params={"start_date": self._start_date()})
        except (SQLAlchemyError, OSError, ValueError) as e:
            raise ExtractionError(self.source_name, e) from e

        df = standardize_columns(df)
        opinions = []
        for row in df.to_dict(orient="records"):
            if is_cancelled(cancel_event):
                break
            opinions.append(RawOpinion(
                id_original=_text(row.get("idreview")) or "",
                cliente_id_raw=_text(row.get("idcliente")),
                producto_id_raw=_text(row.get("idproducto")),
                fecha_raw=_fecha(row.get("fecha")),
                comentario_raw=_text(row.get("comentario")),
                rating_raw=_text(row.get("rating")),
                fuente_origen=FUENTE_DATABASE,
                metadata={
                    "IsVerified": _verified(row.get("isverified")),
                    "Source": "WebReviews",
                },
            ))

        log.info(f"BD: {len(opinions)} filas")
        return opinions

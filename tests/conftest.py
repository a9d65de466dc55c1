"""Fixtures compartidas: DW SQLite temporal y fábricas de opiniones."""

from datetime import date

import pytest
from sqlalchemy import func, select

from core.db_engine import dispose_engines, get_engine
from core.dw_models import create_schema
from core.dw_repository import UnitOfWork
from core.entities import FUENTE_CSV, Opinion, RawOpinion
from transform.sentiment_analyzer import SentimentAnalyzer


@pytest.fixture
def dw_engine(tmp_path):
    engine = get_engine(f"sqlite:///{tmp_path / 'dw.db'}")
    create_schema(engine)
    yield engine
    dispose_engines()


@pytest.fixture
def uow(dw_engine):
    unit = UnitOfWork(dw_engine)
    yield unit
    unit.close()


@pytest.fixture
def count_rows(dw_engine):
    def _count(table) -> int:
        with dw_engine.connect() as conn:
            return conn.execute(select(func.count()).select_from(table)).scalar()
    return _count


@pytest.fixture
def analyzer():
    """Analizador sin VADER: sólo cuenta el léxico."""
    return SentimentAnalyzer(secondary_scorer=lambda texto: 0.0)


@pytest.fixture
def make_opinion():
    def _make(n: int = 1, **overrides) -> Opinion:
        values = dict(
            id_cliente=f"C{n:03d}",
            id_producto=f"P{n:03d}",
            fecha=date(2024, 1, n % 28 + 1),
            comentario=f"Comentario {n}",
            clasificacion="Positiva",
            puntaje_satisfaccion=4.5,
            canal_original="EncuestaInterna",
            id_original=str(n),
            fuente_origen=FUENTE_CSV,
        )
        values.update(overrides)
        return Opinion(**values)
    return _make


@pytest.fixture
def make_raw():
    def _make(**overrides) -> RawOpinion:
        values = dict(id_original="1", fuente_origen=FUENTE_CSV)
        values.update(overrides)
        return RawOpinion(**values)
    return _make

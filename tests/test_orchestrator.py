from threading import Event
from typing import List, Optional

import pytest
from sqlalchemy import select

from core.dw_models import dim_fuente, fact_opiniones
from core.dw_repository import UnitOfWork
from core.entities import FUENTE_API, FUENTE_CSV, FUENTE_DATABASE, RawOpinion
from core.errors import ExtractionError
from core.etl_results import PipelineState
from core.orchestrator import CANCELLED, ETLOrchestrator
from extract.base_extractor import IExtractor
from load.fact_loader import OpinionLoader
from transform.opinion_transformer import OpinionTransformer


class FakeExtractor(IExtractor):
    def __init__(self, name: str, records: List[RawOpinion], skipped: int = 0):
        self.name = name
        self.records = records
        self.skipped = skipped

    @property
    def source_name(self) -> str:
        return self.name

    def extract(self, cancel_event: Optional[Event] = None) -> List[RawOpinion]:
        return list(self.records)


class FailingExtractor(FakeExtractor):
    def extract(self, cancel_event: Optional[Event] = None) -> List[RawOpinion]:
        raise ExtractionError(self.name, ConnectionError("servidor caído"))


class CancellingExtractor(FakeExtractor):
    def extract(self, cancel_event: Optional[Event] = None) -> List[RawOpinion]:
        cancel_event.set()
        return list(self.records)


SURVEY = RawOpinion(
    id_original="1", fuente_origen=FUENTE_CSV, cliente_id_raw="1", producto_id_raw="10",
    fecha_raw="2024-01-15", comentario_raw="Muy buen producto", clasificacion_raw="Positiva",
    rating_raw="5", metadata={"FileName": "surveys_part1.csv"},
)
REVIEW = RawOpinion(
    id_original="R1", fuente_origen=FUENTE_DATABASE, cliente_id_raw="C002", producto_id_raw="P010",
    fecha_raw="2024-02-01", comentario_raw="Llegó roto", rating_raw="2",
    metadata={"IsVerified": "true", "Source": "WebReviews"},
)
COMMENT = RawOpinion(
    id_original="S1", fuente_origen=FUENTE_API, producto_id_raw="10",
    comentario_raw="producto excelente, lo recomiendo", metadata={"Platform": "Twitter"},
)


@pytest.fixture
def build(uow, analyzer):
    def _build(*extractors, **kwargs):
        return ETLOrchestrator(
            extractors=extractors,
            transformer=OpinionTransformer(analyzer),
            loader=OpinionLoader(uow, **kwargs),
        )
    return _build


def test_end_to_end_three_sources(build, dw_engine, count_rows):
    orchestrator = build(
        FakeExtractor("CSV", [SURVEY], skipped=2),
        FakeExtractor("Database", [REVIEW]),
        FakeExtractor("API", [COMMENT]),
    )
    summary = orchestrator.execute()

    assert summary.success
    assert not summary.cancelled
    assert summary.state == PipelineState.COMPLETED
    assert orchestrator.state == PipelineState.COMPLETED
    assert [r.source_name for r in summary.extractions] == ["CSV", "Database", "API"]
    assert summary.extractions[0].records_skipped == 2
    assert summary.total_extracted == 3
    assert summary.transformation.records_transformed == 3
    assert summary.total_records_processed == 3
    assert summary.loading.records_loaded == 3
    assert count_rows(fact_opiniones) == 3

    stats = summary.transformation.statistics
    assert (stats.positivos, stats.negativos, stats.neutrales) == (2, 1, 0)

    with dw_engine.connect() as conn:
        fuentes = set(conn.execute(select(dim_fuente.c.NombreFuente)).scalars())
        clasificaciones = dict(conn.execute(
            select(fact_opiniones.c.IdOriginal, fact_opiniones.c.ClasificacionSentimiento)
        ).all())
    assert fuentes == {"EncuestaInterna", "Web", "Twitter"}
    assert clasificaciones == {"1": "Positiva", "R1": "Negativa", "S1": "Positiva"}


def test_failing_source_does_not_stop_others(build, count_rows):
    summary = build(
        FakeExtractor("CSV", [SURVEY]),
        FailingExtractor("Database", []),
        FakeExtractor("API", [COMMENT]),
    ).execute()

    assert not summary.success
    assert summary.state == PipelineState.FAILED
    failed = summary.extractions[1]
    assert not failed.success
    assert "servidor caído" in failed.error_message
    assert summary.loading.records_loaded == 2
    assert count_rows(fact_opiniones) == 2


def test_record_transform_failure_is_skipped(build, count_rows, monkeypatch):
    from transform import opinion_transformer

    real = opinion_transformer.normalize_producto_id

    def picky(raw_id):
        if raw_id == "P010":
            raise ValueError("producto inválido")
        return real(raw_id)

    monkeypatch.setattr(opinion_transformer, "normalize_producto_id", picky)
    summary = build(FakeExtractor("Todo", [SURVEY, REVIEW, COMMENT])).execute()

    assert summary.success
    assert summary.transformation.records_transformed == 2
    assert summary.transformation.records_skipped == 1
    assert count_rows(fact_opiniones) == 2


def test_cancel_before_start(build, count_rows):
    cancel = Event()
    cancel.set()
    summary = build(FakeExtractor("CSV", [SURVEY])).execute(cancel)

    assert summary.cancelled
    assert not summary.success
    assert summary.extractions == []
    assert summary.transformation is None
    assert summary.loading is None
    assert summary.state == PipelineState.FAILED
    assert count_rows(fact_opiniones) == 0


def test_cancel_during_extraction_skips_later_phases(build, count_rows):
    summary = build(CancellingExtractor("CSV", [SURVEY, REVIEW])).execute(Event())

    assert summary.cancelled
    assert not summary.success
    assert summary.total_extracted == 2
    assert summary.transformation is None
    assert summary.loading is None
    assert count_rows(fact_opiniones) == 0


def test_no_extractors(build):
    summary = build().execute()
    assert summary.success
    assert summary.total_extracted == 0
    assert summary.loading.records_loaded == 0


def test_summary_report(build):
    summary = build(FakeExtractor("CSV", [SURVEY]), FailingExtractor("API", [])).execute()
    report = summary.get_summary()
    assert "ETL EXECUTION SUMMARY" in report
    assert "CSV: 1 records" in report
    assert "API: 0 records" in report
    assert "Status: FAILED" in report
    assert "Total Records Processed: 1" in report


def test_loading_failure_marks_run_failed(build, monkeypatch):
    def broken_begin(self):
        raise ConnectionError("DW no disponible")

    monkeypatch.setattr(UnitOfWork, "begin_transaction", broken_begin)
    summary = build(FakeExtractor("CSV", [SURVEY])).execute()

    assert not summary.success
    assert not summary.loading.success
    assert not summary.loading.rolled_back
    assert "DW no disponible" in summary.loading.errors[0]


class CancellingTransformer(OpinionTransformer):
    """Pide la cancelación después de transformar el primer registro."""

    def __init__(self, analyzer, cancel_event: Event):
        super().__init__(analyzer)
        self.cancel_event = cancel_event

    def transform(self, raw: RawOpinion):
        opinion = super().transform(raw)
        self.cancel_event.set()
        return opinion


def test_cancel_during_transformation_skips_load(uow, analyzer, count_rows):
    cancel = Event()
    orchestrator = ETLOrchestrator(
        extractors=[FakeExtractor("Todo", [SURVEY, REVIEW, COMMENT])],
        transformer=CancellingTransformer(analyzer, cancel),
        loader=OpinionLoader(uow),
    )
    summary = orchestrator.execute(cancel)

    assert summary.cancelled
    assert not summary.success
    assert summary.state == PipelineState.FAILED
    assert summary.total_extracted == 3
    assert summary.transformation.records_transformed == 1
    assert not summary.transformation.success
    assert CANCELLED in summary.transformation.errors
    assert summary.loading is None
    assert count_rows(fact_opiniones) == 0

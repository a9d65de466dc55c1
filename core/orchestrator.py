"""
Orquestación del ETL de opiniones: extracción (3 fuentes en paralelo),
transformación registro a registro y carga transaccional al DW.

execute() nunca lanza: siempre devuelve un ETLExecutionSummary. success
indica que todas las fases terminaron sin error de fase; los registros
omitidos o fallidos no lo cambian.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from threading import Event
from typing import List, Optional, Sequence, Tuple

from extract.base_extractor import IExtractor
from load.fact_loader import OpinionLoader
from transform.opinion_transformer import OpinionTransformer
from transform.sentiment_statistics import SentimentStatistics
from .entities import Opinion, RawOpinion
from .etl_results import (
    ETLExecutionSummary,
    ExtractionResult,
    PipelineState,
    TransformationResult,
)

log = logging.getLogger(__name__)

CANCELLED = "Cancelado"


class ETLOrchestrator:
    def __init__(self, extractors: Sequence[IExtractor], transformer: OpinionTransformer,
                 loader: OpinionLoader, max_workers: Optional[int] = None):
        self.extractors = list(extractors)
        self.transformer = transformer
        self.loader = loader
        self.max_workers = max_workers
        self.state = PipelineState.IDLE

    def _set_state(self, summary: ETLExecutionSummary, state: PipelineState) -> None:
        log.debug(f"Estado: {self.state.value} -> {state.value}")
        self.state = state
        summary.state = state

    def execute(self, cancel_event: Optional[Event] = None) -> ETLExecutionSummary:
        cancel_event = cancel_event or Event()
        summary = ETLExecutionSummary(execution_start_time=datetime.now())
        try:
            log.info("=== Iniciando proceso ETL ===")

            self._set_state(summary, PipelineState.EXTRACTING)
            raws = self._extract_all(summary, cancel_event)

            if not cancel_event.is_set():
                self._set_state(summary, PipelineState.TRANSFORMING)
                opinions = self._transform(raws, summary, cancel_event)

                if not cancel_event.is_set():
                    self._set_state(summary, PipelineState.LOADING)
                    log.info("--- FASE 3: CARGA ---")
                    summary.loading = self.loader.load(opinions, cancel_event)

            summary.cancelled = cancel_event.is_set()
            if summary.cancelled:
                log.warning("Proceso ETL cancelado")
            summary.success = not summary.cancelled and self._phases_ok(summary)
        except Exception as e:
            log.exception("El proceso ETL falló")
            summary.errors.append(str(e))
            summary.success = False
        finally:
            summary.execution_end_time = datetime.now()
            self._set_state(summary, PipelineState.COMPLETED if summary.success else PipelineState.FAILED)
            log.info(summary.get_summary())

        return summary

    @staticmethod
    def _phases_ok(summary: ETLExecutionSummary) -> bool:
        return (
            all(r.success for r in summary.extractions)
            and summary.transformation is not None and summary.transformation.success
            and summary.loading is not None and summary.loading.success
        )

    # =============================================
    # FASE 1: EXTRACCIÓN
    # =============================================

    def _extract_all(self, summary: ETLExecutionSummary, cancel_event: Event) -> List[RawOpinion]:
        log.info("--- FASE 1: EXTRACCIÓN ---")
        if not self.extractors:
            log.warning("No hay extractores configurados")
            return []

        submitted = []
        workers = self.max_workers or len(self.extractors)
        # El bloque with espera a que terminen todas las extracciones
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="extract") as pool:
            for extractor in self.extractors:
                if cancel_event.is_set():
                    log.warning(f"Cancelado antes de extraer de {extractor.source_name}")
                    break
                submitted.append(pool.submit(self._extract_from_source, extractor, cancel_event))

        all_data: List[RawOpinion] = []
        for future in submitted:
            result, data = future.result()
            summary.extractions.append(result)
            all_data.extend(data)

        log.info(f"Total extraído: {len(all_data)} registros")
        return all_data

    @staticmethod
    def _extract_from_source(extractor: IExtractor,
                             cancel_event: Event) -> Tuple[ExtractionResult, List[RawOpinion]]:
        result = ExtractionResult(source_name=extractor.source_name)
        result.start()
        data: List[RawOpinion] = []
        try:
            log.info(f"Extrayendo de: {extractor.source_name}")
            data = list(extractor.extract(cancel_event))
            result.records_extracted = len(data)
            result.records_skipped = extractor.skipped
            result.success = True
            log.info(f"Extraídos {len(data)} registros de {extractor.source_name}")
        except Exception as e:
            log.error(f"Error extrayendo de {extractor.source_name}: {e}")
            result.errors.append(str(e))
        finally:
            result.finish()
        return result, data

    # =============================================
    # FASE 2: TRANSFORMACIÓN
    # =============================================

    def _transform(self, raws: List[RawOpinion], summary: ETLExecutionSummary,
                   cancel_event: Event) -> List[Opinion]:
        log.info("--- FASE 2: TRANSFORMACIÓN ---")
        result = TransformationResult()
        result.start()
        opinions: List[Opinion] = []
        try:
            for raw in raws:
                if cancel_event.is_set():
                    result.errors.append(CANCELLED)
                    break
                try:
                    opinions.append(self.transformer.transform(raw))
                    result.records_transformed += 1
                except Exception as e:
                    log.warning(f"No se pudo transformar registro de {raw.fuente_origen}: {e}")
                    result.records_skipped += 1
                    result.errors.append(f"Source: {raw.fuente_origen}, Error: {e}")

            result.statistics = SentimentStatistics.from_opinions(opinions)
            result.success = not cancel_event.is_set()
            log.info(f"Transformados {result.records_transformed}, omitidos {result.records_skipped}")
        except Exception as e:
            log.exception("Falló la fase de transformación")
            result.errors.append(str(e))
        finally:
            result.finish()
            summary.transformation = result

        return opinions

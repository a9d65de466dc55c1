# core/etl_results.py
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional

from transform.sentiment_statistics import SentimentStatistics


class PipelineState(Enum):
    IDLE = "Idle"
    EXTRACTING = "Extracting"
    TRANSFORMING = "Transforming"
    LOADING = "Loading"
    COMPLETED = "Completed"
    FAILED = "Failed"


@dataclass
class PhaseResult:
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    success: bool = False
    errors: List[str] = field(default_factory=list)

    def start(self) -> None:
        self.start_time = datetime.now()

    def finish(self) -> None:
        self.end_time = datetime.now()

    @property
    def duration(self) -> Optional[timedelta]:
        if self.start_time is None or self.end_time is None:
            return None
        return self.end_time - self.start_time


@dataclass
class ExtractionResult(PhaseResult):
    source_name: str = ""
    records_extracted: int = 0
    records_skipped: int = 0

    @property
    def error_message(self) -> Optional[str]:
        return self.errors[0] if self.errors else None


@dataclass
class TransformationResult(PhaseResult):
    records_transformed: int = 0
    records_skipped: int = 0
    statistics: Optional[SentimentStatistics] = None


@dataclass
class LoadingResult(PhaseResult):
    records_loaded: int = 0
    records_failed: int = 0
    records_duplicated: int = 0
    rolled_back: bool = False


@dataclass
class ETLExecutionSummary:
    execution_start_time: Optional[datetime] = None
    execution_end_time: Optional[datetime] = None
    extractions: List[ExtractionResult] = field(default_factory=list)
    transformation: Optional[TransformationResult] = None
    loading: Optional[LoadingResult] = None
    state: PipelineState = PipelineState.IDLE
    cancelled: bool = False
    success: bool = False
    errors: List[str] = field(default_factory=list)

    @property
    def total_duration(self) -> Optional[timedelta]:
        if self.execution_start_time is None or self.execution_end_time is None:
            return None
        return self.execution_end_time - self.execution_start_time

    @property
    def total_extracted(self) -> int:
        return sum(r.records_extracted for r in self.extractions)

    @property
    def total_records_processed(self) -> int:
        return self.transformation.records_transformed if self.transformation else 0

    def get_summary(self) -> str:
        def ts(value: Optional[datetime]) -> str:
            return value.strftime("%Y-%m-%d %H:%M:%S") if value else "-"

        lines = [
            "",
            "========================================",
            "ETL EXECUTION SUMMARY",
            "========================================",
            f"Start Time: {ts(self.execution_start_time)}",
            f"End Time: {ts(self.execution_end_time)}",
            f"Total Duration: {self.total_duration}",
            "",
            "EXTRACTION:",
        ]
        for r in self.extractions:
            status = "OK" if r.success else f"ERROR: {r.error_message}"
            lines.append(f"  {r.source_name}: {r.records_extracted} records ({r.duration}) {status}")
        lines.append(f"  Total: {self.total_extracted}")

        t = self.transformation or TransformationResult()
        lines += [
            "",
            "TRANSFORMATION:",
            f"  Transformed: {t.records_transformed}",
            f"  Skipped: {t.records_skipped}",
            f"  Duration: {t.duration}",
        ]
        if t.statistics is not None:
            lines += ["", str(t.statistics)]

        ld = self.loading or LoadingResult()
        lines += [
            "",
            "LOADING:",
            f"  Loaded: {ld.records_loaded}",
            f"  Failed: {ld.records_failed}",
        ]
        if ld.records_duplicated:
            lines.append(f"  Duplicated: {ld.records_duplicated}")
        if ld.rolled_back:
            lines.append("  Transaction rolled back")
        lines += [
            f"  Duration: {ld.duration}",
            "",
            f"Total Records Processed: {self.total_records_processed}",
            f"State: {self.state.value}" + (" (cancelled)" if self.cancelled else ""),
            f"Status: {'SUCCESS' if self.success else 'FAILED'}",
            "========================================",
        ]
        return "\n".join(lines)

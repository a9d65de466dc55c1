from abc import ABC, abstractmethod
from threading import Event
from typing import List, Optional

from core.entities import RawOpinion


def is_cancelled(cancel_event: Optional[Event]) -> bool:
    return cancel_event is not None and cancel_event.is_set()


class IExtractor(ABC):
    """
    Un intento de extracción por llamada, sin reintentos. Un fallo de la
    fuente completa se lanza como ExtractionError.
    """

    # Filas omitidas por malformadas en la última extracción
    skipped: int = 0

    @property
    @abstractmethod
    def source_name(self) -> str:
        ...

    @abstractmethod
    def extract(self, cancel_event: Optional[Event] = None) -> List[RawOpinion]:
        ...

from dataclasses import dataclass
from typing import Iterable

import pandas as pd

from core.entities import NEGATIVA, NEUTRAL, POSITIVA, Opinion


@dataclass
class SentimentStatistics:
    total_analyzed: int = 0
    positivos: int = 0
    negativos: int = 0
    neutrales: int = 0
    promedio_puntaje: float = 0.0

    def _pct(self, n: int) -> float:
        return n * 100.0 / self.total_analyzed if self.total_analyzed else 0.0

    @property
    def porcentaje_positivo(self) -> float:
        return self._pct(self.positivos)

    @property
    def porcentaje_negativo(self) -> float:
        return self._pct(self.negativos)

    @property
    def porcentaje_neutral(self) -> float:
        return self._pct(self.neutrales)

    @classmethod
    def from_opinions(cls, opinions: Iterable[Opinion]) -> "SentimentStatistics":
        df = pd.DataFrame(
            [(o.clasificacion, o.puntaje_satisfaccion) for o in opinions],
            columns=["clasificacion", "puntaje"],
        )
        if df.empty:
            return cls()
        counts = df["clasificacion"].value_counts()
        return cls(
            total_analyzed=len(df),
            positivos=int(counts.get(POSITIVA, 0)),
            negativos=int(counts.get(NEGATIVA, 0)),
            neutrales=int(counts.get(NEUTRAL, 0)),
            promedio_puntaje=round(float(df["puntaje"].mean()), 3),
        )

    def __str__(self) -> str:
        return (
            "Sentiment Statistics:\n"
            f"  Total Analyzed: {self.total_analyzed}\n"
            f"  Positivas: {self.positivos} ({self.porcentaje_positivo:.2f}%)\n"
            f"  Negativas: {self.negativos} ({self.porcentaje_negativo:.2f}%)\n"
            f"  Neutrales: {self.neutrales} ({self.porcentaje_neutral:.2f}%)\n"
            f"  Promedio Puntaje: {self.promedio_puntaje:.3f}"
        )

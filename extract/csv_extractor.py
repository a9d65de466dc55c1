import glob
import logging
import os
from threading import Event
from typing import Dict, List, Optional

import pandas as pd

from core.entities import FUENTE_CSV, RawOpinion
from core.errors import ExtractionError
from transform.clean_data import standardize_columns
from .base_extractor import IExtractor, is_cancelled

log = logging.getLogger(__name__)

# columna normalizada -> campo de RawOpinion
COLUMN_MAP = {
    "idopinion": "id_original",
    "idcliente": "cliente_id_raw",
    "idproducto": "producto_id_raw",
    "fecha": "fecha_raw",
    "comentario": "comentario_raw",
    "clasificacion": "clasificacion_raw",
    "puntajesatisfaccion": "rating_raw",
    "rating": "rating_raw",
}


def _value(v) -> Optional[str]:
    if v is None or (not isinstance(v, str) and pd.isna(v)):
        return None
    v = str(v).strip()
    return v or None


class CsvExtractor(IExtractor):
    """Encuestas internas: sólo archivos surveys*.csv de la carpeta configurada."""

    def __init__(self, folder: str, pattern: str = "surveys*.csv", **read_csv_kwargs):
        self.folder = folder
        self.pattern = pattern
        self.kw = {"encoding": "utf-8", "dtype": str, "keep_default_na": False} | read_csv_kwargs

    @property
    def source_name(self) -> str:
        return "CSV Files (Encuestas Internas)"

    def extract(self, cancel_event: Optional[Event] = None) -> List[RawOpinion]:
        self.skipped = 0
        if not os.path.isdir(self.folder):
            raise ExtractionError(self.source_name, FileNotFoundError(f"No existe la carpeta {self.folder}"))

        files = sorted(glob.glob(os.path.join(self.folder, self.pattern)))
        if not files:
            log.warning(f"No se encontraron encuestas {self.pattern} en {self.folder}")
            return []

        log.info(f"{len(files)} archivos de encuestas en {self.folder}")
        opinions: List[RawOpinion] = []
        for path in files:
            if is_cancelled(cancel_event):
                break
            opinions.extend(self._extract_file(path, cancel_event))

        log.info(f"CSV: {len(opinions)} opiniones extraídas")
        return opinions

    def _read(self, path: str) -> pd.DataFrame:
        file_name = os.path.basename(path)

        def on_bad_line(fields: List[str]):
            log.warning(f"{file_name}: línea malformada omitida: {fields}")
            self.skipped += 1
            return None

        try:
            df = pd.read_csv(path, engine="python", on_bad_lines=on_bad_line, **self.kw)
        except pd.errors.EmptyDataError:
            return pd.DataFrame()
        except (OSError, UnicodeDecodeError, pd.errors.ParserError) as e:
            raise ExtractionError(self.source_name, e) from e
        return standardize_columns(df)

    def _extract_file(self, path: str, cancel_event: Optional[Event]) -> List[RawOpinion]:
        file_name = os.path.basename(path)
        log.info(f"Leyendo encuesta {file_name}")
        df = self._read(path)
        columns = [c for c in df.columns if c in COLUMN_MAP]

        opinions = []
        for row in df.to_dict(orient="records"):
            if is_cancelled(cancel_event):
                break
            try:
                opinions.append(self._map_row(row, columns, file_name))
            except Exception as e:
                log.warning(f"{file_name}: fila omitida ({e}): {row}")
                self.skipped += 1

        log.info(f"{file_name}: {len(opinions)} filas")
        return opinions

    @staticmethod
    def _map_row(row: Dict[str, object], columns: List[str], file_name: str) -> RawOpinion:
        fields: Dict[str, Optional[str]] = {}
        for c in columns:
            # puntajesatisfaccion y rating van al mismo campo: gana el primero con valor
            if fields.get(COLUMN_MAP[c]) is None:
                fields[COLUMN_MAP[c]] = _value(row[c])
        fields["id_original"] = fields.get("id_original") or ""
        return RawOpinion(fuente_origen=FUENTE_CSV, metadata={"FileName": file_name}, **fields)

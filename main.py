# main.py
import argparse
import signal
import sys
from threading import Event
from typing import Any, Dict, List, Optional

from core.db_engine import get_engine
from core.dw_models import create_schema
from core.dw_repository import UnitOfWork
from core.logger import get_logger
from core.orchestrator import ETLOrchestrator
from core.settings import load_settings
from extract.api_extractor import ApiExtractor
from extract.base_extractor import IExtractor
from extract.csv_extractor import CsvExtractor
from extract.db_extractor import DatabaseExtractor
from load.fact_loader import OpinionLoader
from transform.opinion_transformer import OpinionTransformer
from transform.sentiment_analyzer import SentimentAnalyzer


# 1) Fuentes (CSV + BD + API)
def build_extractors(cfg: Dict[str, Any], log) -> List[IExtractor]:
    sources = cfg["sources"]
    extractors: List[IExtractor] = []

    csv_cfg = sources.get("csv") or {}
    if csv_cfg.get("folder"):
        extractors.append(CsvExtractor(csv_cfg["folder"], csv_cfg.get("pattern", "surveys*.csv")))
    else:
        log.warning("CSV: sin carpeta configurada, se omite.")

    db_cfg = sources.get("database") or {}
    if db_cfg.get("url"):
        extractors.append(DatabaseExtractor(
            get_engine(db_cfg["url"]),
            query=db_cfg.get("query"),
            start_date=db_cfg.get("start_date"),
        ))
    else:
        log.warning("BD: sin cadena de conexión, se omite.")

    api_cfg = sources.get("api") or {}
    if api_cfg.get("base_url"):
        extractors.append(ApiExtractor(
            api_cfg["base_url"],
            endpoint=api_cfg.get("endpoint", "/api/comments"),
            api_key=api_cfg.get("api_key"),
            query_parameters=api_cfg.get("query_parameters"),
            timeout=api_cfg.get("timeout", 30),
        ))
    else:
        log.warning("API: sin URL base, se omite.")

    return extractors


def build_orchestrator(cfg: Dict[str, Any], log) -> ETLOrchestrator:
    dw_engine = get_engine(cfg.get("dw_url"))
    if cfg.get("create_schema"):
        create_schema(dw_engine)
        log.info("Esquema del DW verificado")

    etl_cfg = cfg.get("etl") or {}
    return ETLOrchestrator(
        extractors=build_extractors(cfg, log),
        transformer=OpinionTransformer(SentimentAnalyzer()),
        loader=OpinionLoader(UnitOfWork(dw_engine), skip_duplicates=etl_cfg.get("skip_duplicates", False)),
        max_workers=etl_cfg.get("max_workers"),
    )


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="ETL de opiniones de clientes hacia el DW")
    parser.add_argument("--config", help="Ruta a settings.json (por defecto config/settings.json)")
    parser.add_argument("--init-db", action="store_true", help="Crea las tablas del DW si no existen")
    return parser.parse_args(argv)


# 2) Orquestación
def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    cfg = load_settings(args.config)
    if args.init_db:
        cfg["create_schema"] = True

    log = get_logger("etl", cfg["log_path"], cfg.get("log_level", "INFO"))
    log.info("=== ETL Opiniones (Python) ===")

    # Ctrl+C / SIGTERM: cancelación cooperativa (la carga en curso se revierte)
    cancel_event = Event()

    def _cancel(signum, frame):
        log.warning(f"Señal {signum} recibida, cancelando ETL...")
        cancel_event.set()

    signal.signal(signal.SIGINT, _cancel)
    signal.signal(signal.SIGTERM, _cancel)

    summary = build_orchestrator(cfg, log).execute(cancel_event)
    if summary.success:
        log.info("ETL finalizado OK")
        return 0
    log.error("ETL finalizado con errores, revisar el log")
    return 1


if __name__ == "__main__":
    sys.exit(main())

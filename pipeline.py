# pipeline.py
# Pipeline completo: 1) maestros de dimensiones  2) ETL de opiniones
import os
import subprocess
import sys
from typing import List, Optional, Sequence

from core.logger import get_logger

BASE_DIR = os.path.dirname(os.path.abspath(__file__))

STEPS = ["sync_dimensions_dw.py", "main.py"]


def run_step(script_name: str, argv: Sequence[str] = ()) -> int:
    log = get_logger("pipeline")
    script_path = os.path.join(BASE_DIR, script_name)

    if not os.path.exists(script_path):
        log.error(f"[PIPELINE] No se encontró el script: {script_path}")
        return 1

    log.info(f"[PIPELINE] Ejecutando {script_name} ...")

    # Llama: python script_name [argv]
    result = subprocess.run([sys.executable, script_path, *argv], cwd=BASE_DIR)

    if result.returncode != 0:
        log.error(f"[PIPELINE] {script_name} terminó con código {result.returncode}")
    else:
        log.info(f"[PIPELINE] {script_name} finalizado correctamente.")
    return result.returncode


def run(argv: Optional[List[str]] = None, steps: Optional[Sequence[str]] = None) -> int:
    log = get_logger("pipeline")
    log.info("======================================")
    log.info("   PIPELINE DW Opiniones")
    log.info("======================================")

    argv = sys.argv[1:] if argv is None else argv
    for script_name in steps or STEPS:
        code = run_step(script_name, argv)
        if code != 0:
            return code

    log.info("[PIPELINE] Todo el pipeline terminó OK")
    return 0


if __name__ == "__main__":
    sys.exit(run())

import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional, Set, Union

FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"

_stream_handler: Optional[logging.Handler] = None
_log_files: Set[str] = set()


def setup_logging(log_file: Optional[str] = None, level: Union[int, str] = logging.INFO) -> logging.Logger:
    # Los handlers van en el logger raíz para que los módulos (extract.*, core.*, ...)
    # usen logging.getLogger(__name__) y terminen en el mismo archivo.
    global _stream_handler
    root = logging.getLogger()
    root.setLevel(level)
    fmt = logging.Formatter(FORMAT)

    if _stream_handler is None:
        _stream_handler = logging.StreamHandler()
        _stream_handler.setFormatter(fmt)
        root.addHandler(_stream_handler)

    if log_file and os.path.abspath(log_file) not in _log_files:
        folder = os.path.dirname(log_file)
        if folder:
            os.makedirs(folder, exist_ok=True)
        handler = RotatingFileHandler(log_file, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
        handler.setFormatter(fmt)
        root.addHandler(handler)
        _log_files.add(os.path.abspath(log_file))

    return root


def get_logger(name: str, log_file: Optional[str] = None, level: Union[int, str] = logging.INFO):
    setup_logging(log_file, level)
    return logging.getLogger(name)

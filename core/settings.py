# core/settings.py
import copy
import json
import os
from typing import Any, Dict, Optional

BASE = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
DEFAULT_SETTINGS_PATH = os.path.join(BASE, "config", "settings.json")

DEFAULTS: Dict[str, Any] = {
    "log_path": "logs/etl.log",
    "log_level": "INFO",
    "dw_url": None,
    "create_schema": False,
    "sources": {
        "csv": {"folder": "data", "pattern": "surveys*.csv"},
        "database": {"url": None, "query": None, "start_date": None},
        "api": {
            "base_url": None,
            "endpoint": "/api/comments",
            "api_key": None,
            "query_parameters": None,
            "timeout": 30,
        },
    },
    "paths": {},
    "etl": {"skip_duplicates": False, "max_workers": 3},
}

# Variable de entorno -> ruta dentro del dict de configuración
ENV_OVERRIDES = {
    "ETL_DW_URL": ("dw_url",),
    "ETL_SOURCE_DB_URL": ("sources", "database", "url"),
    "ETL_API_BASE_URL": ("sources", "api", "base_url"),
    "ETL_API_KEY": ("sources", "api", "api_key"),
    "ETL_CSV_FOLDER": ("sources", "csv", "folder"),
}


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = _merge(out[key], value)
        else:
            out[key] = value
    return out


def load_settings(path: Optional[str] = None, environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """
    Lee config/settings.json (o ETL_SETTINGS / path) y lo combina con DEFAULTS.
    Las cadenas de conexión y la API key pueden venir del entorno.
    """
    environ = os.environ if environ is None else environ
    path = path or environ.get("ETL_SETTINGS") or DEFAULT_SETTINGS_PATH

    with open(path, "r", encoding="utf-8") as f:
        cfg = _merge(DEFAULTS, json.load(f))

    for var, keys in ENV_OVERRIDES.items():
        value = environ.get(var)
        if not value:
            continue
        node = cfg
        for k in keys[:-1]:
            node = node.setdefault(k, {})
        node[keys[-1]] = value

    return cfg

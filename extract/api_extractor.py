# extract/api_extractor.py
import logging
from threading import Event
from typing import Any, Dict, List, Optional

import requests

from core.entities import FUENTE_API, RawOpinion
from core.errors import ExtractionError
from .base_extractor import IExtractor, is_cancelled

log = logging.getLogger(__name__)


def _text(v: Any) -> Optional[str]:
    if v is None:
        return None
    v = str(v).strip()
    return v or None


class ApiExtractor(IExtractor):
    """
    Comentarios de redes sociales. Una sola petición GET por ejecución
    (la página se fija con query_parameters), sin bucle de paginación.
    """

    def __init__(self, base_url: str, endpoint: str = "/api/comments", api_key: Optional[str] = None,
                 query_parameters: Optional[str] = None, timeout: float = 30):
        self.base_url = base_url
        self.endpoint = endpoint
        self.api_key = api_key
        self.query_parameters = query_parameters
        self.timeout = timeout

    @property
    def source_name(self) -> str:
        return "API REST (Social Media Comments)"

    @property
    def url(self) -> str:
        url = f"{self.base_url.rstrip('/')}/{self.endpoint.lstrip('/')}"
        if self.query_parameters:
            url += f"?{self.query_parameters.lstrip('?')}"
        return url

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def extract(self, cancel_event: Optional[Event] = None) -> List[RawOpinion]:
        self.skipped = 0
        log.info(f"Consultando API de comentarios: {self.url}")
        try:
            resp = requests.get(self.url, headers=self._headers(), timeout=self.timeout)
            resp.raise_for_status()
            body = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise ExtractionError(self.source_name, e) from e

        if not isinstance(body, dict) or not isinstance(body.get("data"), list):
            raise ExtractionError(self.source_name, ValueError("Respuesta sin lista 'data'"))

        opinions = []
        for item in body["data"]:
            if is_cancelled(cancel_event):
                break
            if not isinstance(item, dict):
                log.warning(f"API: elemento no válido omitido: {item!r}")
                self.skipped += 1
                continue
            opinions.append(self._map_comment(item))

        log.info(f"API: {len(opinions)} de {body.get('total', len(opinions))} comentarios")
        return opinions

    @staticmethod
    def _map_comment(item: Dict[str, Any]) -> RawOpinion:
        metadata = {
            "Likes": str(item.get("likes") or 0),
            "Shares": str(item.get("shares") or 0),
            "UserHandle": _text(item.get("user_handle")) or "",
        }
        platform = _text(item.get("platform"))
        if platform:
            metadata["Platform"] = platform

        return RawOpinion(
            id_original=_text(item.get("id")) or "",
            cliente_id_raw=_text(item.get("user_id")),
            cliente_nombre=_text(item.get("user_handle")),
            producto_id_raw=_text(item.get("product_id")),
            fecha_raw=_text(item.get("created_at")),
            comentario_raw=_text(item.get("text")),
            fuente_origen=FUENTE_API,
            metadata=metadata,
        )

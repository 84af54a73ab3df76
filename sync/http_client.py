# http_client.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Type

import requests

import config
from errors import ApiError, ResponseShapeError

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


# ========= HTTP SESSION =========

def build_session(headers: Dict[str, str]) -> requests.Session:
    """
    Una Session por cliente. Sin reintentos automáticos: un fallo se
    reporta tal cual al llamador.
    """
    session = requests.Session()
    adapter = requests.adapters.HTTPAdapter(
        pool_connections=config.HTTP_POOL_CONNECTIONS,
        pool_maxsize=config.HTTP_POOL_MAXSIZE,
        max_retries=config.HTTP_MAX_RETRIES,
    )
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.headers.update(headers)
    return session


# ========= REQUEST + DECODE =========

def request_json(
    session: requests.Session,
    method: str,
    url: str,
    *,
    error_cls: Type[ApiError] = ApiError,
    timeout: int = config.HTTP_TIMEOUT,
    **kwargs: Any,
) -> Any:
    try:
        resp = session.request(method, url, timeout=timeout, **kwargs)
    except requests.RequestException as e:
        logger.error("[HTTP] %s %s excepción: %s", method, url, e)
        raise error_cls(f"{method} {url} failed: {e}", url=url) from e

    if not 200 <= resp.status_code < 300:
        logger.error(
            "[HTTP] %s %s status=%s body=%s",
            method, url, resp.status_code, resp.text[:400]
        )
        raise error_cls(
            f"{method} {url} failed",
            url=url,
            status_code=resp.status_code,
            body=resp.text,
        )

    logger.debug("[HTTP] %s %s status=%s", method, url, resp.status_code)

    if resp.status_code == 204 or not resp.content:
        return {}

    try:
        return resp.json()
    except ValueError as e:
        raise ResponseShapeError(url, f"non-JSON body: {resp.text[:100]!r}") from e


def decode_results(body: Any, url: str) -> List[Any]:
    """
    Las APIs de listado devuelven a veces {"results": [...]},
    a veces {"data": {"results": [...]}} y a veces una lista directa.
    Todo se reduce a una lista; cualquier otra forma es ResponseShapeError.
    """
    if isinstance(body, list):
        return body

    if isinstance(body, dict):
        data_block = body.get("data")
        if isinstance(data_block, dict) and isinstance(data_block.get("results"), list):
            return data_block["results"]
        if isinstance(body.get("results"), list):
            return body["results"]
        shape = f"dict keys={sorted(body.keys())}"
    else:
        shape = type(body).__name__

    raise ResponseShapeError(url, shape)


def join_url(base_url: str, path: str) -> str:
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


def next_cursor(body: Dict[str, Any]) -> Optional[str]:
    pages = body.get("pages") or {}
    nxt = pages.get("next")
    if isinstance(nxt, dict):
        return nxt.get("starting_after") or None
    return None

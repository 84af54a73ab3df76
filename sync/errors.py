# errors.py
from __future__ import annotations

from typing import Optional


class ConfigError(Exception):
    """Configuración incompleta (credenciales faltantes). Fatal al arrancar."""

    pass


class ApiError(Exception):
    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ):
        self.url = url
        self.status_code = status_code
        self.body = (body or "")[:400]
        detail = f" (status={status_code})" if status_code is not None else ""
        self.message = f"{message}{detail}"
        super().__init__(self.message)


class IntercomApiError(ApiError):
    pass


class CaplenaApiError(ApiError):
    pass


class ResponseShapeError(Exception):
    """La respuesta no tiene ninguna de las formas esperadas."""

    def __init__(self, url: str, shape: str):
        self.url = url
        self.shape = shape
        self.message = f"Unexpected response shape from {url}: {shape}"
        super().__init__(self.message)

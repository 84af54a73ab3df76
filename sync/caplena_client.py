# caplena_client.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests

import config
import http_client
from errors import CaplenaApiError, ResponseShapeError
from models import DestinationRow

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


# ========= ESQUEMA DEL PROYECTO =========

TEXT_COLUMN = "text"

PROJECT_COLUMNS: List[Dict[str, str]] = [
    {"name": TEXT_COLUMN,          "type": "text_to_analyze"},
    {"name": "conversation_id",    "type": "text"},
    {"name": "created_at",         "type": "text"},
    {"name": "updated_at",         "type": "text"},
    {"name": "subject",            "type": "text"},
    {"name": "source_url",         "type": "text"},
    {"name": "location_city",      "type": "text"},
    {"name": "location_region",    "type": "text"},
    {"name": "location_country",   "type": "text"},
    {"name": "contact_id",         "type": "text"},
    {"name": "browser",            "type": "text"},
    {"name": "browser_version",    "type": "text"},
    {"name": "browser_language",   "type": "text"},
    {"name": "os",                 "type": "text"},
    {"name": "referrer",           "type": "text"},
    {"name": "user_message_count", "type": "numerical"},
    {"name": "total_message_count", "type": "numerical"},
]


class CaplenaClient:
    """
    Cliente de Caplena: proyectos, alta masiva de filas, listado y borrado
    de filas. Todas las llamadas son secuenciales; el ritmo lo marca quien
    llama.
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = config.CAPLENA_BASE_URL,
        timeout: int = config.HTTP_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url
        self.timeout = timeout
        self.session = session or http_client.build_session({
            "Caplena-API-Key": api_key,
            "Accept": "application/json",
            "Content-Type": "application/json",
        })

    @classmethod
    def from_config(cls) -> "CaplenaClient":
        import secrets_store
        return cls(secrets_store.get_caplena_api_key())

    def _call(self, method: str, path: str, **kwargs: Any) -> Any:
        return http_client.request_json(
            self.session,
            method,
            http_client.join_url(self.base_url, path),
            error_cls=CaplenaApiError,
            timeout=self.timeout,
            **kwargs,
        )

    # ========= PROYECTOS =========

    def list_projects(self) -> List[Dict[str, Any]]:
        body = self._call("GET", "/v2/projects")
        projects = http_client.decode_results(body, "/v2/projects")
        logger.info("[CAPLENA] %d proyectos", len(projects))
        return projects

    def find_project_by_name(self, name: str) -> Optional[Dict[str, Any]]:
        for project in self.list_projects():
            if isinstance(project, dict) and project.get("name") == name:
                logger.info("[CAPLENA] Proyecto encontrado: %s (id=%s)", name, project.get("id"))
                return project

        logger.warning("[CAPLENA] Proyecto no encontrado: %s", name)
        return None

    def create_project(self, name: str, description: str = "") -> Dict[str, Any]:
        today = datetime.now(timezone.utc).date().isoformat()
        payload = {
            "name": name,
            "description": description or f"Intercom conversations export - {today}",
            "language": config.CAPLENA_PROJECT_LANGUAGE,
            "columns": PROJECT_COLUMNS,
        }
        project = self._call("POST", "/v2/projects", json=payload)
        if not isinstance(project, dict) or not project.get("id"):
            raise ResponseShapeError("/v2/projects", "created project without id")

        logger.info("[CAPLENA] Proyecto creado: %s (id=%s)", project.get("name"), project["id"])
        return project

    def ensure_project(self, name: str, description: str = "") -> Dict[str, Any]:
        existing = self.find_project_by_name(name)
        if existing:
            return existing
        logger.info("[CAPLENA] Proyecto %s no existe, se crea", name)
        return self.create_project(name, description)

    def delete_project(self, project_id: str) -> None:
        self._call("DELETE", f"/v2/projects/{project_id}")
        logger.info("[CAPLENA] Proyecto eliminado id=%s", project_id)

    # ========= FILAS =========

    def bulk_create_rows(self, project_id: str, rows: List[Dict[str, Any]]) -> Dict[str, Any]:
        body = self._call("POST", f"/v2/projects/{project_id}/rows/bulk", json=rows)
        if not isinstance(body, dict):
            raise ResponseShapeError(f"/v2/projects/{project_id}/rows/bulk", type(body).__name__)
        return body

    def list_rows_page(self, project_id: str, page: int, limit: int = config.ROWS_PAGE_SIZE):
        """Devuelve (filas, hay_mas)."""
        path = f"/v2/projects/{project_id}/rows"
        body = self._call("GET", path, params={"page": page, "limit": limit})
        raw_rows = http_client.decode_results(body, path)

        rows: List[DestinationRow] = []
        for raw in raw_rows:
            try:
                rows.append(DestinationRow.from_api(raw))
            except (KeyError, TypeError, AttributeError) as e:
                raise ResponseShapeError(path, f"invalid row: {raw!r}") from e

        has_more = isinstance(body, dict) and bool(body.get("next_url"))
        logger.info(
            "[CAPLENA] Filas página %d: %d (count=%s)",
            page, len(rows), body.get("count") if isinstance(body, dict) else "?"
        )
        return rows, has_more

    def delete_row(self, project_id: str, row_id: str) -> None:
        self._call("DELETE", f"/v2/projects/{project_id}/rows/{row_id}")
        logger.info("[CAPLENA] Fila eliminada %s (proyecto %s)", row_id, project_id)

    def test_connection(self) -> bool:
        try:
            self.list_projects()
        except (CaplenaApiError, ResponseShapeError) as e:
            logger.error("[CAPLENA] Conexión fallida: %s", e)
            return False
        return True

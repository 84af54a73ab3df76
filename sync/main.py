# main.py - intercom_caplena_sync (Cloud Function HTTP)
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

import functions_framework

import config
import daily_sync
import deduplicator
from caplena_client import CaplenaClient
from errors import ApiError, ConfigError, ResponseShapeError
from intercom_client import IntercomClient

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

JSON_HEADERS = {"Content-Type": "application/json"}


# =============== HELPERS ===============

def _params(request) -> Dict[str, Any]:
    """Query string + body JSON; el query manda."""
    body: Dict[str, Any] = {}
    if request.data:
        parsed = request.get_json(silent=True)
        if isinstance(parsed, dict):
            body = parsed
    args = request.args or {}
    return {**body, **{k: args.get(k) for k in args}}


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in ("1", "true", "yes", "on")


def _as_int(value: Any, default: int) -> int:
    if value is None or value == "":
        return default
    return int(value)


def _response(result: Dict[str, Any], status: int):
    return (json.dumps(result, default=str), status, JSON_HEADERS)


# =============== ENTRYPOINT: SYNC ===============

@functions_framework.http
def intercom_sync(request):

    if request.method not in ("GET", "POST"):
        return ("ok", 200)

    try:
        params = _params(request)
        hours = _as_int(params.get("hours"), config.LOOKBACK_HOURS)
        is_test = _as_bool(params.get("test"))
        project_name: Optional[str] = params.get("project") or config.CAPLENA_PROJECT_NAME
    except (TypeError, ValueError) as e:
        return _response({"success": False, "message": f"Invalid parameters: {e}"}, 400)

    logger.info("[MAIN] intercom_sync hours=%d test=%s project=%s", hours, is_test, project_name)

    try:
        config.require_credentials()
        intercom = IntercomClient.from_config()

        if is_test:
            result = daily_sync.preview_sync(intercom, hours)
        else:
            caplena = CaplenaClient.from_config()
            result = daily_sync.sync_new_conversations(
                intercom,
                caplena,
                lookback_hours=hours,
                project_name=project_name,
            )
    except ConfigError as e:
        logger.error("[MAIN] Configuración inválida: %s", e)
        return _response({"success": False, "message": str(e)}, 500)
    except (ApiError, ResponseShapeError) as e:
        logger.exception("[MAIN] Error en intercom_sync")
        return _response({"success": False, "message": str(e)}, 500)

    return _response(result.to_dict(), 200 if result.success else 500)


# =============== ENTRYPOINT: DEDUP ===============

@functions_framework.http
def caplena_dedup(request):

    if request.method not in ("GET", "POST"):
        return ("ok", 200)

    params = _params(request)
    project_name = params.get("project") or config.CAPLENA_PROJECT_NAME
    dry_run = _as_bool(params.get("dry_run"))

    logger.info("[MAIN] caplena_dedup project=%s dry_run=%s", project_name, dry_run)

    try:
        config.require_credentials()
        caplena = CaplenaClient.from_config()

        project = caplena.find_project_by_name(project_name)
        if not project:
            return _response({"success": False, "message": f"Project not found: {project_name}"}, 404)

        summary = deduplicator.deduplicate_project(caplena, str(project["id"]), dry_run=dry_run)
    except ConfigError as e:
        logger.error("[MAIN] Configuración inválida: %s", e)
        return _response({"success": False, "message": str(e)}, 500)
    except (ApiError, ResponseShapeError) as e:
        logger.exception("[MAIN] Error en caplena_dedup")
        return _response({"success": False, "message": str(e)}, 500)

    result = {"success": summary.failed == 0, "projectId": project["id"], **summary.to_dict()}
    return _response(result, 200)

# batch_uploader.py
from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional, Sequence, TypeVar

import pandas as pd

import config
from caplena_client import CaplenaClient, TEXT_COLUMN
from errors import CaplenaApiError, ResponseShapeError
from models import BatchResult, Transcript, UploadResult

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

T = TypeVar("T")

TEXT_SEPARATOR = "\n\n"


# ---------- COERCIÓN ----------

def epoch_text(ts: Any) -> str:
    """Epoch en segundos como texto entero. Vacío si falta o no es numérico."""
    if ts is None or ts == "" or ts == 0:
        return ""
    n = pd.to_numeric(ts, errors="coerce")
    if pd.isna(n):
        logger.warning("[UPLOAD] epoch_text: no se pudo parsear ts=%r", ts)
        return ""
    return str(int(n))


# ---------- PAYLOAD ----------

def build_row_payload(transcript: Transcript) -> Optional[Dict[str, Any]]:
    """
    Una fila de Caplena por conversación. None si ningún mensaje tiene texto.
    """
    bodies = [m.body for m in transcript.messages if m.body and m.body.strip()]
    if not bodies:
        return None

    return {
        "columns": [
            {"ref": TEXT_COLUMN, "value": TEXT_SEPARATOR.join(bodies), "was_reviewed": False},
            {"ref": "conversation_id",     "value": str(transcript.conversation_id)},
            {"ref": "created_at",          "value": epoch_text(transcript.created_at)},
            {"ref": "updated_at",          "value": epoch_text(transcript.updated_at)},
            {"ref": "subject",             "value": transcript.subject or ""},
            {"ref": "source_url",          "value": transcript.source_url or ""},
            {"ref": "location_city",       "value": transcript.location_city or ""},
            {"ref": "location_region",     "value": transcript.location_region or ""},
            {"ref": "location_country",    "value": transcript.location_country or ""},
            {"ref": "contact_id",          "value": transcript.contact_id or ""},
            {"ref": "browser",             "value": transcript.browser or ""},
            {"ref": "browser_version",     "value": transcript.browser_version or ""},
            {"ref": "browser_language",    "value": transcript.browser_language or ""},
            {"ref": "os",                  "value": transcript.os or ""},
            {"ref": "referrer",            "value": transcript.referrer or ""},
            {"ref": "user_message_count",  "value": int(len(transcript.messages))},
            {"ref": "total_message_count", "value": int(max(transcript.total_message_count, len(transcript.messages)))},
        ]
    }


def partition(items: Sequence[T], size: int = config.BATCH_SIZE) -> List[List[T]]:
    if size <= 0:
        raise ValueError("batch size must be positive")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


# ---------- UPLOAD ----------

def upload(
    client: CaplenaClient,
    project_id: str,
    transcripts: Sequence[Transcript],
    *,
    batch_size: int = config.BATCH_SIZE,
    request_delay: float = config.REQUEST_DELAY_SECONDS,
) -> UploadResult:
    """
    Sube los transcripts en lotes secuenciales. El primer lote fallido corta
    la subida: no se reintenta ni se intentan los lotes siguientes.
    """
    logger.info("[UPLOAD] %d transcripts -> proyecto %s", len(transcripts), project_id)

    rows = [r for r in (build_row_payload(t) for t in transcripts) if r is not None]
    if not rows:
        logger.warning("[UPLOAD] Sin datos válidos para subir")
        return UploadResult(success=False, project_id=project_id, reason="NO_VALID_DATA")

    batches = partition(rows, batch_size)
    result = UploadResult(success=True, project_id=project_id, batch_count=len(batches))
    logger.info("[UPLOAD] %d filas en %d lotes de hasta %d", len(rows), len(batches), batch_size)

    for i, batch in enumerate(batches):
        try:
            body = client.bulk_create_rows(project_id, batch)
        except (CaplenaApiError, ResponseShapeError) as e:
            logger.error(
                "[UPLOAD] Lote %d/%d FALLÓ, se abortan los %d restantes: %s",
                i + 1, len(batches), len(batches) - i - 1, e
            )
            result.success = False
            result.failed_batch_index = i
            result.reason = f"BATCH_FAILED: {e}"
            return result

        queued = int(body.get("queued_rows_count") or 0)
        result.per_batch_results.append(BatchResult(
            index=i,
            size=len(batch),
            status=str(body.get("status") or ""),
            task_id=body.get("task_id"),
            queued_rows_count=queued,
            raw=body,
        ))
        result.batches_sent += 1
        result.uploaded_count += queued

        logger.info(
            "[UPLOAD] Lote %d/%d OK status=%s task_id=%s queued=%d",
            i + 1, len(batches), body.get("status"), body.get("task_id"), queued
        )

        if i < len(batches) - 1 and request_delay > 0:
            time.sleep(request_delay)

    logger.info(
        "[UPLOAD] Subida completa proyecto=%s filas=%d lotes=%d",
        project_id, result.uploaded_count, result.batch_count
    )
    return result

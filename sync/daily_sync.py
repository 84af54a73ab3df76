# daily_sync.py
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import batch_uploader
import config
import transcript_extractor
from caplena_client import CaplenaClient
from csv_exporter import CsvExporter
from errors import CaplenaApiError, ResponseShapeError
from intercom_client import IntercomClient
from models import ConversationDetail, SyncResult, Transcript

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


# =============== HELPERS ===============

def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def since_timestamp(lookback_hours: int, now: Optional[datetime] = None) -> int:
    ref = now or now_utc()
    return int((ref - timedelta(hours=lookback_hours)).timestamp())


def _fetch_transcripts(intercom: IntercomClient, lookback_hours: int) -> List[Transcript]:
    since = since_timestamp(lookback_hours)
    details = intercom.fetch_conversations_since(since)
    return transcript_extractor.extract_transcripts(details)


def _result_from_transcripts(
    transcripts: List[Transcript],
    *,
    success: bool,
    message: str,
) -> SyncResult:
    stats = transcript_extractor.transcript_stats(transcripts)
    return SyncResult(
        success=success,
        message=message,
        conversation_count=stats["conversationCount"],
        total_messages=stats["totalMessages"],
    )


# =============== SYNC DIARIO ===============

def sync_new_conversations(
    intercom: IntercomClient,
    caplena: CaplenaClient,
    *,
    lookback_hours: int = config.LOOKBACK_HOURS,
    project_name: str = config.CAPLENA_PROJECT_NAME,
) -> SyncResult:
    """
    Conversaciones actualizadas en las últimas `lookback_hours` horas ->
    transcripts -> proyecto de Caplena.
    """
    logger.info("[SYNC] Inicio sync lookback_hours=%d proyecto=%s", lookback_hours, project_name)

    transcripts = _fetch_transcripts(intercom, lookback_hours)
    if not transcripts:
        msg = f"No new conversations with user messages in the last {lookback_hours} hours"
        logger.info("[SYNC] %s", msg)
        return SyncResult(success=True, message=msg)

    try:
        project = caplena.ensure_project(project_name, "Intercom conversations export")
    except (CaplenaApiError, ResponseShapeError) as e:
        logger.error("[SYNC] No se pudo obtener/crear el proyecto %s: %s", project_name, e)
        return _result_from_transcripts(
            transcripts,
            success=False,
            message=f"Failed to create or find project {project_name}: {e}",
        )

    project_id = str(project["id"])
    upload_result = batch_uploader.upload(caplena, project_id, transcripts)

    result = _result_from_transcripts(
        transcripts,
        success=upload_result.success,
        message=(
            f"Successfully synced {len(transcripts)} new conversations"
            if upload_result.success
            else f"Upload failed: {upload_result.reason}"
        ),
    )
    result.upload_result = upload_result
    result.project_id = project_id

    logger.info(
        "[SYNC] Fin sync success=%s conversaciones=%d mensajes=%d subidas=%d",
        result.success, result.conversation_count, result.total_messages,
        upload_result.uploaded_count
    )
    return result


def preview_sync(intercom: IntercomClient, hours_back: int = config.LOOKBACK_HOURS) -> SyncResult:
    """Solo extracción, sin subir. Devuelve hasta 3 transcripts de muestra."""
    logger.info("[SYNC] Test sync últimas %d horas", hours_back)

    transcripts = _fetch_transcripts(intercom, hours_back)
    result = _result_from_transcripts(
        transcripts,
        success=True,
        message=f"Test completed - found {len(transcripts)} valid transcripts",
    )
    result.sample_transcripts = transcripts[:3]
    return result


# =============== EXPORT COMPLETO A CSV ===============

def extract_and_export(
    intercom: IntercomClient,
    exporter: CsvExporter,
    *,
    limit: Optional[int] = None,
) -> SyncResult:
    """
    Extracción completa de Intercom guardando en CSV página a página.
    """
    saved: List[Transcript] = []

    def save_page(details: List[ConversationDetail]) -> None:
        for transcript in transcript_extractor.extract_transcripts(details):
            exporter.append_transcript(transcript)
            saved.append(transcript)
        logger.info("[SYNC] CSV: %d conversaciones guardadas", len(saved))

    with exporter:
        intercom.fetch_all_conversations(limit=limit, on_page=save_page)

    return _result_from_transcripts(
        saved,
        success=True,
        message=f"Exported {len(saved)} conversations to {exporter.output_path}",
    )

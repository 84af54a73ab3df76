# deduplicator.py
from __future__ import annotations

import logging
import time
from typing import Dict, List, Optional, Sequence

import config
from caplena_client import CaplenaClient, TEXT_COLUMN
from errors import CaplenaApiError, ResponseShapeError
from models import DedupSummary, DeleteError, DeleteResult, DestinationRow, DuplicatePair

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

KEY_SEPARATOR = "|"


# ========= LISTADO COMPLETO =========

def list_all_rows(
    client: CaplenaClient,
    project_id: str,
    *,
    request_delay: float = config.REQUEST_DELAY_SECONDS,
) -> List[DestinationRow]:
    """
    Recorre todas las páginas antes de devolver. Un error de listado se
    propaga: no se deduplica sobre datos parciales.
    """
    all_rows: List[DestinationRow] = []
    page = 1

    while True:
        rows, has_more = client.list_rows_page(project_id, page)
        all_rows.extend(rows)
        logger.info("[DEDUP] Página %d: %d filas (acumuladas %d)", page, len(rows), len(all_rows))

        if not has_more:
            break
        page += 1
        if request_delay > 0:
            time.sleep(request_delay)

    logger.info("[DEDUP] Total filas proyecto %s: %d", project_id, len(all_rows))
    return all_rows


# ========= DETECCIÓN =========

def dedup_key(row: DestinationRow) -> Optional[str]:
    conversation_id = row.column_value("conversation_id")
    text = row.column_value(TEXT_COLUMN)
    if not conversation_id or not text:
        return None
    return f"{conversation_id}{KEY_SEPARATOR}{text}"


def find_duplicates(rows: Sequence[DestinationRow]) -> List[DuplicatePair]:
    """
    La primera fila vista con una clave es la original; las siguientes con la
    misma clave son duplicados. Filas sin conversation_id o text se ignoran.
    """
    logger.info("[DEDUP] Analizando %d filas", len(rows))

    seen: Dict[str, DestinationRow] = {}
    duplicates: List[DuplicatePair] = []

    for row in rows:
        key = dedup_key(row)
        if key is None:
            logger.warning("[DEDUP] Fila %s sin conversation_id o text, se omite", row.id)
            continue

        original = seen.get(key)
        if original is None:
            seen[key] = row
            continue

        duplicates.append(DuplicatePair(original=original, duplicate=row, key=key))
        logger.info("[DEDUP] Fila %s duplica a %s", row.id, original.id)

    logger.info("[DEDUP] %d pares duplicados", len(duplicates))
    return duplicates


# ========= BORRADO =========

def delete_rows(
    client: CaplenaClient,
    project_id: str,
    row_ids: Sequence[str],
    *,
    request_delay: float = config.REQUEST_DELAY_SECONDS,
) -> DeleteResult:
    """
    Borra fila por fila. Un fallo se registra y se sigue con la siguiente.
    """
    result = DeleteResult()
    total = len(row_ids)

    for i, row_id in enumerate(row_ids):
        try:
            client.delete_row(project_id, row_id)
            result.successful += 1
            logger.info("[DEDUP] Borrada %d/%d: %s", i + 1, total, row_id)
        except (CaplenaApiError, ResponseShapeError) as e:
            result.failed += 1
            result.errors.append(DeleteError(row_id=row_id, error=str(e)))
            logger.error("[DEDUP] Fallo al borrar %d/%d: %s (%s)", i + 1, total, row_id, e)

        if i < total - 1 and request_delay > 0:
            time.sleep(request_delay)

    logger.info(
        "[DEDUP] Borrado terminado: ok=%d fallidas=%d total=%d",
        result.successful, result.failed, total
    )
    return result


def delete_duplicates(
    client: CaplenaClient,
    project_id: str,
    duplicates: Sequence[DuplicatePair],
    *,
    request_delay: float = config.REQUEST_DELAY_SECONDS,
) -> DeleteResult:
    if not duplicates:
        logger.info("[DEDUP] Sin duplicados para borrar")
        return DeleteResult()

    logger.info("[DEDUP] Borrando %d duplicados", len(duplicates))
    return delete_rows(
        client,
        project_id,
        [d.duplicate.id for d in duplicates],
        request_delay=request_delay,
    )


def delete_all_rows(
    client: CaplenaClient,
    project_id: str,
    rows: Sequence[DestinationRow],
    *,
    request_delay: float = config.REQUEST_DELAY_SECONDS,
) -> DeleteResult:
    if not rows:
        logger.info("[DEDUP] Sin filas para borrar")
        return DeleteResult()

    logger.info("[DEDUP] Vaciando proyecto %s: %d filas", project_id, len(rows))
    return delete_rows(client, project_id, [r.id for r in rows], request_delay=request_delay)


# ========= FLUJOS COMPLETOS =========

def deduplicate_project(
    client: CaplenaClient,
    project_id: str,
    *,
    dry_run: bool = False,
    request_delay: float = config.REQUEST_DELAY_SECONDS,
) -> DedupSummary:
    logger.info("[DEDUP] Inicio deduplicación proyecto=%s dry_run=%s", project_id, dry_run)

    rows = list_all_rows(client, project_id, request_delay=request_delay)
    duplicates = find_duplicates(rows)

    summary = DedupSummary(
        total_rows=len(rows),
        duplicates=len(duplicates),
        pairs=duplicates,
        dry_run=dry_run,
    )
    if dry_run or not duplicates:
        return summary

    deletion = delete_duplicates(client, project_id, duplicates, request_delay=request_delay)
    summary.deleted = deletion.successful
    summary.failed = deletion.failed
    summary.errors = deletion.errors

    logger.info(
        "[DEDUP] Fin proyecto=%s filas=%d duplicados=%d borrados=%d fallidos=%d",
        project_id, summary.total_rows, summary.duplicates, summary.deleted, summary.failed
    )
    return summary


def empty_project(
    client: CaplenaClient,
    project_id: str,
    *,
    request_delay: float = config.REQUEST_DELAY_SECONDS,
) -> DeleteResult:
    rows = list_all_rows(client, project_id, request_delay=request_delay)
    return delete_all_rows(client, project_id, rows, request_delay=request_delay)

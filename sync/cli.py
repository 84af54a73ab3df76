# cli.py
from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

import config
import daily_sync
import deduplicator
from caplena_client import CaplenaClient
from csv_exporter import CsvExporter
from errors import ApiError, ConfigError, ResponseShapeError
from intercom_client import IntercomClient

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="intercom-caplena-sync",
        description="Sincroniza conversaciones de Intercom con Caplena.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_sync = sub.add_parser("sync", help="Sube las conversaciones recientes a Caplena")
    p_sync.add_argument("--hours", type=int, default=config.LOOKBACK_HOURS)
    p_sync.add_argument("--test", action="store_true", help="Solo extracción, sin subir")
    p_sync.add_argument("--project", default=config.CAPLENA_PROJECT_NAME)

    p_export = sub.add_parser("export", help="Extracción completa a CSV")
    p_export.add_argument("--limit", type=int, default=None)
    p_export.add_argument("--output", default=config.CSV_OUTPUT_PATH)

    p_dedup = sub.add_parser("dedup", help="Elimina filas duplicadas del proyecto")
    p_dedup.add_argument("--project", default=config.CAPLENA_PROJECT_NAME)
    p_dedup.add_argument("--dry-run", action="store_true")

    p_empty = sub.add_parser("empty", help="Borra todas las filas del proyecto")
    p_empty.add_argument("--project", default=config.CAPLENA_PROJECT_NAME)

    return parser


def _print_stats(result) -> None:
    print(f"   - Conversations: {result.conversation_count}")
    print(f"   - Total Messages: {result.total_messages}")
    print(f"   - Message: {result.message}")


def _run_sync(args) -> int:
    intercom = IntercomClient.from_config()

    if args.test:
        result = daily_sync.preview_sync(intercom, args.hours)
        _print_stats(result)
        for i, t in enumerate(result.sample_transcripts, start=1):
            print(f"   {i}. {t.conversation_id} - {len(t.messages)} messages")
        return 0

    result = daily_sync.sync_new_conversations(
        intercom,
        CaplenaClient.from_config(),
        lookback_hours=args.hours,
        project_name=args.project,
    )
    _print_stats(result)
    if result.upload_result is not None:
        print(f"   - Project ID: {result.project_id}")
        print(f"   - Uploaded: {result.upload_result.uploaded_count} rows")
        print(f"   - Batches: {result.upload_result.batches_sent}/{result.upload_result.batch_count}")
    return 0 if result.success else 1


def _run_export(args) -> int:
    result = daily_sync.extract_and_export(
        IntercomClient.from_config(),
        CsvExporter(args.output),
        limit=args.limit,
    )
    _print_stats(result)
    return 0


def _find_project_id(caplena: CaplenaClient, name: str) -> Optional[str]:
    project = caplena.find_project_by_name(name)
    if not project:
        print(f"Project not found: {name}", file=sys.stderr)
        return None
    return str(project["id"])


def _run_dedup(args) -> int:
    caplena = CaplenaClient.from_config()
    project_id = _find_project_id(caplena, args.project)
    if project_id is None:
        return 1

    summary = deduplicator.deduplicate_project(caplena, project_id, dry_run=args.dry_run)
    print(f"   - Total Rows: {summary.total_rows}")
    print(f"   - Duplicates Found: {summary.duplicates}")
    if args.dry_run:
        for i, pair in enumerate(summary.pairs, start=1):
            print(f"   {i}. Row {pair.duplicate.id} duplicates {pair.original.id}")
        return 0

    print(f"   - Successfully Deleted: {summary.deleted}")
    print(f"   - Failed Deletions: {summary.failed}")
    for err in summary.errors:
        print(f"   - Row {err.row_id}: {err.error}")
    return 0 if summary.failed == 0 else 1


def _run_empty(args) -> int:
    caplena = CaplenaClient.from_config()
    project_id = _find_project_id(caplena, args.project)
    if project_id is None:
        return 1

    result = deduplicator.empty_project(caplena, project_id)
    print(f"   - Successfully Deleted: {result.successful}")
    print(f"   - Failed Deletions: {result.failed}")
    return 0 if result.failed == 0 else 1


COMMANDS = {
    "sync": _run_sync,
    "export": _run_export,
    "dedup": _run_dedup,
    "empty": _run_empty,
}


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(level=config.LOG_LEVEL)
    args = build_parser().parse_args(argv)

    try:
        config.require_credentials()
        return COMMANDS[args.command](args)
    except ConfigError as e:
        logger.error("[CLI] Configuración inválida: %s", e)
        return 1
    except (ApiError, ResponseShapeError) as e:
        logger.error("[CLI] %s falló: %s", args.command, e)
        return 1


if __name__ == "__main__":
    sys.exit(main())

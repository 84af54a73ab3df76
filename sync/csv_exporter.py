# csv_exporter.py
from __future__ import annotations

import csv
import io
import logging
from pathlib import Path
from typing import IO, Any, Dict, Iterable, List, Optional

import config
from models import Transcript
from transcript_extractor import transcript_stats

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

CSV_HEADERS = [
    "conversation_id",
    "created_at",
    "updated_at",
    "subject",
    "message_id",
    "message_type",
    "message_body",
    "author_type",
    "author_id",
    "author_name",
    "message_created_at",
]


def escape_field(value: Any) -> str:
    # Las comillas las duplica csv.writer; aquí solo se aplanan saltos de línea
    if value is None:
        return ""
    return str(value).replace("\r", " ").replace("\n", " ")


def transcript_rows(transcript: Transcript) -> List[List[str]]:
    """Una fila por mensaje retenido."""
    rows: List[List[str]] = []
    for m in transcript.messages:
        rows.append([
            escape_field(transcript.conversation_id),
            escape_field(transcript.created_at),
            escape_field(transcript.updated_at),
            escape_field(transcript.subject),
            escape_field(m.id),
            escape_field(m.type),
            escape_field(m.body),
            escape_field(m.author.type),
            escape_field(m.author.id),
            escape_field(m.author.name),
            escape_field(m.created_at),
        ])
    return rows


def _writer(fh: IO[str]):
    return csv.writer(fh, quoting=csv.QUOTE_ALL, lineterminator="\n")


def to_csv_text(transcripts: Iterable[Transcript]) -> str:
    buf = io.StringIO()
    writer = _writer(buf)
    writer.writerow(CSV_HEADERS)
    for t in transcripts:
        writer.writerows(transcript_rows(t))
    return buf.getvalue()


class CsvExporter:
    """
    Exportador CSV append-only. open() crea el archivo (y la cabecera) solo
    si no existe o está vacío; si ya tiene contenido, se agrega al final.
    """

    def __init__(self, output_path: str = config.CSV_OUTPUT_PATH) -> None:
        self.output_path = Path(output_path)
        self._fh: Optional[IO[str]] = None
        self._writer = None
        self.saved_conversations = 0

    # ---------- ESCRITURA INCREMENTAL ----------

    def open(self) -> "CsvExporter":
        if self._fh is not None:
            logger.warning("[CSV] Ya inicializado, se omite re-inicialización")
            return self

        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        is_new = not self.output_path.exists() or self.output_path.stat().st_size == 0

        self._fh = open(self.output_path, "a", encoding="utf-8", newline="")
        self._writer = _writer(self._fh)

        if is_new:
            self._writer.writerow(CSV_HEADERS)
            logger.info("[CSV] Archivo nuevo con cabecera: %s", self.output_path)
        else:
            logger.info("[CSV] Archivo existente, se agregan filas: %s", self.output_path)
        return self

    def append_transcript(self, transcript: Transcript) -> None:
        if self._fh is None:
            raise RuntimeError("CSV file not initialized. Call open() first.")

        self._writer.writerows(transcript_rows(transcript))
        self._fh.flush()
        self.saved_conversations += 1
        logger.debug(
            "[CSV] conversation=%s mensajes=%d",
            transcript.conversation_id, len(transcript.messages)
        )

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None
            self._writer = None
            logger.info("[CSV] Cerrado %s (guardadas=%d)", self.output_path, self.saved_conversations)

    def __enter__(self) -> "CsvExporter":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ---------- EXPORT COMPLETO ----------

    def export(self, transcripts: List[Transcript]) -> Optional[Path]:
        """Reescribe el archivo completo."""
        if not transcripts:
            logger.warning("[CSV] Sin transcripts para exportar")
            return None

        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        self.output_path.write_text(to_csv_text(transcripts), encoding="utf-8")

        stats = self.export_stats(transcripts)
        logger.info(
            "[CSV] Export OK %s conversaciones=%d mensajes=%d",
            self.output_path, stats["conversationCount"], stats["totalMessages"]
        )
        return self.output_path

    def export_stats(self, transcripts: List[Transcript]) -> Dict[str, Any]:
        return {**transcript_stats(transcripts), "filePath": str(self.output_path)}

# models.py

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

AUTHOR_USER = "user"


def _to_int(value: Any) -> int:
    if value is None or value == "":
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        return int(float(value))


def _to_str(value: Any) -> str:
    return "" if value is None else str(value)


# ========= INTERCOM =========

@dataclass(frozen=True)
class ConversationSummary:
    id: str
    updated_at: int

    @classmethod
    def from_api(cls, raw: Dict[str, Any]) -> "ConversationSummary":
        return cls(id=str(raw["id"]), updated_at=_to_int(raw.get("updated_at")))


@dataclass(frozen=True)
class Author:
    type: str
    id: str
    name: str

    @classmethod
    def from_api(cls, raw: Optional[Dict[str, Any]]) -> "Author":
        raw = raw or {}
        return cls(
            type=_to_str(raw.get("type")),
            id=_to_str(raw.get("id")),
            name=_to_str(raw.get("name")),
        )


@dataclass(frozen=True)
class MessagePart:
    id: str
    type: str
    body: str
    author: Author
    created_at: int

    @property
    def is_user(self) -> bool:
        return self.author.type == AUTHOR_USER

    @classmethod
    def from_api(cls, raw: Dict[str, Any]) -> "MessagePart":
        return cls(
            id=_to_str(raw.get("id")),
            type=_to_str(raw.get("part_type")),
            body=_to_str(raw.get("body")),
            author=Author.from_api(raw.get("author")),
            created_at=_to_int(raw.get("created_at")),
        )


@dataclass(frozen=True)
class ContactDetail:
    id: str
    browser: str = ""
    browser_version: str = ""
    browser_language: str = ""
    os: str = ""
    referrer: str = ""
    location_city: str = ""
    location_region: str = ""
    location_country: str = ""

    @classmethod
    def from_api(cls, raw: Dict[str, Any]) -> "ContactDetail":
        location = raw.get("location") or {}
        return cls(
            id=_to_str(raw.get("id")),
            browser=_to_str(raw.get("browser")),
            browser_version=_to_str(raw.get("browser_version")),
            browser_language=_to_str(raw.get("browser_language")),
            os=_to_str(raw.get("os")),
            referrer=_to_str(raw.get("referrer")),
            location_city=_to_str(location.get("city")),
            location_region=_to_str(location.get("region")),
            location_country=_to_str(location.get("country")),
        )


@dataclass(frozen=True)
class ConversationDetail:
    id: str
    created_at: int
    updated_at: int
    subject: str
    parts: Tuple[MessagePart, ...]
    contact_id: Optional[str] = None
    source_url: str = ""
    contact: Optional[ContactDetail] = None
    is_fallback: bool = False

    @classmethod
    def from_api(cls, raw: Dict[str, Any]) -> "ConversationDetail":
        created_at = _to_int(raw.get("created_at"))
        # updated_at nunca menor que created_at
        updated_at = max(_to_int(raw.get("updated_at")), created_at)

        message = raw.get("conversation_message") or raw.get("source") or {}
        first_reply = raw.get("first_contact_reply") or {}
        source_url = first_reply.get("url") or message.get("url") or ""

        parts_block = raw.get("conversation_parts") or {}
        parts = tuple(
            MessagePart.from_api(p)
            for p in (parts_block.get("conversation_parts") or [])
            if isinstance(p, dict)
        )

        contacts = (raw.get("contacts") or {}).get("contacts") or []
        contact_id = str(contacts[0]["id"]) if contacts and contacts[0].get("id") else None

        return cls(
            id=str(raw["id"]),
            created_at=created_at,
            updated_at=updated_at,
            subject=_to_str(message.get("subject")),
            parts=parts,
            contact_id=contact_id,
            source_url=_to_str(source_url),
        )

    @classmethod
    def from_summary(cls, summary: ConversationSummary) -> "ConversationDetail":
        return cls(
            id=summary.id,
            created_at=summary.updated_at,
            updated_at=summary.updated_at,
            subject="",
            parts=(),
            is_fallback=True,
        )


@dataclass(frozen=True)
class Transcript:
    conversation_id: str
    created_at: int
    updated_at: int
    subject: str
    messages: Tuple[MessagePart, ...]
    total_message_count: int = 0
    source_url: str = ""
    location_city: str = ""
    location_region: str = ""
    location_country: str = ""
    contact_id: str = ""
    browser: str = ""
    browser_version: str = ""
    browser_language: str = ""
    os: str = ""
    referrer: str = ""

    def __post_init__(self):
        if not self.messages:
            raise ValueError(f"Transcript {self.conversation_id} sin mensajes")


# ========= CAPLENA =========

@dataclass(frozen=True)
class DestinationRow:
    id: str
    columns: Tuple[Dict[str, Any], ...]

    def column_value(self, ref: str) -> Any:
        for col in self.columns:
            if col.get("ref") == ref:
                return col.get("value")
        return None

    @classmethod
    def from_api(cls, raw: Dict[str, Any]) -> "DestinationRow":
        columns = tuple(c for c in (raw.get("columns") or []) if isinstance(c, dict))
        return cls(id=str(raw["id"]), columns=columns)


@dataclass(frozen=True)
class DuplicatePair:
    original: DestinationRow
    duplicate: DestinationRow
    key: str


# ========= RESULTADOS =========

@dataclass
class DetailFetchResult:
    # "OK" | "OK_NO_CONTACT" | "FALLBACK"
    status: str
    detail: ConversationDetail
    reason: Optional[str] = None


@dataclass
class BatchResult:
    index: int
    size: int
    status: str
    task_id: Optional[str] = None
    queued_rows_count: int = 0
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class UploadResult:
    success: bool
    project_id: Optional[str] = None
    uploaded_count: int = 0
    batch_count: int = 0
    batches_sent: int = 0
    per_batch_results: List[BatchResult] = field(default_factory=list)
    failed_batch_index: Optional[int] = None
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "projectId": self.project_id,
            "uploadedCount": self.uploaded_count,
            "batchCount": self.batch_count,
            "batchesSent": self.batches_sent,
            "failedBatchIndex": self.failed_batch_index,
            "reason": self.reason,
            "uploadResults": [r.raw for r in self.per_batch_results],
        }


@dataclass
class DeleteError:
    row_id: str
    error: str


@dataclass
class DeleteResult:
    successful: int = 0
    failed: int = 0
    errors: List[DeleteError] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "successful": self.successful,
            "failed": self.failed,
            "errors": [{"rowId": e.row_id, "error": e.error} for e in self.errors],
        }


@dataclass
class DedupSummary:
    total_rows: int
    duplicates: int
    deleted: int = 0
    failed: int = 0
    errors: List[DeleteError] = field(default_factory=list)
    pairs: List[DuplicatePair] = field(default_factory=list)
    dry_run: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalRows": self.total_rows,
            "duplicates": self.duplicates,
            "deleted": self.deleted,
            "failed": self.failed,
            "dryRun": self.dry_run,
            "errors": [{"rowId": e.row_id, "error": e.error} for e in self.errors],
            "pairs": [
                {"original": p.original.id, "duplicate": p.duplicate.id, "key": p.key}
                for p in self.pairs
            ],
        }


@dataclass
class SyncResult:
    success: bool
    message: str
    conversation_count: int = 0
    total_messages: int = 0
    upload_result: Optional[UploadResult] = None
    project_id: Optional[str] = None
    sample_transcripts: List[Transcript] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "success": self.success,
            "message": self.message,
            "stats": {
                "conversationCount": self.conversation_count,
                "totalMessages": self.total_messages,
            },
        }
        if self.upload_result is not None:
            result["uploadResult"] = self.upload_result.to_dict()
        if self.project_id is not None:
            result["projectId"] = self.project_id
        if self.sample_transcripts:
            result["transcripts"] = [
                {"conversationId": t.conversation_id, "messageCount": len(t.messages)}
                for t in self.sample_transcripts
            ]
        return result

# transcript_extractor.py
from __future__ import annotations

import html
import logging
import re
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

from models import ConversationDetail, MessagePart, Transcript

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


# ---------- RESPUESTAS DE CATÁLOGO ----------

# Lista canónica. Cualquier cambio sube la versión.
BOILERPLATE_VERSION = "1"

BOILERPLATE_PHRASES = (
    "Not just yet, thank you.",
    "No, thanks.",
    "Yes, please.",
    "I have a question.",
    "It sounds great, please send it over.",
    "Thank you.",
    "Thanks.",
    "No thank you.",
    "No, thank you.",
    "Yes thank you.",
    "Please send it over.",
    "Please send it.",
    "Send it over.",
    "Send it please.",
    "I would like to receive it.",
    "I would like to receive the catalogue.",
    "I would like to receive the catalog.",
    "Please send me the catalogue.",
    "Please send me the catalog.",
    "I would be interested in receiving a catalogue.",
    "I would be interested in receiving a catalog.",
    "I would be interested in receiving a cataloque.",
    "Yes, please do that.",
    "Maybe – what's in it?",
    "Please add these",
    "Sound great, send it over",
    "Yes, everything makes sense – thank you.",
    "Yes, I have a question.",
    "I see, thank you.",
    "Thank you for the info.",
)


# ---------- NORMALIZACIÓN DE TEXTO ----------

_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"\s+")

_QUOTE_MAP = str.maketrans({
    "\u2018": "'",
    "\u2019": "'",
    "\u201a": "'",
    "\u201b": "'",
    "\u2032": "'",
    "\u02bc": "'",
    "\u201c": '"',
    "\u201d": '"',
    "\u201e": '"',
    "\u201f": '"',
    "\u2033": '"',
})


def strip_markup(body: str) -> str:
    return html.unescape(_TAG_RE.sub("", body or ""))


def normalize_text(text: str) -> str:
    """Comillas a ASCII, espacios colapsados, trim."""
    return _WS_RE.sub(" ", (text or "").translate(_QUOTE_MAP)).strip()


def normalize_body(body: str) -> str:
    return normalize_text(strip_markup(body))


def _comparison_key(text: str) -> str:
    return normalize_text(text).casefold()


_BOILERPLATE_KEYS: FrozenSet[str] = frozenset(_comparison_key(p) for p in BOILERPLATE_PHRASES)


def is_boilerplate(body: str) -> bool:
    """
    Match exacto tras normalizar (sin fuzzy): un signo de puntuación
    distinto ya no es boilerplate.
    """
    return normalize_body(body).casefold() in _BOILERPLATE_KEYS


# ---------- CALIFICACIÓN / EXTRACCIÓN ----------

def is_qualifying(detail: ConversationDetail) -> bool:
    return any(p.is_user for p in detail.parts)


def normalize(detail: ConversationDetail) -> Optional[Transcript]:
    """
    Devuelve el Transcript con los mensajes de usuario que no son
    boilerplate, en su orden original. None si no queda ninguno.
    """
    user_parts = [p for p in detail.parts if p.is_user]
    if not user_parts:
        return None

    kept: List[MessagePart] = []
    for part in user_parts:
        if is_boilerplate(part.body):
            logger.debug("[EXTRACT] conversation=%s part=%s boilerplate descartado", detail.id, part.id)
            continue
        kept.append(part)

    if not kept:
        logger.info("[EXTRACT] conversation=%s solo tiene respuestas de catálogo", detail.id)
        return None

    contact = detail.contact
    return Transcript(
        conversation_id=detail.id,
        created_at=detail.created_at,
        updated_at=detail.updated_at,
        subject=detail.subject,
        messages=tuple(kept),
        total_message_count=len(detail.parts),
        source_url=detail.source_url,
        contact_id=detail.contact_id or "",
        location_city=contact.location_city if contact else "",
        location_region=contact.location_region if contact else "",
        location_country=contact.location_country if contact else "",
        browser=contact.browser if contact else "",
        browser_version=contact.browser_version if contact else "",
        browser_language=contact.browser_language if contact else "",
        os=contact.os if contact else "",
        referrer=contact.referrer if contact else "",
    )


def extract_transcripts(details: Iterable[ConversationDetail]) -> List[Transcript]:
    output: List[Transcript] = []
    total = 0
    for detail in details:
        total += 1
        transcript = normalize(detail)
        if transcript is not None:
            output.append(transcript)

    logger.info("[EXTRACT] %d/%d conversaciones con transcript válido", len(output), total)
    return output


def transcript_stats(transcripts: List[Transcript]) -> Dict[str, Any]:
    return {
        "conversationCount": len(transcripts),
        "totalMessages": sum(len(t.messages) for t in transcripts),
    }

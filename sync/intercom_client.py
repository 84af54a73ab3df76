# intercom_client.py
from __future__ import annotations

import dataclasses
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional, Set, Tuple

import requests

import config
import http_client
from errors import ApiError, IntercomApiError, ResponseShapeError
from models import (
    ContactDetail,
    ConversationDetail,
    ConversationSummary,
    DetailFetchResult,
)

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


def _iso(ts: int) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


class IntercomClient:
    """
    Cliente de lectura de Intercom: listado paginado por cursor, detalle de
    conversación y detalle de contacto.

    Se construye una vez por ejecución y se pasa a cada componente.
    """

    def __init__(
        self,
        access_token: str,
        *,
        base_url: str = config.INTERCOM_BASE_URL,
        page_size: int = config.PAGE_SIZE,
        request_delay: float = config.REQUEST_DELAY_SECONDS,
        timeout: int = config.HTTP_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url
        self.page_size = page_size
        self.request_delay = request_delay
        self.timeout = timeout
        self.session = session or http_client.build_session({
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        })

    @classmethod
    def from_config(cls) -> "IntercomClient":
        import secrets_store
        return cls(secrets_store.get_intercom_token())

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return http_client.request_json(
            self.session,
            "GET",
            http_client.join_url(self.base_url, path),
            error_cls=IntercomApiError,
            timeout=self.timeout,
            params=params,
        )

    def _pause(self) -> None:
        if self.request_delay > 0:
            time.sleep(self.request_delay)

    # ========= LISTADO =========

    def list_conversations(
        self,
        starting_after: Optional[str] = None,
        per_page: Optional[int] = None,
    ) -> Tuple[List[ConversationSummary], Optional[str]]:
        params: Dict[str, Any] = {
            "per_page": per_page or self.page_size,
            "sort": "updated_at",
            "order": "desc",
        }
        if starting_after:
            params["starting_after"] = starting_after

        body = self._get("/conversations", params)
        if not isinstance(body, dict):
            raise ResponseShapeError("/conversations", type(body).__name__)

        raw_convs = body.get("conversations") or []
        summaries: List[ConversationSummary] = []
        for raw in raw_convs:
            try:
                summaries.append(ConversationSummary.from_api(raw))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("[INTERCOM] Resumen de conversación inválido ignorado: %r (%s)", raw, e)

        cursor = http_client.next_cursor(body)
        logger.info(
            "[INTERCOM] Página: %d conversaciones total_count=%s next=%s",
            len(summaries), body.get("total_count"), cursor
        )
        return summaries, cursor

    def _iter_pages(self, since: Optional[int]) -> Iterator[List[ConversationSummary]]:
        seen: Set[str] = set()
        cursor: Optional[str] = None
        page_num = 0

        while True:
            if page_num > 0:
                self._pause()
            page_num += 1

            try:
                summaries, cursor = self.list_conversations(cursor)
            except (ApiError, ResponseShapeError) as e:
                # Fallo de listado: se corta la paginación, lo acumulado sigue válido
                logger.error("[INTERCOM] Fallo al listar página %d, se detiene: %s", page_num, e)
                return

            if not summaries:
                logger.info("[INTERCOM] Página %d vacía, fin de paginación", page_num)
                return

            fresh: List[ConversationSummary] = []
            for s in summaries:
                if s.id in seen:
                    logger.warning("[INTERCOM] Conversación duplicada en paginación: %s", s.id)
                    continue
                seen.add(s.id)
                fresh.append(s)

            crossed = False
            if since is not None:
                kept = [s for s in fresh if s.updated_at >= since]
                crossed = any(s.updated_at < since for s in summaries)
                fresh = kept

            if not fresh and not crossed:
                logger.warning("[INTERCOM] Página %d sin conversaciones nuevas, se detiene", page_num)
                return

            if fresh:
                yield fresh

            if crossed:
                logger.info(
                    "[INTERCOM] Página %d cruza el umbral %s, fin de paginación",
                    page_num, _iso(since)
                )
                return

            if not cursor:
                logger.info("[INTERCOM] Sin más páginas")
                return

    def iter_pages_since(self, since: int) -> Iterator[List[ConversationSummary]]:
        logger.info("[INTERCOM] Listando conversaciones desde %s", _iso(since))
        return self._iter_pages(since)

    def list_since(self, since: int) -> List[ConversationSummary]:
        summaries: List[ConversationSummary] = []
        for page in self.iter_pages_since(since):
            summaries.extend(page)
        logger.info("[INTERCOM] %d conversaciones desde %s", len(summaries), _iso(since))
        return summaries

    # ========= DETALLE =========

    def fetch_detail(self, conversation_id: str) -> ConversationDetail:
        path = f"/conversations/{conversation_id}"
        body = self._get(path)
        if not isinstance(body, dict) or "id" not in body:
            raise ResponseShapeError(path, type(body).__name__)
        try:
            return ConversationDetail.from_api(body)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise ResponseShapeError(path, f"unparseable conversation: {e}") from e

    def fetch_contact(self, contact_id: str) -> ContactDetail:
        path = f"/contacts/{contact_id}"
        body = self._get(path)
        if not isinstance(body, dict):
            raise ResponseShapeError(path, type(body).__name__)
        try:
            return ContactDetail.from_api(body)
        except (TypeError, AttributeError) as e:
            raise ResponseShapeError(path, f"unparseable contact: {e}") from e

    def fetch_detail_or_summary(
        self,
        summary: ConversationSummary,
        with_contact: bool = True,
    ) -> DetailFetchResult:
        try:
            detail = self.fetch_detail(summary.id)
        except (ApiError, ResponseShapeError) as e:
            logger.warning(
                "[INTERCOM] Fallo detalle conversation=%s, se usa el resumen: %s",
                summary.id, e
            )
            return DetailFetchResult(
                status="FALLBACK",
                detail=ConversationDetail.from_summary(summary),
                reason=str(e),
            )

        if not with_contact or not detail.contact_id:
            return DetailFetchResult(status="OK", detail=detail)

        try:
            contact = self.fetch_contact(detail.contact_id)
        except (ApiError, ResponseShapeError) as e:
            logger.warning(
                "[INTERCOM] Fallo contacto contact=%s conversation=%s: %s",
                detail.contact_id, summary.id, e
            )
            return DetailFetchResult(status="OK_NO_CONTACT", detail=detail, reason=str(e))

        return DetailFetchResult(status="OK", detail=dataclasses.replace(detail, contact=contact))

    def fetch_page_details(
        self,
        summaries: List[ConversationSummary],
        with_contact: bool = True,
    ) -> List[DetailFetchResult]:
        """
        Pide en paralelo los detalles de una página y espera a todos.
        Máximo de workers = tamaño de página; un fallo no cancela al resto.
        """
        if not summaries:
            return []

        max_workers = min(self.page_size, len(summaries))
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            results = list(executor.map(
                lambda s: self.fetch_detail_or_summary(s, with_contact),
                summaries,
            ))

        fallbacks = sum(1 for r in results if r.status == "FALLBACK")
        if fallbacks:
            logger.warning("[INTERCOM] %d/%d detalles con fallback al resumen", fallbacks, len(results))
        return results

    def _collect(
        self,
        pages: Iterator[List[ConversationSummary]],
        limit: Optional[int],
        on_page: Optional[Callable[[List[ConversationDetail]], None]],
    ) -> List[ConversationDetail]:
        details: List[ConversationDetail] = []

        for page in pages:
            if limit is not None:
                page = page[: max(limit - len(details), 0)]
            page_details = [r.detail for r in self.fetch_page_details(page)]
            details.extend(page_details)

            if on_page is not None:
                on_page(page_details)

            if limit is not None and len(details) >= limit:
                logger.info("[INTERCOM] Límite de %d conversaciones alcanzado", limit)
                break

        return details

    def fetch_conversations_since(
        self,
        since: int,
        limit: Optional[int] = None,
    ) -> List[ConversationDetail]:
        details = self._collect(self.iter_pages_since(since), limit, None)
        logger.info("[INTERCOM] %d conversaciones con detalle desde %s", len(details), _iso(since))
        return details

    def fetch_all_conversations(
        self,
        limit: Optional[int] = None,
        on_page: Optional[Callable[[List[ConversationDetail]], None]] = None,
    ) -> List[ConversationDetail]:
        logger.info("[INTERCOM] Extracción completa limit=%s", limit)
        details = self._collect(self._iter_pages(None), limit, on_page)
        logger.info("[INTERCOM] Extracción completa: %d conversaciones", len(details))
        return details

    def test_connection(self) -> bool:
        try:
            self.list_conversations(per_page=1)
        except (ApiError, ResponseShapeError) as e:
            logger.error("[INTERCOM] Conexión fallida: %s", e)
            return False
        logger.info("[INTERCOM] Conexión OK")
        return True

"""Text provider abstractions."""

from __future__ import annotations

import asyncio
import json
import pathlib
import sys
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

import httpx

from .errors import (
    ProviderConfigurationError,
    ProviderResponseError,
    TextNotFoundError,
    TextProviderError,
)
from .structures import (
    DEFAULT_LANGUAGE,
    AnnotationRecord,
    CacheKey,
    TextEntry,
    TitleEntry,
    cache_key,
)

DEFAULT_PAGE_SIZE = 336

Sleeper = Callable[[float], Awaitable[None]]


class TextProvider(ABC):
    """Abstract adapter for the service that serves texts and annotations."""

    @abstractmethod
    async def get_text(self, text_id: int, language: str = DEFAULT_LANGUAGE) -> TextEntry:
        """Fetch one text with its annotation ranges."""

    @abstractmethod
    async def list_titles(
        self,
        sort: int = 0,
        page: int = 0,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> List[TitleEntry]:
        """Return one page of the text list."""

    @abstractmethod
    async def get_annotation_details(
        self,
        text_id: int,
        start: int,
        end: int,
    ) -> List[AnnotationRecord]:
        """Return the annotation records covering ``[start, end)`` of a text."""

    async def aclose(self) -> None:
        """Release any held resources."""


class InMemoryTextProvider(TextProvider):
    """A provider backed by dictionaries (useful for testing and offline use).

    ``delays`` maps a cache key to the seconds ``get_text`` waits before
    answering, so callers can provoke out-of-order responses.
    """

    def __init__(
        self,
        texts: Sequence[TextEntry] = (),
        *,
        titles: Sequence[TitleEntry] = (),
        details: Optional[Mapping[Tuple[int, int, int], Sequence[AnnotationRecord]]] = None,
        delays: Optional[Mapping[CacheKey, float]] = None,
        failures: Optional[Mapping[CacheKey, TextProviderError]] = None,
    ) -> None:
        self.texts: Dict[CacheKey, TextEntry] = {entry.key: entry for entry in texts}
        self.titles = list(titles)
        self.details = dict(details or {})
        self.delays = dict(delays or {})
        self.failures = dict(failures or {})
        self.calls: List[CacheKey] = []

    @classmethod
    def from_json_file(cls, path: pathlib.Path) -> "InMemoryTextProvider":
        """Load texts, titles and annotation details from a JSON document.

        The document mirrors the reader API payloads::

            {"texts": [...], "titles": [...], "annotation_details": [...]}
        """

        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise ProviderConfigurationError(f"Could not read data file {path}: {exc}") from exc
        except ValueError as exc:
            raise ProviderConfigurationError(f"Data file {path} is not valid JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise ProviderConfigurationError(
                f"Data file {path} must contain an object at the root."
            )

        texts = [TextEntry.from_payload(item) for item in payload.get("texts") or []]
        titles = [TitleEntry.from_payload(item) for item in payload.get("titles") or []]
        details: Dict[Tuple[int, int, int], List[AnnotationRecord]] = {}
        for item in payload.get("annotation_details") or []:
            record = AnnotationRecord.from_payload(item)
            annotation = record.annotation
            details.setdefault(
                (annotation.text_id, annotation.start, annotation.end), []
            ).append(record)
        return cls(texts, titles=titles, details=details)

    async def get_text(self, text_id: int, language: str = DEFAULT_LANGUAGE) -> TextEntry:
        key = cache_key(text_id, language)
        self.calls.append(key)
        delay = self.delays.get(key, 0)
        if delay:
            await asyncio.sleep(delay)
        else:
            # Still yield so callers observe a genuine suspension point.
            await asyncio.sleep(0)
        failure = self.failures.get(key)
        if failure is not None:
            raise failure
        entry = self.texts.get(key)
        if entry is None:
            raise TextNotFoundError(f"No text found for id {text_id} ({language}).")
        return entry

    async def list_titles(
        self,
        sort: int = 0,
        page: int = 0,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> List[TitleEntry]:
        ordered = sorted(self.titles, key=lambda title: title.id, reverse=bool(sort))
        start = page * page_size
        return ordered[start:start + page_size]

    async def get_annotation_details(
        self,
        text_id: int,
        start: int,
        end: int,
    ) -> List[AnnotationRecord]:
        return list(self.details.get((text_id, start, end), []))


class HttpTextProvider(TextProvider):
    """Text provider that talks to the reader HTTP API.

    Every endpoint answers with an object shaped as ``{"message": ...}``.
    Transport errors and retryable statuses are retried with exponential
    backoff before a :class:`TextProviderError` is raised.
    """

    RETRYABLE_STATUSES = frozenset({408, 425, 429, 500, 502, 503, 504})

    def __init__(
        self,
        base_url: str,
        *,
        retries: int = 3,
        retry_delay: float = 1.0,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
        debug: bool = False,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        if not base_url:
            raise ProviderConfigurationError("The reader API base URL must not be empty.")
        self.base_url = base_url.rstrip("/")
        self.retries = max(1, retries)
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.debug = debug
        self._sleep = sleep
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> "HttpTextProvider":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def get_text(self, text_id: int, language: str = DEFAULT_LANGUAGE) -> TextEntry:
        message = await self._get_message(
            "/api/text",
            {"text_object_id": text_id, "language": language, "type": "all"},
        )
        if isinstance(message, list):
            if not message:
                raise TextNotFoundError(f"No text found for id {text_id} ({language}).")
            message = message[0]
        return TextEntry.from_payload(message)

    async def list_titles(
        self,
        sort: int = 0,
        page: int = 0,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> List[TitleEntry]:
        message = await self._get_message(
            "/api/titles",
            {"sort": sort, "page": page, "page_size": page_size},
        )
        return [TitleEntry.from_payload(item) for item in self._as_list(message, "titles")]

    async def get_annotation_details(
        self,
        text_id: int,
        start: int,
        end: int,
    ) -> List[AnnotationRecord]:
        message = await self._get_message(
            "/api/annotation",
            {"text_id": text_id, "start": start, "end": end},
        )
        return [
            AnnotationRecord.from_payload(item)
            for item in self._as_list(message, "annotation details")
        ]

    # --- Internal helpers -------------------------------------------------

    def _as_list(self, message: Any, label: str) -> List[Any]:
        if message is None:
            return []
        if not isinstance(message, list):
            raise ProviderResponseError(
                f"Reader API response malformed: expected a list of {label}."
            )
        return message

    async def _get_message(self, path: str, params: Mapping[str, Any]) -> Any:
        url = f"{self.base_url}{path}"
        self._log_debug("provider.request", {"url": url, "params": dict(params)})

        last_error = TextProviderError(f"Reader API request to {url} was not attempted.")
        for attempt in range(self.retries):
            try:
                response = await self._get_client().get(
                    url,
                    params=dict(params),
                    headers={"Content-Type": "application/json"},
                )
            except httpx.HTTPError as exc:
                last_error = TextProviderError(f"Reader API unreachable ({url}): {exc}")
            else:
                if response.is_success:
                    return self._decode(response)
                error = self._status_error(response)
                if response.status_code not in self.RETRYABLE_STATUSES:
                    raise error
                last_error = error

            if attempt < self.retries - 1:
                wait_time = self.retry_delay * (2 ** attempt)
                self._log_debug(
                    "provider.retry",
                    {"attempt": attempt + 1, "wait": wait_time, "error": str(last_error)},
                )
                await self._sleep(wait_time)

        raise last_error

    def _decode(self, response: httpx.Response) -> Any:
        try:
            payload = response.json()
        except ValueError as exc:
            raise ProviderResponseError(f"Reader API returned invalid JSON: {exc}") from exc
        self._log_debug("provider.response", payload)
        if not isinstance(payload, dict) or "message" not in payload:
            raise ProviderResponseError(
                "Reader API response malformed: missing 'message' field."
            )
        return payload["message"]

    def _status_error(self, response: httpx.Response) -> TextProviderError:
        detail = ""
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and isinstance(body.get("message"), str):
            detail = body["message"]
        message = f"Reader API request failed with status {response.status_code}"
        if detail:
            message = f"{message}: {detail}"
        if response.status_code == 404 or detail == "No text found":
            return TextNotFoundError(message, status_code=response.status_code)
        return TextProviderError(message, status_code=response.status_code)

    def _log_debug(self, label: str, payload: Any) -> None:
        """Emit structured debug information when enabled."""

        if not self.debug:
            return
        try:
            if isinstance(payload, (dict, list)):
                message = json.dumps(payload, ensure_ascii=False, indent=2)
            else:
                message = str(payload)
        except (TypeError, ValueError):
            message = repr(payload)
        print(f"[scholion][provider-debug] {label}:\n{message}", file=sys.stderr)


def build_provider(
    name: Optional[str],
    *,
    base_url: Optional[str] = None,
    data_file: Optional[pathlib.Path] = None,
    retries: int = 3,
    timeout: float = 30.0,
    debug: bool = False,
) -> TextProvider:
    """Factory to create providers by name."""

    normalized = (name or "http").strip().lower()
    if normalized in {"http", "api", "default"}:
        if not base_url:
            raise ProviderConfigurationError(
                "The http provider needs a base URL. Set SCHOLION_API_BASE_URL or pass --base-url."
            )
        return HttpTextProvider(base_url, retries=retries, timeout=timeout, debug=debug)
    if normalized in {"memory", "in-memory", "in_memory", "mock"}:
        if data_file is None:
            raise ProviderConfigurationError(
                "The memory provider needs a data file. Set SCHOLION_DATA_FILE or pass --data-file."
            )
        return InMemoryTextProvider.from_json_file(data_file)
    raise ProviderConfigurationError(f"Unknown text provider '{name}'.")

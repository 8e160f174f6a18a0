"""Hover prefetching and selection fetching for the reader."""

from __future__ import annotations

import sys
from typing import Callable, List, Optional

from .cache import TextCache
from .errors import TextProviderError
from .markup import render_text_entry
from .policy import WarningPolicy
from .providers import DEFAULT_PAGE_SIZE, TextProvider
from .resolver import find_annotation
from .structures import (
    DEFAULT_LANGUAGE,
    AnnotationRange,
    AnnotationRecord,
    SelectionState,
    TextEntry,
    TitleEntry,
    cache_key,
)

RenderSink = Callable[[Optional[TextEntry], Optional[str]], None]


class FetchOrchestrator:
    """Coordinates the text cache, the provider and the displayed text.

    Every selection bumps ``generation``. A fetch started for a selection only
    updates the display if ``generation`` is unchanged when the response
    arrives; the fetched text is cached either way. Hover fetches only warm the
    cache and never touch the display.
    """

    def __init__(
        self,
        cache: TextCache,
        provider: TextProvider,
        *,
        language: str = DEFAULT_LANGUAGE,
        render_sink: Optional[RenderSink] = None,
        policy: Optional[WarningPolicy] = None,
        collapse_whitespace: bool = True,
        debug: bool = False,
    ) -> None:
        self.cache = cache
        self.provider = provider
        self.language = language
        self.render_sink = render_sink
        self.policy = policy or WarningPolicy()
        self.collapse_whitespace = collapse_whitespace
        self.debug = debug

        self.state = SelectionState()
        self.generation = 0
        self.displayed: Optional[TextEntry] = None
        self.displayed_markup: Optional[str] = None
        self.error: Optional[TextProviderError] = None

    async def on_hover(self, text_id: Optional[int]) -> None:
        self.state.hovered_id = text_id
        if text_id is None or text_id == self.state.selected_id:
            return

        key = cache_key(text_id, self.language)
        if self.cache.get(key) is not None:
            return
        if self.cache.should_fetch(key):
            entry = await self.provider.get_text(text_id, self.language)
            self.cache.put(key, entry)
            self._log_debug(f"prefetched text {text_id} ({self.language})")

    async def on_select(self, text_id: Optional[int]) -> None:
        self.state.selected_annotation_id = None
        self.state.selected_id = text_id
        self.generation += 1
        my_generation = self.generation
        self.error = None

        if text_id is None:
            self._display(None)
            return

        key = cache_key(text_id, self.language)
        cached = self.cache.get(key)
        if cached is not None:
            self._display(cached)
            return

        try:
            entry = await self.provider.get_text(text_id, self.language)
        except TextProviderError as exc:
            if my_generation != self.generation:
                self._log_debug(f"discarded failure of superseded fetch for text {text_id}: {exc}")
                return
            self.error = exc
            raise

        self.cache.put(key, entry)
        if my_generation != self.generation:
            self._log_debug(
                f"discarded stale response for text {text_id} "
                f"(generation {my_generation}, current {self.generation})"
            )
            return
        self._display(entry)

    def on_annotation_click(self, identifier: object) -> Optional[int]:
        """Select the annotation behind a clicked element, if there is one."""

        ranges = self.displayed.annotation_ranges if self.displayed else ()
        annotation = find_annotation(identifier, ranges)
        if annotation is None:
            return None
        self.state.selected_annotation_id = annotation.id
        return annotation.id

    def close_annotation(self) -> None:
        self.state.selected_annotation_id = None

    def selected_annotation(self) -> Optional[AnnotationRange]:
        annotation_id = self.state.selected_annotation_id
        if annotation_id is None or self.displayed is None:
            return None
        for annotation in self.displayed.annotation_ranges:
            if annotation.id == annotation_id:
                return annotation
        return None

    async def load_annotation_details(self) -> List[AnnotationRecord]:
        """Fetch the detail records for the selected annotation."""

        annotation = self.selected_annotation()
        if annotation is None:
            return []
        return await self.provider.get_annotation_details(
            annotation.text_id,
            annotation.start,
            annotation.end,
        )

    async def load_titles(
        self,
        sort: int = 0,
        page: int = 0,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> List[TitleEntry]:
        return await self.provider.list_titles(sort=sort, page=page, page_size=page_size)

    # --- Internal helpers -------------------------------------------------

    def _display(self, entry: Optional[TextEntry]) -> None:
        self.displayed = entry
        if entry is None:
            self.displayed_markup = None
        else:
            self.displayed_markup = render_text_entry(
                entry,
                collapse_whitespace=self.collapse_whitespace,
                policy=self.policy,
            )
        if self.render_sink is not None:
            self.render_sink(self.displayed, self.displayed_markup)

    def _log_debug(self, message: str) -> None:
        if self.debug:
            print(f"[scholion][orchestrator-debug] {message}", file=sys.stderr)

from __future__ import annotations

from typing import Sequence, Tuple

import pytest

from scholion.policy import WarningPolicy
from scholion.structures import AnnotationRange, TextEntry


def make_range(annotation_id: int, start: int, end: int, text_id: int = 1) -> AnnotationRange:
    return AnnotationRange(id=annotation_id, start=start, end=end, text_id=text_id)


def make_entry(
    text_id: int,
    markup: str = "<p>Hello world</p>",
    ranges: Sequence[Tuple[int, int, int]] = (),
    language: str = "GR",
) -> TextEntry:
    return TextEntry(
        id=text_id,
        language=language,
        markup_text=markup,
        annotation_ranges=tuple(
            make_range(annotation_id, start, end, text_id)
            for annotation_id, start, end in ranges
        ),
    )


class FakeClock:
    """Monotonic clock that advances one tick per reading."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        self.now += 1.0
        return self.now


@pytest.fixture
def quiet_policy() -> WarningPolicy:
    return WarningPolicy(quiet=True)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()

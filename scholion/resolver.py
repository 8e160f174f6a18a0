"""Maps rendered element identifiers back to the annotations they show."""

from __future__ import annotations

from typing import Optional, Sequence

from .structures import AnnotationRange

ANNOTATION_ID_PREFIX = "annotated-text-"


def annotation_identifier(annotation_id: int) -> str:
    """Identifier given to the span wrapping an annotated segment."""

    return f"{ANNOTATION_ID_PREFIX}{annotation_id}"


def parse_identifier(identifier: object) -> Optional[int]:
    if not isinstance(identifier, str) or not identifier.startswith(ANNOTATION_ID_PREFIX):
        return None
    suffix = identifier[len(ANNOTATION_ID_PREFIX):]
    if not (suffix.isascii() and suffix.isdigit()):
        return None
    return int(suffix)


def find_annotation(
    identifier: object,
    ranges: Sequence[AnnotationRange],
) -> Optional[AnnotationRange]:
    annotation_id = parse_identifier(identifier)
    if annotation_id is None:
        return None
    for annotation in ranges:
        if annotation.id == annotation_id:
            return annotation
    return None


def resolve_click(identifier: object, ranges: Sequence[AnnotationRange]) -> Optional[int]:
    """Return the annotation id an interaction target denotes, or None."""

    annotation = find_annotation(identifier, ranges)
    return annotation.id if annotation is not None else None

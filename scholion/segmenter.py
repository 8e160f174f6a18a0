"""Annotation overlay segmentation for single text nodes."""

from __future__ import annotations

from typing import List, Optional, Sequence

from .errors import ErrorCategory
from .policy import WarningPolicy
from .structures import AnnotatedSegment, AnnotationRange, PlainSegment, Segment


def _describe(annotation: AnnotationRange) -> str:
    return f"annotation {annotation.id} [{annotation.start}, {annotation.end})"


def prepare_ranges(
    ranges: Sequence[AnnotationRange],
    *,
    total_length: Optional[int] = None,
    policy: Optional[WarningPolicy] = None,
) -> List[AnnotationRange]:
    """Return ranges sorted by start with malformed and overlapping ones removed.

    A range is malformed when ``start >= end``, ``start < 0`` or, when the total
    text length is known, when it lies entirely outside ``[0, total_length)``.
    A range that overlaps one already accepted is dropped. Each rejection is
    reported to ``policy`` as a warning; none of them stops rendering.
    """

    policy = policy or WarningPolicy()
    candidates: List[AnnotationRange] = []
    for annotation in ranges:
        if not annotation.is_well_formed:
            policy.handle_warning(
                ErrorCategory.RANGE,
                f"Skipping malformed {_describe(annotation)}.",
            )
            continue
        if total_length is not None and annotation.start >= total_length:
            policy.handle_warning(
                ErrorCategory.RANGE,
                f"Skipping {_describe(annotation)}: outside text of length {total_length}.",
            )
            continue
        candidates.append(annotation)

    candidates.sort(key=lambda annotation: (annotation.start, annotation.end))

    accepted: List[AnnotationRange] = []
    for annotation in candidates:
        if accepted and annotation.start < accepted[-1].end:
            policy.handle_warning(
                ErrorCategory.RANGE,
                f"Skipping {_describe(annotation)}: overlaps {_describe(accepted[-1])}.",
            )
            continue
        accepted.append(annotation)
    return accepted


class OverlaySegmenter:
    """Splits text nodes into plain and annotated segments.

    Ranges are validated once on construction; ``segment`` can then be called
    for every text leaf of a document with the leaf's global offset.
    """

    def __init__(
        self,
        ranges: Sequence[AnnotationRange],
        *,
        total_length: Optional[int] = None,
        policy: Optional[WarningPolicy] = None,
    ) -> None:
        self.policy = policy or WarningPolicy()
        self.ranges = prepare_ranges(
            ranges,
            total_length=total_length,
            policy=self.policy,
        )

    def segment(self, node_text: str, node_offset: int) -> List[Segment]:
        segments: List[Segment] = []
        node_end = node_offset + len(node_text)
        cursor = 0

        for annotation in self.ranges:
            if annotation.end <= node_offset:
                continue
            if annotation.start >= node_end:
                # Sorted input: nothing later can reach this node.
                break
            overlap_start = max(annotation.start, node_offset) - node_offset
            overlap_end = min(annotation.end, node_end) - node_offset
            if overlap_end <= overlap_start:
                continue

            if overlap_start > cursor:
                segments.append(PlainSegment(node_text[cursor:overlap_start]))
            segments.append(
                AnnotatedSegment(
                    text=node_text[overlap_start:overlap_end],
                    annotation_id=annotation.id,
                )
            )
            cursor = overlap_end

        if cursor < len(node_text):
            segments.append(PlainSegment(node_text[cursor:]))
        return segments


def segment(
    node_text: str,
    node_global_offset: int,
    ranges: Sequence[AnnotationRange],
    *,
    policy: Optional[WarningPolicy] = None,
) -> List[Segment]:
    """Segment one text node whose first character sits at ``node_global_offset``."""

    return OverlaySegmenter(ranges, policy=policy).segment(node_text, node_global_offset)

"""Tests for scholion.segmenter."""
from scholion.errors import ErrorCategory
from scholion.segmenter import OverlaySegmenter, prepare_ranges, segment
from scholion.structures import AnnotatedSegment, PlainSegment

from conftest import make_range


def _joined(segments) -> str:
    return "".join(piece.text for piece in segments)


class TestSegment:
    def test_boundaries_at_range_offsets(self, quiet_policy) -> None:
        result = segment("Hello world", 0, [make_range(7, 5, 10)], policy=quiet_policy)
        assert result == [
            PlainSegment("Hello"),
            AnnotatedSegment(" worl", 7),
            PlainSegment("d"),
        ]

    def test_no_ranges_yields_single_plain_segment(self) -> None:
        assert segment("Hello", 0, []) == [PlainSegment("Hello")]

    def test_empty_text_yields_nothing(self) -> None:
        assert segment("", 3, [make_range(1, 0, 10)]) == []

    def test_range_outside_node_yields_no_annotated_segment(self) -> None:
        result = segment("abc", 10, [make_range(1, 0, 5), make_range(2, 20, 25)])
        assert result == [PlainSegment("abc")]

    def test_range_spanning_node_start(self) -> None:
        result = segment("world", 6, [make_range(3, 4, 8)])
        assert result == [AnnotatedSegment("wo", 3), PlainSegment("rld")]

    def test_range_covering_whole_node(self) -> None:
        result = segment("mid", 5, [make_range(3, 0, 100)])
        assert result == [AnnotatedSegment("mid", 3)]

    def test_adjacent_ranges(self) -> None:
        result = segment("abcdef", 0, [make_range(1, 0, 3), make_range(2, 3, 6)])
        assert result == [AnnotatedSegment("abc", 1), AnnotatedSegment("def", 2)]

    def test_concatenation_reproduces_text(self) -> None:
        text = "The quick brown fox jumps"
        ranges = [make_range(1, 2, 6), make_range(2, 10, 11), make_range(3, 20, 40)]
        for offset in range(0, 30, 3):
            assert _joined(segment(text, offset, ranges)) == text

    def test_every_offset_covered_once(self) -> None:
        text = "abcdefghij"
        result = segment(text, 0, [make_range(1, 1, 3), make_range(2, 6, 9)])
        lengths = [len(piece.text) for piece in result]
        assert sum(lengths) == len(text)
        assert all(length > 0 for length in lengths)


class TestMalformedRanges:
    def test_empty_range_skipped_with_warning(self, quiet_policy) -> None:
        result = segment("Hello", 0, [make_range(1, 3, 3)], policy=quiet_policy)
        assert result == [PlainSegment("Hello")]
        assert len(quiet_policy.messages(ErrorCategory.RANGE)) == 1

    def test_inverted_range_skipped(self, quiet_policy) -> None:
        result = segment("Hello", 0, [make_range(1, 4, 2)], policy=quiet_policy)
        assert result == [PlainSegment("Hello")]
        assert quiet_policy.total == 1

    def test_negative_start_skipped(self, quiet_policy) -> None:
        segment("Hello", 0, [make_range(1, -2, 2)], policy=quiet_policy)
        assert quiet_policy.total == 1

    def test_range_beyond_total_length_skipped(self, quiet_policy) -> None:
        segmenter = OverlaySegmenter(
            [make_range(1, 7, 9), make_range(2, 0, 2)],
            total_length=5,
            policy=quiet_policy,
        )
        assert [annotation.id for annotation in segmenter.ranges] == [2]
        assert "outside text of length 5" in quiet_policy.messages()[0]

    def test_other_ranges_still_applied(self, quiet_policy) -> None:
        result = segment(
            "abcdef",
            0,
            [make_range(1, 5, 1), make_range(2, 2, 4)],
            policy=quiet_policy,
        )
        assert result == [
            PlainSegment("ab"),
            AnnotatedSegment("cd", 2),
            PlainSegment("ef"),
        ]


class TestPrepareRanges:
    def test_sorts_by_start(self, quiet_policy) -> None:
        prepared = prepare_ranges(
            [make_range(2, 6, 8), make_range(1, 0, 2)],
            policy=quiet_policy,
        )
        assert [annotation.id for annotation in prepared] == [1, 2]
        assert quiet_policy.total == 0

    def test_unsorted_input_segments_correctly(self) -> None:
        result = segment("abcdefghij", 0, [make_range(2, 6, 8), make_range(1, 0, 2)])
        assert result == [
            AnnotatedSegment("ab", 1),
            PlainSegment("cdef"),
            AnnotatedSegment("gh", 2),
            PlainSegment("ij"),
        ]

    def test_overlapping_range_dropped(self, quiet_policy) -> None:
        prepared = prepare_ranges(
            [make_range(1, 0, 5), make_range(2, 3, 8)],
            policy=quiet_policy,
        )
        assert [annotation.id for annotation in prepared] == [1]
        assert "overlaps annotation 1" in quiet_policy.messages()[0]

"""Tests for scholion.resolver."""
from scholion.markup import parse_markup, recombine
from scholion.resolver import annotation_identifier, parse_identifier, resolve_click

from conftest import make_range

RANGES = [make_range(3, 0, 4), make_range(12, 6, 9)]


class TestResolveClick:
    def test_existing_annotation(self) -> None:
        assert resolve_click("annotated-text-12", RANGES) == 12

    def test_plain_segment(self) -> None:
        assert resolve_click("plain-text-0", RANGES) is None

    def test_unknown_annotation(self) -> None:
        assert resolve_click("annotated-text-99", RANGES) is None

    def test_malformed_identifiers(self) -> None:
        for identifier in ("annotated-text-", "annotated-text-x1", "annotated-text--3", "", None, 12):
            assert resolve_click(identifier, RANGES) is None

    def test_non_ascii_digits_rejected(self) -> None:
        assert parse_identifier("annotated-text-²") is None

    def test_empty_ranges(self) -> None:
        assert resolve_click("annotated-text-3", []) is None


class TestIdentifiers:
    def test_round_trip(self) -> None:
        assert parse_identifier(annotation_identifier(42)) == 42

    def test_rendered_spans_resolve(self) -> None:
        rendered = recombine(parse_markup("<p>word and more</p>"), RANGES)
        assert f'id="{annotation_identifier(3)}"' in rendered
        assert f'id="{annotation_identifier(12)}"' in rendered

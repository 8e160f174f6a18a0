"""Core data structures for the Scholion reader."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from .errors import ProviderResponseError

DEFAULT_LANGUAGE = "GR"

CacheKey = Tuple[int, str]


def _require(payload: Mapping[str, Any], name: str, kind: type, context: str) -> Any:
    value = payload.get(name)
    # bool is an int subclass; ids and offsets must be real integers.
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise ProviderResponseError(
            f"{context} payload malformed: field '{name}' missing or not {kind.__name__}."
        )
    return value


@dataclass(frozen=True)
class AnnotationRange:
    """A half-open ``[start, end)`` span of the plain text carrying one annotation."""

    id: int
    start: int
    end: int
    text_id: int

    @property
    def is_well_formed(self) -> bool:
        return 0 <= self.start < self.end

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "AnnotationRange":
        if not isinstance(payload, Mapping):
            raise ProviderResponseError("Annotation payload malformed: expected an object.")
        return cls(
            id=_require(payload, "id", int, "Annotation"),
            start=_require(payload, "start", int, "Annotation"),
            end=_require(payload, "end", int, "Annotation"),
            text_id=_require(payload, "text_id", int, "Annotation"),
        )


@dataclass(frozen=True)
class TextEntry:
    """A fetched text: its markup plus the annotation ranges over its plain text."""

    id: int
    language: str
    markup_text: str
    annotation_ranges: Tuple[AnnotationRange, ...] = ()
    audio: Optional[str] = None

    @property
    def key(self) -> CacheKey:
        return (self.id, self.language)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "TextEntry":
        """Build an entry from the JSON object returned by the text endpoint."""

        if not isinstance(payload, Mapping):
            raise ProviderResponseError("Text payload malformed: expected an object.")
        text_id = payload.get("text_object_id", payload.get("id"))
        if not isinstance(text_id, int) or isinstance(text_id, bool):
            raise ProviderResponseError(
                "Text payload malformed: field 'text_object_id' missing or not int."
            )
        raw_annotations = payload.get("annotations") or []
        if not isinstance(raw_annotations, list):
            raise ProviderResponseError(
                "Text payload malformed: field 'annotations' is not a list."
            )
        audio = payload.get("audio")
        if isinstance(audio, Mapping):
            audio = audio.get("audio_file")
        return cls(
            id=text_id,
            language=_require(payload, "language", str, "Text"),
            markup_text=_require(payload, "text", str, "Text"),
            annotation_ranges=tuple(
                AnnotationRange.from_payload(item) for item in raw_annotations
            ),
            audio=audio if isinstance(audio, str) else None,
        )


@dataclass
class CacheEntry:
    """A cached text together with the time it was last read or written."""

    key: CacheKey
    data: TextEntry
    last_accessed: float


@dataclass
class SelectionState:
    """Reader selection owned by the fetch orchestrator."""

    selected_id: Optional[int] = None
    hovered_id: Optional[int] = None
    selected_annotation_id: Optional[int] = None


@dataclass(frozen=True)
class TitleEntry:
    """One row of the text list."""

    id: int
    title: str
    group_id: Optional[int] = None
    level: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "TitleEntry":
        if not isinstance(payload, Mapping):
            raise ProviderResponseError("Title payload malformed: expected an object.")
        group_id = payload.get("group_id")
        level = payload.get("level")
        return cls(
            id=_require(payload, "id", int, "Title"),
            title=_require(payload, "title", str, "Title"),
            group_id=group_id if isinstance(group_id, int) else None,
            level=level if isinstance(level, str) else None,
        )


@dataclass(frozen=True)
class Author:
    id: int
    username: str
    avatar: Optional[str] = None
    discord_id: Optional[str] = None
    discord_status: bool = False


@dataclass(frozen=True)
class AnnotationRecord:
    """Detail payload shown once an annotation is selected."""

    annotation: AnnotationRange
    description: str
    created_at: int = 0
    likes: int = 0
    dislikes: int = 0
    author: Optional[Author] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "AnnotationRecord":
        if not isinstance(payload, Mapping):
            raise ProviderResponseError("Annotation detail payload malformed: expected an object.")
        author_payload = payload.get("author")
        author = None
        if isinstance(author_payload, Mapping):
            author = Author(
                id=_require(author_payload, "id", int, "Author"),
                username=_require(author_payload, "username", str, "Author"),
                avatar=author_payload.get("avatar"),
                discord_id=author_payload.get("discord_id"),
                discord_status=bool(author_payload.get("discord_status", False)),
            )
        return cls(
            annotation=AnnotationRange.from_payload(payload.get("annotation")),
            description=_require(payload, "description", str, "Annotation detail"),
            created_at=int(payload.get("created_at") or 0),
            likes=int(payload.get("likes") or 0),
            dislikes=int(payload.get("dislikes") or 0),
            author=author,
        )


@dataclass(frozen=True)
class PlainSegment:
    """Unannotated slice of a text node."""

    text: str


@dataclass(frozen=True)
class AnnotatedSegment:
    """Slice of a text node covered by one annotation."""

    text: str
    annotation_id: int


Segment = Union[PlainSegment, AnnotatedSegment]


@dataclass(frozen=True)
class TextNode:
    """A text leaf of the parsed markup tree."""

    content: str


@dataclass(frozen=True)
class ElementNode:
    """An element of the parsed markup tree with its original attributes."""

    tag_name: str
    attributes: Tuple[Tuple[str, str], ...] = ()
    children: Tuple["Node", ...] = field(default_factory=tuple)


Node = Union[ElementNode, TextNode]


def cache_key(text_id: int, language: Optional[str] = None) -> CacheKey:
    """Return the cache key for a text, defaulting the language."""

    return (int(text_id), language or DEFAULT_LANGUAGE)


def iter_text_nodes(node: Node) -> List[TextNode]:
    """Collect text leaves in document order."""

    if isinstance(node, TextNode):
        return [node]
    leaves: List[TextNode] = []
    for child in node.children:
        leaves.extend(iter_text_nodes(child))
    return leaves

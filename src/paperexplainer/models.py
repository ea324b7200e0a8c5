"""Typed models used across the pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

from .exceptions import CacheCorruptedError


@dataclass(frozen=True)
class HeadingBlock:
    """Section heading; level 2 for top-level sections, 3 for nested ones."""

    level: int
    text: str

    def to_dict(self) -> dict[str, Any]:
        return {"kind": "heading", "level": self.level, "text": self.text}


@dataclass(frozen=True)
class ParagraphBlock:
    """Paragraph of source text, kept as HTML-safe text."""

    id: str
    text_html: str

    def to_dict(self) -> dict[str, Any]:
        return {"kind": "para", "id": self.id, "text_html": self.text_html}


@dataclass(frozen=True)
class FigureBlock:
    """Figure with an absolute image URL and its caption."""

    id: str
    img_url: str
    caption_html: str
    label: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "kind": "figure",
            "id": self.id,
            "img_url": self.img_url,
            "caption_html": self.caption_html,
        }
        if self.label:
            payload["label"] = self.label
        return payload


Block = Union[HeadingBlock, ParagraphBlock, FigureBlock]


@dataclass(frozen=True)
class PlainHeading:
    level: int
    text: str

    def to_dict(self) -> dict[str, Any]:
        return {"kind": "heading", "level": self.level, "text": self.text}


@dataclass(frozen=True)
class PlainParagraph:
    """Rewritten paragraph plus the glossary IDs it references."""

    id: str
    text: str
    term_ids: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": "para",
            "id": self.id,
            "text": self.text,
            "term_ids": list(self.term_ids),
        }


@dataclass(frozen=True)
class PlainFigure:
    """Pointer to the original figure block with the same id."""

    id: str

    def to_dict(self) -> dict[str, Any]:
        return {"kind": "figure", "id": self.id}


PlainBlock = Union[PlainHeading, PlainParagraph, PlainFigure]


@dataclass(frozen=True)
class Term:
    """Glossary entry shown when a highlighted term is clicked."""

    term: str
    simple: str
    more: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"term": self.term, "simple": self.simple}
        if self.more:
            payload["more"] = self.more
        return payload


@dataclass(frozen=True)
class TermCandidate:
    """A term proposed by the rewriter for one paragraph."""

    term: str
    simple: str


@dataclass(frozen=True)
class RewriteResult:
    """Output of one rewrite call."""

    plain: str
    terms: list[TermCandidate] = field(default_factory=list)


@dataclass(frozen=True)
class PlainVersion:
    blocks: list[PlainBlock]
    terms: dict[str, Term]

    def to_dict(self) -> dict[str, Any]:
        return {
            "blocks": [block.to_dict() for block in self.blocks],
            "terms": {term_id: term.to_dict() for term_id, term in self.terms.items()},
        }


@dataclass(frozen=True)
class Paper:
    """Fully processed paper; the value stored in the cache."""

    id: str
    source_url: str
    title: str
    authors: list[str]
    blocks: list[Block]
    plain: PlainVersion

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "sourceUrl": self.source_url,
            "title": self.title,
            "authors": list(self.authors),
            "blocks": [block.to_dict() for block in self.blocks],
            "plain": self.plain.to_dict(),
        }

    @classmethod
    def from_dict(cls, payload: Any) -> Paper:
        data = _require_mapping(payload, "paper")
        plain = _require_mapping(data.get("plain"), "paper.plain")
        raw_terms = _require_mapping(plain.get("terms"), "paper.plain.terms")
        return cls(
            id=_require_str(data, "id"),
            source_url=_require_str(data, "sourceUrl"),
            title=_require_str(data, "title"),
            authors=[
                _as_str(author, "paper.authors[]")
                for author in _require_list(data.get("authors"), "paper.authors")
            ],
            blocks=[
                block_from_dict(item)
                for item in _require_list(data.get("blocks"), "paper.blocks")
            ],
            plain=PlainVersion(
                blocks=[
                    plain_block_from_dict(item)
                    for item in _require_list(plain.get("blocks"), "paper.plain.blocks")
                ],
                terms={
                    str(term_id): term_from_dict(item)
                    for term_id, item in raw_terms.items()
                },
            ),
        )


@dataclass(frozen=True)
class PaperMetadata:
    """Validated record from the bioRxiv details API."""

    doi: str
    title: str
    authors: list[str]
    abstract: str
    jats_url: str | None
    license: str | None = None
    date: str | None = None
    version: str | None = None
    category: str | None = None


@dataclass(frozen=True)
class ParsedDocument:
    """Fetched and parsed paper content before rewriting."""

    doi: str
    title: str
    authors: list[str]
    abstract: str
    blocks: list[Block]

    @property
    def paragraph_count(self) -> int:
        return sum(1 for block in self.blocks if isinstance(block, ParagraphBlock))


def block_from_dict(payload: Any) -> Block:
    data = _require_mapping(payload, "block")
    kind = data.get("kind")
    if kind == "heading":
        return HeadingBlock(level=_require_int(data, "level"), text=_require_str(data, "text"))
    if kind == "para":
        return ParagraphBlock(id=_require_str(data, "id"), text_html=_require_str(data, "text_html"))
    if kind == "figure":
        label = data.get("label")
        return FigureBlock(
            id=_require_str(data, "id"),
            img_url=_require_str(data, "img_url"),
            caption_html=_require_str(data, "caption_html"),
            label=_as_str(label, "figure.label") if label is not None else None,
        )
    raise CacheCorruptedError(f"Unknown block kind: {kind!r}")


def plain_block_from_dict(payload: Any) -> PlainBlock:
    data = _require_mapping(payload, "plain block")
    kind = data.get("kind")
    if kind == "heading":
        return PlainHeading(level=_require_int(data, "level"), text=_require_str(data, "text"))
    if kind == "para":
        return PlainParagraph(
            id=_require_str(data, "id"),
            text=_require_str(data, "text"),
            term_ids=tuple(
                _as_str(term_id, "para.term_ids[]")
                for term_id in _require_list(data.get("term_ids"), "para.term_ids")
            ),
        )
    if kind == "figure":
        return PlainFigure(id=_require_str(data, "id"))
    raise CacheCorruptedError(f"Unknown plain block kind: {kind!r}")


def term_from_dict(payload: Any) -> Term:
    data = _require_mapping(payload, "term")
    more = data.get("more")
    return Term(
        term=_require_str(data, "term"),
        simple=_require_str(data, "simple"),
        more=_as_str(more, "term.more") if more is not None else None,
    )


def _require_mapping(value: Any, where: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise CacheCorruptedError(f"Expected object for {where}, got {type(value).__name__}")
    return value


def _require_list(value: Any, where: str) -> list[Any]:
    if not isinstance(value, list):
        raise CacheCorruptedError(f"Expected list for {where}, got {type(value).__name__}")
    return value


def _as_str(value: Any, where: str) -> str:
    if not isinstance(value, str):
        raise CacheCorruptedError(f"Expected string for {where}, got {type(value).__name__}")
    return value


def _require_str(data: dict[str, Any], key: str) -> str:
    return _as_str(data.get(key), key)


def _require_int(data: dict[str, Any], key: str) -> int:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise CacheCorruptedError(f"Expected integer for {key}, got {type(value).__name__}")
    return value

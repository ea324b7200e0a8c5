"""Rewrite orchestration: one rewrite call per paragraph plus a shared glossary."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Protocol, assert_never

from .models import (
    Block,
    FigureBlock,
    HeadingBlock,
    ParagraphBlock,
    PlainBlock,
    PlainFigure,
    PlainHeading,
    PlainParagraph,
    RewriteResult,
    Term,
    TermCandidate,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

logger = logging.getLogger(__name__)

TAG_PATTERN = re.compile(r"<[^>]*>")
WHITESPACE_PATTERN = re.compile(r"\s+")
HTML_ENTITIES = (
    ("&nbsp;", " "),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
    # last, so "&amp;lt;" decodes to the literal "&lt;"
    ("&amp;", "&"),
)


class Rewriter(Protocol):
    def rewrite(self, text: str) -> RewriteResult:  # pragma: no cover - structural protocol
        """Rewrite plain text and propose terms found in the result."""


def strip_html(html: str) -> str:
    text = TAG_PATTERN.sub(" ", html or "")
    for entity, replacement in HTML_ENTITIES:
        text = text.replace(entity, replacement)
    return WHITESPACE_PATTERN.sub(" ", text).strip()


class GlossaryAccumulator:
    """Document-wide glossary built up paragraph by paragraph.

    Terms equal under case-insensitive comparison share one entry; the first
    occurrence's casing and explanation win.
    """

    def __init__(self, id_prefix: str = "t") -> None:
        self.id_prefix = id_prefix
        self._terms: dict[str, Term] = {}
        self._ids_by_key: dict[str, str] = {}

    @property
    def terms(self) -> dict[str, Term]:
        return dict(self._terms)

    def __len__(self) -> int:
        return len(self._terms)

    @staticmethod
    def _key(term: str) -> str:
        return term.casefold()

    def lookup(self, term: str) -> str | None:
        return self._ids_by_key.get(self._key(term))

    def add(self, candidate: TermCandidate) -> str:
        existing = self.lookup(candidate.term)
        if existing is not None:
            return existing

        term_id = f"{self.id_prefix}{len(self._terms)}"
        self._terms[term_id] = Term(term=candidate.term, simple=candidate.simple)
        self._ids_by_key[self._key(candidate.term)] = term_id
        return term_id

    def add_all(self, candidates: Iterable[TermCandidate]) -> list[str]:
        """Glossary IDs for the candidates, in order of first mention."""

        term_ids: list[str] = []
        for candidate in candidates:
            term_id = self.add(candidate)
            if term_id not in term_ids:
                term_ids.append(term_id)
        return term_ids


def rewrite_paragraph(rewriter: Rewriter, text_html: str) -> RewriteResult:
    """Rewrite one paragraph, degrading to the stripped source text on failure."""

    plain_text = strip_html(text_html)
    try:
        result = rewriter.rewrite(plain_text)
    except Exception as exc:
        logger.warning("Paragraph rewrite failed, keeping original text: %s", exc)
        return RewriteResult(plain=plain_text, terms=[])

    if not isinstance(result, RewriteResult) or not result.plain.strip():
        logger.warning("Paragraph rewrite returned no usable text, keeping original text")
        return RewriteResult(plain=plain_text, terms=[])
    return result


def rewrite_blocks(
    blocks: list[Block],
    rewriter: Rewriter,
    on_progress: Callable[[int, int], None] | None = None,
    glossary: GlossaryAccumulator | None = None,
) -> tuple[list[PlainBlock], dict[str, Term]]:
    """Produce the plain version of ``blocks`` and the shared glossary.

    Paragraphs are rewritten strictly in order, one call at a time.
    """

    if glossary is None:
        glossary = GlossaryAccumulator()
    total = sum(1 for block in blocks if isinstance(block, ParagraphBlock))
    processed = 0
    plain_blocks: list[PlainBlock] = []

    for block in blocks:
        if isinstance(block, HeadingBlock):
            plain_blocks.append(PlainHeading(level=block.level, text=block.text))
        elif isinstance(block, FigureBlock):
            plain_blocks.append(PlainFigure(id=block.id))
        elif isinstance(block, ParagraphBlock):
            result = rewrite_paragraph(rewriter, block.text_html)
            term_ids = glossary.add_all(result.terms)
            plain_blocks.append(
                PlainParagraph(id=block.id, text=result.plain, term_ids=tuple(term_ids))
            )
            processed += 1
            if on_progress:
                on_progress(processed, total)
        else:
            assert_never(block)

    return plain_blocks, glossary.terms

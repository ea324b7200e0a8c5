"""Render a processed paper, original or plain version, as standalone HTML."""

from __future__ import annotations

from pathlib import Path
from typing import Any, assert_never
from urllib.parse import quote

from jinja2 import Environment, FileSystemLoader
from markupsafe import Markup

from .highlighter import format_abstract_labels, highlight_terms
from .jats_parser import ABSTRACT_PARAGRAPH_ID
from .models import (
    Block,
    FigureBlock,
    HeadingBlock,
    Paper,
    ParagraphBlock,
    PlainFigure,
    PlainHeading,
    PlainParagraph,
    Term,
)


class HTMLRenderer:
    """Render either version of a paper into the bundled template."""

    def __init__(
        self,
        template_path: Path | None = None,
        image_proxy_prefix: str | None = None,
    ) -> None:
        if template_path is None:
            template_path = Path(__file__).resolve().parent / "templates" / "paper.html"

        loader = FileSystemLoader(str(template_path.parent))
        self._env = Environment(loader=loader, autoescape=True, trim_blocks=True, lstrip_blocks=True)
        self._template_name = template_path.name
        self.image_proxy_prefix = image_proxy_prefix

    def render(self, paper: Paper, *, plain: bool = True) -> str:
        items = self.plain_items(paper) if plain else self.original_items(paper)
        template = self._env.get_template(self._template_name)
        return template.render(
            title=paper.title,
            authors=paper.authors,
            source_url=paper.source_url,
            plain=plain,
            items=items,
            glossary={term_id: term.to_dict() for term_id, term in paper.plain.terms.items()}
            if plain
            else {},
        )

    def original_items(self, paper: Paper) -> list[dict[str, Any]]:
        return [self._block_item(block) for block in paper.blocks]

    def plain_items(self, paper: Paper) -> list[dict[str, Any]]:
        figures = {block.id: block for block in paper.blocks if isinstance(block, FigureBlock)}
        items: list[dict[str, Any]] = []

        for block in paper.plain.blocks:
            if isinstance(block, PlainHeading):
                items.append({"kind": "heading", "level": block.level, "text": block.text})
            elif isinstance(block, PlainParagraph):
                referenced = {
                    term_id: paper.plain.terms[term_id]
                    for term_id in block.term_ids
                    if term_id in paper.plain.terms
                }
                items.append(
                    {
                        "kind": "para",
                        "id": block.id,
                        "html": Markup(
                            self._paragraph_html(block.id, block.text, referenced)
                        ),
                    }
                )
            elif isinstance(block, PlainFigure):
                # figure payload lives only on the original block
                original = figures.get(block.id)
                if original is not None:
                    items.append(self._block_item(original))
            else:
                assert_never(block)

        return items

    def _block_item(self, block: Block) -> dict[str, Any]:
        if isinstance(block, HeadingBlock):
            return {"kind": "heading", "level": block.level, "text": block.text}
        if isinstance(block, ParagraphBlock):
            return {
                "kind": "para",
                "id": block.id,
                "html": Markup(self._paragraph_html(block.id, block.text_html, {})),
            }
        if isinstance(block, FigureBlock):
            return {
                "kind": "figure",
                "id": block.id,
                "img_src": self.image_src(block.img_url),
                "caption": block.caption_html,
                "label": block.label,
            }
        assert_never(block)

    def _paragraph_html(self, block_id: str, text: str, terms: dict[str, Term]) -> str:
        rendered = highlight_terms(text, terms, escape=True)
        if block_id == ABSTRACT_PARAGRAPH_ID:
            rendered = format_abstract_labels(rendered)
        return rendered

    def image_src(self, img_url: str) -> str:
        if not self.image_proxy_prefix:
            return img_url
        return f"{self.image_proxy_prefix}{quote(img_url, safe='')}"


def render_paper_html(paper: Paper, plain: bool = True, image_proxy_prefix: str | None = None) -> str:
    return HTMLRenderer(image_proxy_prefix=image_proxy_prefix).render(paper, plain=plain)

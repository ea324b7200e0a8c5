"""Flatten bioRxiv JATS XML into an ordered list of blocks."""

from __future__ import annotations

import copy
import logging
import re

from lxml import etree

from .models import Block, FigureBlock, HeadingBlock, ParagraphBlock

logger = logging.getLogger(__name__)

XLINK_HREF = "{http://www.w3.org/1999/xlink}href"
DEFAULT_CONTENT_BASE_URL = "https://www.biorxiv.org/content/biorxiv/early/"
MIN_PARAGRAPH_CHARS = 20

ABSTRACT_HEADING = "Abstract"
NOTE_HEADING = "Note"
ABSTRACT_PARAGRAPH_ID = "abstract"
NOTE_PARAGRAPH_ID = "note"
FULL_TEXT_UNAVAILABLE_NOTE = (
    "The full text of this paper is currently unavailable for automated processing. "
    "This explanation covers the abstract only. For the complete paper, please visit "
    "the original on bioRxiv."
)

REFERENCE_TITLE_PATTERN = re.compile(r"reference|bibliograph", re.IGNORECASE)
ABSTRACT_SPLIT_PATTERN = re.compile(r"\r?\n\s*\r?\n")
WHITESPACE_PATTERN = re.compile(r"\s+")
# stands in for each removed citation xref until the paragraph text is tidied
CITATION_MARKER = chr(0xE000)
_MARKER = re.escape(CITATION_MARKER)
_SEPARATORS = ",;–—-"
# brackets holding nothing but removed citations and separators: "[, ]", "(; )"
EMPTY_CITATION_BRACKETS_PATTERN = re.compile(
    rf"[\[(](?=[^\[\]()]*{_MARKER})[\s{_MARKER}{_SEPARATORS}]*[\])]"
)
# unbracketed runs of removed citations: "seen 1, 2 in" with superscript xrefs
CITATION_RUN_PATTERN = re.compile(rf"{_MARKER}(?:\s*[{_SEPARATORS}]\s*{_MARKER})*")
NUMERIC_CITATION_PATTERN = re.compile(
    r"\[\s*\d+(?:\s*[,;–—-]\s*\d+)*\s*\]"
)
SPACE_BEFORE_PUNCT_PATTERN = re.compile(r"\s+([.,;:!?)\]])")


def _local_name(element: etree._Element) -> str:
    if not isinstance(element.tag, str):
        return ""
    return etree.QName(element).localname.lower()


def _children(element: etree._Element, name: str | None = None) -> list[etree._Element]:
    return [
        child
        for child in element
        if isinstance(child.tag, str) and (name is None or _local_name(child) == name)
    ]


def _first_descendant(element: etree._Element, name: str) -> etree._Element | None:
    for node in element.iterdescendants():
        if _local_name(node) == name:
            return node
    return None


def collapse_whitespace(text: str) -> str:
    return WHITESPACE_PATTERN.sub(" ", text or "").strip()


def tidy_citation_text(text: str) -> str:
    """Remove citation markers and normalise spacing.

    Bracketed numeric citations are removed wherever they appear; other
    brackets are only removed when they held nothing but citation xrefs.
    """

    cleaned = NUMERIC_CITATION_PATTERN.sub(" ", text)
    cleaned = EMPTY_CITATION_BRACKETS_PATTERN.sub(" ", cleaned)
    cleaned = CITATION_RUN_PATTERN.sub(" ", cleaned)
    cleaned = collapse_whitespace(cleaned.replace(CITATION_MARKER, " "))
    return SPACE_BEFORE_PUNCT_PATTERN.sub(r"\1", cleaned)


def _remove_preserving_tail(node: etree._Element, replacement: str = "") -> None:
    parent = node.getparent()
    if parent is None:
        return
    tail = replacement + (node.tail or "")
    previous = node.getprevious()
    if previous is not None:
        previous.tail = (previous.tail or "") + tail
    else:
        parent.text = (parent.text or "") + tail
    parent.remove(node)


def extract_paragraph_text(element: etree._Element) -> str:
    """Text of a JATS paragraph without bibliographic cross-references."""

    clone = copy.deepcopy(element)
    citations = [
        node
        for node in clone.iterdescendants()
        if _local_name(node) == "xref" and node.get("ref-type") == "bibr"
    ]
    for node in citations:
        _remove_preserving_tail(node, replacement=CITATION_MARKER)
    return tidy_citation_text("".join(clone.itertext()))


class JatsParser:
    """Parse JATS full text into headings, paragraphs and figures."""

    def __init__(
        self,
        content_base_url: str = DEFAULT_CONTENT_BASE_URL,
        min_paragraph_chars: int = MIN_PARAGRAPH_CHARS,
    ) -> None:
        self.content_base_url = content_base_url.rstrip("/") + "/"
        self.min_paragraph_chars = min_paragraph_chars

    def build_blocks(self, abstract: str, raw_markup: str | None) -> list[Block]:
        """Blocks for a paper, falling back to the abstract without full text."""

        abstract = (abstract or "").strip()
        if raw_markup is None:
            return self.build_abstract_only_blocks(abstract)

        blocks = self.parse(raw_markup)
        if abstract and blocks:
            blocks = [
                HeadingBlock(level=2, text=ABSTRACT_HEADING),
                ParagraphBlock(id=ABSTRACT_PARAGRAPH_ID, text_html=abstract),
                *blocks,
            ]
        return blocks

    def build_abstract_only_blocks(self, abstract: str) -> list[Block]:
        paragraphs = [
            part.strip() for part in ABSTRACT_SPLIT_PATTERN.split(abstract or "") if part.strip()
        ]
        if not paragraphs:
            return []

        blocks: list[Block] = [HeadingBlock(level=2, text=ABSTRACT_HEADING)]
        blocks.extend(
            ParagraphBlock(id=f"p{index}", text_html=paragraph)
            for index, paragraph in enumerate(paragraphs)
        )
        blocks.append(HeadingBlock(level=2, text=NOTE_HEADING))
        blocks.append(
            ParagraphBlock(id=NOTE_PARAGRAPH_ID, text_html=FULL_TEXT_UNAVAILABLE_NOTE)
        )
        return blocks

    def parse(self, xml: str) -> list[Block]:
        root = self._load(xml)
        if root is None:
            return []

        state = _ParseState()
        body = _first_descendant(root, "body") if _local_name(root) != "body" else root

        if body is not None:
            sections = _children(body, "sec")
            if sections:
                for section in sections:
                    self._process_section(section, depth=0, state=state)
            else:
                for paragraph in _children(body, "p"):
                    self._append_paragraph(paragraph, state)

        for figure in self._separate_figures(root):
            if not state.has_figure(figure):
                self._append_figure(figure, state)

        logger.info(
            "Parsed %d blocks from JATS XML (%d paragraphs)",
            len(state.blocks),
            state.paragraph_count,
        )
        return state.blocks

    def _load(self, xml: str) -> etree._Element | None:
        parser = etree.XMLParser(
            recover=True,
            resolve_entities=False,
            no_network=True,
            remove_blank_text=False,
        )
        try:
            return etree.fromstring(xml.encode("utf-8"), parser=parser)
        except etree.XMLSyntaxError as exc:
            logger.warning("Could not parse JATS XML: %s", exc)
            return None

    def _process_section(self, section: etree._Element, depth: int, state: _ParseState) -> None:
        titles = _children(section, "title")
        title = collapse_whitespace("".join(titles[0].itertext())) if titles else ""
        if title and not REFERENCE_TITLE_PATTERN.search(title):
            state.blocks.append(HeadingBlock(level=2 if depth == 0 else 3, text=title))

        for child in _children(section):
            name = _local_name(child)
            if name == "p":
                self._append_paragraph(child, state)
            elif name == "fig":
                self._append_figure(child, state)
            elif name == "sec":
                self._process_section(child, depth=depth + 1, state=state)

    def _append_paragraph(self, element: etree._Element, state: _ParseState) -> None:
        text = extract_paragraph_text(element)
        if len(text) > self.min_paragraph_chars:
            state.blocks.append(ParagraphBlock(id=f"p{state.next_paragraph}", text_html=text))
            state.next_paragraph += 1

    def _append_figure(self, element: etree._Element, state: _ParseState) -> None:
        # claimed even when dropped so the second scan does not retry it
        state.claim_figure(element)
        block = self.extract_figure(element, index=state.next_figure)
        if block is not None:
            state.blocks.append(block)
            state.next_figure += 1

    def extract_figure(self, element: etree._Element, index: int) -> FigureBlock | None:
        graphic = _first_descendant(element, "graphic")
        if graphic is None:
            return None
        href = (graphic.get(XLINK_HREF) or graphic.get("href") or "").strip()
        if not href:
            return None

        label_node = _first_descendant(element, "label")
        caption_node = _first_descendant(element, "caption")
        label = collapse_whitespace("".join(label_node.itertext())) if label_node is not None else ""
        caption = (
            collapse_whitespace("".join(caption_node.itertext())) if caption_node is not None else ""
        )

        return FigureBlock(
            id=f"fig{index}",
            img_url=self.resolve_image_url(href),
            caption_html=caption,
            label=label or None,
        )

    def resolve_image_url(self, href: str) -> str:
        if href.startswith(("http://", "https://")):
            return href
        return f"{self.content_base_url}{href.lstrip('/')}"

    def _separate_figures(self, root: etree._Element) -> list[etree._Element]:
        figures = []
        for node in root.iter():
            if _local_name(node) != "fig":
                continue
            if any(_local_name(parent) in {"floats-group", "body"} for parent in node.iterancestors()):
                figures.append(node)
        return figures


class _ParseState:
    """Accumulator threaded through one parse."""

    def __init__(self) -> None:
        self.blocks: list[Block] = []
        self.next_paragraph = 0
        self.next_figure = 0
        self._seen_figures: set[str] = set()

    @property
    def paragraph_count(self) -> int:
        return sum(1 for block in self.blocks if isinstance(block, ParagraphBlock))

    def _figure_keys(self, element: etree._Element) -> set[str]:
        keys = {f"path:{element.getroottree().getpath(element)}"}
        source_id = element.get("id")
        if source_id:
            keys.add(f"id:{source_id}")
        return keys

    def claim_figure(self, element: etree._Element) -> None:
        self._seen_figures.update(self._figure_keys(element))

    def has_figure(self, element: etree._Element) -> bool:
        return bool(self._figure_keys(element) & self._seen_figures)

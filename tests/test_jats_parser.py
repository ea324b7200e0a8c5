from paperexplainer.jats_parser import (
    FULL_TEXT_UNAVAILABLE_NOTE,
    JatsParser,
    tidy_citation_text,
)
from paperexplainer.models import FigureBlock, HeadingBlock, ParagraphBlock


ARTICLE = """<?xml version="1.0" encoding="UTF-8"?>
<article xmlns:xlink="http://www.w3.org/1999/xlink">
  <front><article-meta><title-group><article-title>T</article-title></title-group></article-meta></front>
  <body>
    <sec id="s1">
      <title>Introduction</title>
      <p>Effects were seen [<xref ref-type="bibr" rid="r1">1</xref>,<xref ref-type="bibr" rid="r2">2</xref>] in tissue samples.</p>
      <p>Too short.</p>
      <sec id="s1-1">
        <title>Background</title>
        <p>Earlier work measured the same pathway in mice.</p>
        <sec id="s1-1-1">
          <title>Deep detail</title>
          <p>This paragraph sits three sections deep in the tree.</p>
        </sec>
      </sec>
    </sec>
    <sec id="s2">
      <title>Results</title>
      <p>Protein X accumulates at the cell wall during growth (see <xref ref-type="fig" rid="F1">Figure 1</xref>).</p>
      <fig id="F1">
        <label>Figure 1.</label>
        <caption>
          <title>Localisation.</title>
          <p>Protein X at the cell wall.</p></caption>
        <graphic xlink:href="2024/01/01/123456/F1.large.jpg"/>
      </fig>
      <fig id="F2"><label>Figure 2.</label><caption><p>No image here.</p></caption></fig>
    </sec>
    <sec id="s3">
      <title>References</title>
    </sec>
  </body>
  <floats-group>
    <fig id="F1">
      <label>Figure 1.</label>
      <graphic xlink:href="2024/01/01/123456/F1.large.jpg"/>
    </fig>
    <fig id="F3">
      <label>Figure 3.</label>
      <caption><p>Supplementary overview.</p></caption>
      <graphic xlink:href="https://cdn.example.org/F3.jpg"/>
    </fig>
  </floats-group>
</article>
"""


def test_parse_keeps_document_order_and_nesting_levels():
    blocks = JatsParser().parse(ARTICLE)

    headings = [block for block in blocks if isinstance(block, HeadingBlock)]
    assert [(h.level, h.text) for h in headings] == [
        (2, "Introduction"),
        (3, "Background"),
        (3, "Deep detail"),
        (2, "Results"),
    ]

    kinds = [type(block).__name__ for block in blocks]
    assert kinds == [
        "HeadingBlock",
        "ParagraphBlock",
        "HeadingBlock",
        "ParagraphBlock",
        "HeadingBlock",
        "ParagraphBlock",
        "HeadingBlock",
        "ParagraphBlock",
        "FigureBlock",
        "FigureBlock",
    ]


def test_parse_assigns_sequential_ids_and_strips_citations():
    blocks = JatsParser().parse(ARTICLE)
    paragraphs = [block for block in blocks if isinstance(block, ParagraphBlock)]

    assert [p.id for p in paragraphs] == ["p0", "p1", "p2", "p3"]
    assert paragraphs[0].text_html == "Effects were seen in tissue samples."
    assert "Figure 1" in paragraphs[3].text_html


def test_parse_deduplicates_floating_figures_and_resolves_urls():
    blocks = JatsParser(content_base_url="https://www.biorxiv.org/content/biorxiv/early").parse(
        ARTICLE
    )
    figures = [block for block in blocks if isinstance(block, FigureBlock)]

    assert [f.id for f in figures] == ["fig0", "fig1"]
    assert figures[0].img_url == (
        "https://www.biorxiv.org/content/biorxiv/early/2024/01/01/123456/F1.large.jpg"
    )
    assert figures[0].label == "Figure 1."
    assert figures[0].caption_html == "Localisation. Protein X at the cell wall."
    assert figures[1].img_url == "https://cdn.example.org/F3.jpg"
    assert figures[1].to_dict()["label"] == "Figure 3."


def test_parse_uses_body_paragraphs_when_there_are_no_sections():
    xml = """<article><body>
      <p>A body paragraph without any surrounding section element.</p>
      <p>short</p>
    </body></article>"""

    blocks = JatsParser().parse(xml)

    assert blocks == [
        ParagraphBlock(id="p0", text_html="A body paragraph without any surrounding section element.")
    ]


def test_parse_returns_empty_for_unrecognised_markup():
    assert JatsParser().parse("<html><div>nothing here</div></html>") == []
    assert JatsParser().parse("") == []


def test_tidy_citation_text_removes_literal_numeric_markers():
    assert tidy_citation_text("Effects were seen [1,2] in tissue") == "Effects were seen in tissue"
    assert tidy_citation_text("As shown [3-5].") == "As shown."


def test_build_blocks_prepends_abstract_to_full_text():
    blocks = JatsParser().build_blocks("We study protein X.", ARTICLE)

    assert blocks[0] == HeadingBlock(level=2, text="Abstract")
    assert blocks[1] == ParagraphBlock(id="abstract", text_html="We study protein X.")
    assert blocks[2] == HeadingBlock(level=2, text="Introduction")


def test_build_blocks_falls_back_to_abstract_when_full_text_missing():
    blocks = JatsParser().build_blocks("First paragraph.\n\nSecond paragraph.", None)

    assert blocks == [
        HeadingBlock(level=2, text="Abstract"),
        ParagraphBlock(id="p0", text_html="First paragraph."),
        ParagraphBlock(id="p1", text_html="Second paragraph."),
        HeadingBlock(level=2, text="Note"),
        ParagraphBlock(id="note", text_html=FULL_TEXT_UNAVAILABLE_NOTE),
    ]


def test_build_blocks_without_abstract_or_full_text_is_empty():
    assert JatsParser().build_blocks("   ", None) == []


def test_tidy_citation_text_keeps_bracketed_prose():
    text = "Mice received (-)-epicatechin daily and wild-type (WT) controls got () nothing."

    assert tidy_citation_text(text) == text


def test_paragraph_citations_in_parentheses_and_runs_are_removed():
    xml = """<article><body>
      <p>Growth slowed (<xref ref-type="bibr" rid="r1">Doe et al., 2020</xref>; <xref ref-type="bibr" rid="r2">Roe, 2021</xref>) in (-)-epicatechin fed mice.</p>
      <p>Prior reports<xref ref-type="bibr" rid="r3">3</xref>,<xref ref-type="bibr" rid="r4">4</xref> agree with this (see <xref ref-type="bibr" rid="r5">5</xref>).</p>
    </body></article>"""

    paragraphs = JatsParser().parse(xml)

    assert [p.text_html for p in paragraphs] == [
        "Growth slowed in (-)-epicatechin fed mice.",
        "Prior reports agree with this (see).",
    ]

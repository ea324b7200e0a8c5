import pytest

from paperexplainer.models import (
    FigureBlock,
    HeadingBlock,
    Paper,
    ParagraphBlock,
    PlainFigure,
    PlainHeading,
    PlainParagraph,
    PlainVersion,
    Term,
)


@pytest.fixture
def sample_paper():
    return Paper(
        id="biorxiv:10.1101/2024.01.01.123456v1",
        source_url="https://www.biorxiv.org/content/10.1101/2024.01.01.123456v1",
        title="Mapping protein X",
        authors=["Doe, J.", "Roe, R."],
        blocks=[
            HeadingBlock(level=2, text="Abstract"),
            ParagraphBlock(id="abstract", text_html="Background: Protein X matters. Results: It does."),
            HeadingBlock(level=2, text="Results"),
            ParagraphBlock(id="p0", text_html="Protein X sits in the cell wall."),
            FigureBlock(
                id="fig0",
                img_url="https://www.biorxiv.org/content/biorxiv/early/f1.jpg",
                caption_html="Protein X <localised>",
                label="Figure 1.",
            ),
        ],
        plain=PlainVersion(
            blocks=[
                PlainHeading(level=2, text="Abstract"),
                PlainParagraph(
                    id="abstract",
                    text="Background: Protein X matters. Results: It does.",
                    term_ids=("t0",),
                ),
                PlainHeading(level=2, text="Results"),
                PlainParagraph(id="p0", text="Protein X sits in the cell wall & more.", term_ids=("t0", "t1")),
                PlainFigure(id="fig0"),
            ],
            terms={
                "t0": Term(term="Protein X", simple="a protein"),
                "t1": Term(term="cell wall", simple="the outer layer", more="Made of sugars."),
            },
        ),
    )

import pytest

from paperexplainer.cache import InMemoryCache
from paperexplainer.exceptions import (
    DocumentUnavailableError,
    InvalidReferenceError,
    UnsupportedStructureError,
)
from paperexplainer.models import HeadingBlock, PaperMetadata, RewriteResult, TermCandidate
from paperexplainer.pipeline import PaperExplainerPipeline
from paperexplainer.progress import CallbackStageReporter


URL = "www.biorxiv.org/content/10.1101/2024.01.01.123456v1"
KEY = "biorxiv:10.1101/2024.01.01.123456v1"

JATS = """<article><body>
  <sec><title>Results</title>
    <p>Protein X accumulates at the cell wall during growth.</p>
    <p>Deleting protein X stops growth entirely in all strains.</p>
  </sec>
</body></article>"""


class FakeFetcher:
    def __init__(self, metadata=None, raw_markup=None):
        self.metadata = metadata
        self.raw_markup = raw_markup
        self.calls = []

    def fetch_metadata(self, doi):
        self.calls.append(("metadata", doi))
        return self.metadata

    def fetch_raw_content(self, reference):
        self.calls.append(("raw", reference))
        return self.raw_markup


class EchoRewriter:
    def __init__(self):
        self.calls = 0

    def rewrite(self, text):
        self.calls += 1
        return RewriteResult(plain=f"Plain: {text}", terms=[TermCandidate("protein X", "a protein")])


def _metadata(abstract="We study protein X in yeast cells."):
    return PaperMetadata(
        doi="10.1101/2024.01.01.123456",
        title="Mapping protein X",
        authors=["Doe, J."],
        abstract=abstract,
        jats_url="https://www.biorxiv.org/content/early/123456.source.xml",
    )


def _pipeline(fetcher, rewriter=None, cache=None):
    return PaperExplainerPipeline(
        fetcher=fetcher,
        rewriter=rewriter or EchoRewriter(),
        cache=cache if cache is not None else InMemoryCache(),
    )


def _collect():
    events = []
    return events, CallbackStageReporter(events.append)


def test_invalid_reference_fails_before_any_fetch():
    fetcher = FakeFetcher(metadata=_metadata(), raw_markup=JATS)

    with pytest.raises(InvalidReferenceError):
        _pipeline(fetcher).process("https://example.com/not-a-paper")

    assert fetcher.calls == []


def test_process_full_text_end_to_end():
    fetcher = FakeFetcher(metadata=_metadata(), raw_markup=JATS)
    rewriter = EchoRewriter()
    cache = InMemoryCache()
    events, reporter = _collect()

    paper = _pipeline(fetcher, rewriter, cache).process(URL, reporter=reporter)

    assert paper.id == KEY
    assert paper.source_url == f"https://{URL}"
    assert paper.title == "Mapping protein X"
    assert [b.to_dict()["kind"] for b in paper.blocks] == ["heading", "para", "heading", "para", "para"]
    assert [b.to_dict()["kind"] for b in paper.plain.blocks] == [
        "heading",
        "para",
        "heading",
        "para",
        "para",
    ]
    assert paper.plain.blocks[1].text == "Plain: We study protein X in yeast cells."
    assert list(paper.plain.terms) == ["t0"]
    assert rewriter.calls == 3
    assert fetcher.calls == [
        ("metadata", "10.1101/2024.01.01.123456v1"),
        ("raw", "https://www.biorxiv.org/content/early/123456.source.xml"),
    ]
    assert cache.get(KEY) == paper

    progress = [event.progress for event in events]
    assert progress == sorted(progress)
    assert progress[:4] == [5, 15, 20, 25]
    assert progress[-2:] == [95, 100]
    assert events[-1].stage == "complete"
    assert events[-1].message == "Processing complete!"
    assert [e.sub_progress for e in events if e.stage == "rewriting"] == [
        "0 of 3",
        "1 of 3",
        "2 of 3",
        "3 of 3",
    ]


def test_missing_full_text_falls_back_to_abstract():
    fetcher = FakeFetcher(metadata=_metadata("First part.\n\nSecond part."), raw_markup=None)

    paper = _pipeline(fetcher).process(URL)

    headings = [b.text for b in paper.blocks if isinstance(b, HeadingBlock)]
    assert headings == ["Abstract", "Note"]
    assert [b.id for b in paper.blocks if b.to_dict()["kind"] == "para"] == ["p0", "p1", "note"]


def test_cache_hit_skips_fetching_and_reports_completion():
    cache = InMemoryCache()
    _pipeline(FakeFetcher(metadata=_metadata(), raw_markup=JATS), cache=cache).process(URL)

    fetcher = FakeFetcher(metadata=_metadata(), raw_markup=JATS)
    rewriter = EchoRewriter()
    events, reporter = _collect()
    paper = _pipeline(fetcher, rewriter, cache).process(
        "https://www.biorxiv.org/content/10.1101/2024.01.01.123456v1#abstract", reporter=reporter
    )

    assert paper.id == KEY
    assert fetcher.calls == []
    assert rewriter.calls == 0
    assert [(e.stage, e.message, e.progress) for e in events] == [
        ("complete", "Paper loaded from cache", 100)
    ]


def test_force_refresh_reprocesses_and_overwrites():
    cache = InMemoryCache()
    pipeline = _pipeline(FakeFetcher(metadata=_metadata(), raw_markup=JATS), cache=cache)
    pipeline.process(URL)

    fetcher = FakeFetcher(metadata=_metadata(), raw_markup=None)
    refreshed = _pipeline(fetcher, cache=cache).process(URL, force_refresh=True)

    assert fetcher.calls[0] == ("metadata", "10.1101/2024.01.01.123456v1")
    assert cache.get(KEY) == refreshed
    assert [b.text for b in refreshed.blocks if isinstance(b, HeadingBlock)] == ["Abstract", "Note"]


def test_missing_metadata_is_document_unavailable():
    cache = InMemoryCache()

    with pytest.raises(DocumentUnavailableError, match="Could not fetch this paper"):
        _pipeline(FakeFetcher(metadata=None), cache=cache).process(URL)

    assert KEY not in cache


def test_unrecognised_structure_is_unsupported():
    fetcher = FakeFetcher(metadata=_metadata(), raw_markup="<html><div>login page</div></html>")
    cache = InMemoryCache()

    with pytest.raises(UnsupportedStructureError, match="Could not parse paper content"):
        _pipeline(fetcher, cache=cache).process(URL)

    assert KEY not in cache


"""End-to-end pipeline: fetch, parse, rewrite, then cache."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from .exceptions import (
    DocumentUnavailableError,
    InvalidReferenceError,
    UnsupportedStructureError,
)
from .jats_parser import JatsParser
from .models import Paper, PaperMetadata, ParsedDocument, PlainVersion
from .progress import (
    REWRITE_START_PERCENT,
    STAGE_COMPLETE,
    STAGE_FETCHING,
    STAGE_PARSING,
    STAGE_REWRITING,
    STAGE_SAVING,
    MonotonicStageReporter,
    NullStageReporter,
    ProgressEvent,
    StageReporter,
    rewriting_percent,
)
from .references import (
    derive_cache_key,
    extract_identifier,
    is_supported_reference,
    normalize_reference,
)
from .rewriter import Rewriter, rewrite_blocks

if TYPE_CHECKING:
    from .cache import PaperCache

logger = logging.getLogger(__name__)


class DocumentFetcher(Protocol):
    def fetch_metadata(self, doi: str) -> PaperMetadata | None:  # pragma: no cover
        """Fetch paper metadata or ``None``."""

    def fetch_raw_content(self, reference: str | None) -> str | None:  # pragma: no cover
        """Fetch the full-text markup or ``None``."""


def validate_reference(raw_reference: str) -> tuple[str, str]:
    """Return ``(source_url, doi)`` or raise ``InvalidReferenceError``."""

    source_url = normalize_reference(raw_reference)
    if not is_supported_reference(source_url):
        raise InvalidReferenceError()
    doi = extract_identifier(source_url)
    if doi is None:
        raise InvalidReferenceError()
    return source_url, doi


class PaperExplainerPipeline:
    """Coordinates bioRxiv fetching, JATS parsing and plain-language rewriting."""

    def __init__(
        self,
        fetcher: DocumentFetcher,
        rewriter: Rewriter,
        cache: PaperCache,
        parser: JatsParser | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.rewriter = rewriter
        self.cache = cache
        self.parser = parser or JatsParser()

    def process(
        self,
        raw_reference: str,
        force_refresh: bool = False,
        reporter: StageReporter | None = None,
    ) -> Paper:
        source_url, doi = validate_reference(raw_reference)
        stage = MonotonicStageReporter(reporter or NullStageReporter())
        cache_key = derive_cache_key(doi)

        if not force_refresh:
            cached = self.cache.get(cache_key)
            if cached is not None:
                logger.info("Cache hit for %s", cache_key)
                stage.report(
                    ProgressEvent(STAGE_COMPLETE, "Paper loaded from cache", 100)
                )
                return cached

        document = self.fetch_document(doi, stage)
        plain = self.rewrite_document(document, stage)

        stage.report(ProgressEvent(STAGE_SAVING, "Saving to cache...", 95))
        paper = Paper(
            id=cache_key,
            source_url=source_url,
            title=document.title,
            authors=list(document.authors),
            blocks=list(document.blocks),
            plain=plain,
        )
        self.cache.put(cache_key, paper)
        stage.report(ProgressEvent(STAGE_COMPLETE, "Processing complete!", 100))
        return paper

    def fetch_document(self, doi: str, stage: StageReporter) -> ParsedDocument:
        stage.report(ProgressEvent(STAGE_FETCHING, "Fetching paper from bioRxiv...", 5))
        metadata = self.fetcher.fetch_metadata(doi)
        if metadata is None:
            raise DocumentUnavailableError()

        raw_markup = self.fetcher.fetch_raw_content(metadata.jats_url)
        if raw_markup is None:
            logger.info("Full text unavailable for %s, using abstract only", doi)
        stage.report(ProgressEvent(STAGE_FETCHING, "Paper fetched successfully", 15))

        stage.report(ProgressEvent(STAGE_PARSING, "Parsing paper content...", 20))
        blocks = self.parser.build_blocks(metadata.abstract, raw_markup)
        if not blocks:
            raise UnsupportedStructureError()
        stage.report(
            ProgressEvent(STAGE_PARSING, f"Parsed {len(blocks)} content blocks", 25)
        )

        return ParsedDocument(
            doi=metadata.doi,
            title=metadata.title,
            authors=list(metadata.authors),
            abstract=metadata.abstract,
            blocks=blocks,
        )

    def rewrite_document(self, document: ParsedDocument, stage: StageReporter) -> PlainVersion:
        total = document.paragraph_count
        stage.report(
            ProgressEvent(
                STAGE_REWRITING,
                f"Rewriting {total} paragraphs...",
                REWRITE_START_PERCENT,
                sub_progress=f"0 of {total}",
            )
        )

        def _on_progress(processed: int, total_paragraphs: int) -> None:
            stage.report(
                ProgressEvent(
                    STAGE_REWRITING,
                    f"Rewriting paragraph {processed} of {total_paragraphs}...",
                    rewriting_percent(processed, total_paragraphs),
                    sub_progress=f"{processed} of {total_paragraphs}",
                )
            )

        plain_blocks, terms = rewrite_blocks(
            document.blocks, self.rewriter, on_progress=_on_progress
        )
        return PlainVersion(blocks=plain_blocks, terms=terms)

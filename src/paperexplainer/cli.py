"""CLI entrypoint for the paper explainer pipeline."""

from __future__ import annotations

import argparse
import json
import logging
import mimetypes
import sys
from pathlib import Path

from rich.console import Console

from .biorxiv_client import BioRxivClient
from .cache import JsonFileCache
from .config import load_settings
from .exceptions import ConfigError, ImageProxyError, PaperExplainerError
from .image_proxy import ImageProxy
from .jats_parser import JatsParser
from .logging_config import setup_logging
from .models import FigureBlock, Paper
from .openai_rewriter import OpenAIRewriter
from .pipeline import PaperExplainerPipeline
from .progress import NullStageReporter, RichStageReporter, TqdmStageReporter
from .prompts import load_prompt_template
from .renderer import render_paper_html

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Fetch a bioRxiv paper and rewrite it in plain English"
    )
    parser.add_argument("url", help="bioRxiv paper URL (scheme optional)")
    parser.add_argument("--dotenv", type=Path, default=None, help="Path to .env file")
    parser.add_argument(
        "--refresh",
        action="store_true",
        help="Ignore any cached result and reprocess the paper",
    )
    parser.add_argument("--cache-dir", type=Path, default=None, help="Override CACHE_DIR")
    parser.add_argument("--model", type=str, default=None, help="Override OPENAI_MODEL")
    parser.add_argument(
        "--prompt-template",
        type=Path,
        default=None,
        help="User prompt template path; supports {{paragraph_text}}",
    )
    parser.add_argument(
        "--json-out", type=Path, default=None, help="Write the processed paper as JSON"
    )
    parser.add_argument(
        "--html-out", type=Path, default=None, help="Write the plain version as HTML"
    )
    parser.add_argument(
        "--figures-dir",
        type=Path,
        default=None,
        help="Download figure images from IMAGE_ALLOWED_HOSTS into this directory",
    )
    parser.add_argument(
        "--original-html",
        action="store_true",
        help="Render the original text instead of the plain version",
    )
    parser.add_argument(
        "--no-rich",
        action="store_true",
        default=False,
        help="Disable Rich progress display, use simple tqdm instead",
    )
    parser.add_argument(
        "--quiet", action="store_true", default=False, help="No progress display"
    )
    parser.add_argument("--log-level", type=str, default=None, help="Override LOG_LEVEL")
    return parser.parse_args(argv)


def download_figures(paper: Paper, proxy: ImageProxy, figures_dir: Path) -> int:
    """Save every figure image of the paper, skipping the ones that fail."""

    figures_dir.mkdir(parents=True, exist_ok=True)
    saved = 0
    for block in paper.blocks:
        if not isinstance(block, FigureBlock):
            continue
        try:
            image = proxy.fetch(block.img_url)
        except ImageProxyError as exc:
            logger.warning("Skipping figure %s: %s", block.id, exc)
            continue
        mime_type = image.content_type.split(";")[0].strip()
        suffix = mimetypes.guess_extension(mime_type) or ".img"
        (figures_dir / f"{block.id}{suffix}").write_bytes(image.content)
        saved += 1
    return saved


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    console = Console(stderr=True)

    try:
        settings = load_settings(dotenv_path=args.dotenv)
    except ConfigError as exc:
        console.print(f"[red]Configuration error:[/red] {exc}")
        return 2

    setup_logging(args.log_level or settings.log_level, console=console)

    fetcher = BioRxivClient(
        api_base_url=settings.biorxiv_api_base_url,
        site_base_url=settings.biorxiv_site_base_url,
        timeout_sec=settings.biorxiv_timeout_sec,
        trust_env=settings.network_trust_env,
    )
    rewriter = OpenAIRewriter(
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url,
        model=args.model or settings.openai_model,
        timeout_sec=settings.openai_timeout_sec,
        prompt_template=load_prompt_template(args.prompt_template),
        max_input_chars=settings.rewrite_max_input_chars,
        trust_env=settings.network_trust_env,
    )
    pipeline = PaperExplainerPipeline(
        fetcher=fetcher,
        rewriter=rewriter,
        cache=JsonFileCache(args.cache_dir or settings.cache_dir),
        parser=JatsParser(
            content_base_url=f"{settings.biorxiv_site_base_url}/content/biorxiv/early/"
        ),
    )

    if args.quiet:
        reporter = NullStageReporter()
    elif args.no_rich:
        reporter = TqdmStageReporter(title=args.url)
    else:
        reporter = RichStageReporter(title=args.url, console=console)
        reporter.start()

    try:
        paper = pipeline.process(args.url, force_refresh=args.refresh, reporter=reporter)
    except PaperExplainerError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        return 1
    finally:
        stop = getattr(reporter, "stop", None)
        if stop:
            stop()

    if args.json_out:
        args.json_out.parent.mkdir(parents=True, exist_ok=True)
        args.json_out.write_text(
            json.dumps(paper.to_dict(), ensure_ascii=False, indent=2),
            encoding="utf-8",
        )
    if args.html_out:
        args.html_out.parent.mkdir(parents=True, exist_ok=True)
        args.html_out.write_text(
            render_paper_html(paper, plain=not args.original_html),
            encoding="utf-8",
        )
    if args.figures_dir:
        proxy = ImageProxy(
            allowed_hosts=settings.image_allowed_hosts,
            timeout_sec=settings.biorxiv_timeout_sec,
            referer=f"{settings.biorxiv_site_base_url}/",
            trust_env=settings.network_trust_env,
        )
        saved = download_figures(paper, proxy, args.figures_dir)
        logger.info("Saved %d figure image(s) to %s", saved, args.figures_dir)

    paragraphs = sum(1 for block in paper.plain.blocks if block.to_dict()["kind"] == "para")
    print(
        f"Finished. id={paper.id} title={paper.title!r} "
        f"paragraphs={paragraphs} terms={len(paper.plain.terms)}"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())

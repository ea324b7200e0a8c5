"""Progress event stream for long-running pipeline runs."""

from __future__ import annotations

import json
import logging
import queue
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Union

from .exceptions import PaperExplainerError
from .progress import CallbackStageReporter, ProgressEvent

if TYPE_CHECKING:
    from collections.abc import Iterator

    from .models import Paper
    from .pipeline import PaperExplainerPipeline

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "An unexpected error occurred"
SSE_HEADERS = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


@dataclass(frozen=True)
class ReadyEvent:
    paper: Paper

    def to_dict(self) -> dict[str, Any]:
        return {"status": "ready", "paper": self.paper.to_dict()}


@dataclass(frozen=True)
class ErrorEvent:
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"status": "error", "message": self.message}


StreamEvent = Union[ProgressEvent, ReadyEvent, ErrorEvent]

_DONE = object()


def iter_progress_events(
    pipeline: PaperExplainerPipeline,
    reference: str,
    force_refresh: bool = False,
) -> Iterator[StreamEvent]:
    """Run the pipeline on a worker thread and yield its events as they happen.

    The stream always ends with exactly one ``ReadyEvent`` or ``ErrorEvent``.
    """

    events: queue.Queue[Any] = queue.Queue()

    def _worker() -> None:
        try:
            paper = pipeline.process(
                reference,
                force_refresh=force_refresh,
                reporter=CallbackStageReporter(events.put),
            )
            events.put(ReadyEvent(paper=paper))
        except PaperExplainerError as exc:
            logger.warning("Paper processing stopped for %s: %s", reference, exc)
            events.put(ErrorEvent(message=str(exc)))
        except Exception:
            logger.exception("Error processing paper %s", reference)
            events.put(ErrorEvent(message=GENERIC_ERROR_MESSAGE))
        finally:
            events.put(_DONE)

    worker = threading.Thread(target=_worker, name="paper-pipeline", daemon=True)
    worker.start()

    while True:
        event = events.get()
        if event is _DONE:
            break
        yield event


def format_sse(event: StreamEvent) -> str:
    return f"data: {json.dumps(event.to_dict(), ensure_ascii=False)}\n\n"


def iter_sse(
    pipeline: PaperExplainerPipeline,
    reference: str,
    force_refresh: bool = False,
) -> Iterator[bytes]:
    for event in iter_progress_events(pipeline, reference, force_refresh=force_refresh):
        yield format_sse(event).encode("utf-8")

"""Mark glossary terms inside rewritten paragraphs.

Highlighting runs in two passes. Terms are matched longest first and every
match is swapped for an opaque placeholder built from private-use characters,
which are neither word characters nor markup. Only when all terms have been
matched are the placeholders resolved to the final ``<button>`` markers, so a
shorter term can never match inside a longer one and no matcher ever runs
over inserted markup.
"""

from __future__ import annotations

import html
import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .models import Term

PLACEHOLDER_DELIMITER = "\uF8FF"
PLACEHOLDER_DIGIT_BASE = 0xE000
PLACEHOLDER_RADIX = 0x1000
PLACEHOLDER_PATTERN = re.compile("\uF8FF([\uE000-\uEFFF]+)\uF8FF")
LITERAL_DELIMITER_PATTERN = re.compile(re.escape(PLACEHOLDER_DELIMITER))

ABSTRACT_LABELS = (
    "Significance",
    "Aim",
    "Aims",
    "Approach",
    "Methods",
    "Method",
    "Results",
    "Result",
    "Conclusions",
    "Conclusion",
    "Background",
    "Objective",
    "Objectives",
    "Purpose",
    "Design",
    "Findings",
    "Interpretation",
    "Funding",
)
ABSTRACT_LABEL_PATTERN = re.compile(
    r"\b(" + "|".join(sorted(ABSTRACT_LABELS, key=len, reverse=True)) + r")\s*:",
    re.IGNORECASE,
)


def _placeholder(index: int) -> str:
    digits: list[str] = []
    while True:
        index, remainder = divmod(index, PLACEHOLDER_RADIX)
        digits.append(chr(PLACEHOLDER_DIGIT_BASE + remainder))
        if index == 0:
            break
    return PLACEHOLDER_DELIMITER + "".join(reversed(digits)) + PLACEHOLDER_DELIMITER


def _placeholder_index(digits: str) -> int:
    index = 0
    for char in digits:
        index = index * PLACEHOLDER_RADIX + (ord(char) - PLACEHOLDER_DIGIT_BASE)
    return index


def term_pattern(term: str) -> re.Pattern[str]:
    """Case-insensitive whole-word matcher for a literal term."""

    return re.compile(rf"(?<!\w){re.escape(term)}(?!\w)", re.IGNORECASE)


def _escape_text(text: str) -> str:
    return html.escape(text, quote=False)


def _keep_text(text: str) -> str:
    return text


def render_term_marker(term_id: str, matched_text: str) -> str:
    return (
        f'<button class="term-highlight" data-term-id="{html.escape(term_id, quote=True)}">'
        f"{matched_text}</button>"
    )


def highlight_terms(text: str, terms: Mapping[str, Term], escape: bool = False) -> str:
    """Wrap every glossary term occurring in ``text`` in a clickable marker.

    With ``escape=True`` the text is treated as plain text: matching runs on
    the raw characters and everything outside the markers is HTML-escaped as
    the placeholders are resolved.
    """

    render_text = _escape_text if escape else _keep_text
    if not text:
        return text

    claims: list[tuple[str | None, str]] = []

    def _claim(term_id: str | None):
        def _replace(match: re.Match[str]) -> str:
            claims.append((term_id, match.group(0)))
            return _placeholder(len(claims) - 1)

        return _replace

    # delimiters already in the text become literal claims so no marker can be forged
    result = LITERAL_DELIMITER_PATTERN.sub(_claim(None), text)

    ordered = sorted(
        ((term_id, entry) for term_id, entry in terms.items() if entry.term.strip()),
        key=lambda item: len(item[1].term),
        reverse=True,
    )
    for term_id, entry in ordered:
        result = term_pattern(entry.term).sub(_claim(term_id), result)

    if not claims:
        return render_text(text)

    pieces: list[str] = []
    position = 0
    for match in PLACEHOLDER_PATTERN.finditer(result):
        pieces.append(render_text(result[position : match.start()]))
        index = _placeholder_index(match.group(1))
        if index < len(claims):
            term_id, matched_text = claims[index]
            if term_id is None:
                pieces.append(matched_text)
            else:
                pieces.append(render_term_marker(term_id, render_text(matched_text)))
        else:
            pieces.append(render_text(match.group(0)))
        position = match.end()
    pieces.append(render_text(result[position:]))
    return "".join(pieces)


def format_abstract_labels(text: str) -> str:
    """Bold structured-abstract labels such as ``Results:``.

    Every label after the first is preceded by a blank line.
    """

    seen_first = False

    def _format(match: re.Match[str]) -> str:
        nonlocal seen_first
        formatted = f"<strong>{match.group(1)}:</strong>"
        if not seen_first:
            seen_first = True
            return formatted
        return f"<br><br>{formatted}"

    return ABSTRACT_LABEL_PATTERN.sub(_format, text or "")

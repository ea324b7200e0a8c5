"""Prompt templates for plain-language paragraph rewriting."""

from __future__ import annotations

from pathlib import Path

DEFAULT_SYSTEM_PROMPT = """You are rewriting a scientific paper paragraph into plain English.

Your goal is to explain: what changed (what the research found or did), why it matters (the significance and importance), and what it enables (implications, applications, or future possibilities).

Focus on making the research's impact and implications clear to someone who isn't in the field, while maintaining accuracy and staying true to the original findings.

Rules:
- Keep all numbers, units, and statistics exactly as written
- Keep uncertainty language (suggests, may, consistent with, appears to) - don't make claims stronger than the original
- Don't add interpretations or conclusions not in the original
- Don't turn correlations into causations
- Some technical terms MUST stay in the text (like gene names, protein names, methods) - keep these but mark them for definition
- Structure your explanation around what changed, why it matters, and what it enables
- Use clear, accessible language that explains the significance and implications

For the terms list: identify 2-5 technical terms that APPEAR IN YOUR REWRITTEN TEXT that a non-scientist would benefit from having explained. The term field must be an exact substring of your rewritten paragraph."""

DEFAULT_USER_TEMPLATE = """Please rewrite this paragraph in plain English, focusing on what changed, why it matters, and what it enables. Identify key terms:

"{{paragraph_text}}"

Respond in JSON format:
{
  "plain": "the rewritten paragraph explaining what changed, why it matters, and what it enables",
  "terms": [
    { "term": "original term", "simple": "plain English explanation" }
  ]
}"""


def _replace_placeholders(template: str, replacements: dict[str, str]) -> str:
    rendered = template
    for key, value in replacements.items():
        rendered = rendered.replace(key, value)
    return rendered


def load_prompt_template(path: Path | None) -> str:
    if path is None:
        return DEFAULT_USER_TEMPLATE
    return path.read_text(encoding="utf-8")


def build_rewrite_prompt(template: str, paragraph_text: str) -> str:
    if "{{paragraph_text}}" in template:
        return _replace_placeholders(template, {"{{paragraph_text}}": paragraph_text})

    return f'{template.strip()}\n\n"{paragraph_text}"'

"""OpenAI-compatible plain-language paragraph rewriter."""

from __future__ import annotations

import json
from typing import Any

import httpx
from openai import OpenAI

from .exceptions import RewriteError
from .models import RewriteResult, TermCandidate
from .prompts import DEFAULT_SYSTEM_PROMPT, DEFAULT_USER_TEMPLATE, build_rewrite_prompt


class OpenAIRewriter:
    """Rewrite one paragraph and propose glossary terms for it."""

    def __init__(
        self,
        api_key: str,
        base_url: str,
        model: str,
        timeout_sec: int,
        prompt_template: str = DEFAULT_USER_TEMPLATE,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        max_input_chars: int = 12_000,
        trust_env: bool = False,
        client: OpenAI | None = None,
    ) -> None:
        self.model = model
        self.prompt_template = prompt_template
        self.system_prompt = system_prompt
        self.max_input_chars = max_input_chars
        self.client = client or OpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout_sec,
            http_client=httpx.Client(
                timeout=timeout_sec,
                trust_env=trust_env,
            ),
        )

    def rewrite(self, text: str) -> RewriteResult:
        safe_text = self._prepare_input_text(text)
        response = self._request_completion(
            user_prompt=build_rewrite_prompt(self.prompt_template, safe_text)
        )

        if not response.choices:
            raise RewriteError("OpenAI returned no choices")

        content = self._extract_content(response.choices[0].message.content)
        if not content.strip():
            raise RewriteError("OpenAI returned empty content")

        return parse_rewrite_payload(content)

    def _prepare_input_text(self, text: str) -> str:
        if len(text) > self.max_input_chars:
            return text[: self.max_input_chars]
        return text

    def _request_completion(self, user_prompt: str) -> Any:
        try:
            return self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": self.system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                response_format={"type": "json_object"},
            )
        except Exception as exc:
            raise RewriteError(f"OpenAI request failed: {exc}") from exc

    def _extract_content(self, content: Any) -> str:
        if isinstance(content, str):
            return content

        if isinstance(content, list):
            chunks: list[str] = []
            for item in content:
                if isinstance(item, dict) and "text" in item:
                    chunks.append(str(item["text"]))
            return "\n".join(chunks)

        return ""


def parse_rewrite_payload(content: str) -> RewriteResult:
    """Validate the JSON envelope returned by the model.

    A malformed envelope raises ``RewriteError``; malformed individual term
    entries are skipped.
    """

    try:
        payload = json.loads(content)
    except json.JSONDecodeError as exc:
        raise RewriteError("OpenAI returned non-JSON content") from exc

    if not isinstance(payload, dict):
        raise RewriteError("OpenAI returned a JSON value that is not an object")

    plain = payload.get("plain")
    if not isinstance(plain, str) or not plain.strip():
        raise RewriteError("OpenAI response is missing the rewritten text")

    raw_terms = payload.get("terms") or []
    if not isinstance(raw_terms, list):
        raise RewriteError("OpenAI response has a non-list terms field")

    terms: list[TermCandidate] = []
    for item in raw_terms:
        if not isinstance(item, dict):
            continue
        term = item.get("term")
        simple = item.get("simple")
        if not isinstance(term, str) or not term.strip():
            continue
        if not isinstance(simple, str):
            continue
        terms.append(TermCandidate(term=term.strip(), simple=simple.strip()))

    return RewriteResult(plain=plain.strip(), terms=terms)

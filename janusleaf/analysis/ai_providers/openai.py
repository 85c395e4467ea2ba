from __future__ import annotations

import json
import logging
import re
from typing import Any, List, Optional

import openai
from openai import OpenAI

import janusleaf.analysis.prompts.openai_prompts_templates as prompts
from janusleaf.analysis.ai_providers.base import AIService, QuoteDraft
from janusleaf.core.config import AI_TIMEOUT_SECONDS, OPENAI_API_KEY, OPENAI_BASE_URL, OPENAI_CHAT_MODEL
from janusleaf.core.errors import PermanentAiFailure, RateLimited, TransientAiFailure

logger = logging.getLogger(__name__)

MAX_QUOTE_ENTRIES = 20
MAX_ENTRY_CHARS = 4000
ENTRY_SEPARATOR = "\n\n---\n\n"

_SCORE_RE = re.compile(r"^\s*(\d+)")


def _try_repair_parse(raw: Optional[str]) -> Any:
    """Parse JSON that may be wrapped in code fences or surrounded by prose."""
    if not raw:
        raise ValueError("Empty content")
    s = raw.strip()
    if s.startswith("```"):
        s = s.strip("`\n ")
    start = s.find("{")
    end = s.rfind("}")
    if start != -1 and end != -1 and end > start:
        return json.loads(s[start : end + 1])
    return json.loads(s)


def pad_tags(raw_tags: Any) -> List[str]:
    """Keeps at most four non-blank tags and pads with the default ones."""
    tags: List[str] = []
    if isinstance(raw_tags, list):
        for tag in raw_tags:
            if isinstance(tag, str) and tag.strip() and tag.strip() not in tags:
                tags.append(tag.strip())
    tags = tags[:4]
    for default in prompts.DEFAULT_TAGS:
        if len(tags) >= 4:
            break
        if default not in tags:
            tags.append(default)
    return tags


class OpenAIAIService(AIService):
    """
    Mood scoring and quote generation over an OpenAI-compatible chat API.

    SDK retries are disabled: the debounce queue and the quote job decide when
    to try again, based on which AiServiceError subclass is raised.
    """

    model_tag = "chatgpt"

    def __init__(
        self,
        client: Optional[Any] = None,
        model: str = OPENAI_CHAT_MODEL,
        api_key: str = OPENAI_API_KEY,
        base_url: str = OPENAI_BASE_URL,
        timeout: float = AI_TIMEOUT_SECONDS,
    ):
        self.model = model
        self.client = client or OpenAI(api_key=api_key, base_url=base_url, timeout=timeout, max_retries=0)

    def _complete(self, messages: List[dict[str, Any]], *, max_tokens: int, temperature: float) -> str:
        """Run a chat completion and return the first choice's text, mapping SDK errors."""
        try:
            resp = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except openai.RateLimitError as e:
            raise RateLimited(f"AI provider rate limited the request: {e}") from e
        except (openai.APITimeoutError, openai.APIConnectionError) as e:
            raise TransientAiFailure(f"AI provider unreachable: {e}") from e
        except openai.InternalServerError as e:
            raise TransientAiFailure(f"AI provider error {e.status_code}") from e
        except openai.APIStatusError as e:
            raise PermanentAiFailure(f"AI provider rejected the request ({e.status_code})") from e
        except openai.OpenAIError as e:
            raise TransientAiFailure(f"AI provider call failed: {e}") from e

        if not resp.choices:
            raise PermanentAiFailure("AI provider returned no choices")
        return resp.choices[0].message.content or ""

    def _chat_json(self, messages: List[dict[str, Any]], *, max_tokens: int, temperature: float) -> Any:
        """Chat completion parsed as JSON, asking once more for strict JSON if the first reply is malformed."""
        last_error: Optional[Exception] = None
        for attempt in range(2):
            content = self._complete(messages, max_tokens=max_tokens, temperature=temperature)
            try:
                return _try_repair_parse(content)
            except ValueError as e:
                last_error = e
                logger.warning(f"AI chat JSON parse failed (attempt {attempt+1}): {e}")
                messages = [
                    {"role": "system", "content": "Return strictly valid JSON only, no prose."},
                    *messages,
                ]
        raise PermanentAiFailure(f"Failed to parse JSON from chat completion: {last_error}")

    def score_mood(self, text: str) -> int:
        content = (text or "").strip()[:MAX_ENTRY_CHARS]
        messages = [{"role": "user", "content": prompts.MOOD_ANALYSIS_PROMPT.format(entry=content)}]
        reply = self._complete(messages, max_tokens=5, temperature=0.1).strip()

        match = _SCORE_RE.match(reply)
        if not match:
            raise PermanentAiFailure(f"Unparseable mood score: {reply!r}")
        score = int(match.group(1))
        if not 1 <= score <= 10:
            raise PermanentAiFailure(f"Mood score out of range: {score}")
        return score

    def generate_quote(self, entries: List[str]) -> QuoteDraft:
        texts = [e.strip()[:MAX_ENTRY_CHARS] for e in entries[:MAX_QUOTE_ENTRIES] if e and e.strip()]
        if texts:
            prompt = prompts.QUOTE_GENERATION_PROMPT.format(entries=ENTRY_SEPARATOR.join(texts))
        else:
            prompt = prompts.DEFAULT_QUOTE_PROMPT

        messages = [
            {"role": "system", "content": prompts.QUOTE_SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]
        raw = self._chat_json(messages, max_tokens=500, temperature=0.7)
        if not isinstance(raw, dict):
            raise PermanentAiFailure("Quote response is not a JSON object")

        quote = raw.get("quote")
        if not isinstance(quote, str) or not quote.strip():
            raise PermanentAiFailure("AI returned an empty quote")
        return QuoteDraft(quote=quote.strip(), tags=pad_tags(raw.get("tags")))

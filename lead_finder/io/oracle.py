"""
OpenRouter (OpenAI-compatible chat completions) client.

Two policies over one transport:
- relevance (`assess`, `assess_batch`): fail open; an unreachable or
  confused oracle never blocks lead capture
- strategy generation (`generate`): fail closed; errors surface as OracleError
"""
# @file purpose: Language-model oracle over httpx.

from __future__ import annotations

import json
from typing import Any, Mapping, Optional, Sequence

import httpx
from loguru import logger
from pydantic import BaseModel

from ..core.errors import OracleError
from ..core.settings import settings

OPENROUTER_API_URL = "https://openrouter.ai/api/v1/chat/completions"

RELEVANCE_SYSTEM = "You are an assistant that qualifies LinkedIn posts as sales leads. Only return valid JSON."
BATCH_SYSTEM = "You are an assistant that assesses extracted LinkedIn records against a goal. Only return valid JSON."
STRATEGY_SYSTEM = "You are a web scraping expert. Only return valid JSON."

RELEVANCE_PROMPT = """Company / Lead Profile:
{profile}

LinkedIn Post:
Author: {author}
Content:
{content}

Emails: {emails}
Phones: {phones}

Decide if this post represents a promising lead that matches the profile. Respond as JSON with keys "relevant" (boolean), "reason" (string under 200 chars), and optional "score" (0-1)."""

BATCH_TASKS = {
    "relevance_assessment": "Assess each record's relevance to the goal.",
    "engagement_quality": "Rate each record's lead quality based on how the person engaged with the post.",
    "role_filter": "Mark as relevant only the records whose role suggests a decision maker for the goal.",
}


class Assessment(BaseModel):
    relevant: bool = True
    reason: str = ""
    score: Optional[float] = None


class OpenRouterOracle:
    def __init__(
        self,
        api_key: str | None = None,
        *,
        model: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout_seconds: float | None = None,
        url: str = OPENROUTER_API_URL,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.openrouter_api_key
        self.model = model or settings.openrouter_model
        self.url = url
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds or settings.request_timeout_seconds, connect=10.0)
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "OpenRouterOracle":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    # ---------------- transport ----------------

    async def _complete(
        self,
        messages: list[dict[str, str]],
        *,
        model: str | None = None,
        json_mode: bool = True,
        temperature: float = 0.2,
    ) -> str:
        if not self.api_key:
            raise OracleError("OpenRouter key not configured")

        body: dict[str, Any] = {
            "model": model or self.model,
            "temperature": temperature,
            "messages": messages,
        }
        if json_mode:
            body["response_format"] = {"type": "json_object"}

        try:
            response = await self.client.post(
                self.url,
                json=body,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise OracleError(f"OpenRouter error: {e.response.status_code} {e.response.text[:200]}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise OracleError(f"OpenRouter request failed: {e}") from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            content = None
        if not content or not str(content).strip():
            raise OracleError("empty AI response")
        return str(content).strip()

    # ---------------- relevance (fail open) ----------------

    async def assess(
        self, record: Mapping[str, Any], profile_text: str = "", model_id: str | None = None
    ) -> Assessment:
        prompt = RELEVANCE_PROMPT.format(
            profile=profile_text or "Not provided",
            author=record.get("author_name") or "Unknown",
            content=record.get("body_text") or "No content",
            emails=", ".join(record.get("emails") or []) or "None",
            phones=", ".join(record.get("phones") or []) or "None",
        )
        messages = [{"role": "system", "content": RELEVANCE_SYSTEM}, {"role": "user", "content": prompt}]
        try:
            content = await self._complete(messages, model=model_id)
        except OracleError as e:
            logger.warning("relevance check skipped: {}", e)
            return Assessment(relevant=True, reason=f"AI unavailable: {e}; defaulting to relevant")

        try:
            parsed = json.loads(content)
        except json.JSONDecodeError:
            logger.warning("AI response not parseable: {!r}", content[:200])
            return Assessment(relevant=True, reason="AI response not parseable; defaulting to relevant")
        if not isinstance(parsed, dict):
            return Assessment(relevant=True, reason="AI response not an object; defaulting to relevant")

        score = parsed.get("score")
        return Assessment(
            relevant=parsed.get("relevant") is not False,
            reason=str(parsed.get("reason") or "Qualified by AI"),
            score=score if isinstance(score, (int, float)) else None,
        )

    async def assess_batch(
        self, records: Sequence[Mapping[str, Any]], prompt: str, *, task: str = "relevance_assessment"
    ) -> list[dict[str, Any]] | None:
        """
        One verdict per record, matched by position. None when the oracle is
        unavailable or the answer has no usable `results` array.
        """
        user = (
            f"{prompt}\n\n{BATCH_TASKS.get(task, BATCH_TASKS['relevance_assessment'])}\n"
            'Return JSON {"results": [{"relevant": boolean, "priority": number (0-100), "reason": string}, ...]} '
            "with exactly one entry per record, in the same order.\n\n"
            f"Records:\n{json.dumps(list(records), default=str, ensure_ascii=False)}"
        )
        messages = [{"role": "system", "content": BATCH_SYSTEM}, {"role": "user", "content": user}]
        try:
            content = await self._complete(messages)
            parsed = json.loads(content)
        except (OracleError, json.JSONDecodeError) as e:
            logger.warning("batch assessment failed: {}", e)
            return None

        results = parsed.get("results") if isinstance(parsed, dict) else parsed
        if not isinstance(results, list):
            return None
        return [r if isinstance(r, dict) else {} for r in results]

    # ---------------- strategy generation (fail closed) ----------------

    async def generate(self, user_goal: str, context: Any, prompt: str) -> str:
        messages = [{"role": "system", "content": STRATEGY_SYSTEM}, {"role": "user", "content": prompt}]
        logger.debug("strategy request for {!r} on {}", user_goal[:80], getattr(context, "url", "?"))
        return await self._complete(messages, json_mode=False)

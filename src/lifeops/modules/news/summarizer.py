"""Article summarization through an OpenAI-compatible chat-completions API."""

from __future__ import annotations

import json
import logging
import os
import re
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from lifeops.errors import AdapterError
from lifeops.modules.news.fetcher import Article

logger = logging.getLogger(__name__)

OPENAI_BASE_URL = "https://api.openai.com/v1"
OPENAI_API_KEY_ENV = "OPENAI_API_KEY"
FALLBACK_SUMMARY = "Error generating summary."

_CODE_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)

_PROMPT_TEMPLATE = """\
Summarize the following news article. Reply with JSON only, using this structure:
{{"summary": "...", "tags": ["..."], "source": "...", "publicationDate": "..."}}

Article:
{content}

Metadata:
{metadata}
"""


class SummarizerConfig(BaseModel):
    """Configuration for the [summarizer] section."""

    model_config = ConfigDict(extra="forbid")

    api_key_env: str = OPENAI_API_KEY_ENV
    base_url: str = OPENAI_BASE_URL
    model: str = "gpt-4o-mini"
    max_tokens: int = Field(default=256, ge=16)
    temperature: float = Field(default=0.5, ge=0.0, le=2.0)
    max_article_chars: int = Field(default=12_000, ge=500)


class ArticleSummary(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    summary: str
    tags: list[str] = Field(default_factory=list)
    source: str | None = None
    publication_date: str | None = Field(default=None, alias="publicationDate")
    url: str | None = None

    @field_validator("tags", mode="before")
    @classmethod
    def _coerce_tags(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return [str(tag) for tag in value]

    @classmethod
    def fallback(cls, article: Article) -> ArticleSummary:
        return cls(
            summary=FALLBACK_SUMMARY,
            tags=[],
            source=article.source.name,
            publication_date=article.published_at,
            url=article.url,
        )


def parse_summary_reply(text: str, article: Article) -> ArticleSummary:
    """Parse the model's reply, falling back to a metadata-only summary."""
    candidate = text.strip()
    fenced = _CODE_FENCE_RE.match(candidate)
    if fenced:
        candidate = fenced.group(1)
    try:
        data = json.loads(candidate)
        if not isinstance(data, dict):
            raise ValueError("summary reply is not a JSON object")
        summary = ArticleSummary.model_validate(data)
    except (ValueError, ValidationError) as exc:
        logger.warning("Could not parse summary for %s: %s", article.url, exc)
        return ArticleSummary.fallback(article)
    return summary.model_copy(update={"url": article.url})


class NewsSummarizer:
    def __init__(
        self,
        config: SummarizerConfig | None = None,
        *,
        api_key: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config or SummarizerConfig()
        self._api_key = api_key or os.environ.get(self._config.api_key_env, "").strip() or None
        self._owns_http_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=30.0)

    def build_prompt(self, content: str, article: Article) -> str:
        metadata = article.model_dump(by_alias=True, exclude_none=True)
        return _PROMPT_TEMPLATE.format(
            content=content[: self._config.max_article_chars],
            metadata=json.dumps(metadata, ensure_ascii=False),
        )

    async def summarize_article(self, content: str, article: Article) -> ArticleSummary:
        if self._api_key is None:
            raise AdapterError(
                f"Summarizer API key is not configured (set {self._config.api_key_env})",
                operation="news.summarize",
                target_id=article.url,
            )
        body = {
            "model": self._config.model,
            "messages": [{"role": "user", "content": self.build_prompt(content, article)}],
            "max_tokens": self._config.max_tokens,
            "temperature": self._config.temperature,
        }
        try:
            response = await self._http_client.post(
                f"{self._config.base_url}/chat/completions",
                json=body,
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
            response.raise_for_status()
            payload = response.json()
            reply = payload["choices"][0]["message"]["content"] or ""
        except httpx.HTTPError as exc:
            raise AdapterError(
                f"Summarizer request failed: {exc}",
                operation="news.summarize",
                target_id=article.url,
            ) from exc
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise AdapterError(
                f"Summarizer returned an unexpected payload: {exc}",
                operation="news.summarize",
                target_id=article.url,
            ) from exc

        return parse_summary_reply(reply, article)

    async def shutdown(self) -> None:
        if self._owns_http_client:
            await self._http_client.aclose()

"""Top-headline fetching from NewsAPI and raw article retrieval."""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Iterable
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator

from lifeops.errors import AdapterError

logger = logging.getLogger(__name__)

NEWSAPI_BASE_URL = "https://newsapi.org/v2"
NEWSAPI_KEY_ENV = "NEWSAPI_API_KEY"


class NewsConfig(BaseModel):
    """Configuration for the [news] section."""

    model_config = ConfigDict(extra="forbid")

    api_key_env: str = NEWSAPI_KEY_ENV
    base_url: str = NEWSAPI_BASE_URL
    language: str = "en"
    country: str = "us"
    categories: list[str] = Field(default_factory=lambda: ["technology"])

    @field_validator("categories")
    @classmethod
    def _normalize_categories(cls, value: list[str]) -> list[str]:
        return [category.strip().lower() for category in value if category.strip()]


class ArticleSource(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    name: str | None = None


class Article(BaseModel):
    """Article metadata as returned by the top-headlines endpoint."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    title: str | None = None
    url: str
    description: str | None = None
    source: ArticleSource = Field(default_factory=ArticleSource)
    published_at: str | None = Field(default=None, alias="publishedAt")
    category: str | None = None


class NewsFetcher:
    """Thin NewsAPI client.

    The API key is read from the environment variable named in config when
    not passed explicitly.
    """

    def __init__(
        self,
        config: NewsConfig | None = None,
        *,
        api_key: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config or NewsConfig()
        self._api_key = api_key or os.environ.get(self._config.api_key_env, "").strip() or None
        self._owns_http_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=30.0, follow_redirects=True)

    async def _top_headlines(self, category: str) -> list[Article]:
        if self._api_key is None:
            raise AdapterError(
                f"News API key is not configured (set {self._config.api_key_env})",
                operation="news.top_headlines",
                target_id=category,
            )
        try:
            response = await self._http_client.get(
                f"{self._config.base_url}/top-headlines",
                params={
                    "category": category,
                    "language": self._config.language,
                    "country": self._config.country,
                },
                headers={"X-Api-Key": self._api_key},
            )
            response.raise_for_status()
            payload: dict[str, Any] = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise AdapterError(
                f"News API request failed: {exc}",
                operation="news.top_headlines",
                target_id=category,
            ) from exc

        if payload.get("status") != "ok":
            raise AdapterError(
                f"News API error: {payload.get('message') or payload.get('code') or 'unknown'}",
                operation="news.top_headlines",
                target_id=category,
            )

        articles: list[Article] = []
        for raw in payload.get("articles") or []:
            if not isinstance(raw, dict) or not raw.get("url"):
                continue
            articles.append(Article.model_validate({**raw, "category": category}))
        logger.debug("Fetched %d headline(s) for category '%s'", len(articles), category)
        return articles

    async def fetch_news_articles(self, categories: Iterable[str] | None = None) -> list[Article]:
        """Fetch top headlines for each category concurrently and flatten them."""
        selected = list(categories) if categories is not None else self._config.categories
        batches = await asyncio.gather(*(self._top_headlines(c) for c in selected))
        return [article for batch in batches for article in batch]

    async def fetch_article_content(self, url: str) -> str:
        try:
            response = await self._http_client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise AdapterError(
                f"Article fetch failed: {exc}", operation="news.fetch_article", target_id=url
            ) from exc
        return response.text

    async def shutdown(self) -> None:
        if self._owns_http_client:
            await self._http_client.aclose()

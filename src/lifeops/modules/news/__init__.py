"""News headlines and LLM summaries."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

from lifeops.modules.news.fetcher import Article, NewsConfig, NewsFetcher
from lifeops.modules.news.summarizer import (
    FALLBACK_SUMMARY,
    ArticleSummary,
    NewsSummarizer,
    SummarizerConfig,
)

logger = logging.getLogger(__name__)

__all__ = [
    "FALLBACK_SUMMARY",
    "Article",
    "ArticleSummary",
    "NewsConfig",
    "NewsFetcher",
    "NewsSummarizer",
    "SummarizerConfig",
    "get_summarized_news",
]


async def get_summarized_news(
    fetcher: NewsFetcher,
    summarizer: NewsSummarizer,
    categories: Iterable[str] | None = None,
) -> list[ArticleSummary]:
    """Fetch headlines, then fetch and summarize every article concurrently."""
    articles = await fetcher.fetch_news_articles(categories)

    async def _summarize(article: Article) -> ArticleSummary:
        content = await fetcher.fetch_article_content(article.url)
        return await summarizer.summarize_article(content, article)

    summaries = await asyncio.gather(*(_summarize(article) for article in articles))
    logger.info("Summarized %d article(s)", len(summaries))
    return list(summaries)

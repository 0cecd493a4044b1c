"""
Agricultural chat: context retrieval, prompt assembly and the Gemini call,
with the local knowledge base as fallback.
"""

from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass
from typing import Iterable, Optional

from models import gemini
from models import prompts
from shared.constants import (
    CHAT_ARTICLE_SUMMARY_LENGTH,
    CHAT_MAX_CONTEXT_ARTICLES,
    CHAT_MAX_CONTEXT_TIPS,
    CHAT_MAX_KEYWORDS,
    CHAT_MIN_KEYWORD_LENGTH,
    CHAT_PROMPT_ITEM_LENGTH,
    CHAT_RESULTS_PER_KEYWORD,
    CHAT_TIP_CONTENT_LENGTH,
    LOCAL_MODEL_NAME,
)
from shared.types import ChatDetail
from sikuwat.db import DbClient
from sikuwat.knowledge import answer_from_knowledge_base

logger = logging.getLogger(__name__)

_PUNCTUATION = re.compile(r"[.,!?;:/()\[\]\"']")


@dataclass
class ChatResult:
    response: str
    is_local: bool
    model: str
    error: Optional[str] = None

    def as_dict(self) -> dict:
        return asdict(self)


def extract_keywords(message: str) -> list[str]:
    """Lowercased tokens longer than three characters, first six only."""
    tokens = _PUNCTUATION.sub(" ", message or "").split()
    keywords = [
        token.strip().lower()
        for token in tokens
        if len(token.strip()) >= CHAT_MIN_KEYWORD_LENGTH
    ]
    return keywords[:CHAT_MAX_KEYWORDS]


def retrieve_context(
    db: DbClient, keywords: Iterable[str]
) -> tuple[list[dict], list[dict]]:
    """Finds articles and tips whose title or content mention any keyword."""
    articles: list[dict] = []
    tips: list[dict] = []
    seen_articles: set[str] = set()
    seen_tips: set[str] = set()

    for keyword in keywords:
        try:
            for article in db.search_articles(keyword, limit=CHAT_RESULTS_PER_KEYWORD):
                if article.id in seen_articles:
                    continue
                seen_articles.add(article.id)
                articles.append(
                    {
                        "id": article.id,
                        "title": article.title,
                        "summary": (article.content or "")[
                            :CHAT_ARTICLE_SUMMARY_LENGTH
                        ],
                        "url": article.url,
                    }
                )
        except Exception as exc:
            logger.warning("Article lookup failed for %r: %s", keyword, exc)

        try:
            for tip in db.search_tips(keyword, limit=CHAT_RESULTS_PER_KEYWORD):
                if tip.id in seen_tips:
                    continue
                seen_tips.add(tip.id)
                tips.append(
                    {
                        "id": tip.id,
                        "title": tip.title,
                        "content": (tip.content or "")[:CHAT_TIP_CONTENT_LENGTH],
                        "category": tip.category,
                    }
                )
        except Exception as exc:
            logger.warning("Tip lookup failed for %r: %s", keyword, exc)

    return articles, tips


def merge_context(
    server_items: list[dict], client_items: list[dict] | None, limit: int
) -> list[dict]:
    return (list(server_items) + list(client_items or []))[:limit]


def build_prompt(
    message: str,
    *,
    system_prompt: str = "",
    articles: list[dict] | None = None,
    tips: list[dict] | None = None,
    detail: ChatDetail = ChatDetail.DETAILED,
) -> str:
    parts: list[str] = []
    if system_prompt:
        parts.append(system_prompt)
    if articles:
        parts.append(prompts.ARTICLES_HEADER)
        for article in articles:
            parts.append(
                prompts.make_article_context_line(
                    _text(article.get("title")),
                    _text(article.get("summary"))[:CHAT_PROMPT_ITEM_LENGTH],
                    _text(article.get("url")),
                )
            )
    if tips:
        parts.append(prompts.TIPS_HEADER)
        for tip in tips:
            parts.append(
                prompts.make_tip_context_line(
                    _text(tip.get("title")),
                    _text(tip.get("content"))[:CHAT_PROMPT_ITEM_LENGTH],
                )
            )
    parts.append(prompts.QUESTION_HEADER)
    parts.append(message)
    if detail == ChatDetail.DETAILED:
        parts.append(prompts.DETAILED_INSTRUCTION)
    return "\n\n".join(parts)


def generate_local_answer(
    question: str,
    articles: list[dict] | None = None,
    tips: list[dict] | None = None,
    detail: ChatDetail = ChatDetail.DETAILED,
) -> str:
    answer = answer_from_knowledge_base(question, detail)
    if articles:
        answer += "\n\n**Artikel Terkait**: " + ", ".join(_titles(articles))
    if tips:
        answer += "\n**Tips Berguna**: " + ", ".join(_titles(tips))
    return answer


def _titles(items: list[dict]) -> list[str]:
    return [_text(item.get("title")) for item in items if isinstance(item, dict)]


def _text(value) -> str:
    return "" if value is None else str(value)


def answer_chat(
    message: str,
    *,
    db: DbClient | None,
    api_key: str | None,
    model: str,
    system_prompt: str = "",
    context_articles: list[dict] | None = None,
    context_tips: list[dict] | None = None,
    detail: ChatDetail = ChatDetail.DETAILED,
) -> ChatResult:
    """
    Answers a farmer's question.

    Related articles and tips are looked up in the database and merged ahead of
    the client-supplied context. Without an API key, or when the Gemini call
    fails, the answer comes from the local knowledge base instead.
    """
    server_articles: list[dict] = []
    server_tips: list[dict] = []
    if db is not None:
        server_articles, server_tips = retrieve_context(db, extract_keywords(message))
    articles = merge_context(server_articles, context_articles, CHAT_MAX_CONTEXT_ARTICLES)
    tips = merge_context(server_tips, context_tips, CHAT_MAX_CONTEXT_TIPS)

    if not api_key:
        return ChatResult(
            response=generate_local_answer(message, articles, tips, detail),
            is_local=True,
            model=LOCAL_MODEL_NAME,
        )

    prompt = build_prompt(
        message,
        system_prompt=system_prompt or prompts.SIKUWAT_SYSTEM_PROMPT,
        articles=articles,
        tips=tips,
        detail=detail,
    )
    try:
        text = gemini.call_predict(prompt, model=model, api_key=api_key)
    except Exception as exc:
        logger.warning("Gemini call failed, using local knowledge base: %s", exc)
        return ChatResult(
            response=generate_local_answer(message, articles, tips, detail),
            is_local=True,
            model=LOCAL_MODEL_NAME,
            error=str(exc) or exc.__class__.__name__,
        )
    return ChatResult(response=text, is_local=False, model=model)

"""Page queries and article navigation within a section, under its read lock."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .article_pool import Article
from .section_pool import SectionPool
from .sections import Section, SectionError

log = logging.getLogger(__name__)


@dataclass
class PageQuery:
    """Entries shown on one page; pinned articles start at ``ontop_start_offset``."""

    page_id: int
    articles: list[Article] = field(default_factory=list)
    page_count: int = 0
    ontop_start_offset: int = 0


@dataclass(frozen=True)
class ArticleLocation:
    """Where an article is shown: its page, its offset there and the page size."""

    page_id: int
    visible_offset: int
    article_count: int


def query_section_articles(pool: SectionPool, section: Section, page_id: int) -> PageQuery:
    """Return the visible articles of ``page_id``, pinned articles appended."""
    per_page = section.limits.article_limit_per_page
    with pool.read_lock(section):
        page_count = section.page_count_with_ontop()
        if section.visible_article_count == 0:
            return PageQuery(page_id, [], page_count, per_page)
        if page_id < 0 or page_id >= page_count:
            raise SectionError(f"invalid page_id {page_id}, not in range [0, {page_count})")

        articles: list[Article] = []
        pages = section.page_first_articles
        if page_id <= section.page_count - 1:
            article = pages[page_id]
            stop = section.article_head if page_id == section.page_count - 1 else pages[page_id + 1]
            while True:
                if article.visible:
                    articles.append(article)
                article = article.next
                if article is None or article is stop or len(articles) >= per_page:
                    break
            expected = per_page if page_id < section.page_count - 1 else section.last_page_visible_article_count
            if len(articles) != expected:
                log.error(
                    "inconsistent visible article count %d in section %d page %d",
                    len(articles),
                    section.sid,
                    page_id,
                )

        ontop_start = len(articles)
        if page_id >= section.page_count - 1:
            if page_id == section.page_count - 1:
                start = 0
            else:
                start = (page_id - section.page_count + 1) * per_page - section.last_page_visible_article_count
            room = per_page - len(articles)
            articles.extend(section.ontop_articles[start:start + room])

        return PageQuery(page_id, articles, page_count, ontop_start)


def _target_aid(current: Article, direction: int, step: int) -> int:
    if direction == 0:
        return current.aid
    article = current
    if direction == 1:
        while step > 0 and article.topic_next is not None and article.topic_next.aid > current.aid:
            if article.visible:
                step -= 1
            article = article.topic_next
        return article.aid if article.aid > current.aid and article.visible else 0
    while step > 0 and article.topic_prior is not None and article.topic_prior.aid < current.aid:
        if article.visible:
            step -= 1
        article = article.topic_prior
    return article.aid if article.aid < current.aid and article.visible else 0


def locate_article_in_section(
    pool: SectionPool,
    section: Section,
    article: Article,
    direction: int,
    step: int,
) -> ArticleLocation | None:
    """Find the article ``step`` visible steps away in the same topic.

    ``direction`` is 0 for ``article`` itself, 1 for later and -1 for earlier
    articles of its topic. Returns None when there is no such article.
    """
    if direction not in (-1, 0, 1):
        raise ValueError(f"direction must be -1, 0 or 1, got {direction}")

    with pool.read_lock(section):
        aid = _target_aid(article, direction, step)
        if aid <= 0:
            return None
        found, page_id, _offset, _next = section.find_article_with_offset(aid)
        if found is None:
            return None

        per_page = section.limits.article_limit_per_page
        count = (
            section.last_page_visible_article_count if page_id == section.page_count - 1 else per_page
        )
        candidate: Article | None = section.page_first_articles[page_id]
        visible_offset = 0
        location_offset: int | None = None
        for _ in range(section.article_count):
            if candidate is None or visible_offset >= count:
                break
            if candidate.visible:
                if candidate.aid == aid:
                    location_offset = visible_offset
                    break
                visible_offset += 1
                if visible_offset >= count:
                    log.error("visible article %d not found in page %d", aid, page_id)
                    break
            candidate = candidate.next

        if location_offset is None:
            return None
        return ArticleLocation(page_id, location_offset, section.page_article_count_with_ontop(page_id))
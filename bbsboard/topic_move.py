"""Moving a whole topic from one section to another."""

from __future__ import annotations

import logging

from .article_pool import Article
from .sections import Section, SectionError

log = logging.getLogger(__name__)

# Pages of the destination are rebuilt after this many inserted articles.
CALCULATE_PAGE_THRESHOLD = 100


def _recalculate(section: Section, start_aid: int) -> None:
    try:
        section.calculate_page(start_aid)
    except SectionError as exc:
        # A partial rebuild can miss when articles were inserted ahead of the
        # first page; rebuild every page instead.
        log.error("calculate_page(section=%d, aid=%d) failed: %s", section.sid, start_aid, exc)
        section.calculate_page(0)


def _unlink(section: Section, article: Article) -> None:
    if section.article_head is article:
        section.article_head = article.next
    if section.article_tail is article:
        section.article_tail = article.prior
    if section.article_head is article:
        section.article_head = None
        section.article_tail = None
    assert article.prior is not None and article.next is not None
    article.prior.next = article.next
    article.next.prior = article.prior


def _insert(section: Section, article: Article, following: Article | None) -> None:
    if following is None:
        section.article_head = article
        section.article_tail = article
        article.prior = article
        article.next = article
        return
    if section.article_head is following:
        if article.aid < following.aid:
            section.article_head = article
        else:
            section.article_tail = article
    assert following.prior is not None
    article.prior = following.prior
    article.next = following
    following.prior.next = article
    following.prior = article


def _transfer_counters(src: Section, dest: Section, article: Article) -> None:
    src.article_count -= 1
    dest.article_count += 1
    if article.tid == 0:
        src.topic_count -= 1
        dest.topic_count += 1
    if article.visible:
        src.visible_article_count -= 1
        dest.visible_article_count += 1
        if article.tid == 0:
            src.visible_topic_count -= 1
            dest.visible_topic_count += 1


def move_topic(src: Section, dest: Section, aid: int) -> int:
    """Move the topic headed by ``aid`` from ``src`` to ``dest``.

    Returns the number of articles in the topic. Pages of both sections are
    rebuilt afterwards.
    """
    if src.sid == dest.sid:
        raise SectionError("source and destination section are the same")

    article = src.pool.find_by_aid(aid)
    if article is None:
        raise SectionError(f"article {aid} not found")
    if article.sid != src.sid:
        raise SectionError(f"source section sid {src.sid} != article {aid} sid {article.sid}")
    if article.tid != 0:
        raise SectionError(f"article {aid} is not head of a topic (tid={article.tid})")

    if article is src.article_head or article.prior is None:
        last_unaffected_aid_src = 0
    else:
        last_unaffected_aid_src = article.prior.aid

    move_count = src.pool.topic_article_count(aid)
    if move_count <= 0:
        raise SectionError(f"topic {aid} has no articles")
    if dest.article_count + move_count > dest.limits.article_limit_per_section:
        raise SectionError(
            f"article count {dest.article_count + move_count} reaches limit in section {dest.sid}"
        )

    dest_count_old = dest.article_count
    moved = 0
    first_inserted_aid = article.aid

    while True:
        current = article
        following_in_topic = current.topic_next
        assert following_in_topic is not None
        article = following_in_topic

        if current.sid != src.sid:
            log.warning("source section sid %d != article %d sid %d", src.sid, current.aid, current.sid)
        else:
            _unlink(src, current)
            current.sid = dest.sid
            found, _page, _offset, following = dest.find_article_with_offset(current.aid)
            if found is not None:
                log.warning("article %d already in section %d", current.aid, dest.sid)
            else:
                _insert(dest, current, following)
                _transfer_counters(src, dest, current)
                if dest.article_count == 1:
                    dest.page_first_articles[:] = [current]
                    dest.page_count = 1
                    dest.last_page_visible_article_count = 1 if current.visible else 0
                moved += 1
                if moved % CALCULATE_PAGE_THRESHOLD == 0:
                    _recalculate(dest, first_inserted_aid)
                    first_inserted_aid = article.aid

        if article.aid == aid:
            break

    if dest.article_count - dest_count_old != move_count:
        log.warning(
            "count of moved articles %d != %d", dest.article_count - dest_count_old, move_count
        )

    _recalculate(src, last_unaffected_aid_src)
    if moved % CALCULATE_PAGE_THRESHOLD != 0:
        _recalculate(dest, first_inserted_aid)

    return move_count
"""Sections: aid-ordered article lists split into pages, with pinned articles."""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterator
from dataclasses import dataclass

from .article_pool import Article, ArticlePool, ArticlePoolError

log = logging.getLogger(__name__)

INT32_MAX = 2**31 - 1


@dataclass(frozen=True)
class SectionLimits:
    """Size limits shared by every section."""

    article_limit_per_section: int = 30000
    article_limit_per_page: int = 20
    ontop_article_limit_per_section: int = 10

    def __post_init__(self) -> None:
        if self.article_limit_per_section <= 0:
            raise ValueError(f"invalid article_limit_per_section {self.article_limit_per_section}")
        if self.article_limit_per_page <= 0:
            raise ValueError(f"invalid article_limit_per_page {self.article_limit_per_page}")
        if self.ontop_article_limit_per_section < 0:
            raise ValueError(
                f"invalid ontop_article_limit_per_section {self.ontop_article_limit_per_section}"
            )

    @property
    def page_limit(self) -> int:
        """Greatest number of pages a section may have."""
        return self.article_limit_per_section // self.article_limit_per_page


class SectionError(RuntimeError):
    """Raised when a section operation cannot be carried out."""


class Section:
    """One discussion section.

    Articles form a circular doubly linked list in ascending aid order, and
    every topic forms its own ring through ``topic_prior``/``topic_next``.
    ``page_first_articles`` holds the first article of every page; a page
    holds ``article_limit_per_page`` visible articles. Pinned articles are
    kept in ``ontop_articles`` in ascending aid order.
    """

    def __init__(
        self,
        sid: int,
        sname: str,
        stitle: str,
        master_list: str,
        pool: ArticlePool,
        limits: SectionLimits | None = None,
    ) -> None:
        self.sid = sid
        self.sname = sname
        self.stitle = stitle
        self.master_list = master_list
        self.pool = pool
        self.limits = limits if limits is not None else SectionLimits()
        self.class_id = 0
        self.read_user_level = 0
        self.write_user_level = 0
        self.enable = True
        self.ex_menu_tm = 0
        self.reset_articles()

    def __repr__(self) -> str:
        return f"Section(sid={self.sid!r}, sname={self.sname!r}, articles={self.article_count})"

    def reset_articles(self) -> None:
        """Forget every article of this section."""
        self.article_count = 0
        self.topic_count = 0
        self.visible_article_count = 0
        self.visible_topic_count = 0
        self.article_head: Article | None = None
        self.article_tail: Article | None = None
        self.page_first_articles: list[Article] = []
        self.page_count = 0
        self.last_page_visible_article_count = 0
        self.ontop_articles: list[Article] = []

    def _set_page_head(self, page: int, article: Article) -> None:
        del self.page_first_articles[page:]
        self.page_first_articles.append(article)

    def append_article(self, article: Article) -> Article:
        """Append a copy of ``article`` after every stored article and return it."""
        if article.sid != self.sid:
            raise SectionError(f"section sid {self.sid} != article sid {article.sid}")
        if self.article_count >= self.limits.article_limit_per_section:
            raise SectionError(f"article count reached limit in section {self.sid}")

        topic_head: Article | None = None
        topic_tail: Article | None = None
        if article.tid != 0:
            topic_head = self.pool.find_by_aid(article.tid)
            if topic_head is None:
                raise SectionError(f"head of topic {article.tid} not found")
            topic_tail = topic_head.topic_prior
            if topic_tail is None:
                raise SectionError(f"tail of topic {article.tid} is missing")

        new = dataclasses.replace(article, prior=None, next=None, topic_prior=None, topic_next=None)
        try:
            self.pool.store(new)
        except ArticlePoolError as exc:
            raise SectionError(str(exc)) from exc

        self.article_count += 1
        if new.visible:
            self.visible_article_count += 1

        if topic_head is None or topic_tail is None:
            self.topic_count += 1
            if new.visible:
                self.visible_topic_count += 1
            topic_head = topic_tail = new

        new.topic_prior = topic_tail
        new.topic_next = topic_head
        topic_head.topic_prior = new
        topic_tail.topic_next = new

        if self.article_head is None or self.article_tail is None:
            self.article_head = new
            self.article_tail = new
        new.prior = self.article_tail
        new.next = self.article_head
        self.article_head.prior = new
        self.article_tail.next = new
        self.article_tail = new

        per_page = self.limits.article_limit_per_page
        if (new.visible and self.last_page_visible_article_count % per_page == 0) or self.article_count == 1:
            self._set_page_head(self.page_count, new)
            self.page_count += 1
            self.last_page_visible_article_count = 0
        if new.visible:
            self.last_page_visible_article_count += 1

        if new.ontop:
            self.update_article_ontop(new)

        return new

    def set_article_visible(self, aid: int, visible: bool) -> int:
        """Show or hide article ``aid``; return the number of articles changed.

        Hiding a topic head hides its visible replies as well.
        """
        visible = bool(visible)
        article = self.pool.find_by_aid(aid)
        if article is None:
            raise SectionError(f"article {aid} not found")
        if article.sid != self.sid:
            raise SectionError(f"section sid {self.sid} != article sid {article.sid}")
        if article.visible == visible:
            return 0

        affected = 0
        if not visible:
            self.visible_article_count -= 1
            if article.tid == 0:
                self.visible_topic_count -= 1
                reply = article.topic_next
                while reply is not None and reply.tid != 0:
                    if reply.tid != aid:
                        log.error("inconsistent tid %d in reply %d of topic %d", reply.tid, reply.aid, aid)
                    elif reply.visible:
                        reply.visible = False
                        self.visible_article_count -= 1
                        affected += 1
                    reply = reply.topic_next
        else:
            self.visible_article_count += 1
            if article.tid == 0:
                self.visible_topic_count += 1

        article.visible = visible
        return affected + 1

    def update_article_ontop(self, article: Article) -> None:
        """Add or remove ``article`` in the pinned list according to its ``ontop`` flag.

        When the list is full the oldest pinned article makes room, unless the
        new article is older than all of them.
        """
        if article.sid != self.sid:
            raise SectionError(f"section sid {self.sid} != article sid {article.sid}")
        ontop = self.ontop_articles
        if article.ontop:
            pos = len(ontop)
            for index, existing in enumerate(ontop):
                if existing.aid == article.aid:
                    log.error("article %d already on top in section %d", article.aid, self.sid)
                    return
                if existing.aid > article.aid:
                    pos = index
                    break
            if len(ontop) >= self.limits.ontop_article_limit_per_section:
                if pos == 0:
                    return
                ontop.pop(0)
                pos -= 1
            ontop.insert(pos, article)
        else:
            for index, existing in enumerate(ontop):
                if existing.aid == article.aid:
                    del ontop[index]
                    return
            log.error("article %d not on top in section %d", article.aid, self.sid)

    def page_count_with_ontop(self) -> int:
        """Number of pages once pinned articles follow the last page."""
        per_page = self.limits.article_limit_per_page
        tail = self.last_page_visible_article_count + len(self.ontop_articles)
        return self.page_count - 1 + tail // per_page + (0 if tail % per_page == 0 else 1)

    def page_article_count_with_ontop(self, page_id: int) -> int:
        """Number of entries shown on ``page_id``, pinned articles included."""
        per_page = self.limits.article_limit_per_page
        if page_id < self.page_count - 1:
            return per_page
        return max(
            0,
            self.last_page_visible_article_count
            + len(self.ontop_articles)
            - per_page * (page_id - self.page_count + 1),
        )

    def find_article_with_offset(self, aid: int) -> tuple[Article | None, int, int, Article | None]:
        """Locate ``aid`` among the pages.

        Returns ``(article, page, offset, next_article)``: ``article`` is None
        when ``aid`` is absent, ``offset`` counts articles from the start of
        ``page`` to the one found or to where it would be inserted, and
        ``next_article`` is the article that follows that place.
        """
        if self.article_count == 0 or self.article_head is None:
            return None, 0, 0, None

        pages = self.page_first_articles
        left, right = 0, self.page_count
        while left < right - 1:
            mid = (left + right) // 2 + (right - left) % 2
            if aid < pages[mid].aid:
                right = mid
            else:
                left = mid
        page = left

        head = self.article_head
        article = pages[page]
        bound = INT32_MAX if page == max(0, self.page_count - 1) else pages[page + 1].aid
        offset = 0
        while aid > article.aid:
            article = article.next
            offset += 1
            if aid == article.aid:
                break
            if article is head or article.aid >= bound:
                following = head if article is head else pages[page + 1]
                return None, page, offset, following

        if aid < article.aid:
            return None, page, offset, article
        return article, page, offset, article.next

    def calculate_page(self, start_aid: int = 0) -> None:
        """Rebuild the pages from the page holding ``start_aid`` (0 for all)."""
        if self.article_count == 0 or self.article_head is None:
            self.page_count = 0
            self.last_page_visible_article_count = 0
            self.page_first_articles.clear()
            return

        if start_aid > 0:
            start = self.pool.find_by_aid(start_aid)
            if start is None:
                raise SectionError(f"article {start_aid} not found")
            if start.sid != self.sid:
                raise SectionError(f"section sid {self.sid} != start article sid {start.sid}")
            found, page, _offset, _next = self.find_article_with_offset(start_aid)
            if found is None:
                raise SectionError(f"article {start_aid} not found in section {self.sid}")
            article = self.page_first_articles[page]
        else:
            article = self.article_head
            page = 0

        head = self.article_head
        per_page = self.limits.article_limit_per_page
        page_limit = self.limits.page_limit
        del self.page_first_articles[page:]
        visible_count = 0
        head_set = False

        while True:
            if not head_set and visible_count == 0:
                self.page_first_articles.append(article)
                head_set = True
            if article.visible:
                visible_count += 1
            article = article.next
            while not article.visible and article is not head:
                article = article.next
            if visible_count >= per_page and article is not head:
                page += 1
                visible_count = 0
                head_set = False
                if page >= page_limit:
                    log.error("count of pages exceeds limit in section %d", self.sid)
                    break
            if article is head:
                break

        self.page_count = page + (1 if visible_count > 0 else 0)
        self.last_page_visible_article_count = visible_count

    def articles(self) -> Iterator[Article]:
        """Yield the articles of this section in ascending aid order."""
        article = self.article_head
        while article is not None:
            yield article
            article = article.next
            if article is self.article_head:
                return
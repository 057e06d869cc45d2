"""Articles and the bounded, aid-ordered pool that stores them."""

from __future__ import annotations

import bisect
import logging
from dataclasses import dataclass, field

log = logging.getLogger(__name__)

BLOCKS_PER_SEGMENT = 1000
SEGMENT_COUNT_LIMIT = 80
MAX_BLOCK_COUNT = BLOCKS_PER_SEGMENT * SEGMENT_COUNT_LIMIT
DEFAULT_ARTICLES_PER_BLOCK = 1000


class ArticlePoolError(RuntimeError):
    """Raised when an article cannot be stored in the pool."""


@dataclass(eq=False)
class Article:
    """One article with its links in the section list and in its topic ring."""

    aid: int
    tid: int = 0
    sid: int = 0
    cid: int = 0
    uid: int = 0
    visible: bool = True
    excerption: bool = False
    ontop: bool = False
    lock: bool = False
    transship: bool = False
    username: str = ""
    nickname: str = ""
    title: str = ""
    sub_dt: int = 0
    prior: Article | None = field(default=None, repr=False)
    next: Article | None = field(default=None, repr=False)
    topic_prior: Article | None = field(default=None, repr=False)
    topic_next: Article | None = field(default=None, repr=False)


class ArticlePool:
    """Holds every article in strictly ascending aid order.

    Capacity is ``block_count * articles_per_block``; lookups by aid use
    binary search.
    """

    def __init__(self, block_count: int, articles_per_block: int = DEFAULT_ARTICLES_PER_BLOCK) -> None:
        if block_count <= 0 or block_count > MAX_BLOCK_COUNT:
            raise ValueError(f"block_count must be in [1, {MAX_BLOCK_COUNT}], got {block_count}")
        if articles_per_block <= 0:
            raise ValueError(f"invalid articles_per_block {articles_per_block}")
        self.block_count = block_count
        self.articles_per_block = articles_per_block
        self._articles: list[Article] = []
        self._aids: list[int] = []

    @property
    def capacity(self) -> int:
        """Greatest number of articles the pool can hold."""
        return self.block_count * self.articles_per_block

    def reset(self) -> None:
        """Forget every stored article."""
        self._articles.clear()
        self._aids.clear()

    def store(self, article: Article) -> Article:
        """Append ``article``, whose aid must exceed every stored aid."""
        if len(self._articles) >= self.capacity:
            raise ArticlePoolError(f"article pool full ({self.capacity})")
        last = self.last_aid()
        if article.aid <= last:
            raise ArticlePoolError(f"aid {article.aid} not above last aid {last}")
        self._articles.append(article)
        self._aids.append(article.aid)
        return article

    def find_by_aid(self, aid: int) -> Article | None:
        """Return the article with ``aid``, or None."""
        pos = bisect.bisect_left(self._aids, aid)
        if pos < len(self._aids) and self._aids[pos] == aid:
            return self._articles[pos]
        return None

    def find_by_index(self, index: int) -> Article:
        """Return the article stored at position ``index``."""
        if index < 0 or index >= len(self._articles):
            raise IndexError(f"article index {index} out of range [0, {len(self._articles)})")
        return self._articles[index]

    def last_aid(self) -> int:
        """Aid of the last stored article, 0 when empty."""
        return self._aids[-1] if self._aids else 0

    def article_count(self) -> int:
        """Number of stored articles."""
        return len(self._articles)

    def __len__(self) -> int:
        return len(self._articles)

    def topic_article_count(self, aid: int) -> int:
        """Count the articles in the topic ring starting at ``aid``; 0 if absent."""
        article = self.find_by_aid(aid)
        if article is None:
            return 0
        count = 0
        while True:
            if article.tid != 0 and article.tid != aid:
                log.error("article %d not linked to topic %d", article.aid, aid)
                break
            count += 1
            article = article.topic_next
            if article is None or article.aid == aid:
                break
        return count
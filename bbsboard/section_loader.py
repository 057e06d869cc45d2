"""Keeping the in-memory sections in step with the article database.

The loader reads from a *source* object with these methods:

``section_configs()``
    iterable of :class:`SectionConfigRow`, ordered by sid
``section_masters(sid)``
    user names of the current masters of section ``sid``, most senior first
``articles(start_aid, limit)``
    iterable of :class:`ArticleRow` with ``aid >= start_aid``, ascending, at most ``limit``
``last_op_log_mid()``
    greatest operation-log id, or None when the log is empty
``op_logs(after_mid, limit)``
    iterable of :class:`OpLogRow` with ``mid > after_mid`` and type other than ``A``, ascending
``article_cid(aid)``
    current content id of article ``aid``, or None when it is gone
``article_sid(aid)``
    current section id of article ``aid``, or None when it is gone
"""

from __future__ import annotations

import dataclasses
import enum
import logging
from contextlib import ExitStack
from dataclasses import dataclass
from typing import Any

from .article_pool import Article
from .section_pool import SectionPool
from .sections import Section, SectionError
from .topic_move import move_topic

log = logging.getLogger(__name__)

MAX_MASTERS_PER_SECTION = 3


class ArticleOp(str, enum.Enum):
    """Operation types recorded in the article operation log."""

    ADD = "A"
    DELETE = "D"
    DELETE_BY_ADMIN = "X"
    RESTORE = "S"
    LOCK = "L"
    UNLOCK = "U"
    MODIFY = "M"
    MOVE = "T"
    EXCERPTION = "E"
    UNEXCERPTION = "O"
    ONTOP = "F"
    UNONTOP = "V"
    TRANSSHIP = "Z"


class UnknownSectionError(LookupError):
    """Raised when data refers to a section that has not been loaded."""

    def __init__(self, sid: int) -> None:
        super().__init__(f"unknown section {sid}, section config needs reloading")
        self.sid = sid


@dataclass(frozen=True)
class SectionConfigRow:
    """Configuration of one section as stored in the database."""

    sid: int
    sname: str
    title: str
    class_id: int = 0
    read_user_level: int = 0
    write_user_level: int = 0
    enable: bool = True


@dataclass(frozen=True)
class ArticleRow:
    """One article as stored in the database."""

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


@dataclass(frozen=True)
class OpLogRow:
    """One entry of the article operation log."""

    mid: int
    aid: int
    op: str


class SectionLoader:
    """Loads section configuration, new articles and logged operations."""

    def __init__(self, pool: SectionPool, source: Any) -> None:
        self.pool = pool
        self.source = source
        self.last_op_log_mid = 0
        self.conf_reload = False
        self.lock_timeout: float | None = None

    def load_section_config(self) -> int:
        """Create or update every configured section; return how many were seen."""
        count = 0
        for row in self.source.section_configs():
            masters = list(self.source.section_masters(row.sid))[:MAX_MASTERS_PER_SECTION]
            master_list = "".join(f"{name} " for name in masters)

            section = self.pool.find_by_sid(row.sid)
            created = section is None
            if section is None:
                section = self.pool.create(row.sid, row.sname, row.title, master_list)

            with self.pool.write_lock(section, self.lock_timeout):
                if not created:
                    section.sname = row.sname
                    section.stitle = row.title
                    section.master_list = master_list
                section.class_id = int(row.class_id)
                section.read_user_level = int(row.read_user_level)
                section.write_user_level = int(row.write_user_level)
                section.enable = bool(row.enable)
            count += 1
        return count

    def append_articles(self, start_aid: int, global_lock: bool, article_count_limit: int) -> int:
        """Append articles from ``start_aid`` on; return how many were appended.

        A reply whose topic head is missing or hidden is stored as a hidden
        topic of its own.
        """
        article_pool = self.pool.article_pool
        count = 0
        last_sid = 0
        with ExitStack() as stack:
            if global_lock:
                stack.enter_context(self.pool.write_lock(None, self.lock_timeout))
            section_lock = stack.enter_context(ExitStack())

            for row in self.source.articles(start_aid, article_count_limit):
                article = Article(**dataclasses.asdict(row))

                section = self.pool.find_by_sid(article.sid)
                if section is None:
                    raise UnknownSectionError(article.sid)

                if article.visible and article.tid != 0:
                    topic = article_pool.find_by_aid(article.tid)
                    if topic is None or not topic.visible:
                        article.tid = 0
                        article.visible = False

                if not global_lock and article.sid != last_sid:
                    section_lock.close()
                    section_lock.enter_context(self.pool.write_lock(section, self.lock_timeout))
                last_sid = article.sid

                section.append_article(article)
                count += 1
        return count

    def set_last_op_log_mid(self) -> int:
        """Skip every logged operation so far; return the id now taken as last."""
        mid = self.source.last_op_log_mid()
        if mid is not None:
            self.last_op_log_mid = int(mid)
        return self.last_op_log_mid

    def apply_op_log(self, op_count_limit: int) -> int:
        """Apply logged operations after the last applied one; return how many.

        Processing stops early, to be retried later, at an operation whose
        article has not been loaded yet or that cannot be completed.
        """
        article_pool = self.pool.article_pool
        count = 0
        last_sid = 0
        with ExitStack() as section_lock:
            for row in self.source.op_logs(self.last_op_log_mid, op_count_limit):
                article = article_pool.find_by_aid(row.aid)
                if article is None:
                    log.info("article %d of operation %d not loaded yet", row.aid, row.mid)
                    break

                section = self.pool.find_by_sid(article.sid)
                if section is None:
                    raise UnknownSectionError(article.sid)

                if article.sid != last_sid:
                    section_lock.close()
                    section_lock.enter_context(self.pool.write_lock(section, self.lock_timeout))
                last_sid = article.sid

                if not self._apply(row, article, section):
                    break

                self.last_op_log_mid = row.mid
                count += 1
        return count

    def _apply(self, row: OpLogRow, article: Article, section: Section) -> bool:
        try:
            op = ArticleOp(row.op[:1])
        except ValueError:
            return True

        if op is ArticleOp.ADD:
            log.error("operation type A should not be found (mid=%d)", row.mid)
        elif op in (ArticleOp.DELETE, ArticleOp.DELETE_BY_ADMIN, ArticleOp.RESTORE):
            visible = op is ArticleOp.RESTORE
            try:
                section.set_article_visible(article.aid, visible)
            except SectionError as exc:
                log.error("set_article_visible(sid=%d, aid=%d): %s", section.sid, article.aid, exc)
            try:
                section.calculate_page(article.aid)
            except SectionError as exc:
                log.error("calculate_page(aid=%d): %s", article.aid, exc)
        elif op is ArticleOp.LOCK:
            article.lock = True
        elif op is ArticleOp.UNLOCK:
            article.lock = False
        elif op is ArticleOp.MODIFY:
            cid = self.source.article_cid(article.aid)
            article.excerption = False
            if cid is None:
                article.cid = 0
                log.error("content of article %d not found", article.aid)
                return False
            article.cid = int(cid)
        elif op is ArticleOp.MOVE:
            return self._move(article, section)
        elif op is ArticleOp.EXCERPTION:
            article.excerption = True
        elif op is ArticleOp.UNEXCERPTION:
            article.excerption = False
        elif op in (ArticleOp.ONTOP, ArticleOp.UNONTOP):
            article.ontop = op is ArticleOp.ONTOP
            try:
                section.update_article_ontop(article)
            except SectionError as exc:
                log.error("update_article_ontop(sid=%d, aid=%d): %s", section.sid, article.aid, exc)
        elif op is ArticleOp.TRANSSHIP:
            article.transship = True
        return True

    def _move(self, article: Article, section: Section) -> bool:
        sid_dest = self.source.article_sid(article.aid)
        if sid_dest is None:
            log.error("article %d not found for move", article.aid)
            return False
        sid_dest = int(sid_dest)
        if sid_dest <= 0 or sid_dest == article.sid:
            return True
        dest = self.pool.find_by_sid(sid_dest)
        if dest is None:
            raise UnknownSectionError(sid_dest)
        with self.pool.write_lock(dest, self.lock_timeout):
            try:
                move_topic(section, dest, article.aid)
            except SectionError as exc:
                log.error(
                    "move_topic(src=%d, dest=%d, aid=%d): %s, retry later",
                    section.sid,
                    dest.sid,
                    article.aid,
                    exc,
                )
                return False
        return True

    def run_once(self, article_count_limit: int) -> tuple[int, int]:
        """Do one round of loading; return ``(articles loaded, operations applied)``.

        An unknown section sets ``conf_reload`` so the next round reloads the
        section configuration first.
        """
        if self.conf_reload:
            self.conf_reload = False
            try:
                self.load_section_config()
            except SectionError as exc:
                log.error("load_section_config: %s", exc)

        article_pool = self.pool.article_pool
        before = article_pool.article_count()
        while True:
            start_aid = article_pool.last_aid() + 1
            try:
                loaded = self.append_articles(start_aid, False, article_count_limit)
            except UnknownSectionError as exc:
                log.error("append_articles(%d): %s", start_aid, exc)
                self.conf_reload = True
                break
            except SectionError as exc:
                log.error("append_articles(%d): %s", start_aid, exc)
                break
            if loaded != article_count_limit:
                break
        loaded_total = article_pool.article_count() - before

        if self.conf_reload:
            return loaded_total, 0

        applied_total = 0
        while True:
            try:
                applied = self.apply_op_log(article_count_limit)
            except UnknownSectionError as exc:
                log.error("apply_op_log: %s", exc)
                self.conf_reload = True
                break
            applied_total += applied
            if applied != article_count_limit:
                break

        return loaded_total, applied_total
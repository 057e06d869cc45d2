"""The set of sections, looked up by name or sid, with their locks."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import AbstractContextManager

from .article_pool import ArticlePool
from .locks import SectionLockTable
from .sections import Section, SectionError, SectionLimits
from .trie_dict import TrieDict, TrieKeyError, TrieNodePool

log = logging.getLogger(__name__)

DEFAULT_MAX_SECTION = 200
_SID_KEY_LEN = 4
_TRIE_NODES_PER_SECTION = 64


def sid_to_key(sid: int) -> bytes:
    """Encode ``sid`` as four non-zero bytes, base 255 with least digit first."""
    value = sid & 0xFFFFFFFF
    digits = []
    for _ in range(_SID_KEY_LEN):
        digits.append(value % 255 + 1)
        value //= 255
    return bytes(digits)


class SectionPool:
    """Holds up to ``max_section`` sections sharing one article pool."""

    def __init__(
        self,
        article_pool: ArticlePool,
        limits: SectionLimits | None = None,
        max_section: int = DEFAULT_MAX_SECTION,
        trie_pool: TrieNodePool | None = None,
    ) -> None:
        if max_section <= 0:
            raise ValueError(f"invalid max_section {max_section}")
        self.article_pool = article_pool
        self.limits = limits if limits is not None else SectionLimits()
        self.max_section = max_section
        self.trie_pool = (
            trie_pool if trie_pool is not None else TrieNodePool(max_section * _TRIE_NODES_PER_SECTION + 2)
        )
        self._by_name = TrieDict(self.trie_pool)
        self._by_sid = TrieDict(self.trie_pool)
        self._sections: list[Section] = []
        self.locks = SectionLockTable(max_section)

    def create(self, sid: int, sname: str, stitle: str, master_list: str = "") -> Section:
        """Create a section and register it under its name and sid."""
        if len(self._sections) >= self.max_section:
            raise SectionError(f"section count reached limit {self.max_section}")
        index = len(self._sections)
        section = Section(sid, sname, stitle, master_list, self.article_pool, self.limits)
        try:
            if not self._by_name.set(sname, index):
                raise SectionError(f"cannot register section name {sname!r}")
        except TrieKeyError as exc:
            raise SectionError(f"invalid section name {sname!r}") from exc
        if not self._by_sid.set(sid_to_key(sid), index):
            raise SectionError(f"cannot register section sid {sid}")
        self._sections.append(section)
        return section

    def find_by_name(self, sname: str) -> Section | None:
        """Return the section called ``sname``, or None."""
        try:
            index = self._by_name.get(sname)
        except TrieKeyError:
            log.error("invalid section name %r", sname)
            return None
        return None if index is None else self._sections[index]

    def find_by_sid(self, sid: int) -> Section | None:
        """Return the section with ``sid``, or None."""
        index = self._by_sid.get(sid_to_key(sid))
        return None if index is None else self._sections[index]

    def index_of(self, section: Section | None) -> int:
        """Lock slot of ``section``; None stands for all sections."""
        if section is None:
            return self.max_section
        for index, candidate in enumerate(self._sections):
            if candidate is section:
                return index
        raise ValueError(f"{section!r} does not belong to this pool")

    def read_lock(self, section: Section | None, timeout: float | None = None) -> AbstractContextManager[None]:
        """Context manager holding a read lock on ``section`` (None for all)."""
        return self.locks.read(self.index_of(section), timeout)

    def write_lock(self, section: Section | None, timeout: float | None = None) -> AbstractContextManager[None]:
        """Context manager holding a write lock on ``section`` (None for all)."""
        return self.locks.write(self.index_of(section), timeout)

    def __len__(self) -> int:
        return len(self._sections)

    def __iter__(self) -> Iterator[Section]:
        return iter(list(self._sections))
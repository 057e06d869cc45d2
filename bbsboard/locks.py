"""Reader/writer locks for sections, with one extra slot covering all sections."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class LockTimeout(TimeoutError):
    """Raised when a section lock could not be taken in time."""


class SectionLockTable:
    """A read and a write counter per section plus a pair for "all sections".

    Slots ``0 .. section_count - 1`` belong to single sections and slot
    ``section_count`` (also reachable as ``None``) stands for every section.
    A read lock on one section also holds a read lock on the whole table, so
    a write lock on the whole table waits for every reader to leave, and no
    single section can be read while the whole table is write-locked.
    """

    def __init__(self, section_count: int) -> None:
        if section_count < 0:
            raise ValueError(f"invalid section_count {section_count}")
        self.section_count = section_count
        self._readers = [0] * (section_count + 1)
        self._writers = [0] * (section_count + 1)
        self._cond = threading.Condition()

    def _slot(self, index: int | None) -> int:
        if index is None:
            return self.section_count
        if not 0 <= index <= self.section_count:
            raise IndexError(f"section index {index} out of range [0, {self.section_count}]")
        return index

    def try_read_lock(self, index: int | None, timeout: float | None = None) -> bool:
        """Take a read lock, waiting at most ``timeout`` seconds; return success."""
        slot = self._slot(index)
        whole = self.section_count

        def ready() -> bool:
            return self._writers[slot] == 0 and (slot == whole or self._writers[whole] == 0)

        with self._cond:
            if not self._cond.wait_for(ready, timeout):
                return False
            self._readers[slot] += 1
            if slot != whole:
                self._readers[whole] += 1
            return True

    def try_write_lock(self, index: int | None, timeout: float | None = None) -> bool:
        """Take a write lock, waiting at most ``timeout`` seconds; return success."""
        slot = self._slot(index)

        def ready() -> bool:
            return self._writers[slot] == 0 and self._readers[slot] == 0

        with self._cond:
            if not self._cond.wait_for(ready, timeout):
                return False
            self._writers[slot] += 1
            return True

    def read_unlock(self, index: int | None) -> None:
        """Release a read lock taken with :meth:`try_read_lock`."""
        slot = self._slot(index)
        whole = self.section_count
        with self._cond:
            if self._readers[slot] == 0 or (slot != whole and self._readers[whole] == 0):
                raise RuntimeError(f"read lock of section slot {slot} is not held")
            self._readers[slot] -= 1
            if slot != whole:
                self._readers[whole] -= 1
            self._cond.notify_all()

    def write_unlock(self, index: int | None) -> None:
        """Release a write lock taken with :meth:`try_write_lock`."""
        slot = self._slot(index)
        with self._cond:
            if self._writers[slot] == 0:
                raise RuntimeError(f"write lock of section slot {slot} is not held")
            self._writers[slot] -= 1
            self._cond.notify_all()

    @contextmanager
    def read(self, index: int | None, timeout: float | None = None) -> Iterator[None]:
        """Hold a read lock for the duration of the block."""
        if not self.try_read_lock(index, timeout):
            raise LockTimeout(f"read lock of section {index} not acquired")
        try:
            yield
        finally:
            self.read_unlock(index)

    @contextmanager
    def write(self, index: int | None, timeout: float | None = None) -> Iterator[None]:
        """Hold a write lock for the duration of the block."""
        if not self.try_write_lock(index, timeout):
            raise LockTimeout(f"write lock of section {index} not acquired")
        try:
            yield
        finally:
            self.write_unlock(index)
"""A user's game-money balance kept in the user_pubinfo table."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

USER_MONEY_MAX = 1_000_000_000

_SELECT_MONEY = "SELECT game_money FROM user_pubinfo WHERE UID = %s FOR UPDATE"
_UPDATE_MONEY = "UPDATE user_pubinfo SET game_money = %s WHERE UID = %s"


class MoneyError(RuntimeError):
    """Base of errors about game money."""


class InsufficientFundsError(MoneyError):
    """Raised when a withdrawal exceeds the balance."""


class BalanceLimitError(MoneyError):
    """Raised when the balance already stands at the limit."""


class Wallet:
    """Game money of one user, read and changed in database transactions.

    ``connect`` is called for every operation and must return a DB-API
    connection; it is closed when the operation ends.
    """

    def __init__(self, connect: Callable[[], Any], uid: int) -> None:
        self._connect = connect
        self.uid = uid
        self._balance = 0

    def balance(self) -> int:
        """Balance as last read from or written to the database."""
        return self._balance

    def _read(self, cursor: Any) -> None:
        cursor.execute(_SELECT_MONEY, (self.uid,))
        row = cursor.fetchone()
        if row:
            self._balance = int(row[0])

    def _transact(self, change: Callable[[int], tuple[int, int]]) -> int:
        conn = self._connect()
        try:
            cursor = conn.cursor()
            try:
                self._read(cursor)
                new_balance, moved = change(self._balance)
                cursor.execute(_UPDATE_MONEY, (new_balance, self.uid))
            finally:
                cursor.close()
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        self._balance = new_balance
        return moved

    def deposit(self, money: int) -> int:
        """Add ``money``, capped at the limit; return the amount added."""
        if money <= 0:
            return 0

        def change(balance: int) -> tuple[int, int]:
            if balance + money < USER_MONEY_MAX:
                return balance + money, money
            if balance < USER_MONEY_MAX:
                return USER_MONEY_MAX, USER_MONEY_MAX - balance
            raise BalanceLimitError(f"balance {balance} has reached the limit {USER_MONEY_MAX}")

        return self._transact(change)

    def withdraw(self, money: int) -> int:
        """Take ``money`` from the balance; return the amount taken."""
        if money <= 0:
            return 0

        def change(balance: int) -> tuple[int, int]:
            if balance >= money:
                return balance - money, money
            raise InsufficientFundsError(f"balance {balance} is less than {money}")

        return self._transact(change)

    def refresh(self) -> int:
        """Read the balance from the database and return it."""
        conn = self._connect()
        try:
            cursor = conn.cursor()
            try:
                self._read(cursor)
            finally:
                cursor.close()
        finally:
            conn.close()
        return self._balance
"""User privileges, globally and per section."""

from __future__ import annotations

import enum
from typing import Any


class SectionPriv(enum.IntFlag):
    """Permission bits a user holds in a section."""

    NONE = 0
    LIST = 0x01
    GETEXP = 0x02
    POST = 0x04
    MSG = 0x08
    MAN_S = 0x10
    MAN_M = 0x20
    SYSOP = 0x40
    DEFAULT = LIST | GETEXP
    ADMIN = LIST | GETEXP | POST | MSG | MAN_S | MAN_M
    ALL = ADMIN | SYSOP


class UserLevel(enum.IntFlag):
    """Roles a user holds; compared numerically with section level limits."""

    GUEST = 0
    USER = 0x01
    MAN_S = 0x02
    MAN_M = 0x04
    ADMIN_S = 0x08
    ADMIN_M = 0x10


class UserPriv:
    """Global privilege plus per-section overrides and favourite marks."""

    def __init__(self, uid: int, max_section: int) -> None:
        self.uid = uid
        self.level = UserLevel.GUEST if uid == 0 else UserLevel.USER
        self.global_priv = SectionPriv.DEFAULT
        self.max_section = max_section
        self._sections: dict[int, tuple[SectionPriv, bool]] = {}

    def setpriv(self, sid: int, priv: int, is_favor: bool = False) -> None:
        """Set the privilege of section ``sid``; sid 0 sets the global one."""
        if sid == 0:
            self.global_priv = SectionPriv(int(priv))
            return
        if sid not in self._sections and len(self._sections) >= self.max_section:
            raise ValueError(f"section privilege table full ({self.max_section})")
        self._sections[sid] = (SectionPriv(int(priv)), bool(is_favor))

    def getpriv(self, sid: int) -> tuple[SectionPriv, bool]:
        """Return ``(priv, is_favor)`` for section ``sid``."""
        entry = self._sections.get(sid)
        if entry is not None:
            return entry
        return (self.global_priv if sid >= 0 else SectionPriv.NONE), False

    def checkpriv(self, sid: int, priv: int) -> bool:
        """Whether every bit of ``priv`` is held in section ``sid``."""
        held = int(self.getpriv(sid)[0])
        return held & int(priv) == int(priv)


def _store(user: UserPriv, sid: int, priv: int, is_favor: bool) -> None:
    try:
        user.setpriv(sid, priv, is_favor)
    except ValueError:
        pass


def load_priv(conn: Any, uid: int, max_section: int) -> UserPriv:
    """Build the privileges of ``uid`` from a DB-API connection.

    With no connection the defaults for ``uid`` are returned. Database
    errors propagate to the caller.
    """
    user = UserPriv(uid, max_section)
    if conn is None:
        return user

    cursor = conn.cursor()
    try:
        cursor.execute(
            "SELECT p_post, p_msg FROM user_list WHERE UID = %s AND verified",
            (uid,),
        )
        row = cursor.fetchone()
        if row:
            granted = int(user.global_priv)
            if int(row[0]):
                granted |= SectionPriv.POST
            if int(row[1]):
                granted |= SectionPriv.MSG
            user.global_priv = SectionPriv(granted)

        cursor.execute(
            "SELECT major FROM admin_config WHERE UID = %s "
            "AND enable AND (NOW() BETWEEN begin_dt AND end_dt)",
            (uid,),
        )
        row = cursor.fetchone()
        if row:
            major = bool(int(row[0]))
            user.level |= UserLevel.ADMIN_M if major else UserLevel.ADMIN_S
            user.global_priv |= SectionPriv.ALL if major else SectionPriv.ADMIN

        cursor.execute(
            "SELECT section_master.SID, major FROM section_master "
            "INNER JOIN section_config ON section_master.SID = section_config.SID "
            "WHERE UID = %s AND section_master.enable AND section_config.enable "
            "AND (NOW() BETWEEN begin_dt AND end_dt)",
            (uid,),
        )
        for sid_text, major_text in cursor.fetchall():
            sid, major = int(sid_text), bool(int(major_text))
            user.level |= UserLevel.MAN_M if major else UserLevel.MAN_S
            priv, is_favor = user.getpriv(sid)
            _store(user, sid, priv | (SectionPriv.MAN_M if major else SectionPriv.MAN_S), is_favor)

        cursor.execute(
            "SELECT SID, exp_get, read_user_level, write_user_level FROM section_config "
            "INNER JOIN section_class ON section_config.CID = section_class.CID "
            "WHERE section_config.enable AND section_class.enable "
            "ORDER BY SID"
        )
        for sid_text, exp_get, read_level, write_level in cursor.fetchall():
            sid = int(sid_text)
            priv, is_favor = user.getpriv(sid)
            value = int(priv)
            if int(user.level) < int(read_level):
                value &= ~int(SectionPriv.LIST)
            if int(user.level) < int(write_level):
                value &= ~int(SectionPriv.POST)
            if not int(exp_get):
                value &= ~int(SectionPriv.GETEXP)
            _store(user, sid, value, is_favor)

        cursor.execute(
            "SELECT SID FROM ban_user_list WHERE UID = %s AND enable "
            "AND (NOW() BETWEEN ban_dt AND unban_dt)",
            (uid,),
        )
        for (sid_text,) in cursor.fetchall():
            sid = int(sid_text)
            priv, is_favor = user.getpriv(sid)
            _store(user, sid, int(priv) & ~int(SectionPriv.POST), is_favor)

        cursor.execute(
            "SELECT SID FROM section_favorite WHERE UID = %s",
            (uid,),
        )
        for (sid_text,) in cursor.fetchall():
            sid = int(sid_text)
            priv, is_favor = user.getpriv(sid)
            if not is_favor:
                _store(user, sid, priv, True)
    finally:
        cursor.close()

    return user
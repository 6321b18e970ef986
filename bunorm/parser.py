"""A cursor over bytes used to scan query templates."""

from __future__ import annotations

import re

_DIGITS = re.compile(rb"[0-9]*")


def _byte(c: int | bytes | str) -> int:
    if isinstance(c, int):
        return c
    raw = c.encode() if isinstance(c, str) else bytes(c)
    if len(raw) != 1:
        raise ValueError(f"expected a single byte, got {c!r}")
    return raw[0]


def _is_num(c: int) -> bool:
    return 0x30 <= c <= 0x39


def _is_alpha(c: int) -> bool:
    return 0x61 <= c <= 0x7A or 0x41 <= c <= 0x5A


class Parser:
    """Reads bytes from a buffer one piece at a time.

    ``read`` and ``peek`` return the byte value, or 0 at the end of input.
    """

    def __init__(self, data: bytes | str) -> None:
        self._buf = data.encode() if isinstance(data, str) else bytes(data)
        self._pos = 0

    def valid(self) -> bool:
        return self._pos < len(self._buf)

    def remaining(self) -> bytes:
        return self._buf[self._pos :]

    def read(self) -> int:
        if self.valid():
            c = self._buf[self._pos]
            self._pos += 1
            return c
        return 0

    def peek(self) -> int:
        return self._buf[self._pos] if self.valid() else 0

    def advance(self) -> None:
        self._pos += 1

    def skip(self, c: int | bytes | str) -> bool:
        """Consume ``c`` if it is the next byte."""
        if self.peek() == _byte(c):
            self.advance()
            return True
        return False

    def skip_bytes(self, skip: bytes | str) -> bool:
        """Consume ``skip`` if the input continues with it."""
        raw = skip.encode() if isinstance(skip, str) else bytes(skip)
        if not self._buf.startswith(raw, self._pos):
            return False
        self._pos += len(raw)
        return True

    def read_sep(self, sep: int | bytes | str) -> tuple[bytes, bool]:
        """Read up to ``sep`` and consume it; the flag tells whether it was found."""
        idx = self._buf.find(bytes([_byte(sep)]), self._pos)
        if idx == -1:
            chunk = self._buf[self._pos :]
            self._pos = len(self._buf)
            return chunk, False
        chunk = self._buf[self._pos : idx]
        self._pos = idx + 1
        return chunk, True

    def read_identifier(self) -> tuple[str, bool]:
        """Read a name or ``(parenthesised text)``; the flag is True for all-digit names."""
        buf, pos = self._buf, self._pos
        if pos < len(buf) and buf[pos] == ord("("):
            close = buf.find(b")", pos + 1)
            if close != -1:
                self._pos = close + 1
                return buf[pos + 1 : close].decode("utf-8", "surrogateescape"), False

        end = len(buf) - pos
        alpha = False
        for i, c in enumerate(buf[pos:]):
            if _is_num(c):
                continue
            if _is_alpha(c) or (i > 0 and alpha and c == ord("_")):
                alpha = True
                continue
            end = i
            break
        if end == 0:
            return "", False
        self._pos = pos + end
        return buf[pos : pos + end].decode("ascii"), not alpha

    def read_number(self) -> int:
        """Read a run of decimal digits; 0 if there is none."""
        m = _DIGITS.match(self._buf, self._pos)
        if m is None or m.end() == self._pos:
            return 0
        self._pos = m.end()
        return int(m.group())
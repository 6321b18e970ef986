"""Encoding of binary values as SQL hex literals."""

from __future__ import annotations

from types import TracebackType


class HexEncoder:
    """Appends bytes to a buffer as a quoted ``'\\x..'`` literal, or NULL if empty."""

    def __init__(self, prefix: bytes = b"") -> None:
        self._buf = bytearray(prefix)
        self._written = False

    def write(self, data: bytes) -> int:
        """Append ``data`` hex-encoded and return the number of bytes consumed."""
        if not self._written:
            self._buf += b"'\\x"
            self._written = True
        self._buf += bytes(data).hex().encode("ascii")
        return len(data)

    def close(self) -> None:
        """Terminate the literal; an encoder that saw no writes yields NULL."""
        if self._written:
            self._buf += b"'"
        else:
            self._buf += b"NULL"

    def value(self) -> bytes:
        """Return the encoded buffer."""
        return bytes(self._buf)

    def __enter__(self) -> "HexEncoder":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
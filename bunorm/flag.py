"""A small bit-set type used for feature and option flags."""

from __future__ import annotations

_MAX = (1 << 64) - 1


class Flag(int):
    """An unsigned 64-bit set of flags."""

    def __new__(cls, value: int = 0) -> "Flag":
        value = int(value)
        if value < 0 or value > _MAX:
            raise ValueError(f"flag value out of range: {value}")
        return super().__new__(cls, value)

    def has(self, other: int) -> bool:
        """Return True if any bit of ``other`` is set."""
        return (int(self) & int(other)) != 0

    def set(self, other: int) -> "Flag":
        """Return a new flag with the bits of ``other`` added."""
        return Flag(int(self) | int(other))

    def remove(self, other: int) -> "Flag":
        """Return a new flag with the bits of ``other`` cleared."""
        return Flag(int(self) & ~int(other))

    def __repr__(self) -> str:
        return f"Flag({int(self):#x})"
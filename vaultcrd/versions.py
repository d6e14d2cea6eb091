"""Semantic versions as found in container image tags."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import total_ordering

__all__ = ["InvalidVersionError", "Version"]

_IDENT = r"[0-9A-Za-z\-]+(?:\.[0-9A-Za-z\-]+)*"
_VERSION = re.compile(
    r"v?(?P<major>[0-9]+)(?:\.(?P<minor>[0-9]+))?(?:\.(?P<patch>[0-9]+))?"
    rf"(?:-(?P<pre>{_IDENT}))?(?:\+(?P<meta>{_IDENT}))?"
)


class InvalidVersionError(ValueError):
    """Raised when a string is not a semantic version."""


def _check_prerelease(prerelease: str) -> None:
    for part in prerelease.split("."):
        if part.isdigit() and len(part) > 1 and part.startswith("0"):
            raise InvalidVersionError("Invalid Prerelease string")


def _prerelease_key(prerelease: str) -> tuple:
    return tuple(
        (0, int(part), "") if part.isdigit() else (1, 0, part)
        for part in prerelease.split(".")
    )


@total_ordering
@dataclass(frozen=True, eq=False)
class Version:
    """A semantic version; build metadata is kept but ignored in comparisons."""

    major: int
    minor: int = 0
    patch: int = 0
    prerelease: str = ""
    metadata: str = ""
    original: str = field(default="", compare=False)

    @classmethod
    def parse(cls, text: str) -> "Version":
        """Parse a version, allowing a leading ``v`` and missing minor or patch."""
        match = _VERSION.fullmatch(text)
        if match is None:
            raise InvalidVersionError("Invalid Semantic Version")
        prerelease = match.group("pre") or ""
        if prerelease:
            _check_prerelease(prerelease)
        return cls(
            major=int(match.group("major")),
            minor=int(match.group("minor") or 0),
            patch=int(match.group("patch") or 0),
            prerelease=prerelease,
            metadata=match.group("meta") or "",
            original=text,
        )

    def _key(self) -> tuple:
        if self.prerelease:
            pre = (0, _prerelease_key(self.prerelease))
        else:
            pre = (1, ())
        return (self.major, self.minor, self.patch, pre)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other: "Version") -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._key() < other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            text += f"-{self.prerelease}"
        if self.metadata:
            text += f"+{self.metadata}"
        return text
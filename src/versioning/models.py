"""Value types for package identities and version specs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .parser import is_pinned


def _fold(value: Optional[str]) -> Optional[str]:
    """Case-fold for ordinal, case-insensitive comparison; None stays None."""
    return value.lower() if value is not None else None


@dataclass(frozen=True, eq=False)
class PackageIdentity:
    """Package name compared ordinally and case-insensitively ("Pkg" == "PKG")."""

    value: Optional[str]

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if not isinstance(other, PackageIdentity):
            return NotImplemented
        return _fold(self.value) == _fold(other.value)

    def __hash__(self) -> int:
        return hash(_fold(self.value))

    def __str__(self) -> str:
        return self.value or ""


@dataclass(frozen=True, eq=False)
class PackageVersionSpec:
    """Raw version string as written by the user, plus its pin classification.

    The string is never normalized: ``"1.2.3-BETA"`` keeps its casing, but
    compares equal to ``"1.2.3-beta"``.
    """

    value: Optional[str]

    @property
    def is_pinned(self) -> bool:
        """True when the version names one exact release (see ``is_pinned``)."""
        return is_pinned(self.value)

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if not isinstance(other, PackageVersionSpec):
            return NotImplemented
        return _fold(self.value) == _fold(other.value)

    def __hash__(self) -> int:
        return hash(_fold(self.value))

    def __str__(self) -> str:
        return self.value or ""

"""Reference types stored in a project descriptor."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from versioning.models import PackageIdentity, PackageVersionSpec


@dataclass(frozen=True)
class PackageReference:
    """A NuGet package id plus the version spec it was requested with.

    Both parts compare case-insensitively, so ``("Newtonsoft.Json", "13.0.1")``
    and ``("newtonsoft.json", "13.0.1")`` are one set element. The same id with
    two different versions gives two distinct references.
    """

    id: PackageIdentity
    version: PackageVersionSpec

    @classmethod
    def of(cls, package_id: Optional[str], version: Optional[str]) -> "PackageReference":
        """Build a reference from plain strings.

        A ``None`` version is stored as ``""``, the floating form the project
        file writes, so saving and loading gives back an equal reference.
        """
        return cls(PackageIdentity(package_id), PackageVersionSpec(version if version is not None else ""))

    @property
    def is_pinned(self) -> bool:
        return self.version.is_pinned

    def __str__(self) -> str:
        return f"{self.id}@{self.version}" if self.version.value else str(self.id)


@dataclass(frozen=True)
class AssemblyReference:
    """A bare assembly path or framework assembly name such as ``System.Xml``."""

    assembly_path: str

    def __str__(self) -> str:
        return self.assembly_path


Reference = Union[PackageReference, AssemblyReference]

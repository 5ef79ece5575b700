"""Package identity and version spec handling."""

from .models import PackageIdentity, PackageVersionSpec
from .parser import highest_version, is_pinned, tokenize_package_directive

__all__ = [
    "PackageIdentity",
    "PackageVersionSpec",
    "highest_version",
    "is_pinned",
    "tokenize_package_directive",
]

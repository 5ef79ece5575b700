"""Version string classification and directive token parsing."""

import re
from typing import Iterable, Optional, Tuple

import semantic_version

# 2-4 numeric components, optional -prerelease and +build metadata.
# Leading zeros are accepted ("01.02.03" is pinned).
_PINNED_PATTERN = re.compile(
    r"^\d+(\.\d+){1,3}(-[0-9A-Za-z.-]+)?(\+[0-9A-Za-z.-]+)?$"
)


def strip_brackets(value: str) -> str:
    """Remove one surrounding ``[`` ``]`` pair; unbalanced brackets are kept."""
    if len(value) >= 2 and value.startswith("[") and value.endswith("]"):
        return value[1:-1]
    return value


def is_pinned(value: Optional[str]) -> bool:
    """Return True when ``value`` names exactly one package release.

    ``"1.2.3"``, ``"[1.2.3]"``, ``"1.2.3.4"`` and ``"1.2.3-alpha.1+build.5"`` are
    pinned. Empty strings, a bare major (``"1"``), five or more components,
    wildcards (``"1.2.*"``), ranges (``"[1.0,2.0)"``) and unbalanced brackets
    are floating.

    Args:
        value: Version string as written in a directive or project file.

    Returns:
        Whether the version is exact, which makes it eligible for caching.
    """
    if not value:
        return False
    return _PINNED_PATTERN.match(strip_brackets(value)) is not None


def tokenize_package_directive(s: str) -> Tuple[str, Optional[str]]:
    """Split ``"Id, Version"`` on the first comma.

    Version ranges carry their own commas (``"Pkg, [1.0, 2.0)"``), so only the
    leftmost comma separates the id.

    Returns:
        (identifier, version or None when absent/blank)
    """
    s = s.strip()
    if "," not in s:
        return s, None
    identifier, version = s.split(",", 1)
    version = version.strip()
    return identifier.strip(), version if version else None


def _version_from_str(value: str) -> Optional[semantic_version.Version]:
    """Safely coerce a NuGet version string into a semantic version."""
    try:
        return semantic_version.Version.coerce(strip_brackets(value))
    except ValueError:
        return None


def highest_version(values: Iterable[str]) -> Optional[str]:
    """Return the highest of ``values`` by semantic version precedence.

    Falls back to case-insensitive string order when none of the values
    parses as a version.
    """
    candidates = [v for v in values if v]
    if not candidates:
        return None
    parsed = []
    for v in candidates:
        ver = _version_from_str(v)
        if ver is not None:
            parsed.append((ver, v))
    if parsed:
        return max(parsed, key=lambda pair: pair[0])[1]
    return max(candidates, key=str.lower)

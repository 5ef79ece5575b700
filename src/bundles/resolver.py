"""Select the bundled script files a restored package wants activated.

Packages ship scripts under ``contentFiles/csx/<bucket>/`` (or the older
``content/csx/<bucket>/``) where the bucket is ``any`` or a target framework
moniker. Only one bucket is ever used per package.
"""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from constants import Constants
from common.logging_utils import extra_context, is_debug_enabled

logger = logging.getLogger(__name__)

_SEPARATORS = re.compile(r"[\\/]+")


@dataclass(frozen=True)
class EntryPointSelection:
    """Bucket chosen for a package and the entry scripts found in it."""

    bucket: Optional[str] = None
    entry_points: Tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.entry_points


def bucket_of(relative_path: str) -> Optional[str]:
    """Return the path segment right after ``csx``, or None.

    Accepts both ``/`` and ``\\`` separators. The bucket has to be a directory,
    so a file directly under ``csx`` has no bucket.
    """
    segments = [s for s in _SEPARATORS.split(relative_path) if s]
    for index, segment in enumerate(segments):
        if segment.lower() == "csx":
            if index + 2 < len(segments):
                return segments[index + 1]
            return None
    return None


def _child_dir(parent: str, name: str) -> Optional[str]:
    """Case-insensitive lookup of a sub directory."""
    try:
        entries = sorted(os.listdir(parent))
    except OSError:
        return None
    for entry in entries:
        if entry.lower() == name.lower() and os.path.isdir(os.path.join(parent, entry)):
            return os.path.join(parent, entry)
    return None


def _script_files_under(root: str) -> List[str]:
    found = []
    for current, dirs, files in os.walk(root):
        dirs.sort()
        for name in files:
            if name.lower().endswith(Constants.SCRIPT_FILE_EXTENSION):
                found.append(os.path.join(current, name))
    return found


def _sort_key(path: str):
    return (path.lower(), path)


class BundledScriptResolver:
    """Resolves the entry scripts of extracted packages for one framework moniker."""

    def __init__(self, supported_moniker: str = Constants.BUNDLE_SUPPORTED_MONIKER):
        self.supported_moniker = supported_moniker

    @staticmethod
    def bucket_of(relative_path: str) -> Optional[str]:
        return bucket_of(relative_path)

    def resolve(self, package_root: str) -> EntryPointSelection:
        """Return the entry scripts of ``package_root`` for this resolver's moniker.

        Args:
            package_root: Directory a package was extracted to.

        Returns:
            The selection; empty when the package bundles no scripts or only
            scripts for unsupported frameworks.
        """
        buckets = self._group_by_bucket(package_root)
        if not buckets:
            return EntryPointSelection()

        selected = None
        if Constants.BUNDLE_ANY_BUCKET in buckets:
            selected = Constants.BUNDLE_ANY_BUCKET
        elif self.supported_moniker.lower() in buckets:
            selected = self.supported_moniker.lower()

        if selected is None:
            logger.debug(
                "No usable script bucket in %s (found: %s)",
                package_root,
                ", ".join(sorted(name for name, _ in buckets.values())),
            )
            return EntryPointSelection()

        bucket_name, files = buckets[selected]
        entry_points = self.select_entry_points(files)
        if is_debug_enabled(logger):
            logger.debug(
                "Selected bundled scripts",
                extra=extra_context(
                    event="bundle_select",
                    component="bundled_script_resolver",
                    package_root=package_root,
                    bucket=bucket_name,
                    count=len(entry_points),
                ),
            )
        return EntryPointSelection(bucket_name, tuple(entry_points))

    def resolve_many(self, package_roots: Iterable[str]) -> List[str]:
        """Concatenate the entry scripts of several packages, in the order given."""
        entry_points: List[str] = []
        for root in package_roots:
            entry_points.extend(self.resolve(root).entry_points)
        return entry_points

    @staticmethod
    def select_entry_points(files: List[str]) -> List[str]:
        """Pick the entry point(s) of one bucket.

        A single ``main.csx`` wins on its own; otherwise a lone file is the
        entry point; otherwise every file is returned in sorted order.
        """
        mains = [f for f in files if os.path.basename(f).lower() == Constants.ENTRY_POINT_FILE]
        if len(mains) == 1:
            return mains
        return sorted(files, key=_sort_key)

    def _group_by_bucket(self, package_root: str) -> Dict[str, tuple]:
        """Map lower-cased bucket name to (first seen name, files) for the first root with scripts."""
        for content_name, csx_name in Constants.BUNDLE_CONTENT_ROOTS:
            content_dir = _child_dir(package_root, content_name)
            csx_dir = _child_dir(content_dir, csx_name) if content_dir else None
            if csx_dir is None:
                continue
            buckets: Dict[str, tuple] = {}
            for path in _script_files_under(csx_dir):
                bucket = bucket_of(os.path.relpath(path, package_root))
                if bucket is None:
                    continue
                _, files = buckets.setdefault(bucket.lower(), (bucket, []))
                files.append(path)
            if buckets:
                return buckets
        return {}

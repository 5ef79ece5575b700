"""Script file discovery and ``#load`` graph walking."""
from __future__ import annotations

import logging
import os
from typing import List, Optional, Set

from constants import Constants
from project.script_parser import ScriptParseError, find_local_loads

logger = logging.getLogger(__name__)


def _normalize(path: str) -> str:
    return os.path.normcase(os.path.normpath(os.path.abspath(path)))


def is_script_file(path: str) -> bool:
    """True for ``*.csx`` regardless of extension casing."""
    return path.lower().endswith(Constants.SCRIPT_FILE_EXTENSION)


def _is_remote(target: str) -> bool:
    lowered = target.lower()
    return lowered.startswith("http://") or lowered.startswith("https://")


class ScriptFilesResolver:
    """Resolves the set of script files that make up a script's full source."""

    def get_script_files(self, entry_path: str) -> List[str]:
        """Return ``entry_path`` followed by its transitive ``#load`` closure.

        Order is depth-first in directive order; each file appears once even
        when loaded from several places or through a cycle.

        Raises:
            FileNotFoundError: The entry file does not exist.
            ScriptParseError: A ``#load`` points at a file that does not exist.
        """
        entry = os.path.abspath(entry_path)
        if not os.path.isfile(entry):
            raise FileNotFoundError(f"Script file not found: {entry_path}")
        ordered: List[str] = []
        self._walk(entry, ordered, set())
        return ordered

    def get_script_files_from_code(self, code: str, working_dir: str) -> List[str]:
        """Return the transitive ``#load`` closure of inline ``code``.

        Relative targets resolve against ``working_dir``. The code itself is not
        a file and is not part of the result.
        """
        ordered: List[str] = []
        visited: Set[str] = set()
        for target in find_local_loads(code):
            self._follow(target, working_dir, "<code>", ordered, visited)
        return ordered

    def discover_script_files(self, directory: str, recursive: bool = True) -> List[str]:
        """List ``*.csx`` files under ``directory`` in a stable, sorted order.

        Raises:
            FileNotFoundError: ``directory`` does not exist.
        """
        if not os.path.isdir(directory):
            raise FileNotFoundError(f"Directory not found: {directory}")
        found = []
        if recursive:
            for current, dirs, files in os.walk(directory):
                dirs.sort()
                found.extend(os.path.join(current, f) for f in files if is_script_file(f))
        else:
            for name in os.listdir(directory):
                path = os.path.join(directory, name)
                if os.path.isfile(path) and is_script_file(name):
                    found.append(path)
        return sorted(os.path.abspath(p) for p in found)

    def _walk(self, path: str, ordered: List[str], visited: Set[str]) -> None:
        key = _normalize(path)
        if key in visited:
            return
        visited.add(key)
        ordered.append(path)
        with open(path, "r", encoding="utf-8-sig", errors="replace") as fh:
            code = fh.read()
        base = os.path.dirname(path)
        for target in find_local_loads(code):
            self._follow(target, base, path, ordered, visited)

    def _follow(
        self,
        target: str,
        base_dir: str,
        source: str,
        ordered: List[str],
        visited: Set[str],
    ) -> None:
        if _is_remote(target):
            logger.debug("Skipping remote #load %s in %s", target, source)
            return
        resolved = target if os.path.isabs(target) else os.path.join(base_dir, target)
        resolved = os.path.normpath(os.path.abspath(resolved))
        if not os.path.isfile(resolved):
            raise ScriptParseError(f"#load target '{target}' in {source} not found at {resolved}")
        self._walk(resolved, ordered, visited)


def find_native_project(directory: str) -> Optional[str]:
    """Return the first ``*.csproj`` directly inside ``directory``, if any."""
    if not os.path.isdir(directory):
        return None
    candidates = sorted(
        name for name in os.listdir(directory)
        if name.lower().endswith(Constants.PROJECT_FILE_EXTENSION)
        and os.path.isfile(os.path.join(directory, name))
    )
    return os.path.join(directory, candidates[0]) if candidates else None

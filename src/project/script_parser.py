"""Directive parser for C# script source.

Extracts ``#r "nuget: Id, Version"`` / ``#load "nuget: Id, Version"`` package
references, the ``#r "sdk: Name"`` hint and local ``#load "file.csx"`` paths.
Directives inside ``/* */`` block comments or after ``//`` are ignored.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, List, Optional

from constants import Constants
from common.logging_utils import extra_context, is_debug_enabled
from project.references import PackageReference
from versioning.parser import tokenize_package_directive

logger = logging.getLogger(__name__)

_HWS = r"[ \t]*"
_BLOCK_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)
_NUGET_DIRECTIVE = re.compile(
    rf'^{_HWS}#{_HWS}(?:r|load)[ \t]+"{_HWS}nuget{_HWS}:([^"]*)"',
    re.IGNORECASE | re.MULTILINE,
)
_SDK_DIRECTIVE = re.compile(
    rf'^{_HWS}#{_HWS}r[ \t]+"{_HWS}sdk{_HWS}:([^"]*)"',
    re.IGNORECASE | re.MULTILINE,
)
_LOAD_DIRECTIVE = re.compile(
    rf'^{_HWS}#{_HWS}load[ \t]+"([^"]*)"',
    re.IGNORECASE | re.MULTILINE,
)


class ScriptParseError(ValueError):
    """Raised for directives that cannot be honored (malformed or unsupported)."""


@dataclass(frozen=True)
class ParseResult:
    """Package references and SDK hint found in one or more scripts."""

    package_references: FrozenSet[PackageReference] = field(default_factory=frozenset)
    sdk: str = ""


def strip_block_comments(code: str) -> str:
    """Blank out ``/* ... */`` comments while keeping line structure."""
    return _BLOCK_COMMENT.sub(lambda m: "\n" * m.group(0).count("\n"), code)


def find_local_loads(code: str) -> List[str]:
    """Return the non-NuGet ``#load`` targets of ``code`` in source order."""
    loads = []
    for match in _LOAD_DIRECTIVE.finditer(strip_block_comments(code)):
        target = match.group(1).strip()
        if not target or target.lower().startswith("nuget:"):
            continue
        loads.append(target)
    return loads


class ScriptParser:
    """Parses script text or files into a ParseResult."""

    def __init__(self, logger: Optional[logging.Logger] = None):  # pylint: disable=redefined-outer-name
        self._logger = logger or logging.getLogger(__name__)

    def parse_from_code(self, code: str) -> ParseResult:
        """Parse directives from inline script text.

        Args:
            code: Script source.

        Returns:
            Deduplicated package references and the last SDK hint ("" if none).

        Raises:
            ScriptParseError: A NuGet directive without an id, or an unsupported SDK.
        """
        if code is None:
            raise TypeError("code must not be None")
        return self._parse(code, "<code>")

    def parse_from_files(self, paths: Iterable[str]) -> ParseResult:
        """Parse and aggregate directives across files; the last SDK hint wins.

        Raises:
            FileNotFoundError: A listed file does not exist.
            ScriptParseError: See ``parse_from_code``.
        """
        if paths is None:
            raise TypeError("paths must not be None")
        packages = set()
        sdk = ""
        for path in paths:
            self._logger.debug("Parsing %s", path)
            with open(path, "r", encoding="utf-8-sig", errors="replace") as fh:
                result = self._parse(fh.read(), path)
            packages.update(result.package_references)
            if result.sdk:
                sdk = result.sdk
        return ParseResult(frozenset(packages), sdk)

    def _parse(self, code: str, source: str) -> ParseResult:
        text = strip_block_comments(code)
        packages = set()
        for match in _NUGET_DIRECTIVE.finditer(text):
            package_id, version = tokenize_package_directive(match.group(1))
            if not package_id:
                raise ScriptParseError(
                    f"NuGet directive in {source} is missing a package id: '{match.group(0).strip()}'"
                )
            # A missing version is legal; it simply floats.
            packages.add(PackageReference.of(package_id, version or ""))

        sdk = ""
        for match in _SDK_DIRECTIVE.finditer(text):
            name, _ = tokenize_package_directive(match.group(1))
            if not name:
                raise ScriptParseError(f"SDK directive in {source} is missing a name")
            if name not in Constants.SUPPORTED_SDKS:
                raise ScriptParseError(
                    f"The sdk '{name}' in {source} is not supported. "
                    f"Supported SDKs: {', '.join(Constants.SUPPORTED_SDKS)}"
                )
            sdk = name

        if is_debug_enabled(self._logger):
            self._logger.debug(
                "Parsed script directives",
                extra=extra_context(
                    event="parse",
                    component="script_parser",
                    source=source,
                    count=len(packages),
                    sdk=sdk or None,
                ),
            )
        return ParseResult(frozenset(packages), sdk)

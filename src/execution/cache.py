"""Execution cache: decide whether a previously compiled script can be reused.

The cache key is a SHA-256 over the expanded script source and every input
that changes the compiled output. Each key gets its own directory under the
script's temp folder, holding the compiled artifact and a ``script.sha256``
record of the key.
"""
from __future__ import annotations

import hashlib
import logging
import os
import tempfile
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Sequence, Tuple, Union

from constants import Constants, OptimizationLevel
from common.file_utils import get_path_to_script_temp_folder, get_temp_path
from common.logging_utils import Timer, extra_context, is_debug_enabled
from project.provider import ScriptProjectProvider
from project.script_files import ScriptFilesResolver

logger = logging.getLogger(__name__)

# compiler(script_path, output_dir) emits the compiled artifact into output_dir
Compiler = Callable[[str, str], None]


@dataclass(frozen=True)
class CompileOutcome:
    """Where the compiled artifact lives and whether it came from the cache."""

    output_dir: str
    hash: Optional[str]
    reused: bool


def _optimization_value(level: Union[OptimizationLevel, str, None]) -> str:
    if isinstance(level, OptimizationLevel):
        return level.value
    return (level or OptimizationLevel.DEBUG.value).lower()


def _update(digest, tag: str, data: bytes) -> None:
    """Feed one length-prefixed field so bytes cannot shift between fields."""
    digest.update(f"{tag}:{len(data)}:".encode("utf-8"))
    digest.update(data)


class ExecutionCache:
    """Computes, stores and looks up the cache hash of a script."""

    def __init__(
        self,
        provider: Optional[ScriptProjectProvider] = None,
        files_resolver: Optional[ScriptFilesResolver] = None,
        target_framework: str = Constants.DEFAULT_TARGET_FRAMEWORK,
        logger: Optional[logging.Logger] = None,  # pylint: disable=redefined-outer-name
    ):
        self._logger = logger or logging.getLogger(__name__)
        self._files = files_resolver or ScriptFilesResolver()
        self._provider = provider or ScriptProjectProvider(
            files_resolver=self._files, logger=self._logger
        )
        self.target_framework = target_framework

    def try_create_hash(
        self,
        script_path: str,
        args: Optional[Sequence[str]] = None,
        optimization_level: Union[OptimizationLevel, str, None] = OptimizationLevel.DEBUG,
        package_sources: Optional[Iterable[str]] = None,
        no_cache: bool = False,
    ) -> Tuple[bool, Optional[str]]:
        """Compute the cache hash of a script.

        Args:
            script_path: Entry script.
            args: Arguments the script will be run with.
            optimization_level: Compilation optimization level.
            package_sources: Package sources used for restore.
            no_cache: Caching explicitly disabled; checked before anything else.

        Returns:
            ``(True, hex_digest)``, or ``(False, None)`` when caching is disabled
            or the script references a package without an exact version.
        """
        if no_cache:
            self._logger.debug("Caching disabled for %s", script_path)
            return False, None

        files = self._files.get_script_files(script_path)
        descriptor = self._provider.build_from_script_files(self.target_framework, files)
        if not descriptor.is_cacheable:
            floating = ", ".join(str(ref) for ref in descriptor.floating_references())
            self._logger.warning(
                "Unable to cache %s: package references without an exact version: %s. "
                "Pin them (e.g. '1.2.3') to enable caching.",
                script_path,
                floating,
            )
            return False, None

        with Timer() as timer:
            digest = hashlib.sha256()
            for path in files:
                with open(path, "rb") as fh:
                    _update(digest, "file", fh.read())
            _update(digest, "optimization", _optimization_value(optimization_level).encode("utf-8"))
            for arg in args or []:
                _update(digest, "arg", arg.encode("utf-8", errors="surrogateescape"))
            for source in package_sources or []:
                _update(digest, "source", source.encode("utf-8", errors="surrogateescape"))
            _update(digest, "framework", self.target_framework.encode("utf-8"))
            value = digest.hexdigest()

        if is_debug_enabled(self._logger):
            self._logger.debug(
                "Computed script hash",
                extra=extra_context(
                    event="hash",
                    component="execution_cache",
                    target=script_path,
                    files=len(files),
                    duration_ms=timer.duration_ms(),
                ),
            )
        return True, value

    @staticmethod
    def try_get_hash(cache_dir: str) -> Tuple[bool, Optional[str]]:
        """Read the stored hash of ``cache_dir`` exactly as written (no trimming)."""
        if not os.path.isdir(cache_dir):
            return False, None
        path = os.path.join(cache_dir, Constants.HASH_FILE_NAME)
        if not os.path.isfile(path):
            return False, None
        with open(path, "r", encoding="utf-8", errors="surrogateescape", newline="") as fh:
            return True, fh.read()

    @staticmethod
    def get_cache_dir(script_path: str, hash_value: str) -> str:
        """``<script temp folder>/execution-cache/<hash>``; one directory per hash."""
        return os.path.join(
            get_path_to_script_temp_folder(script_path),
            Constants.EXECUTION_CACHE_FOLDER,
            hash_value,
        )

    @staticmethod
    def write_hash(cache_dir: str, hash_value: str) -> str:
        """Record ``hash_value`` in ``cache_dir``; concurrent writers are last-writer-wins.

        Returns:
            Path of the hash record file.
        """
        os.makedirs(cache_dir, exist_ok=True)
        path = os.path.join(cache_dir, Constants.HASH_FILE_NAME)
        fd, tmp_path = tempfile.mkstemp(dir=cache_dir, prefix=".", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8", errors="surrogateescape", newline="") as fh:
                fh.write(hash_value)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
        return path

    def get_or_compile(
        self,
        script_path: str,
        compiler: Compiler,
        args: Optional[Sequence[str]] = None,
        optimization_level: Union[OptimizationLevel, str, None] = OptimizationLevel.DEBUG,
        package_sources: Optional[Iterable[str]] = None,
        no_cache: bool = False,
    ) -> CompileOutcome:
        """Reuse the cached artifact of a script, or compile it into the cache.

        Without a hash (caching disabled or not cacheable) the compiler runs
        into a fresh temp directory that is never reused.
        """
        package_sources = list(package_sources or [])
        ok, hash_value = self.try_create_hash(
            script_path, args, optimization_level, package_sources, no_cache
        )
        if not ok or hash_value is None:
            scratch_root = os.path.join(get_temp_path(), Constants.TEMP_FOLDER_NAME)
            os.makedirs(scratch_root, exist_ok=True)
            output_dir = tempfile.mkdtemp(prefix="build-", dir=scratch_root)
            compiler(script_path, output_dir)
            return CompileOutcome(output_dir, None, False)

        cache_dir = self.get_cache_dir(script_path, hash_value)
        found, stored = self.try_get_hash(cache_dir)
        if found and stored == hash_value:
            self._logger.info("Reusing compiled script from %s", cache_dir)
            return CompileOutcome(cache_dir, hash_value, True)

        os.makedirs(cache_dir, exist_ok=True)
        compiler(script_path, cache_dir)
        self.write_hash(cache_dir, hash_value)
        self._logger.debug("Compiled %s into %s", script_path, cache_dir)
        return CompileOutcome(cache_dir, hash_value, False)

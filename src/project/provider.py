"""Build the project descriptor of a script from every place it declares packages.

References come from three sources: the directives of the entry script or
inline code, the scripts it pulls in through ``#load`` (transitively), and
scripts bundled inside restored packages. They are merged into one
ProjectDescriptor keyed by ``(id, version)``.
"""
from __future__ import annotations

import logging
import os
from collections import defaultdict
from typing import Dict, Iterable, List, Optional

from constants import Constants
from common.file_utils import get_path_to_temp_folder
from common.logging_utils import Timer, extra_context, is_debug_enabled
from bundles.resolver import BundledScriptResolver
from project.descriptor import ProjectDescriptor
from project.references import PackageReference
from project.script_files import ScriptFilesResolver, find_native_project
from project.script_parser import ScriptParser
from versioning.parser import highest_version

logger = logging.getLogger(__name__)


def find_version_conflicts(refs: Iterable[PackageReference]) -> Dict[str, List[str]]:
    """Group pinned references by id and keep the ids requested at more than one version.

    Returns:
        Mapping of package id (as first seen) to its distinct versions, sorted.
    """
    by_id: Dict[str, Dict[str, str]] = defaultdict(dict)
    names: Dict[str, str] = {}
    for ref in refs:
        if not ref.version.is_pinned:
            continue
        key = (ref.id.value or "").lower()
        names.setdefault(key, ref.id.value or "")
        by_id[key].setdefault((ref.version.value or "").lower(), ref.version.value or "")
    return {
        names[key]: sorted(versions.values(), key=str.lower)
        for key, versions in by_id.items()
        if len(versions) > 1
    }


class ScriptProjectProvider:
    """Merges script dependencies into project descriptors and writes them to the cache root.

    Collaborators are injectable; defaults are created when omitted.
    """

    def __init__(
        self,
        parser: Optional[ScriptParser] = None,
        files_resolver: Optional[ScriptFilesResolver] = None,
        bundle_resolver: Optional[BundledScriptResolver] = None,
        logger: Optional[logging.Logger] = None,  # pylint: disable=redefined-outer-name
    ):
        self._logger = logger or logging.getLogger(__name__)
        self._parser = parser or ScriptParser(self._logger)
        self._files = files_resolver or ScriptFilesResolver()
        self._bundles = bundle_resolver or BundledScriptResolver()

    @staticmethod
    def get_descriptor_path(
        directory: str,
        framework: str,
        name: Optional[str] = None,
    ) -> str:
        """Return where the descriptor for ``directory`` and ``framework`` is written.

        Pure function of its arguments: nothing is read or created on disk.

        Args:
            directory: Script directory (or file path) the project belongs to.
            framework: Target framework moniker; each gets its own folder.
            name: Project file name, ``script`` by default. ``.csproj`` is appended
                unless already present.

        Returns:
            ``<cache root>/csxdeps/<directory without root>/<framework>/<name>.csproj``
        """
        name = name or Constants.DEFAULT_PROJECT_NAME
        if not name.lower().endswith(Constants.PROJECT_FILE_EXTENSION):
            name += Constants.PROJECT_FILE_EXTENSION
        return os.path.join(get_path_to_temp_folder(directory), framework, name)

    @classmethod
    def get_inline_descriptor_path(
        cls, working_dir: str, framework: str, name: Optional[str] = None
    ) -> str:
        """Descriptor path used for inline code run from ``working_dir``."""
        return cls.get_descriptor_path(
            os.path.join(working_dir, Constants.INTERACTIVE_FOLDER_NAME), framework, name
        )

    @classmethod
    def get_single_file_descriptor_path(cls, file: str, framework: str) -> str:
        """Descriptor path for one script; keyed on the file's full path."""
        return cls.get_descriptor_path(os.path.abspath(file), framework)

    def build_for_inline_code(
        self,
        code: str,
        working_dir: str,
        target_framework: str = Constants.DEFAULT_TARGET_FRAMEWORK,
        project_name: Optional[str] = None,
    ) -> ProjectDescriptor:
        """Build and write the descriptor for inline code.

        The code's own SDK hint wins over hints from loaded files.
        """
        code_result = self._parser.parse_from_code(code)
        loaded = self._files.get_script_files_from_code(code, working_dir)
        loaded_result = self._parser.parse_from_files(loaded)

        descriptor = ProjectDescriptor(
            sdk=code_result.sdk or loaded_result.sdk or Constants.DEFAULT_SDK,
            target_framework=target_framework,
        )
        descriptor = descriptor.with_all(code_result.package_references)
        descriptor = descriptor.with_all(loaded_result.package_references)
        self._warn_conflicts(descriptor)

        path = self.get_inline_descriptor_path(working_dir, target_framework, project_name)
        descriptor.save(path)
        self._logger.debug("Project file for inline code written to %s", path)
        return descriptor

    def build_for_directory(
        self,
        directory: str,
        explicit_files: Optional[List[str]] = None,
        target_framework: str = Constants.DEFAULT_TARGET_FRAMEWORK,
        allow_package_references_without_csproj: bool = False,
    ) -> Optional[ProjectDescriptor]:
        """Build and write the descriptor for a directory of scripts.

        Args:
            directory: Directory holding the scripts (and maybe a native ``*.csproj``).
            explicit_files: Scripts to use; when None, ``*.csx`` files are discovered
                recursively.
            target_framework: Framework of the generated project.
            allow_package_references_without_csproj: Produce a descriptor even when
                there are neither scripts nor a native project.

        Returns:
            The descriptor, or None when there is nothing to build a project from.
        """
        native = find_native_project(directory)
        if explicit_files is not None:
            files = list(explicit_files)
        elif os.path.isdir(directory):
            files = self._files.discover_script_files(directory)
        else:
            files = []

        if not files and native is None and not allow_package_references_without_csproj:
            self._logger.debug("No script files or project file found in %s", directory)
            return None

        result = self._parser.parse_from_files(files)
        if native is not None:
            self._logger.info("Using project file %s as the base project", native)
            base = ProjectDescriptor.load(native)
            descriptor = base.with_sdk(base.sdk or result.sdk or Constants.DEFAULT_SDK)
            descriptor = descriptor.with_target_framework(base.target_framework or target_framework)
        else:
            descriptor = ProjectDescriptor(
                sdk=result.sdk or Constants.DEFAULT_SDK,
                target_framework=target_framework,
            )
        descriptor = descriptor.with_all(result.package_references)
        self._warn_conflicts(descriptor)

        path = self.get_descriptor_path(directory, target_framework)
        descriptor.save(path)
        self._logger.debug("Project file for %s written to %s", directory, path)
        return descriptor

    def build_for_single_file(
        self,
        file: str,
        target_framework: str = Constants.DEFAULT_TARGET_FRAMEWORK,
    ) -> ProjectDescriptor:
        """Build and write the descriptor for one script and its ``#load`` closure."""
        files = self._files.get_script_files(file)
        descriptor = self.build_from_script_files(target_framework, files)
        path = self.get_single_file_descriptor_path(file, target_framework)
        descriptor.save(path)
        self._logger.debug("Project file for %s written to %s", file, path)
        return descriptor

    def build_from_script_files(
        self,
        target_framework: str,
        files: Iterable[str],
    ) -> ProjectDescriptor:
        """Parse ``files`` and merge their references; nothing is written."""
        files = list(files)
        with Timer() as timer:
            result = self._parser.parse_from_files(files)
        descriptor = ProjectDescriptor(
            sdk=result.sdk or Constants.DEFAULT_SDK,
            target_framework=target_framework,
        ).with_all(result.package_references)
        if is_debug_enabled(self._logger):
            self._logger.debug(
                "Merged script references",
                extra=extra_context(
                    event="merge",
                    component="script_project_provider",
                    files=len(files),
                    count=len(descriptor.package_references),
                    duration_ms=timer.duration_ms(),
                ),
            )
        self._warn_conflicts(descriptor)
        return descriptor

    def merge_bundled_scripts(
        self,
        descriptor: ProjectDescriptor,
        package_roots: Iterable[str],
        moniker: Optional[str] = None,
    ) -> ProjectDescriptor:
        """Add the references of scripts bundled in restored packages.

        Each selected entry script is expanded with its ``#load`` closure
        before parsing. ``moniker`` overrides the resolver's framework moniker.
        """
        resolver = self._bundles if moniker is None else BundledScriptResolver(moniker)
        files: List[str] = []
        for entry_point in resolver.resolve_many(package_roots):
            for path in self._files.get_script_files(entry_point):
                if path not in files:
                    files.append(path)
        if not files:
            return descriptor
        result = self._parser.parse_from_files(files)
        merged = descriptor.with_all(result.package_references)
        self._warn_conflicts(merged)
        return merged

    def _warn_conflicts(self, descriptor: ProjectDescriptor) -> None:
        for package_id, versions in find_version_conflicts(descriptor.package_references).items():
            self._logger.warning(
                "Package %s is referenced with different versions (%s); the highest is %s",
                package_id,
                ", ".join(versions),
                highest_version(versions),
            )

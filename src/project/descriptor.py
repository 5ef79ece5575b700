"""Project descriptor: the synthetic MSBuild project handed to the compiler.

A descriptor is an immutable value. Callers grow it with ``with_added`` and
friends, each returning a new descriptor, and persist it with ``save``. The
XML read path fails fast on malformed reference elements rather than
defaulting missing attributes.
"""
from __future__ import annotations

import logging
import os
import tempfile
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field, replace
from typing import FrozenSet, Iterable, List, Optional

from constants import Constants
from project.references import AssemblyReference, PackageReference, Reference

logger = logging.getLogger(__name__)

_TEMPLATE = """<Project Sdk="{sdk}">
  <PropertyGroup>
    <OutputType>Exe</OutputType>
    <TargetFramework></TargetFramework>
    <LangVersion>latest</LangVersion>
  </PropertyGroup>
</Project>"""


class DescriptorParseError(ValueError):
    """Raised when a serialized descriptor is not valid XML or a reference is malformed."""


def _strip_namespaces(root: ET.Element) -> None:
    for elem in root.iter():
        if isinstance(elem.tag, str) and "}" in elem.tag:
            elem.tag = elem.tag.split("}", 1)[1]


def _required(elem: ET.Element, name: str, source: str) -> str:
    """Read a required attribute (or same-named child element) from a reference element."""
    value = elem.get(name)
    if value is None:
        child = elem.find(name)
        if child is not None and child.text is not None:
            value = child.text.strip()
    if value is None:
        raise DescriptorParseError(
            f"{elem.tag} element in {source} is missing the required '{name}' attribute"
        )
    return value


@dataclass(frozen=True)
class ProjectDescriptor:
    """SDK, target framework and the package/assembly reference sets of a script project."""

    sdk: Optional[str] = Constants.DEFAULT_SDK
    target_framework: Optional[str] = Constants.DEFAULT_TARGET_FRAMEWORK
    package_references: FrozenSet[PackageReference] = field(default_factory=frozenset)
    assembly_references: FrozenSet[AssemblyReference] = field(default_factory=frozenset)

    @property
    def is_cacheable(self) -> bool:
        """True when every package version is pinned (vacuously true with no packages)."""
        return all(ref.version.is_pinned for ref in self.package_references)

    def floating_references(self) -> List[PackageReference]:
        """Package references whose version is not pinned, in a stable order."""
        return sorted(
            (ref for ref in self.package_references if not ref.version.is_pinned),
            key=_package_sort_key,
        )

    def with_added(self, ref: Reference) -> "ProjectDescriptor":
        """Return a descriptor that also holds ``ref``; a present reference is a no-op."""
        if isinstance(ref, PackageReference):
            if ref in self.package_references:
                return self
            return replace(self, package_references=self.package_references | {ref})
        if isinstance(ref, AssemblyReference):
            if ref in self.assembly_references:
                return self
            return replace(self, assembly_references=self.assembly_references | {ref})
        raise TypeError(f"Unsupported reference type: {type(ref).__name__}")

    def with_all(self, refs: Iterable[Reference]) -> "ProjectDescriptor":
        descriptor = self
        for ref in refs:
            descriptor = descriptor.with_added(ref)
        return descriptor

    def with_sdk(self, sdk: Optional[str]) -> "ProjectDescriptor":
        return replace(self, sdk=sdk)

    def with_target_framework(self, target_framework: Optional[str]) -> "ProjectDescriptor":
        return replace(self, target_framework=target_framework)

    def merged(self, other: "ProjectDescriptor") -> "ProjectDescriptor":
        """Union both reference sets; SDK and framework of ``self`` are kept."""
        return replace(
            self,
            package_references=self.package_references | other.package_references,
            assembly_references=self.assembly_references | other.assembly_references,
        )

    # Serialization

    def to_element(self, root: Optional[ET.Element] = None) -> ET.Element:
        """Render into ``root`` (an existing ``Project`` element) or a fresh template.

        Existing ``PackageReference``/``Reference`` items are replaced. An empty
        SDK or target framework leaves the value already in ``root`` untouched.
        """
        if root is None:
            root = ET.fromstring(_TEMPLATE.format(sdk=Constants.DEFAULT_SDK))
        if self.sdk:
            root.set("Sdk", self.sdk)
        if self.target_framework:
            _set_target_framework(root, self.target_framework)

        for group in list(root.findall("ItemGroup")):
            for item in list(group):
                if item.tag in ("PackageReference", "Reference"):
                    group.remove(item)
            if len(group) == 0:
                root.remove(group)

        if self.package_references:
            group = ET.SubElement(root, "ItemGroup")
            for ref in sorted(self.package_references, key=_package_sort_key):
                ET.SubElement(
                    group,
                    "PackageReference",
                    {"Include": ref.id.value or "", "Version": ref.version.value or ""},
                )
        if self.assembly_references:
            group = ET.SubElement(root, "ItemGroup")
            for aref in sorted(self.assembly_references, key=lambda a: a.assembly_path.lower()):
                ET.SubElement(group, "Reference", {"Include": aref.assembly_path})
        return root

    def to_xml(self) -> str:
        root = self.to_element()
        ET.indent(root, space="  ")
        return ET.tostring(root, encoding="unicode")

    def save(self, path: str) -> None:
        """Write the descriptor to ``path``, merging into an existing project file there.

        The file is written through a temp file and an atomic replace so a
        concurrent reader never sees a half-written project.
        """
        root = None
        if os.path.isfile(path):
            root = _parse_file(path).getroot()
        root = self.to_element(root)
        ET.indent(root, space="  ")

        directory = os.path.dirname(os.path.abspath(path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as fh:
                ET.ElementTree(root).write(fh, encoding="utf-8", xml_declaration=True)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
        logger.debug("Project file written to %s", path)

    @classmethod
    def from_element(cls, root: ET.Element, source: str = "<string>") -> "ProjectDescriptor":
        _strip_namespaces(root)
        if root.tag != "Project":
            raise DescriptorParseError(f"{source} is not a project file (root element <{root.tag}>)")

        framework_elem = root.find(".//TargetFramework")
        target_framework = None
        if framework_elem is not None and framework_elem.text and framework_elem.text.strip():
            target_framework = framework_elem.text.strip()

        packages = set()
        for elem in root.iter("PackageReference"):
            packages.add(PackageReference.of(
                _required(elem, "Include", source),
                _required(elem, "Version", source),
            ))
        assemblies = set()
        for elem in root.iter("Reference"):
            assemblies.add(AssemblyReference(_required(elem, "Include", source)))

        return cls(
            sdk=root.get("Sdk", ""),
            target_framework=target_framework,
            package_references=frozenset(packages),
            assembly_references=frozenset(assemblies),
        )

    @classmethod
    def from_xml(cls, text: str) -> "ProjectDescriptor":
        """Parse a descriptor from XML text."""
        try:
            root = ET.fromstring(text)
        except ET.ParseError as e:
            raise DescriptorParseError(f"Invalid project XML: {e}") from e
        return cls.from_element(root)

    @classmethod
    def load(cls, path: str) -> "ProjectDescriptor":
        """Parse a descriptor from a project file on disk."""
        return cls.from_element(_parse_file(path).getroot(), source=path)


def _package_sort_key(ref: PackageReference):
    return ((ref.id.value or "").lower(), (ref.version.value or "").lower())


def _set_target_framework(root: ET.Element, target_framework: str) -> None:
    elem = root.find(".//TargetFramework")
    if elem is None:
        group = root.find("PropertyGroup")
        if group is None:
            group = ET.Element("PropertyGroup")
            root.insert(0, group)
        elem = ET.SubElement(group, "TargetFramework")
    elem.text = target_framework


def _parse_file(path: str) -> ET.ElementTree:
    try:
        tree = ET.parse(path)
    except ET.ParseError as e:
        raise DescriptorParseError(f"Couldn't parse project file {path}: {e}") from e
    _strip_namespaces(tree.getroot())
    return tree

"""Script project model: references, descriptors, directive parsing and merging."""

from .descriptor import DescriptorParseError, ProjectDescriptor
from .provider import ScriptProjectProvider
from .references import AssemblyReference, PackageReference
from .script_files import ScriptFilesResolver
from .script_parser import ParseResult, ScriptParseError, ScriptParser

__all__ = [
    "AssemblyReference",
    "DescriptorParseError",
    "PackageReference",
    "ParseResult",
    "ProjectDescriptor",
    "ScriptFilesResolver",
    "ScriptParseError",
    "ScriptParser",
    "ScriptProjectProvider",
]

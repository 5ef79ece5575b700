"""Tests for #load graph walking and script discovery."""

import os

import pytest

from project.script_files import ScriptFilesResolver, find_native_project, is_script_file
from project.script_parser import ScriptParseError


@pytest.fixture
def resolver():
    return ScriptFilesResolver()


class TestGetScriptFiles:
    """Transitive #load closure of an entry script."""

    def test_entry_only(self, resolver, write_file):
        """Test a script with no #load directives."""
        main = write_file("main.csx", 'Console.WriteLine("hi");')
        assert resolver.get_script_files(main) == [main]

    def test_depth_first_order(self, resolver, write_file):
        """Test depth-first order of the #load closure."""
        main = write_file("main.csx", '#load "a.csx"\n#load "b.csx"')
        a = write_file("a.csx", '#load "sub/c.csx"')
        b = write_file("b.csx", "")
        c = write_file("sub/c.csx", "")
        assert resolver.get_script_files(main) == [main, a, c, b]

    def test_relative_to_including_file(self, resolver, write_file):
        """Test that targets resolve relative to the including file."""
        main = write_file("main.csx", '#load "lib/a.csx"')
        a = write_file("lib/a.csx", '#load "b.csx"')
        b = write_file("lib/b.csx", "")
        assert resolver.get_script_files(main) == [main, a, b]

    def test_shared_and_cyclic_loads_appear_once(self, resolver, write_file):
        """Test that shared and cyclic loads are listed once."""
        main = write_file("main.csx", '#load "a.csx"\n#load "b.csx"')
        a = write_file("a.csx", '#load "b.csx"\n#load "main.csx"')
        b = write_file("b.csx", '#load "a.csx"')
        assert resolver.get_script_files(main) == [main, a, b]

    def test_parent_directory_load(self, resolver, write_file):
        """Test a #load that climbs to a parent directory."""
        main = write_file("scripts/main.csx", '#load "../shared.csx"')
        shared = write_file("shared.csx", "")
        assert resolver.get_script_files(main) == [main, os.path.normpath(shared)]

    def test_missing_load_target(self, resolver, write_file):
        """Test that a missing #load target raises ScriptParseError."""
        main = write_file("main.csx", '#load "missing.csx"')
        with pytest.raises(ScriptParseError, match="missing.csx"):
            resolver.get_script_files(main)

    def test_invalid_utf8_bytes_in_loaded_file(self, resolver, write_file, tmp_path):
        """Test that a loaded file with undecodable bytes is still walked."""
        main = write_file("main.csx", '#load "legacy.csx"')
        (tmp_path / "legacy.csx").write_bytes(b'// \xff\xfe\n#load "next.csx"\n')
        nxt = write_file("next.csx", "")
        assert resolver.get_script_files(main) == [main, str(tmp_path / "legacy.csx"), nxt]

    def test_missing_entry(self, resolver, tmp_path):
        """Test that a missing entry script raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            resolver.get_script_files(str(tmp_path / "nope.csx"))

    def test_nuget_and_remote_loads_are_not_files(self, resolver, write_file):
        """Test that NuGet and remote loads are skipped."""
        main = write_file(
            "main.csx",
            '#load "nuget: Pkg, 1.0.0"\n#load "https://example.com/remote.csx"',
        )
        assert resolver.get_script_files(main) == [main]


class TestGetScriptFilesFromCode:
    """#load closure of inline code."""

    def test_resolves_against_working_dir(self, resolver, write_file, tmp_path):
        """Test resolving inline code loads against the working directory."""
        a = write_file("a.csx", '#load "b.csx"')
        b = write_file("b.csx", "")
        assert resolver.get_script_files_from_code('#load "a.csx"', str(tmp_path)) == [a, b]

    def test_no_loads(self, resolver, tmp_path):
        """Test inline code without loads."""
        assert resolver.get_script_files_from_code("var x = 1;", str(tmp_path)) == []


class TestDiscovery:
    """Finding scripts in a directory."""

    def test_recursive_and_case_insensitive(self, resolver, write_file, tmp_path):
        """Test recursive discovery with mixed-case extensions."""
        a = write_file("a.csx")
        upper = write_file("B.CSX")
        nested = write_file("sub/c.csx")
        write_file("notes.txt")
        found = resolver.discover_script_files(str(tmp_path))
        assert sorted(found) == sorted([a, upper, nested])

    def test_non_recursive(self, resolver, write_file, tmp_path):
        """Test discovery limited to the top directory."""
        a = write_file("a.csx")
        write_file("sub/c.csx")
        assert resolver.discover_script_files(str(tmp_path), recursive=False) == [a]

    def test_missing_directory(self, resolver, tmp_path):
        """Test that discovering a missing directory raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            resolver.discover_script_files(str(tmp_path / "missing"))

    def test_is_script_file(self):
        """Test the script file extension check."""
        assert is_script_file("x.csx")
        assert is_script_file("X.CsX")
        assert not is_script_file("x.cs")


class TestFindNativeProject:
    """Native project detection."""

    def test_finds_csproj(self, write_file, tmp_path):
        """Test finding a project file in a directory."""
        project = write_file("App.csproj", "<Project />")
        assert find_native_project(str(tmp_path)) == project

    def test_none_without_project(self, write_file, tmp_path):
        """Test directories without a project file."""
        write_file("main.csx")
        assert find_native_project(str(tmp_path)) is None
        assert find_native_project(str(tmp_path / "missing")) is None

"""Tests for the execution cache hash and lookup."""

import logging
import os
from unittest.mock import MagicMock

import pytest

from constants import OptimizationLevel
from execution.cache import ExecutionCache
from project.provider import ScriptProjectProvider


@pytest.fixture
def cache():
    return ExecutionCache()


@pytest.fixture
def script(write_file):
    write_file("lib.csx", '#r "nuget: Lib, 1.0.0"\nvar x = 1;')
    return write_file("main.csx", '#load "lib.csx"\n#r "nuget: Pkg, 1.2.3"\nConsole.WriteLine(x);')


def _hash(cache, script, **kwargs):
    params = {
        "args": ["a", "b"],
        "optimization_level": OptimizationLevel.DEBUG,
        "package_sources": ["https://api.nuget.org/v3/index.json"],
        "no_cache": False,
    }
    params.update(kwargs)
    ok, value = cache.try_create_hash(script, **params)
    assert ok
    return value


class TestTryCreateHash:
    """Hash computation."""

    def test_deterministic(self, cache, script):
        """Test that the same inputs give the same SHA-256 hex digest."""
        first = _hash(cache, script)
        assert first == _hash(cache, script)
        assert len(first) == 64
        int(first, 16)

    def test_no_cache_short_circuits(self, script):
        """Test that no_cache returns before the provider is consulted."""
        provider = MagicMock(spec=ScriptProjectProvider)
        cache = ExecutionCache(provider=provider)
        assert cache.try_create_hash(script, [], "debug", [], True) == (False, None)
        provider.build_from_script_files.assert_not_called()

    def test_no_cache_does_not_touch_the_script(self, cache, tmp_path):
        """Test that no_cache does not need the script to exist."""
        assert cache.try_create_hash(str(tmp_path / "missing.csx"), no_cache=True) == (False, None)

    def test_floating_version_is_not_cacheable(self, cache, write_file, caplog):
        """Test that a floating version disables caching with a warning."""
        path = write_file("float.csx", '#r "nuget: Floating, 1.0.*"\n#r "nuget: Pinned, 1.0.0"')
        with caplog.at_level(logging.WARNING):
            assert cache.try_create_hash(path, [], "debug", [], False) == (False, None)
        assert "Floating@1.0.*" in caplog.text
        assert "Pinned@1.0.0" not in caplog.text

    def test_floating_version_in_loaded_file(self, cache, write_file):
        """Test a floating version in a loaded file."""
        write_file("lib.csx", '#r "nuget: Floating"')
        path = write_file("main.csx", '#load "lib.csx"')
        assert cache.try_create_hash(path) == (False, None)

    def test_script_without_packages_is_cacheable(self, cache, write_file):
        """Test that a script without packages is cacheable."""
        path = write_file("plain.csx", "var x = 1;")
        ok, value = cache.try_create_hash(path)
        assert ok and value

    def test_entry_change_changes_hash(self, cache, script):
        """Test that editing the entry script changes the hash."""
        before = _hash(cache, script)
        with open(script, "a", encoding="utf-8") as fh:
            fh.write("\n// changed")
        assert _hash(cache, script) != before

    def test_loaded_file_change_changes_hash(self, cache, script, write_file):
        """Test that editing a loaded file changes the hash."""
        before = _hash(cache, script)
        write_file("lib.csx", '#r "nuget: Lib, 1.0.0"\nvar x = 2;')
        assert _hash(cache, script) != before

    @pytest.mark.parametrize("change", [
        {"args": ["a", "c"]},
        {"args": ["a"]},
        {"args": ["ab"]},
        {"optimization_level": OptimizationLevel.RELEASE},
        {"package_sources": []},
        {"package_sources": ["https://other.example.com/v3/index.json"]},
    ])
    def test_input_change_changes_hash(self, cache, script, change):
        """Test that each hash input changes the result."""
        assert _hash(cache, script, **change) != _hash(cache, script)

    def test_text_shifted_between_fields_changes_hash(self, cache, script):
        """Test that field boundaries are part of the hash."""
        assert _hash(cache, script, args=["ab", "c"]) != _hash(cache, script, args=["a", "bc"])

    def test_undecodable_argument(self, cache, script):
        """Test that an argument holding a lone surrogate from the OS still hashes."""
        odd = _hash(cache, script, args=["\udcff"])
        assert odd != _hash(cache, script, args=["\udcfe"])
        assert odd != _hash(cache, script, args=[])

    def test_optimization_level_accepts_strings(self, cache, script):
        """Test optimization levels given as strings."""
        assert _hash(cache, script, optimization_level="Release") == _hash(
            cache, script, optimization_level=OptimizationLevel.RELEASE
        )

    def test_target_framework_is_part_of_the_key(self, script):
        """Test that the target framework changes the hash."""
        net6 = ExecutionCache(target_framework="net6.0")
        net8 = ExecutionCache(target_framework="net8.0")
        assert _hash(net6, script) != _hash(net8, script)


class TestTryGetHash:
    """Reading the stored hash."""

    def test_missing_directory(self, tmp_path):
        """Test a cache directory that does not exist."""
        assert ExecutionCache.try_get_hash(str(tmp_path / "missing")) == (False, None)

    def test_missing_hash_file(self, tmp_path):
        """Test a cache directory without a hash record."""
        assert ExecutionCache.try_get_hash(str(tmp_path)) == (False, None)

    def test_value_is_not_trimmed(self, tmp_path):
        """Test that the stored value is returned verbatim."""
        (tmp_path / "script.sha256").write_bytes(b"  abc\n")
        assert ExecutionCache.try_get_hash(str(tmp_path)) == (True, "  abc\n")

    def test_non_utf8_record_is_read_back(self, tmp_path):
        """Test that a corrupt record reads as a mismatching value instead of raising."""
        (tmp_path / "script.sha256").write_bytes(b"\xff\xfe")
        found, value = ExecutionCache.try_get_hash(str(tmp_path))
        assert found
        assert value.encode("utf-8", "surrogateescape") == b"\xff\xfe"

    def test_write_then_read(self, tmp_path):
        """Test writing a record and reading it back."""
        cache_dir = str(tmp_path / "a" / "b")
        path = ExecutionCache.write_hash(cache_dir, "deadbeef")
        assert os.path.basename(path) == "script.sha256"
        assert ExecutionCache.try_get_hash(cache_dir) == (True, "deadbeef")

    def test_write_is_idempotent(self, tmp_path):
        """Test that rewriting a record replaces it without temp leftovers."""
        cache_dir = str(tmp_path / "cache")
        ExecutionCache.write_hash(cache_dir, "first")
        ExecutionCache.write_hash(cache_dir, "second")
        assert ExecutionCache.try_get_hash(cache_dir) == (True, "second")
        assert os.listdir(cache_dir) == ["script.sha256"]


class TestCacheDir:
    """Cache directory naming."""

    def test_keyed_by_hash(self, script, isolated_cache_root):
        """Test that each hash gets its own directory."""
        first = ExecutionCache.get_cache_dir(script, "aaa")
        second = ExecutionCache.get_cache_dir(script, "bbb")
        assert first != second
        assert first.startswith(str(isolated_cache_root))
        assert os.path.join("execution-cache", "aaa") in first

    def test_scripts_do_not_share(self, write_file):
        """Test that scripts in different folders do not share a cache."""
        one = write_file("one/main.csx")
        two = write_file("two/main.csx")
        assert ExecutionCache.get_cache_dir(one, "h") != ExecutionCache.get_cache_dir(two, "h")


class TestGetOrCompile:
    """Reuse flow around the compiler collaborator."""

    def test_compiles_then_reuses(self, cache, script):
        """Test compiling once and reusing on the next call."""
        compiler = MagicMock()
        first = cache.get_or_compile(script, compiler, ["x"])
        assert not first.reused
        compiler.assert_called_once_with(script, first.output_dir)
        assert ExecutionCache.try_get_hash(first.output_dir) == (True, first.hash)

        second = cache.get_or_compile(script, compiler, ["x"])
        assert second.reused
        assert second.output_dir == first.output_dir
        assert compiler.call_count == 1

    def test_new_hash_keeps_old_entry(self, cache, script):
        """Test that a new hash leaves the previous entry in place."""
        compiler = MagicMock()
        first = cache.get_or_compile(script, compiler, ["x"])
        second = cache.get_or_compile(script, compiler, ["y"])
        assert first.hash != second.hash
        assert os.path.isdir(first.output_dir)
        assert ExecutionCache.try_get_hash(first.output_dir) == (True, first.hash)

    def test_no_cache_always_compiles(self, cache, script):
        """Test that disabled caching compiles every time."""
        compiler = MagicMock()
        outcome = cache.get_or_compile(script, compiler, no_cache=True)
        assert outcome.hash is None
        assert not outcome.reused
        cache.get_or_compile(script, compiler, no_cache=True)
        assert compiler.call_count == 2

    def test_stale_hash_file_recompiles(self, cache, script):
        """Test that a mismatching record triggers a rebuild."""
        compiler = MagicMock()
        first = cache.get_or_compile(script, compiler)
        ExecutionCache.write_hash(first.output_dir, first.hash + "\n")
        again = cache.get_or_compile(script, compiler)
        assert not again.reused
        assert compiler.call_count == 2

    def test_corrupt_hash_file_recompiles(self, cache, script):
        """Test that a record with invalid UTF-8 triggers a rebuild and is rewritten."""
        compiler = MagicMock()
        first = cache.get_or_compile(script, compiler)
        with open(os.path.join(first.output_dir, "script.sha256"), "wb") as fh:
            fh.write(b"\xff\xfe\x00")
        again = cache.get_or_compile(script, compiler)
        assert not again.reused
        assert compiler.call_count == 2
        assert ExecutionCache.try_get_hash(again.output_dir) == (True, first.hash)

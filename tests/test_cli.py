"""Tests for the csxdeps command line entrypoint."""

import json
import os

import pytest

from args import parse_args
from constants import ExitCodes
from csxdeps import main


def _run(argv, capsys):
    with pytest.raises(SystemExit) as exc:
        main(argv)
    return exc.value.code, capsys.readouterr().out


class TestArgs:
    """Argument definitions."""

    def test_inputs_are_mutually_exclusive(self, capsys):
        """Test that only one input option is accepted."""
        with pytest.raises(SystemExit):
            parse_args(["-s", "a.csx", "-e", "code"])
        capsys.readouterr()

    def test_an_input_is_required(self, capsys):
        """Test that an input option is required."""
        with pytest.raises(SystemExit):
            parse_args([])
        capsys.readouterr()

    def test_defaults_and_script_args(self):
        """Test default values and passthrough script arguments."""
        args = parse_args(["-s", "main.csx", "--", "one", "--two"])
        assert args.SCRIPT == "main.csx"
        assert args.SCRIPT_ARGS == ["one", "--two"]
        assert args.OPTIMIZATION == "debug"
        assert args.OUTPUT_FORMAT == "text"
        assert args.SOURCES == []
        assert args.NO_CACHE is False

    def test_repeatable_options(self):
        """Test options that can be given more than once."""
        args = parse_args(["-b", "one", "-b", "two", "--source", "a", "--source", "b"])
        assert args.BUNDLES == ["one", "two"]
        assert args.SOURCES == ["a", "b"]


class TestMain:
    """End to end runs of the CLI."""

    def test_script_json(self, write_file, capsys):
        """Test the JSON report for a pinned script."""
        script = write_file("main.csx", '#r "nuget: Pkg, 1.2.3"')
        code, out = _run(["-s", script, "--format", "json"], capsys)
        assert code == ExitCodes.SUCCESS.value
        report = json.loads(out)
        assert report["packages"] == [{"id": "Pkg", "version": "1.2.3", "pinned": True}]
        assert report["cacheable"] is True
        assert len(report["hash"]) == 64
        assert report["cached"] is False
        assert os.path.isfile(report["project"])

    def test_script_no_cache(self, write_file, capsys):
        """Test that --no-cache leaves out the hash and cache directory."""
        script = write_file("main.csx", '#r "nuget: Pkg, 1.2.3"')
        _, out = _run(["-s", script, "--no-cache", "--format", "json"], capsys)
        report = json.loads(out)
        assert report["hash"] is None
        assert report["cache_dir"] is None

    def test_script_text(self, write_file, capsys):
        """Test the text report for a floating script."""
        script = write_file("main.csx", '#r "nuget: Pkg, 1.*"')
        code, out = _run(["-s", script], capsys)
        assert code == ExitCodes.SUCCESS.value
        assert "Pkg 1.* (floating)" in out
        assert "Cacheable: no" in out

    def test_inline_code(self, tmp_path, capsys):
        """Test inline code resolved in a working directory."""
        code, out = _run([
            "-e", '#r "nuget: Inline, 1.0.0"',
            "--working-dir", str(tmp_path),
            "--project-name", "repl",
            "--format", "json",
        ], capsys)
        assert code == ExitCodes.SUCCESS.value
        report = json.loads(out)
        assert report["project"].endswith("repl.csproj")
        assert "interactive" in report["project"]

    def test_empty_directory(self, tmp_path, capsys):
        """Test an empty directory without the csproj flag."""
        empty = tmp_path / "empty"
        empty.mkdir()
        code, out = _run(["-d", str(empty)], capsys)
        assert code == ExitCodes.SUCCESS.value
        assert "No project generated." in out

    def test_directory(self, write_file, tmp_path, capsys):
        """Test resolving every script in a directory."""
        write_file("scripts/a.csx", '#r "nuget: A, 1.0.0"')
        code, out = _run(["-d", str(tmp_path / "scripts"), "--format", "json"], capsys)
        assert code == ExitCodes.SUCCESS.value
        assert json.loads(out)["packages"][0]["id"] == "A"

    def test_bundles(self, write_file, tmp_path, capsys):
        """Test listing bundled entry points of a package."""
        write_file("pkg/contentFiles/csx/any/main.csx")
        code, out = _run(["-b", str(tmp_path / "pkg"), "--format", "json"], capsys)
        assert code == ExitCodes.SUCCESS.value
        (bundle,) = json.loads(out)["bundles"]
        assert bundle["bucket"] == "any"
        assert len(bundle["entry_points"]) == 1

    def test_script_with_invalid_utf8_bytes(self, tmp_path, capsys):
        """Test that a script with undecodable bytes is reported, not a crash."""
        script = tmp_path / "main.csx"
        script.write_bytes(b'#r "nuget: Pkg, 1.2.3"\n// \xff\n')
        code, out = _run(["-s", str(script), "--format", "json"], capsys)
        assert code == ExitCodes.SUCCESS.value
        assert json.loads(out)["packages"][0]["id"] == "Pkg"

    def test_missing_script(self, tmp_path, capsys):
        """Test the exit code for a missing script."""
        code, _ = _run(["-s", str(tmp_path / "missing.csx")], capsys)
        assert code == ExitCodes.FILE_ERROR.value

    def test_missing_directory(self, tmp_path, capsys):
        """Test the exit code for a missing directory."""
        code, _ = _run(["-d", str(tmp_path / "missing")], capsys)
        assert code == ExitCodes.FILE_ERROR.value

    def test_parse_error(self, write_file, capsys):
        """Test the exit code for an unsupported SDK directive."""
        script = write_file("main.csx", '#r "sdk: Nope"')
        code, _ = _run(["-s", script], capsys)
        assert code == ExitCodes.PARSE_ERROR.value

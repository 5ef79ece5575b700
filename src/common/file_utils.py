"""Filesystem layout helpers for generated projects and execution caches."""
from __future__ import annotations

import os
import tempfile

from constants import Constants


def get_temp_path() -> str:
    """Return the root folder for generated files.

    ``CSXDEPS_CACHE_LOCATION`` overrides the system temp directory.
    """
    override = os.environ.get(Constants.ENV_CACHE_LOCATION)
    if override and override.strip():
        return override.strip()
    return tempfile.gettempdir()


def strip_path_root(path: str) -> str:
    """Return ``path`` without its drive/root so it can be nested under another folder.

    On Windows the drive letter is kept as a plain segment (``C:\\a`` -> ``C\\a``)
    so that the same directory on two drives does not collide.
    """
    drive, rest = os.path.splitdrive(path)
    rest = rest.lstrip("/\\")
    if drive:
        letter = drive.rstrip(":/\\").lstrip("/\\")
        return os.path.join(letter, rest) if rest else letter
    return rest


def get_path_to_temp_folder(target: str) -> str:
    """Map an absolute directory or file path to its private folder under the temp root.

    Pure function: nothing is created on disk.
    """
    full = os.path.abspath(target)
    return os.path.join(get_temp_path(), Constants.TEMP_FOLDER_NAME, strip_path_root(full))


def get_path_to_script_temp_folder(script_path: str) -> str:
    """Return the per-script temp folder (keyed on the script's full path)."""
    return get_path_to_temp_folder(script_path)

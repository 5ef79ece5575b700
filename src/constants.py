"""Constants used in the project."""

from __future__ import annotations

import logging
import os
from enum import Enum
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    PARSE_ERROR = 2


class OptimizationLevel(Enum):
    """Compilation optimization level, part of the cache key."""

    DEBUG = "debug"
    RELEASE = "release"


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    DEFAULT_SDK = "Microsoft.NET.Sdk"
    SUPPORTED_SDKS = ["Microsoft.NET.Sdk", "Microsoft.NET.Sdk.Web"]
    DEFAULT_TARGET_FRAMEWORK = "net8.0"
    DEFAULT_PROJECT_NAME = "script"
    PROJECT_FILE_EXTENSION = ".csproj"
    SCRIPT_FILE_EXTENSION = ".csx"
    ENTRY_POINT_FILE = "main.csx"
    NUGET_CONFIG_FILE = "NuGet.Config"

    # Bundled script layout inside an extracted package
    BUNDLE_CONTENT_ROOTS = [("contentFiles", "csx"), ("content", "csx")]
    BUNDLE_ANY_BUCKET = "any"
    BUNDLE_SUPPORTED_MONIKER = "netstandard2.0"

    # Temp/cache layout
    TEMP_FOLDER_NAME = "csxdeps"
    INTERACTIVE_FOLDER_NAME = "interactive"
    EXECUTION_CACHE_FOLDER = "execution-cache"
    HASH_FILE_NAME = "script.sha256"
    ENV_CACHE_LOCATION = "CSXDEPS_CACHE_LOCATION"
    ENV_LOG_LEVEL = "CSXDEPS_LOG_LEVEL"

    LOG_FORMAT = "[%(levelname)s] %(message)s"
    FILE_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
    DEFAULT_VERBOSITY = "warning"


def _load_yaml_config(path: Optional[str]) -> Dict[str, Any]:
    """Load a YAML configuration file into a dict.

    Missing or unreadable files are logged and yield an empty dict so a bad
    config never breaks the CLI.

    Args:
        path: Path to a YAML file, or None.

    Returns:
        Parsed mapping (empty on any problem).
    """
    if not path:
        return {}
    if not os.path.isfile(path):
        logger.warning("Config file not found: %s", path)
        return {}

    import yaml  # pylint: disable=import-outside-toplevel

    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Failed to load config %s: %s", path, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Config file %s does not contain a mapping, ignoring it", path)
        return {}
    return data

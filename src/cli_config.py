"""Effective runtime configuration for the CLI.

Precedence, highest first: CLI flags, environment variables, the YAML config
file, then the defaults in ``Constants``. Resolution never raises; bad config
values are logged and ignored.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from constants import Constants, _load_yaml_config

logger = logging.getLogger(__name__)

CONFIG_KEYS = (
    "target_framework",
    "cache_location",
    "package_sources",
    "verbosity",
    "allow_package_references_without_csproj",
    "bundle_moniker",
)


@dataclass
class EffectiveConfig:
    """Settings after all configuration layers have been applied."""

    target_framework: str = Constants.DEFAULT_TARGET_FRAMEWORK
    cache_location: Optional[str] = None
    package_sources: List[str] = field(default_factory=list)
    verbosity: str = Constants.DEFAULT_VERBOSITY
    allow_package_references_without_csproj: bool = False
    bundle_moniker: str = Constants.BUNDLE_SUPPORTED_MONIKER


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
    return None


def _apply_file_config(config: EffectiveConfig, data: Dict[str, Any]) -> None:
    for key, value in data.items():
        if key not in CONFIG_KEYS:
            logger.warning("Ignoring unknown config key: %s", key)
            continue
        if value is None:
            continue
        if key == "package_sources":
            if isinstance(value, str):
                value = [value]
            if not isinstance(value, list):
                logger.warning("Config key package_sources must be a list, ignoring it")
                continue
            config.package_sources = [str(v) for v in value]
        elif key == "allow_package_references_without_csproj":
            flag = _as_bool(value)
            if flag is None:
                logger.warning("Config key %s must be a boolean, ignoring it", key)
                continue
            config.allow_package_references_without_csproj = flag
        else:
            setattr(config, key, str(value))


def _apply_env(config: EffectiveConfig) -> None:
    cache_location = os.environ.get(Constants.ENV_CACHE_LOCATION)
    if cache_location and cache_location.strip():
        config.cache_location = cache_location.strip()
    verbosity = os.environ.get(Constants.ENV_LOG_LEVEL)
    if verbosity and verbosity.strip():
        config.verbosity = verbosity.strip()


def _apply_cli(config: EffectiveConfig, args) -> None:
    if getattr(args, "FRAMEWORK", None):
        config.target_framework = args.FRAMEWORK
    if getattr(args, "VERBOSITY", None):
        config.verbosity = args.VERBOSITY
    if getattr(args, "SOURCES", None):
        config.package_sources = list(args.SOURCES)
    if getattr(args, "ALLOW_WITHOUT_CSPROJ", False):
        config.allow_package_references_without_csproj = True


def resolve_config(args) -> EffectiveConfig:
    """Build the effective configuration from ``args`` and the environment.

    ``args.CONFIG`` names the optional YAML file. When the resolved cache
    location came from the config file it is exported to the environment so
    the path helpers pick it up.
    """
    config = EffectiveConfig()
    _apply_file_config(config, _load_yaml_config(getattr(args, "CONFIG", None)))
    _apply_env(config)
    _apply_cli(config, args)

    if config.cache_location and not os.environ.get(Constants.ENV_CACHE_LOCATION):
        os.environ[Constants.ENV_CACHE_LOCATION] = config.cache_location
    return config

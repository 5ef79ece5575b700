"""NuGet.Config discovery: the package sources a script restores from."""
from __future__ import annotations

import logging
import os
import xml.etree.ElementTree as ET
from typing import List, Optional

from constants import Constants

logger = logging.getLogger(__name__)


def _config_in(directory: str) -> Optional[str]:
    try:
        names = os.listdir(directory)
    except OSError:
        return None
    target = Constants.NUGET_CONFIG_FILE.lower()
    for name in sorted(names):
        if name.lower() == target and os.path.isfile(os.path.join(directory, name)):
            return os.path.join(directory, name)
    return None


def find_nearest_nuget_config(directory: str) -> Optional[str]:
    """Walk from ``directory`` up to the filesystem root and return the first NuGet.Config.

    The file name is matched case-insensitively (``nuget.config`` is common on Linux).
    """
    current = os.path.abspath(directory)
    while True:
        found = _config_in(current)
        if found:
            return found
        parent = os.path.dirname(current)
        if parent == current:
            return None
        current = parent


def read_package_sources(path: str) -> List[str]:
    """Return the ``value`` of every ``packageSources/add`` entry in document order.

    A ``<clear/>`` element discards the sources listed before it. Unreadable
    files are logged and yield an empty list.
    """
    try:
        tree = ET.parse(path)
    except (ET.ParseError, IOError) as e:
        logger.warning("Couldn't parse NuGet.Config file %s: %s", path, e)
        return []
    root = tree.getroot()
    for elem in root.iter():
        if '}' in elem.tag:
            elem.tag = elem.tag.split('}')[1]

    sources: List[str] = []
    for section in root.findall("packageSources"):
        for entry in section:
            if entry.tag == "clear":
                sources = []
            elif entry.tag == "add":
                value = entry.get("value")
                if value:
                    sources.append(value)
    return sources


def get_package_sources(directory: str) -> List[str]:
    """Sources from the NuGet.Config nearest to ``directory`` (empty when there is none)."""
    config = find_nearest_nuget_config(directory)
    if config is None:
        logger.debug("No %s found above %s", Constants.NUGET_CONFIG_FILE, directory)
        return []
    return read_package_sources(config)

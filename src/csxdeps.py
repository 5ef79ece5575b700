"""csxdeps: resolve the NuGet dependencies of C# scripts.

Writes the generated project file for a script, inline code or a script
directory, reports whether the script can use the execution cache, and lists
the scripts bundled in extracted packages.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from typing import Any, Dict, List, Optional

from args import parse_args
from cli_config import EffectiveConfig, resolve_config
from common.logging_utils import (
    add_file_handler,
    configure_logging,
    extra_context,
    is_debug_enabled,
    level_from_verbosity,
)
from constants import ExitCodes
from bundles.resolver import BundledScriptResolver
from execution.cache import ExecutionCache
from project.descriptor import DescriptorParseError, ProjectDescriptor
from project.nuget_config import get_package_sources
from project.provider import ScriptProjectProvider
from project.script_parser import ScriptParseError

logger = logging.getLogger(__name__)


def descriptor_report(descriptor: Optional[ProjectDescriptor], path: Optional[str]) -> Dict[str, Any]:
    """Summarize a descriptor for output."""
    if descriptor is None:
        return {"project": None}
    packages = sorted(descriptor.package_references, key=lambda r: (str(r.id).lower(), str(r.version)))
    return {
        "project": path,
        "sdk": descriptor.sdk,
        "target_framework": descriptor.target_framework,
        "packages": [{"id": str(r.id), "version": str(r.version), "pinned": r.is_pinned} for r in packages],
        "assemblies": sorted(a.assembly_path for a in descriptor.assembly_references),
        "cacheable": descriptor.is_cacheable,
    }


def run_script(args, config: EffectiveConfig, provider: ScriptProjectProvider) -> Dict[str, Any]:
    """Build the project for one script and compute its cache hash."""
    script = os.path.abspath(args.SCRIPT)
    framework = config.target_framework
    descriptor = provider.build_for_single_file(script, framework)
    report = descriptor_report(descriptor, provider.get_single_file_descriptor_path(script, framework))

    sources: List[str] = list(config.package_sources)
    for source in get_package_sources(os.path.dirname(script)):
        if source not in sources:
            sources.append(source)

    cache = ExecutionCache(provider=provider, target_framework=framework)
    ok, hash_value = cache.try_create_hash(
        script, args.SCRIPT_ARGS, args.OPTIMIZATION, sources, args.NO_CACHE
    )
    report["hash"] = hash_value if ok else None
    report["cache_dir"] = cache.get_cache_dir(script, hash_value) if ok and hash_value else None
    if ok and hash_value:
        report["cached"] = cache.try_get_hash(report["cache_dir"]) == (True, hash_value)
    return report


def run_inline(args, config: EffectiveConfig, provider: ScriptProjectProvider) -> Dict[str, Any]:
    working_dir = os.path.abspath(args.WORKING_DIR or os.getcwd())
    descriptor = provider.build_for_inline_code(
        args.CODE, working_dir, config.target_framework, args.PROJECT_NAME
    )
    path = provider.get_inline_descriptor_path(working_dir, config.target_framework, args.PROJECT_NAME)
    return descriptor_report(descriptor, path)


def run_directory(args, config: EffectiveConfig, provider: ScriptProjectProvider) -> Dict[str, Any]:
    directory = os.path.abspath(args.DIRECTORY)
    if not os.path.isdir(directory):
        raise FileNotFoundError(f"Directory not found: {args.DIRECTORY}")
    descriptor = provider.build_for_directory(
        directory,
        None,
        config.target_framework,
        config.allow_package_references_without_csproj,
    )
    if descriptor is None:
        logging.warning("No script files or project file found in %s", directory)
        return descriptor_report(None, None)
    return descriptor_report(descriptor, provider.get_descriptor_path(directory, config.target_framework))


def run_bundles(args, config: EffectiveConfig) -> Dict[str, Any]:
    resolver = BundledScriptResolver(config.bundle_moniker)
    bundles = []
    for root in args.BUNDLES:
        if not os.path.isdir(root):
            raise FileNotFoundError(f"Package directory not found: {root}")
        selection = resolver.resolve(root)
        bundles.append({
            "package_root": os.path.abspath(root),
            "bucket": selection.bucket,
            "entry_points": list(selection.entry_points),
        })
    return {"bundles": bundles}


def print_text(report: Dict[str, Any]) -> None:
    """Print a report in human readable form."""
    if "bundles" in report:
        for bundle in report["bundles"]:
            print(f"{bundle['package_root']}: {bundle['bucket'] or '(no usable bucket)'}")
            for entry in bundle["entry_points"]:
                print(f"  {entry}")
        return
    if report.get("project") is None:
        print("No project generated.")
        return
    print(f"Project: {report['project']}")
    print(f"SDK: {report['sdk']}")
    print(f"Target framework: {report['target_framework']}")
    for package in report["packages"]:
        suffix = "" if package["pinned"] else " (floating)"
        print(f"  {package['id']} {package['version']}{suffix}")
    for assembly in report["assemblies"]:
        print(f"  {assembly}")
    print(f"Cacheable: {'yes' if report['cacheable'] else 'no'}")
    if "hash" in report:
        print(f"Hash: {report['hash'] or '-'}")
        if report.get("cache_dir"):
            print(f"Cache directory: {report['cache_dir']}")


def main(argv=None):
    """Main function of the program."""
    args = parse_args(argv)
    config = resolve_config(args)
    configure_logging(level_from_verbosity(config.verbosity))
    if getattr(args, "LOG_FILE", None):
        try:
            add_file_handler(args.LOG_FILE)
        except OSError as e:
            logging.error("Can't open log file %s: %s", args.LOG_FILE, e)
            sys.exit(ExitCodes.FILE_ERROR.value)

    if is_debug_enabled(logger):
        logger.debug(
            "CLI start",
            extra=extra_context(event="function_entry", component="cli", action="main")
        )

    provider = ScriptProjectProvider()
    try:
        if args.SCRIPT:
            report = run_script(args, config, provider)
        elif args.CODE is not None:
            report = run_inline(args, config, provider)
        elif args.DIRECTORY:
            report = run_directory(args, config, provider)
        else:
            report = run_bundles(args, config)
    except (ScriptParseError, DescriptorParseError) as e:
        logging.error("%s, aborting", e)
        sys.exit(ExitCodes.PARSE_ERROR.value)
    except FileNotFoundError as e:
        logging.error("File not found: %s, aborting", e)
        sys.exit(ExitCodes.FILE_ERROR.value)
    except IOError as e:
        logging.error("IO error: %s, aborting", e)
        sys.exit(ExitCodes.FILE_ERROR.value)

    if args.OUTPUT_FORMAT == "json":
        print(json.dumps(report, indent=2))
    else:
        print_text(report)
    sys.exit(ExitCodes.SUCCESS.value)


if __name__ == "__main__":
    main()

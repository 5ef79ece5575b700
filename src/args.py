"""Argument parsing functionality for csxdeps."""

import argparse

from constants import Constants, OptimizationLevel


def build_parser():
    """Create the argument parser for the csxdeps CLI."""
    parser = argparse.ArgumentParser(
        prog="csxdeps",
        description=(
            "csxdeps - C# script dependency resolver and execution cache"
        ),
        add_help=True,
    )

    input_group = parser.add_mutually_exclusive_group(required=True)
    input_group.add_argument("-s", "--script",
                             dest="SCRIPT",
                             help="Resolve a single script file and its #load closure",
                             action="store",
                             type=str)
    input_group.add_argument("-e", "--eval",
                             dest="CODE",
                             help="Resolve inline script code",
                             action="store",
                             type=str)
    input_group.add_argument("-d", "--directory",
                             dest="DIRECTORY",
                             help="Resolve every script in a directory",
                             action="store",
                             type=str)
    input_group.add_argument("-b", "--bundle",
                             dest="BUNDLES",
                             help="List bundled entry scripts of an extracted package (repeatable)",
                             action="append",
                             type=str)

    parser.add_argument("-f", "--framework",
                        dest="FRAMEWORK",
                        help=f"Target framework (default: {Constants.DEFAULT_TARGET_FRAMEWORK})",
                        action="store",
                        type=str)
    parser.add_argument("--project-name",
                        dest="PROJECT_NAME",
                        help="Name of the generated project file for inline code",
                        action="store",
                        type=str)
    parser.add_argument("--working-dir",
                        dest="WORKING_DIR",
                        help="Directory that relative #load paths in inline code resolve against",
                        action="store",
                        type=str)
    parser.add_argument("--no-cache",
                        dest="NO_CACHE",
                        help="Do not compute a cache hash for the script",
                        action="store_true")
    parser.add_argument("-O", "--optimization",
                        dest="OPTIMIZATION",
                        help="Optimization level that is part of the cache key",
                        action="store",
                        type=str.lower,
                        choices=[level.value for level in OptimizationLevel],
                        default=OptimizationLevel.DEBUG.value)
    parser.add_argument("--source",
                        dest="SOURCES",
                        help="Package source that is part of the cache key (repeatable)",
                        action="append",
                        type=str,
                        default=[])
    parser.add_argument("--allow-package-references-without-csproj",
                        dest="ALLOW_WITHOUT_CSPROJ",
                        help="Generate a project for a directory even without scripts or a project file",
                        action="store_true")
    parser.add_argument("--verbosity",
                        dest="VERBOSITY",
                        help="Log verbosity: t[race], d[ebug], i[nfo], w[arning], e[rror], c[ritical]",
                        action="store",
                        type=str)
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)
    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="Path to a YAML configuration file",
                        action="store",
                        type=str)
    parser.add_argument("--format",
                        dest="OUTPUT_FORMAT",
                        help="Output format (text or json)",
                        action="store",
                        type=str.lower,
                        choices=["text", "json"],
                        default="text")
    parser.add_argument("SCRIPT_ARGS",
                        help="Script arguments (after --), part of the cache key",
                        nargs="*")
    return parser


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    return build_parser().parse_args(argv)

"""Argument parsing for the minrt command line."""

import argparse

from minrt.constants import Constants
from minrt.versioning import DependencyBehavior

LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


def _add_logging_args(parser):
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str.upper,
                        choices=LOG_LEVELS,
                        default='INFO')
    parser.add_argument("-v", "--verbose",
                        dest="VERBOSE",
                        help="Shorthand for --loglevel DEBUG",
                        action="store_true")
    parser.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)


def build_parser():
    """Build the top-level parser with the restore and layout subcommands."""
    parser = argparse.ArgumentParser(
        prog="minrt",
        description="minrt - resolve, fetch and lay out NuGet packages without an SDK",
        add_help=True,
    )
    subparsers = parser.add_subparsers(dest="command", metavar="{restore,layout}")
    subparsers.required = True

    restore = subparsers.add_parser(
        "restore",
        help="Resolve packages, populate the cache and write a lock file",
    )
    restore.add_argument("-p", "--package",
                         dest="PACKAGES",
                         help='Package to restore as "id version" or "id [range]"; may be repeated',
                         action="append", type=str,
                         default=[])
    restore.add_argument("-j", "--json",
                         dest="JSON_CONFIG",
                         help="Restore config file with packages, framework and sources (JSON or YAML)",
                         action="store", type=str)
    restore.add_argument("-c", "--config",
                         dest="CONFIG",
                         help="Path to configuration file (YAML, YML, or JSON)",
                         action="store", type=str)
    restore.add_argument("-o", "--output",
                         dest="OUTPUT",
                         help=f"Lock file path or directory (default: ./{Constants.LOCK_FILE_NAME})",
                         action="store", type=str)
    restore.add_argument("-f", "--framework",
                         dest="FRAMEWORK",
                         help=f"Target framework moniker (default: {Constants.DEFAULT_FRAMEWORK})",
                         action="store", type=str)
    restore.add_argument("-r", "--runtime",
                         dest="RUNTIME",
                         help="Runtime identifier, e.g. linux-x64 or win-arm64",
                         action="store", type=str)
    restore.add_argument("--behavior",
                         dest="BEHAVIOR",
                         help="Dependency version behavior (default: lowest)",
                         action="store", type=str.lower,
                         choices=[b.value for b in DependencyBehavior])
    restore.add_argument("--packages-dir",
                         dest="PACKAGES_DIR",
                         help=f"Package cache directory (default: {Constants.DEFAULT_CACHE_DIR})",
                         action="store", type=str)
    restore.add_argument("-s", "--source",
                         dest="SOURCES",
                         help="Feed URL or local directory; may be repeated",
                         action="append", type=str,
                         default=[])
    restore.add_argument("--nuget-config",
                         dest="NUGET_CONFIG",
                         help="Read sources from this nuget.config instead of discovering one",
                         action="store", type=str)
    restore.add_argument("--no-nuget-config",
                         dest="NO_NUGET_CONFIG",
                         help="Do not discover nuget.config files from the working directory",
                         action="store_true")
    _add_logging_args(restore)

    layout = subparsers.add_parser(
        "layout",
        help="Copy the assets recorded in a lock file into a flat directory",
    )
    layout.add_argument("-a", "--assets",
                        dest="ASSETS",
                        help=f"Lock file to lay out (default: ./{Constants.LOCK_FILE_NAME})",
                        action="store", type=str,
                        default=Constants.LOCK_FILE_NAME)
    layout.add_argument("-o", "--output",
                        dest="OUTPUT",
                        help="Output directory",
                        action="store", type=str,
                        required=True)
    layout.add_argument("--packages-dir",
                        dest="PACKAGES_DIR",
                        help="Package cache directory (default: the lock file's package folder)",
                        action="store", type=str)
    _add_logging_args(layout)

    return parser


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    return build_parser().parse_args(argv)

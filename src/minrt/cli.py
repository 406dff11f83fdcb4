"""Command line entry point: ``minrt restore`` and ``minrt layout``."""
from __future__ import annotations

import asyncio
import logging
import os
import sys
from typing import Any, Optional, Sequence

from minrt.args import parse_args
from minrt.assets.layout import layout
from minrt.common.logging_utils import configure_logging, extra_context, is_debug_enabled
from minrt.config import (
    RestoreConfig,
    apply_environment,
    load_config,
    parse_package_spec,
    source_from_value,
)
from minrt.constants import Constants, ExitCodes
from minrt.errors import (
    ConfigError,
    DownloadFailedError,
    FeedUnavailableError,
    LockFileError,
    MinRTError,
    ParseError,
)
from minrt.restore import Restorer

logger = logging.getLogger(__name__)


def _setup_logging(args: Any) -> None:
    level = "DEBUG" if getattr(args, "VERBOSE", False) else getattr(args, "LOG_LEVEL", "INFO")
    configure_logging(level, getattr(args, "LOG_FILE", None))


def build_restore_config(args: Any, environ=None) -> RestoreConfig:
    """Combine config files, environment and flags; flags win."""
    config = RestoreConfig()
    if args.CONFIG:
        config = config.merge(load_config(args.CONFIG))
    if args.JSON_CONFIG:
        config = config.merge(load_config(args.JSON_CONFIG))
    config = apply_environment(config, environ)
    overlay = RestoreConfig(
        framework=args.FRAMEWORK,
        runtime=args.RUNTIME,
        behavior=args.BEHAVIOR,
        packages_directory=args.PACKAGES_DIR,
        packages=[parse_package_spec(text, "cli") for text in args.PACKAGES],
        sources=[source_from_value(url) for url in args.SOURCES],
    )
    return config.merge(overlay)


def build_restorer(args: Any, environ=None) -> Restorer:
    """Translate parsed ``restore`` arguments into a configured ``Restorer``."""
    config = build_restore_config(args, environ)
    if not config.packages:
        raise ConfigError(None, "no packages specified; use --package or --json")
    restorer = Restorer.from_config(config)
    if args.NUGET_CONFIG:
        restorer.with_nuget_config(args.NUGET_CONFIG)
    elif not config.sources and not args.NO_NUGET_CONFIG:
        restorer.use_default_nuget_config(os.getcwd())
    restorer.with_output_path(args.OUTPUT or Constants.LOCK_FILE_NAME)
    return restorer


def run_restore(args: Any) -> None:
    restorer = build_restorer(args)
    result = asyncio.run(restorer.restore())
    for package in result.resolved:
        selection = result.selections.get(package.identity.key)
        logger.info(
            "  %s %s (%s) %d managed, %d native",
            package.id,
            package.version.to_normalized_string(),
            package.source,
            len(selection.runtime) if selection else 0,
            len(selection.native) if selection else 0,
        )
    for warning in result.warnings:
        logger.warning("%s", warning)
    logger.info(
        "Restored %d packages (%d downloaded); lock file %s",
        len(result.resolved),
        result.downloads,
        result.lock_file_path,
    )


def run_layout(args: Any) -> None:
    result = layout(args.ASSETS, args.OUTPUT, args.PACKAGES_DIR)
    if result.missing:
        raise LockFileError(args.ASSETS, f"{len(result.missing)} assets missing from the package cache")


def run(argv: Optional[Sequence[str]] = None) -> ExitCodes:
    """Run one command and map its outcome to an exit code."""
    args = parse_args(argv)
    _setup_logging(args)
    if is_debug_enabled(logger):
        logger.debug(
            "CLI start",
            extra=extra_context(event="function_entry", component="cli", action=args.command),
        )
    try:
        if args.command == "restore":
            run_restore(args)
        else:
            run_layout(args)
    except (ConfigError, ParseError, LockFileError) as exc:
        logger.error("%s", exc)
        logger.debug("Traceback", exc_info=True)
        return ExitCodes.USAGE_ERROR
    except (FeedUnavailableError, DownloadFailedError) as exc:
        logger.error("%s", exc)
        logger.debug("Traceback", exc_info=True)
        return ExitCodes.CONNECTION_ERROR
    except MinRTError as exc:
        logger.error("%s", exc)
        logger.debug("Traceback", exc_info=True)
        return ExitCodes.RESOLUTION_ERROR
    except (asyncio.CancelledError, KeyboardInterrupt):
        logger.error("Cancelled")
        return ExitCodes.CANCELLED
    return ExitCodes.SUCCESS


def main() -> None:
    """Main function of the program."""
    sys.exit(run().value)


if __name__ == "__main__":
    main()

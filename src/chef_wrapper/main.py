"""!
@brief Primary entry point for the chef-wrapper CLI.
@details Parses arguments, resolves settings from the command line and the
optional configuration file, configures the human and machine log channels,
and dispatches to the version report or to one of the environment checks.
Fatal path and manifest errors surface as :class:`SystemExit` with
:data:`constants.EXIT_FATAL`; everything else returns ``0``.
"""
from __future__ import annotations

import argparse
import json
import logging
import pathlib
import sys
from typing import Iterable, Optional

from . import config, constants, detect, logging_ext, report, ruby_env, version
from .manifests import LoadedManifests, load_manifests


def build_arg_parser() -> argparse.ArgumentParser:
    """!
    @brief Create the top-level argument parser.
    """

    parser = argparse.ArgumentParser(
        prog="chef-wrapper",
        description=f"Report {constants.WORKSTATION_PRODUCT} component versions.",
    )
    metadata = version.build_info()
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"%(prog)s {metadata['version']} ({metadata['build']})",
    )

    modes = parser.add_mutually_exclusive_group()
    modes.add_argument(
        "--check-env",
        action="store_true",
        help="Compare the cached ruby-env.json build version with the installed build.",
    )
    modes.add_argument(
        "--check-ruby",
        action="store_true",
        help=f"Check whether ruby on PATH is {constants.DEFAULT_RUBY_PATH}.",
    )

    parser.add_argument("--root", metavar="DIR", help="Install root to inspect instead of the executable's.")
    parser.add_argument("--home", metavar="DIR", help="Home directory holding .chef/ruby-env.json.")
    parser.add_argument("--config", metavar="FILE", help="JSON configuration file.")
    parser.add_argument(
        "--format",
        dest="output_format",
        choices=config.OUTPUT_FORMATS,
        help="Output format for results (default: text).",
    )
    parser.add_argument("--timeout", metavar="SEC", type=float, help="Timeout for external commands.")
    parser.add_argument("--logdir", metavar="DIR", help="Directory for human/JSONL log files.")
    parser.add_argument("--json-log", action="store_true", help="Mirror structured events to stderr.")
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase diagnostic output on stderr (-v, -vv).",
    )
    return parser


def _determine_mode(args: argparse.Namespace) -> str:
    if getattr(args, "check_env", False):
        return "check-env"
    if getattr(args, "check_ruby", False):
        return "check-ruby"
    return "report"


def _console_level(verbosity: int) -> int:
    if verbosity >= 2:
        return logging.DEBUG
    if verbosity == 1:
        return logging.INFO
    return logging.WARNING


def _bootstrap_logging(
    args: argparse.Namespace, settings: config.Settings
) -> tuple[logging.Logger, logging.Logger]:
    """!
    @brief Initialize human and machine loggers using :mod:`logging_ext` helpers.
    """

    logdir = pathlib.Path(settings.logdir).expanduser() if settings.logdir else None
    return logging_ext.setup_logging(
        logdir,
        json_to_stderr=bool(getattr(args, "json_log", False)),
        console_level=_console_level(getattr(args, "verbose", 0)),
    )


def _emit_check(name: str, label: str, result: bool, output_format: str) -> None:
    if output_format == "json":
        print(json.dumps({name: result}))
    else:
        print(f"{label}: {'yes' if result else 'no'}")


def _run_check_env(settings: config.Settings) -> None:
    root = detect.install_root(settings.root)
    manifests = load_manifests(root) if detect.is_packaged_install(root) else LoadedManifests()
    matched = ruby_env.match_versions(manifests, settings.home)
    _emit_check("version_match", "Version match", matched, settings.output_format)


def _run_check_ruby(settings: config.Settings) -> None:
    found = ruby_env.default_chef_ruby(settings.timeout)
    _emit_check("default_ruby", "Default Ruby", found, settings.output_format)


def main(argv: Optional[Iterable[str]] = None) -> int:
    """!
    @brief Entry point for the console script and ``python -m chef_wrapper``.
    @returns Process exit code integer.
    """

    parser = build_arg_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    settings = config.resolve_settings(args)
    human_log, machine_log = _bootstrap_logging(args, settings)

    mode = _determine_mode(args)
    machine_log.info(
        "startup",
        extra={
            "event": "startup",
            "data": {"mode": mode, "root": settings.root, "format": settings.output_format},
        },
    )
    human_log.debug("Running in %s mode", mode)

    if mode == "check-env":
        _run_check_env(settings)
    elif mode == "check-ruby":
        _run_check_ruby(settings)
    else:
        root = detect.install_root(settings.root)
        human_log.info("Install root: %s", root)
        report.print_version_report(root, output_format=settings.output_format)
    return constants.EXIT_OK


if __name__ == "__main__":  # pragma: no cover - manual invocation
    sys.exit(main())

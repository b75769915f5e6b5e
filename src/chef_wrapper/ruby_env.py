"""!
@brief Checks against the user's cached Ruby environment.
@details ``chef shell-init`` caches the Workstation environment in
``~/.chef/ruby-env.json``. These helpers compare that cache with the installed
build and check whether ``ruby`` on the search path is the embedded one. Every
failure here is a negative answer, never an exception.
"""
from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Dict, Tuple

from . import constants, exec_utils, logging_ext
from .manifests import LoadedManifests, read_json_document, resolve_component_version


def ruby_env_path(home: str | os.PathLike[str] | None = None) -> Path:
    base = Path(home) if home is not None else Path.home()
    return base.joinpath(*constants.RUBY_ENV_RELATIVE_PATH)


def _report_unavailable(path: Path | None, exc: Exception) -> None:
    logging_ext.get_machine_logger().warning(
        "ruby_env_unavailable",
        extra={
            "event": "ruby_env_unavailable",
            "path": str(path) if path is not None else None,
            "error": str(exc),
        },
    )
    print("ERROR:", exc, file=sys.stderr)


def load_env_doc(home: str | os.PathLike[str] | None = None) -> Dict[str, object] | None:
    """!
    @brief Read the cached environment document.
    @details A missing or malformed file is reported on stderr and yields
    ``None``.
    @param home Home directory; defaults to the current user's.
    """

    try:
        path = ruby_env_path(home)
    except RuntimeError as exc:  # Path.home() without a resolvable home
        _report_unavailable(None, exc)
        return None

    try:
        return read_json_document(path)
    except (OSError, ValueError) as exc:
        _report_unavailable(path, exc)
        return None


def env_doc(
    manifests: LoadedManifests, home: str | os.PathLike[str] | None = None
) -> Tuple[str, Dict[str, object] | None]:
    """!
    @brief Pair the installed Workstation version with the cached document.
    """

    workstation_version = resolve_component_version(manifests, constants.BUILD_VERSION_KEY)
    return workstation_version, load_env_doc(home)


def match_versions(manifests: LoadedManifests, home: str | os.PathLike[str] | None = None) -> bool:
    """!
    @brief Check whether the cached environment belongs to the installed build.
    @details Compares ``build_version`` from the cache with the resolved
    Workstation version as plain string equality. An unavailable cache never
    matches.
    """

    workstation_version, document = env_doc(manifests, home)
    if document is None:
        return False
    matched = document.get(constants.BUILD_VERSION_KEY) == workstation_version
    logging_ext.get_machine_logger().info(
        "version_match",
        extra={
            "event": "version_match",
            "workstation_version": workstation_version,
            "cached_version": document.get(constants.BUILD_VERSION_KEY),
            "matched": matched,
        },
    )
    return matched


def absolute_ruby_path(timeout: float | None = constants.DEFAULT_COMMAND_TIMEOUT) -> str | None:
    """!
    @brief Locate ``ruby`` on the search path.
    @returns Absolute path, or ``None`` if the lookup failed.
    """

    result = exec_utils.run_command(["which", "ruby"], event="which_ruby", timeout=timeout)
    if not result.succeeded:
        return None
    sanitized = result.stdout.replace("\n", "")
    if not sanitized:
        return None
    return os.path.abspath(sanitized)


def default_chef_ruby(timeout: float | None = constants.DEFAULT_COMMAND_TIMEOUT) -> bool:
    """!
    @brief Whether the first ``ruby`` on the search path is the embedded one.
    """

    path = absolute_ruby_path(timeout)
    if path is None:
        return False
    return path == constants.DEFAULT_RUBY_PATH

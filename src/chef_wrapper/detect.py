"""!
@brief Install-root detection for packaged Chef Workstation installs.
@details The install root is derived from the real location of the running
program: ``<root>/bin/<program>`` resolves to ``<root>``. A root is only
considered a packaged install when the version manifest shipped by the
platform package sits directly inside it; anything else means the wrapper is
running from a local checkout or a gem.
"""
from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import NoReturn

from . import constants, logging_ext


def _is_frozen() -> bool:
    return bool(getattr(sys, "frozen", False))


def _fatal(message: object) -> NoReturn:
    """!
    @brief Report a fatal path-resolution error and terminate.
    @raises SystemExit with :data:`constants.EXIT_FATAL`.
    """

    logging_ext.get_machine_logger().error(
        "install_root_failed", extra={"event": "install_root_failed", "error": str(message)}
    )
    print("ERROR:", message, file=sys.stderr)
    raise SystemExit(constants.EXIT_FATAL)


def current_executable() -> str | None:
    """!
    @brief Return the path of the running program, or ``None`` when unknown.
    @details Frozen bundles report their own binary through
    :data:`sys.executable`; otherwise the launched script in ``sys.argv[0]`` is
    the program that the package placed under ``<root>/bin``.
    """

    if _is_frozen():
        return sys.executable or None
    if sys.argv and sys.argv[0] and sys.argv[0] != "-c":
        return sys.argv[0]
    return None


def expected_install_root(executable: str | os.PathLike[str] | None = None) -> Path:
    """!
    @brief Compute the candidate install root from the running program.
    @details Symbolic links are followed to the real file before taking the
    parent of its containing directory, so ``/usr/bin/chef`` linking into
    ``/opt/chef-workstation/bin`` yields ``/opt/chef-workstation``.
    @param executable Program path; defaults to :func:`current_executable`.
    @raises SystemExit when the program path is unknown or cannot be resolved.
    """

    if executable is None:
        executable = current_executable()
    if executable is None:
        _fatal("unable to determine the path of the running executable")

    try:
        real = Path(executable).resolve(strict=True)
    except (OSError, RuntimeError) as exc:
        _fatal(exc)

    return real.parent.parent


def install_root(override: str | os.PathLike[str] | None = None) -> Path:
    """!
    @brief Return the absolute install root.
    @param override Explicit root replacing the executable-derived candidate.
    """

    candidate = Path(override).expanduser() if override else expected_install_root()
    try:
        return Path(os.path.abspath(candidate))
    except OSError:
        _fatal(constants.NOT_PACKAGED_MESSAGE)


def is_packaged_install(root: str | os.PathLike[str]) -> bool:
    """!
    @brief Decide whether ``root`` is a packaged install.
    @details Both checks are plain existence checks; the manifest is not parsed.
    """

    root_path = Path(root)
    if not root_path.exists():
        logging_ext.get_human_logger().debug("Install root %s does not exist", root_path)
        return False
    manifest = root_path / constants.VERSION_MANIFEST_FILENAME
    if not manifest.exists():
        logging_ext.get_human_logger().debug("No %s in %s", manifest.name, root_path)
        return False
    return True

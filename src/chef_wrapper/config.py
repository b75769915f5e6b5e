"""!
@file config.py
@brief Configuration loading for chef-wrapper.
@details Handles the optional JSON configuration file and resolves the
effective :class:`Settings` with CLI arguments taking precedence over the
file, and the file over built-in defaults.
"""

from __future__ import annotations

import json
import pathlib
import sys
from dataclasses import dataclass
from typing import TYPE_CHECKING, NoReturn

from . import constants

if TYPE_CHECKING:
    import argparse

__all__ = [
    "OUTPUT_FORMATS",
    "Settings",
    "load_config_file",
    "resolve_settings",
]

OUTPUT_FORMATS = ("text", "json")


@dataclass(frozen=True)
class Settings:
    """!
    @brief Effective runtime settings.
    """

    root: str | None = None
    home: str | None = None
    output_format: str = "text"
    logdir: str | None = None
    timeout: float = constants.DEFAULT_COMMAND_TIMEOUT


def _config_error(message: str) -> NoReturn:
    print(f"Error: {message}", file=sys.stderr)
    raise SystemExit(constants.EXIT_CONFIG_ERROR)


def load_config_file(config_path: str | None) -> dict[str, object]:
    """!
    @brief Load and parse a JSON configuration file.
    @param config_path Path to the JSON config file, or None to skip.
    @returns Dictionary of configuration options, empty if no file specified.
    @raises SystemExit if the file cannot be read or parsed.
    """
    if not config_path:
        return {}

    path = pathlib.Path(config_path).expanduser().resolve()
    if not path.exists():
        _config_error(f"Configuration file not found: {path}")

    try:
        with open(path, encoding="utf-8") as f:
            config = json.load(f)
    except json.JSONDecodeError as e:
        print(f"Error: Invalid JSON in configuration file: {path}\n{e}", file=sys.stderr)
        raise SystemExit(constants.EXIT_CONFIG_ERROR) from e
    except (UnicodeDecodeError, RecursionError) as e:
        print(f"Error: Cannot decode configuration file: {path}\n{e}", file=sys.stderr)
        raise SystemExit(constants.EXIT_CONFIG_ERROR) from e
    except OSError as e:
        print(f"Error: Cannot read configuration file: {path}\n{e}", file=sys.stderr)
        raise SystemExit(constants.EXIT_CONFIG_ERROR) from e

    if not isinstance(config, dict):
        _config_error(f"Configuration file must contain a JSON object: {path}")
    return config


def resolve_settings(args: argparse.Namespace) -> Settings:
    """!
    @brief Translate parsed CLI arguments and the config file into settings.
    @details Precedence (highest first): explicit CLI value, config file value
    (hyphenated keys), built-in default.
    """
    config = load_config_file(getattr(args, "config", None))

    def _get(attr: str, default: object = None, config_key: str | None = None) -> object:
        cli_val = getattr(args, attr, None)
        if cli_val is not None:
            return cli_val
        cfg_key = config_key or attr.replace("_", "-")
        if cfg_key in config:
            return config[cfg_key]
        return default

    output_format = str(_get("output_format", "text", "format"))
    if output_format not in OUTPUT_FORMATS:
        _config_error(f"Unsupported output format {output_format!r}; expected one of {', '.join(OUTPUT_FORMATS)}")

    raw_timeout = _get("timeout", constants.DEFAULT_COMMAND_TIMEOUT)
    try:
        timeout = float(raw_timeout)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        _config_error(f"Invalid timeout value: {raw_timeout!r}")
    if timeout <= 0:
        _config_error(f"Timeout must be positive, got {timeout}")

    root = _get("root")
    home = _get("home")
    logdir = _get("logdir")
    return Settings(
        root=str(root) if root else None,
        home=str(home) if home else None,
        output_format=output_format,
        logdir=str(logdir) if logdir else None,
        timeout=timeout,
    )

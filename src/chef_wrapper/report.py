"""!
@brief Version report rendering.
@details Text output mirrors the classic ``chef -v`` layout, one
``<name> version: <version>`` line per product, Workstation first and the
bundled components in :data:`constants.COMPONENT_TABLE` order.
"""
from __future__ import annotations

import json
import os
import sys
from typing import Dict, List, TextIO

from . import constants, detect, logging_ext
from .manifests import LoadedManifests, load_manifests, resolve_component_version

__all__ = ["build_report", "format_report", "print_version_report"]


def build_report(manifests: LoadedManifests) -> Dict[str, object]:
    """!
    @brief Build a JSON-serialisable report payload.
    """

    components = {
        display_name: resolve_component_version(manifests, key)
        for display_name, key in constants.COMPONENT_TABLE
    }
    return {
        "product": constants.WORKSTATION_PRODUCT,
        "version": resolve_component_version(manifests, constants.BUILD_VERSION_KEY),
        "components": components,
    }


def format_report(report: Dict[str, object]) -> str:
    lines: List[str] = [f"{report['product']} version: {report['version']}"]
    for display_name, resolved in report["components"].items():  # type: ignore[attr-defined]
        lines.append(f"{display_name} version: {resolved}")
    return "\n".join(lines) + "\n"


def print_version_report(
    root: str | os.PathLike[str],
    *,
    output_format: str = "text",
    stream: TextIO | None = None,
) -> LoadedManifests | None:
    """!
    @brief Print the version report for the install at ``root``.
    @details When ``root`` is not a packaged install an explanatory message is
    written to stderr and ``None`` is returned; this is not an error. Manifest
    load failures terminate via :func:`manifests.load_manifests`.
    @param root Install root.
    @param output_format ``"text"`` or ``"json"``.
    @param stream Destination; defaults to :data:`sys.stdout`.
    @returns The loaded manifests, so callers can run further checks.
    """

    out = stream if stream is not None else sys.stdout
    if not detect.is_packaged_install(root):
        print("ERROR:", constants.NOT_PACKAGED_MESSAGE, file=sys.stderr)
        return None

    manifests = load_manifests(root)
    report = build_report(manifests)
    logging_ext.get_machine_logger().info("version_report", extra={"event": "version_report", "report": report})

    if output_format == "json":
        out.write(json.dumps(report, indent=2) + "\n")
    else:
        out.write(format_report(report))
    return manifests

"""!
@brief Typed access to the install manifests shipped with Chef Workstation.
@details The platform package ships two JSON documents in the install root:
``gem-version-manifest.json`` maps gem names to a list of installed versions
and ``version-manifest.json`` carries top-level build metadata plus a
``software`` section with the locked version of every bundled component.
Both are decoded once into frozen records and passed around as a single
:class:`LoadedManifests` value. Entries with an unexpected shape are dropped
during decoding, so a lookup for them falls through to the next source.
"""
from __future__ import annotations

import json
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Mapping, Tuple

from . import constants, logging_ext

__all__ = [
    "GemVersionManifest",
    "VersionManifest",
    "LoadedManifests",
    "load_manifests",
    "read_json_document",
    "resolve_component_version",
]


def _empty_mapping() -> Mapping:
    return MappingProxyType({})


def _report_dropped(source: str, key: str, reason: str) -> None:
    logging_ext.get_human_logger().warning("Ignoring %s entry %r: %s", source, key, reason)
    logging_ext.get_machine_logger().warning(
        "manifest_entry_ignored",
        extra={"event": "manifest_entry_ignored", "source": source, "key": key, "reason": reason},
    )


@dataclass(frozen=True)
class GemVersionManifest:
    """!
    @brief Decoded ``gem-version-manifest.json``.
    @details Only entries whose value is a non-empty list of strings are kept.
    """

    versions: Mapping[str, Tuple[str, ...]] = field(default_factory=_empty_mapping)

    @classmethod
    def from_document(cls, document: Mapping[str, object]) -> "GemVersionManifest":
        versions: Dict[str, Tuple[str, ...]] = {}
        for key, value in document.items():
            if not isinstance(value, list) or not value:
                _report_dropped(constants.GEM_MANIFEST_FILENAME, key, "expected a non-empty list")
                continue
            if not all(isinstance(item, str) for item in value):
                _report_dropped(constants.GEM_MANIFEST_FILENAME, key, "expected a list of strings")
                continue
            versions[key] = tuple(value)
        return cls(versions=MappingProxyType(versions))

    def first_version(self, key: str) -> str | None:
        entry = self.versions.get(key)
        return entry[0] if entry else None


@dataclass(frozen=True)
class VersionManifest:
    """!
    @brief Decoded ``version-manifest.json``.
    @details ``values`` holds the top-level string entries (``build_version``,
    ``build_git_revision``...). ``locked_versions`` holds
    ``software.<name>.locked_version`` for every software entry that has one.
    """

    values: Mapping[str, str] = field(default_factory=_empty_mapping)
    locked_versions: Mapping[str, str] = field(default_factory=_empty_mapping)

    @classmethod
    def from_document(cls, document: Mapping[str, object]) -> "VersionManifest":
        values = {key: value for key, value in document.items() if isinstance(value, str)}

        locked: Dict[str, str] = {}
        software = document.get("software")
        if isinstance(software, dict):
            for name, entry in software.items():
                if not isinstance(entry, dict):
                    _report_dropped(constants.VERSION_MANIFEST_FILENAME, f"software.{name}", "expected an object")
                    continue
                locked_version = entry.get("locked_version")
                if locked_version is None:
                    continue
                if not isinstance(locked_version, str):
                    _report_dropped(
                        constants.VERSION_MANIFEST_FILENAME,
                        f"software.{name}.locked_version",
                        "expected a string",
                    )
                    continue
                locked[name] = locked_version
        elif software is not None:
            _report_dropped(constants.VERSION_MANIFEST_FILENAME, "software", "expected an object")

        return cls(values=MappingProxyType(values), locked_versions=MappingProxyType(locked))


@dataclass(frozen=True)
class LoadedManifests:
    """!
    @brief Both manifests of one install root, loaded together.
    """

    gem: GemVersionManifest = field(default_factory=GemVersionManifest)
    version: VersionManifest = field(default_factory=VersionManifest)
    root: Path | None = None


def read_json_document(path: Path) -> Dict[str, object]:
    """!
    @brief Read a JSON object from ``path``.
    @raises OSError when the file cannot be opened or read.
    @raises ValueError when the content is not valid JSON or not an object.
    """

    with open(path, encoding="utf-8") as handle:
        try:
            document = json.load(handle)
        except RecursionError as exc:
            raise ValueError(f"{path}: JSON nesting too deep") from exc
    if not isinstance(document, dict):
        raise ValueError(f"{path}: expected a JSON object, got {type(document).__name__}")
    return document


def _load_document(path: Path) -> Dict[str, object]:
    try:
        document = read_json_document(path)
    except (OSError, ValueError) as exc:
        logging_ext.get_machine_logger().error(
            "manifest_load_failed",
            extra={"event": "manifest_load_failed", "path": str(path), "error": str(exc)},
        )
        print("ERROR:", exc, file=sys.stderr)
        raise SystemExit(constants.EXIT_FATAL) from exc
    logging_ext.get_machine_logger().info(
        "manifest_loaded",
        extra={"event": "manifest_loaded", "path": str(path), "entries": len(document)},
    )
    return document


def load_manifests(root: str | os.PathLike[str]) -> LoadedManifests:
    """!
    @brief Load and decode both manifests from the install root.
    @details Only called once a packaged install has been confirmed, so either
    manifest being unreadable or malformed aborts the whole report.
    @param root Install root containing the manifests.
    @returns :class:`LoadedManifests` for ``root``.
    @raises SystemExit with :data:`constants.EXIT_FATAL` on any load failure.
    """

    root_path = Path(root)
    gem_document = _load_document(root_path / constants.GEM_MANIFEST_FILENAME)
    version_document = _load_document(root_path / constants.VERSION_MANIFEST_FILENAME)
    return LoadedManifests(
        gem=GemVersionManifest.from_document(gem_document),
        version=VersionManifest.from_document(version_document),
        root=root_path,
    )


def resolve_component_version(manifests: LoadedManifests, component: str) -> str:
    """!
    @brief Resolve the version string for a manifest key.
    @details Sources are tried in order and the first hit wins:
    the gem manifest's first listed version, a top-level string in the
    version manifest, then ``software.<component>.locked_version``. When none
    resolve the sentinel :data:`constants.UNKNOWN_VERSION` is returned.
    @param manifests Loaded manifests.
    @param component Manifest lookup key (not the display name).
    """

    gem_version = manifests.gem.first_version(component)
    if gem_version is not None:
        return gem_version

    value = manifests.version.values.get(component)
    if value is not None:
        return value

    locked = manifests.version.locked_versions.get(component)
    if locked is not None:
        return locked

    return constants.UNKNOWN_VERSION

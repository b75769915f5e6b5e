"""!
@brief Cached environment and default Ruby checks.
"""

from __future__ import annotations

import json
import subprocess
import sys
from pathlib import Path
from typing import Dict, List

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from chef_wrapper import constants, exec_utils, ruby_env  # noqa: E402
from chef_wrapper.manifests import GemVersionManifest, LoadedManifests, VersionManifest  # noqa: E402


def _manifests(build_version: str) -> LoadedManifests:
    return LoadedManifests(
        gem=GemVersionManifest(),
        version=VersionManifest.from_document({"build_version": build_version}),
    )


def _write_env(home: Path, document: object) -> Path:
    target = home / ".chef" / "ruby-env.json"
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(document), encoding="utf-8")
    return target


class TestMatchVersions:
    def test_matching_versions(self, tmp_path: Path) -> None:
        _write_env(tmp_path, {"build_version": "5.2.1", "gem_home": "/home/user/.chefdk/gem"})

        assert ruby_env.match_versions(_manifests("5.2.1"), tmp_path) is True

    def test_changed_workstation_version(self, tmp_path: Path) -> None:
        _write_env(tmp_path, {"build_version": "5.2.1"})

        assert ruby_env.match_versions(_manifests("5.2.2"), tmp_path) is False

    def test_changed_cached_version(self, tmp_path: Path) -> None:
        _write_env(tmp_path, {"build_version": "5.2.0"})

        assert ruby_env.match_versions(_manifests("5.2.1"), tmp_path) is False

    def test_comparison_is_plain_string_equality(self, tmp_path: Path) -> None:
        _write_env(tmp_path, {"build_version": "5.2.1 "})

        assert ruby_env.match_versions(_manifests("5.2.1"), tmp_path) is False

    def test_missing_cache_is_no_match(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert ruby_env.match_versions(_manifests("5.2.1"), tmp_path) is False
        assert "ERROR:" in capsys.readouterr().err

    def test_malformed_cache_is_no_match(self, tmp_path: Path) -> None:
        target = tmp_path / ".chef" / "ruby-env.json"
        target.parent.mkdir(parents=True)
        target.write_text("{oops", encoding="utf-8")

        assert ruby_env.match_versions(_manifests("5.2.1"), tmp_path) is False

    def test_defaults_to_user_home(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        _write_env(tmp_path, {"build_version": "5.2.1"})
        monkeypatch.setenv("HOME", str(tmp_path))
        monkeypatch.setenv("USERPROFILE", str(tmp_path))

        assert ruby_env.match_versions(_manifests("5.2.1")) is True


def test_env_doc_pairs_version_and_document(tmp_path: Path) -> None:
    _write_env(tmp_path, {"build_version": "5.2.1"})

    version, document = ruby_env.env_doc(_manifests("5.2.1"), tmp_path)

    assert version == "5.2.1"
    assert document == {"build_version": "5.2.1"}


def test_load_env_doc_rejects_non_object(tmp_path: Path) -> None:
    _write_env(tmp_path, ["5.2.1"])

    assert ruby_env.load_env_doc(tmp_path) is None


def test_deeply_nested_cache_is_no_match(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    target = tmp_path / ".chef" / "ruby-env.json"
    target.parent.mkdir(parents=True)
    target.write_text("[" * 200000, encoding="utf-8")

    assert ruby_env.match_versions(_manifests("5.2.1"), tmp_path) is False
    assert "nesting too deep" in capsys.readouterr().err


def test_unresolvable_home_is_reported(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    events: List[Dict[str, object]] = []

    class _RecordingLogger:
        def warning(self, message: str, *args: object, **kwargs: object) -> None:
            events.append(dict(kwargs["extra"]))  # type: ignore[arg-type]

    def no_home() -> Path:
        raise RuntimeError("Could not determine home directory.")

    monkeypatch.setattr(ruby_env.Path, "home", no_home)
    monkeypatch.setattr(ruby_env.logging_ext, "get_machine_logger", lambda: _RecordingLogger())

    assert ruby_env.load_env_doc() is None
    assert "ERROR: Could not determine home directory." in capsys.readouterr().err
    assert events == [
        {"event": "ruby_env_unavailable", "path": None, "error": "Could not determine home directory."}
    ]


class TestDefaultChefRuby:
    @staticmethod
    def _fake_which(monkeypatch: pytest.MonkeyPatch, *, stdout: str = "", returncode: int = 0) -> List[List[str]]:
        calls: List[List[str]] = []

        def fake_run(command, **kwargs):  # type: ignore[no-untyped-def]
            calls.append(list(command))
            return subprocess.CompletedProcess(command, returncode, stdout=stdout, stderr="")

        monkeypatch.setattr(exec_utils.subprocess, "run", fake_run)
        return calls

    def test_embedded_ruby_on_path(self, monkeypatch: pytest.MonkeyPatch) -> None:
        calls = self._fake_which(monkeypatch, stdout=constants.DEFAULT_RUBY_PATH + "\n")

        assert ruby_env.default_chef_ruby() is True
        assert calls == [["which", "ruby"]]

    def test_other_ruby_on_path(self, monkeypatch: pytest.MonkeyPatch) -> None:
        self._fake_which(monkeypatch, stdout="/usr/bin/ruby\n")

        assert ruby_env.default_chef_ruby() is False
        assert ruby_env.absolute_ruby_path() == "/usr/bin/ruby"

    def test_no_ruby_on_path(self, monkeypatch: pytest.MonkeyPatch) -> None:
        self._fake_which(monkeypatch, returncode=1)

        assert ruby_env.default_chef_ruby() is False
        assert ruby_env.absolute_ruby_path() is None

    def test_which_not_installed(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def missing(*args, **kwargs):  # type: ignore[no-untyped-def]
            raise FileNotFoundError("which")

        monkeypatch.setattr(exec_utils.subprocess, "run", missing)

        assert ruby_env.default_chef_ruby() is False

    def test_which_times_out(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def slow(command, **kwargs):  # type: ignore[no-untyped-def]
            raise subprocess.TimeoutExpired(command, kwargs.get("timeout"))

        monkeypatch.setattr(exec_utils.subprocess, "run", slow)

        assert ruby_env.default_chef_ruby(timeout=0.5) is False

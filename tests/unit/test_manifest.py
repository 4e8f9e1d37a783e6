"""Unit tests for ``.drovah`` manifest parsing."""

from __future__ import annotations

from pathlib import Path

import pytest

from drovah.errors import ConfigurationError, ManifestError
from drovah.pipeline.manifest import load_manifest, parse_manifest

FULL_MANIFEST = """
[build]
commands = ["cargo build --release", "cargo test"]

[archive]
files = ["target/release/app", "target/app-"]
append_buildnumber = true

[postarchive]
commands = ["./deploy.sh"]
"""


def test_full_manifest() -> None:
    manifest = parse_manifest(FULL_MANIFEST)

    assert manifest.build.commands == ["cargo build --release", "cargo test"]
    assert manifest.archive is not None
    assert manifest.archive.files == ["target/release/app", "target/app-"]
    assert manifest.append_build_number is True
    assert manifest.postarchive is not None
    assert manifest.postarchive.commands == ["./deploy.sh"]


def test_build_only_manifest() -> None:
    manifest = parse_manifest('[build]\ncommands = ["make"]\n')

    assert manifest.archive is None
    assert manifest.postarchive is None
    assert manifest.append_build_number is False


def test_unknown_keys_are_ignored() -> None:
    manifest = parse_manifest(
        '[build]\ncommands = ["make"]\nshell = "bash"\n'
        '[archive]\nfiles = ["app"]\nversion = "1"\n'
        '[postarchive]\ncommands = ["./deploy.sh"]\nretries = 2\n'
        "[notify]\nchannel = \"#ci\"\n"
    )

    assert manifest.build.commands == ["make"]
    assert manifest.archive is not None
    assert manifest.archive.files == ["app"]
    assert manifest.postarchive is not None
    assert manifest.postarchive.commands == ["./deploy.sh"]


@pytest.mark.parametrize("flag,expected",[("", False), ("append_buildnumber = false", False)])
def test_append_buildnumber_defaults_off(flag: str, expected: bool) -> None:
    manifest = parse_manifest(f'[build]\ncommands = []\n[archive]\nfiles = ["a"]\n{flag}\n')

    assert manifest.append_build_number is expected


@pytest.mark.parametrize(
    "content",
    [
        "",
        "[archive]\nfiles = []\n",
        "[build]\n",
        '[build]\ncommands = "make"\n',
        '[build]\ncommands = ["make"]\n[archive]\nappend_buildnumber = true\n',
        "[build\ncommands = []",
    ],
    ids=[
        "empty",
        "missing-build",
        "missing-commands",
        "commands-not-list",
        "archive-without-files",
        "invalid-toml",
    ],
)
def test_invalid_manifests(content: str) -> None:
    with pytest.raises(ManifestError):
        parse_manifest(content, source="test")


def test_manifest_error_is_configuration_error() -> None:
    with pytest.raises(ConfigurationError):
        parse_manifest("")


def test_load_manifest_reads_file(tmp_path: Path) -> None:
    path = tmp_path / ".drovah"
    path.write_text('[build]\ncommands = ["true"]\n')

    assert load_manifest(path).build.commands == ["true"]


def test_load_missing_manifest(tmp_path: Path) -> None:
    with pytest.raises(ManifestError) as exc_info:
        load_manifest(tmp_path / ".drovah")

    assert ".drovah" in str(exc_info.value)

"""Per-project build manifest (``.drovah``) parsing.

The manifest is a TOML file in the project's checkout:

    [build]
    commands = ["cargo build --release"]

    [archive]
    files = ["target/release/myapp"]
    append_buildnumber = true

    [postarchive]
    commands = ["./deploy.sh"]

It is read fresh on every build, so edits take effect on the next push.
"""

from __future__ import annotations

from pathlib import Path

import tomli
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from drovah.errors import ManifestError


class BuildSection(BaseModel):
    """Commands that make up the build; all must succeed for a passing build."""

    model_config = ConfigDict(extra="ignore")

    commands: list[str]


class ArchiveSection(BaseModel):
    """Artifacts to collect after a successful build.

    Attributes:
        files: File name patterns, exact paths or name prefixes, relative to
            the project directory.
        append_buildnumber: Rename artifacts to ``{stem}-b{n}.{ext}``.
    """

    model_config = ConfigDict(extra="ignore")

    files: list[str]
    append_buildnumber: bool | None = None


class PostArchiveSection(BaseModel):
    """Commands run after a successful archive; their outcome is only logged."""

    model_config = ConfigDict(extra="ignore")

    commands: list[str]


class BuildManifest(BaseModel):
    """Parsed ``.drovah`` manifest."""

    build: BuildSection
    archive: ArchiveSection | None = None
    postarchive: PostArchiveSection | None = Field(default=None)

    @property
    def append_build_number(self) -> bool:
        return bool(self.archive and self.archive.append_buildnumber)


def parse_manifest(content: str, source: str = "<string>") -> BuildManifest:
    """Parse manifest TOML text.

    Args:
        content: TOML document.
        source: Name used in error messages.

    Returns:
        The validated manifest.

    Raises:
        ManifestError: If the text is not valid TOML or fails validation.
    """
    try:
        data = tomli.loads(content)
    except tomli.TOMLDecodeError as e:
        raise ManifestError(source, f"invalid TOML: {e}") from e

    try:
        return BuildManifest.model_validate(data)
    except ValidationError as e:
        raise ManifestError(source, str(e)) from e


def load_manifest(path: Path) -> BuildManifest:
    """Read and parse the manifest at ``path``.

    Raises:
        ManifestError: If the file is missing, unreadable or malformed.
    """
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ManifestError(str(path), f"cannot read file: {e}") from e
    return parse_manifest(content, source=str(path))

"""Build pipeline operations for Drovah.

This module implements manifest parsing, command execution, artifact
matching and archival. Sequencing lives in drovah.orchestrator.
"""

from __future__ import annotations

from drovah.pipeline.archiver import ArchiveResult, Archiver, build_file_name
from drovah.pipeline.manifest import (
    ArchiveSection,
    BuildManifest,
    BuildSection,
    PostArchiveSection,
    load_manifest,
    parse_manifest,
)
from drovah.pipeline.matcher import ArtifactMatcher
from drovah.pipeline.runner import BUILD_LOG_NAME, CommandRunner, split_command

__all__ = [
    "ArchiveResult",
    "ArchiveSection",
    "Archiver",
    "ArtifactMatcher",
    "BUILD_LOG_NAME",
    "BuildManifest",
    "BuildSection",
    "CommandRunner",
    "PostArchiveSection",
    "build_file_name",
    "load_manifest",
    "parse_manifest",
    "split_command",
]

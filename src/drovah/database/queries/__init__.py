"""Database query functions for Drovah.

This module provides async query functions for projects and builds.
"""

from drovah.database.queries.build import (
    create_build,
    get_build,
    get_latest_build,
    get_latest_build_number,
    list_recent_builds,
)
from drovah.database.queries.project import (
    create_project,
    get_project,
    get_project_by_name,
    list_projects,
)

__all__ = [
    # Project queries
    "create_project",
    "get_project",
    "get_project_by_name",
    "list_projects",
    # Build queries
    "create_build",
    "get_build",
    "get_latest_build",
    "get_latest_build_number",
    "list_recent_builds",
]

"""Build status badges.

Badges are flat shields-style SVGs rendered from a Jinja2 template. The
left half always reads ``drovah``; the right half shows the build status in
green for passing and red for failing builds.
"""

from __future__ import annotations

from pathlib import Path

from jinja2 import Environment, FileSystemLoader

from drovah.database.models.build import BuildStatus

TEMPLATES_DIR = Path(__file__).parent / "templates"
BADGE_TEMPLATE = "badge.svg.j2"
BADGE_SUBJECT = "drovah"

BADGE_COLORS: dict[BuildStatus, str] = {
    BuildStatus.passing: "#4c1",
    BuildStatus.failing: "#ed2e25",
}

# Average glyph advance of 11px Verdana plus horizontal padding.
CHAR_WIDTH = 7
PADDING = 10

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=True,
    trim_blocks=True,
    lstrip_blocks=True,
)


def text_width(text: str) -> int:
    return len(text) * CHAR_WIDTH + PADDING


def render_badge(status: BuildStatus | str | None) -> str | None:
    """Render the badge SVG for ``status``.

    Args:
        status: A BuildStatus or its string value.

    Returns:
        SVG document, or None for a missing or unknown status.
    """
    if status is None:
        return None
    try:
        status = BuildStatus(status)
    except ValueError:
        return None

    subject_width = text_width(BADGE_SUBJECT)
    status_width = text_width(status.value)

    template = _env.get_template(BADGE_TEMPLATE)
    return template.render(
        subject=BADGE_SUBJECT,
        status=status.value,
        color=BADGE_COLORS[status],
        width=subject_width + status_width,
        subject_width=subject_width,
        status_width=status_width,
        subject_x=subject_width / 2,
        status_x=subject_width + status_width / 2,
    )

"""Drovah - self-hosted continuous-integration relay.

This package receives repository push webhooks, pulls and builds the
matching project, archives its artifacts under a per-build number and
exposes build history, artifacts and status badges over HTTP.
"""

__version__ = "0.1.0"

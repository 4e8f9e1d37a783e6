"""Exception hierarchy for Drovah.

Configuration errors abort a single build, authentication errors reject a
webhook before any work happens, and store errors wrap failures of the
persistent build record backend.
"""

from __future__ import annotations


class DrovahError(Exception):
    """Base class for all Drovah errors."""


class ConfigurationError(DrovahError):
    """A project or command configuration problem that aborts a build."""


class ManifestError(ConfigurationError):
    """Raised when a project's build manifest is missing or malformed.

    Attributes:
        path: Path of the manifest file that failed to load.
    """

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid build manifest {path}: {reason}")


class CommandFormatError(ConfigurationError):
    """Raised when a command line cannot be split into a program."""


class CommandNotFoundError(ConfigurationError):
    """Raised when a command's program cannot be located or spawned.

    Attributes:
        program: The program name taken from the command line.
        command: The full command line.
    """

    def __init__(self, program: str, command: str) -> None:
        self.program = program
        self.command = command
        super().__init__(
            f"Cannot run '{command}': program '{program}' not found or not executable"
        )


class WebhookAuthError(DrovahError):
    """Base class for webhook signature verification failures."""


class MalformedHeaderError(WebhookAuthError):
    """A request header value could not be decoded as UTF-8."""


class MissingPrefixError(WebhookAuthError):
    """The signature header does not start with ``sha256=``."""


class InvalidSignatureEncodingError(WebhookAuthError):
    """The signature after the prefix is not valid hexadecimal."""


class SignatureMismatchError(WebhookAuthError):
    """The signature does not match the HMAC of the request body."""


class StoreError(DrovahError):
    """Raised when the build store cannot complete an operation."""

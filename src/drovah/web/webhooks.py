"""Inbound webhook authentication for Drovah.

Git hosts sign push payloads with HMAC-SHA256 over the raw request body and
send the result as ``sha256=<hex>`` in a signature header. Drovah checks the
``signature`` header first and falls back to ``x-hub-signature-256``.

Signatures are optional: a request carrying neither header is accepted. A
request that does carry one must verify against the configured secret.

Example:
    >>> auth = WebhookAuthenticator(secret="shared-secret")
    >>> body = b'{"repository": {"name": "biomebot"}}'
    >>> auth.verify({"signature": auth.sign(body)}, body)
"""

from __future__ import annotations

import hashlib
import hmac
from collections.abc import Iterable, Mapping

import structlog
from pydantic import BaseModel, ConfigDict

from drovah.errors import (
    InvalidSignatureEncodingError,
    MalformedHeaderError,
    MissingPrefixError,
    SignatureMismatchError,
)

logger = structlog.get_logger(__name__)

SIGNATURE_HEADERS = ("signature", "x-hub-signature-256")
SIGNATURE_PREFIX = "sha256="


class WebhookRepository(BaseModel):
    """Repository block of a push payload."""

    model_config = ConfigDict(extra="ignore")

    name: str


class WebhookData(BaseModel):
    """Push payload. Only ``repository.name`` is used."""

    model_config = ConfigDict(extra="ignore")

    repository: WebhookRepository


def decode_headers(raw_headers: Iterable[tuple[bytes, bytes]]) -> dict[str, str]:
    """Decode raw ASGI header pairs into a lower-cased name/value map.

    Every value must be UTF-8, not only the signature headers. When a
    header repeats, the first occurrence wins.

    Raises:
        MalformedHeaderError: If any header value is not valid UTF-8.
    """
    decoded: dict[str, str] = {}
    for raw_name, raw_value in raw_headers:
        name = raw_name.decode("latin-1").lower()
        try:
            value = raw_value.decode("utf-8")
        except UnicodeDecodeError as e:
            logger.warning("webhook_header_undecodable", header=name)
            raise MalformedHeaderError("Couldn't parse header") from e
        decoded.setdefault(name, value)
    return decoded


class WebhookAuthenticator:
    """Verifies webhook signatures against a shared secret.

    Attributes:
        secret: Shared secret bytes, None when no secret is configured.
    """

    def __init__(self, secret: str | bytes | None = None) -> None:
        if isinstance(secret, str):
            secret = secret.encode("utf-8")
        self.secret = secret or None
        self.logger = logger.bind(component="WebhookAuthenticator")

    def sign(self, body: bytes) -> str:
        """Return the ``sha256=<hex>`` header value for ``body``."""
        if self.secret is None:
            raise SignatureMismatchError("no secret configured")
        digest = hmac.new(self.secret, body, hashlib.sha256).hexdigest()
        return f"{SIGNATURE_PREFIX}{digest}"

    @staticmethod
    def find_signature(headers: Mapping[str, str]) -> str | None:
        lowered = {name.lower(): value for name, value in headers.items()}
        for name in SIGNATURE_HEADERS:
            if name in lowered:
                return lowered[name]
        return None

    def verify(self, headers: Mapping[str, str], body: bytes) -> None:
        """Check the request signature, if there is one.

        Args:
            headers: Decoded request headers.
            body: Raw request body exactly as received.

        Raises:
            MissingPrefixError: If the signature does not start with ``sha256=``.
            InvalidSignatureEncodingError: If the signature is not hex.
            SignatureMismatchError: If the signature does not match the body,
                or no secret is configured to check it with.
        """
        signature = self.find_signature(headers)
        if signature is None:
            self.logger.debug("webhook_unsigned")
            return

        if not signature.startswith(SIGNATURE_PREFIX):
            raise MissingPrefixError("signature must start with sha256=")

        try:
            provided = bytes.fromhex(signature[len(SIGNATURE_PREFIX) :])
        except ValueError as e:
            raise InvalidSignatureEncodingError("signature is not valid hex") from e

        if self.secret is None:
            raise SignatureMismatchError("signature present but no secret configured")

        expected = hmac.new(self.secret, body, hashlib.sha256).digest()
        if not hmac.compare_digest(provided, expected):
            raise SignatureMismatchError("signature does not match body")

        self.logger.debug("webhook_signature_verified")

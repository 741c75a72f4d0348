"""Authenticity check for inbound payment webhooks."""

import hashlib
import hmac
from typing import Optional


class WebhookAuthenticator:
    """
    HMAC-SHA512 signature check over the raw request body.

    The digest must be computed over the exact bytes the provider sent. A body
    that was parsed and re-serialized will usually hash differently, and that
    mismatch is an authentication failure like any other.
    """

    @staticmethod
    def sign(raw_body: bytes, secret: str) -> str:
        return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha512).hexdigest()

    @classmethod
    def verify(cls, raw_body: bytes, signature_header: Optional[str], secret: Optional[str]) -> bool:
        if not secret or not signature_header:
            return False
        expected = cls.sign(raw_body, secret)
        provided = signature_header.strip().lower().encode("utf-8")
        return hmac.compare_digest(expected.encode("ascii"), provided)

"""
Trading Gateway - Token Signer.

============================================================
PURPOSE
============================================================
Builds the short-lived ES256 bearer token sent with every
authenticated exchange call.

TOKEN RULES:
- Bound to one exact "METHOD host path" (query included)
- Valid for TOKEN_LIFETIME_SECONDS (120s) from creation
- Fresh random nonce per token
- Never cached, never persisted

============================================================
"""

import base64
import json
import logging
import secrets
import time
from typing import Any, Callable, Dict, Optional

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature

from .config import TOKEN_LIFETIME_SECONDS
from .types import PrivateKeyMaterial, SigningToken, SigningError


logger = logging.getLogger(__name__)


P256_COORDINATE_LENGTH = 32


def b64url_encode(data: bytes) -> str:
    """base64url without padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(segment: str) -> bytes:
    """Inverse of b64url_encode."""
    return base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))


def _json_segment(obj: Dict[str, Any]) -> str:
    return b64url_encode(json.dumps(obj, separators=(",", ":")).encode("utf-8"))


class TokenSigner:
    """
    Signs per-call bearer tokens.

    The clock is injectable for tests.
    """

    def __init__(
        self,
        host: str,
        issuer: str = "cdp",
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize token signer.

        Args:
            host: Exchange host the tokens are bound to
            issuer: Issuer claim
            clock: Returns current UNIX time in seconds
        """
        self._host = host
        self._issuer = issuer
        self._clock = clock or time.time

    def sign(
        self,
        key_id: str,
        key: PrivateKeyMaterial,
        method: str,
        path: str,
    ) -> SigningToken:
        """
        Build and sign a token for one request.

        Args:
            key_id: API key identifier (sub and kid)
            key: Imported private key
            method: HTTP method
            path: Request target, query string included

        Returns:
            SigningToken

        Raises:
            SigningError: If signing fails
        """
        not_before = int(self._clock())
        header = {
            "alg": "ES256",
            "typ": "JWT",
            "kid": key_id,
            "nonce": secrets.token_hex(16),
        }
        payload = {
            "sub": key_id,
            "iss": self._issuer,
            "nbf": not_before,
            "exp": not_before + TOKEN_LIFETIME_SECONDS,
            "uri": f"{method.upper()} {self._host}{path}",
        }

        signing_input = f"{_json_segment(header)}.{_json_segment(payload)}"

        try:
            der_signature = key.key.sign(
                signing_input.encode("ascii"),
                ec.ECDSA(hashes.SHA256()),
            )
            r, s = decode_dss_signature(der_signature)
            raw = r.to_bytes(P256_COORDINATE_LENGTH, "big") + s.to_bytes(P256_COORDINATE_LENGTH, "big")
        except Exception as e:
            logger.error(f"Token signing failed: {type(e).__name__}")
            raise SigningError(f"Failed to sign token: {type(e).__name__}") from e

        signature = b64url_encode(raw)

        return SigningToken(
            header=header,
            payload=payload,
            signature=signature,
            encoded=f"{signing_input}.{signature}",
        )

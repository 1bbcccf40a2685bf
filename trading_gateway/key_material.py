"""
Trading Gateway - Key Material Import.

============================================================
PURPOSE
============================================================
Normalizes a PEM-encoded P-256 private key into a signing key.

SUPPORTED ENCODINGS:
- PKCS#8 PrivateKeyInfo ("BEGIN PRIVATE KEY"): loaded directly
- SEC1 ECPrivateKey ("BEGIN EC PRIVATE KEY"): the 32-byte scalar is
  located by marker scan and re-wrapped into a minimal PKCS#8 DER

SECURITY REQUIREMENTS:
1. NEVER log key bytes; diagnostics carry byte length only
2. Import once per process, share read-only afterwards

============================================================
"""

import base64
import binascii
import logging
import re
import threading
from typing import Optional

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from .types import PrivateKeyMaterial, KeyFormatError


logger = logging.getLogger(__name__)


# ============================================================
# DER CONSTANTS
# ============================================================

SCALAR_LENGTH = 32
"""P-256 private scalar length in bytes."""

# Markers preceding the private scalar in SEC1 output, most specific first.
# Some producers omit the version INTEGER in front of the OCTET STRING.
SEC1_VERSIONED_SCALAR_MARKER = bytes.fromhex("020101" "0420")
SEC1_BARE_SCALAR_MARKER = bytes.fromhex("0420")
SEC1_SCALAR_MARKERS = (SEC1_VERSIONED_SCALAR_MARKER, SEC1_BARE_SCALAR_MARKER)

# Minimal PKCS#8 PrivateKeyInfo for P-256 wrapping a SEC1 ECPrivateKey
# that holds only version and privateKey (no parameters, no public key).
PKCS8_P256_PREFIX = bytes.fromhex(
    "3041"                      # SEQUENCE, 65 bytes
    "020100"                    # INTEGER 0 (version)
    "3013"                      # SEQUENCE AlgorithmIdentifier, 19 bytes
    "06072a8648ce3d0201"        # OID 1.2.840.10045.2.1 id-ecPublicKey
    "06082a8648ce3d030107"      # OID 1.2.840.10045.3.1.7 prime256v1
    "0427"                      # OCTET STRING, 39 bytes
    "3025"                      # SEQUENCE ECPrivateKey, 37 bytes
    "020101"                    # INTEGER 1 (version)
    "0420"                      # OCTET STRING, 32 bytes
)
PKCS8_SCALAR_OFFSET = len(PKCS8_P256_PREFIX)
PKCS8_P256_LENGTH = PKCS8_SCALAR_OFFSET + SCALAR_LENGTH

_PEM_ARMOUR = re.compile(r"-----(?:BEGIN|END)[^-]*-----")


# ============================================================
# HELPERS
# ============================================================

def normalize_pem(pem: str) -> bytes:
    """
    Strip PEM armour and transport artifacts, then base64-decode.

    Handles literal "\\n" sequences left by secrets pasted into
    environment variables, surrounding quotes and stray whitespace.

    Raises:
        KeyFormatError: If the body is empty or not base64
    """
    if not pem or not pem.strip():
        raise KeyFormatError("Private key is empty", byte_length=0)

    text = pem.strip().strip('"').strip("'")
    text = text.replace("\\r", "").replace("\\n", "\n")
    text = _PEM_ARMOUR.sub("", text)
    body = "".join(text.split())

    if not body:
        raise KeyFormatError("Private key has no body", byte_length=0)

    body += "=" * (-len(body) % 4)
    try:
        der = base64.b64decode(body, validate=True)
    except (binascii.Error, ValueError):
        raise KeyFormatError("Private key body is not valid base64")

    return der


def looks_like_pkcs8(der: bytes) -> bool:
    """
    Check whether DER has the PrivateKeyInfo shape.

    SEQUENCE { INTEGER version, SEQUENCE AlgorithmIdentifier, ... }.
    SEC1 has an OCTET STRING after its version instead.
    """
    if len(der) < 2 or der[0] != 0x30:
        return False

    first_len = der[1]
    if first_len < 0x80:
        header = 2
    elif first_len in (0x81, 0x82):
        header = 2 + (first_len - 0x80)
    else:
        return False

    body = der[header:header + 4]
    return len(body) == 4 and body[0] == 0x02 and body[1] == 0x01 and body[3] == 0x30


def find_private_scalar(der: bytes) -> Optional[bytes]:
    """
    Locate the 32-byte private scalar in SEC1 DER.

    Tries each marker in SEC1_SCALAR_MARKERS; the first occurrence
    followed by at least 32 bytes wins.

    Returns:
        The scalar bytes, or None if no marker fits
    """
    for marker in SEC1_SCALAR_MARKERS:
        index = der.find(marker)
        while index != -1:
            start = index + len(marker)
            if len(der) - start >= SCALAR_LENGTH:
                return der[start:start + SCALAR_LENGTH]
            index = der.find(marker, index + 1)
    return None


def wrap_scalar_pkcs8(scalar: bytes) -> bytes:
    """Splice a 32-byte scalar into the P-256 PKCS#8 template."""
    if len(scalar) != SCALAR_LENGTH:
        raise KeyFormatError("Private scalar has wrong length", byte_length=len(scalar))
    return PKCS8_P256_PREFIX + scalar


def _ensure_p256(key) -> None:
    if not isinstance(key, ec.EllipticCurvePrivateKey):
        raise KeyFormatError("Private key is not an elliptic-curve key")
    if not isinstance(key.curve, ec.SECP256R1):
        raise KeyFormatError(f"Unsupported curve: {key.curve.name}")


# ============================================================
# IMPORTER
# ============================================================

class KeyMaterialImporter:
    """
    Imports P-256 private keys from PEM.

    Encoding A (PKCS#8) is tried first; encoding B (SEC1) falls
    back to scalar extraction and re-wrapping.
    """

    def import_key(self, pem: str) -> PrivateKeyMaterial:
        """
        Import a PEM private key.

        Args:
            pem: PEM text in PKCS#8 or SEC1 encoding

        Returns:
            PrivateKeyMaterial

        Raises:
            KeyFormatError: If neither encoding can be parsed
        """
        der = normalize_pem(pem)

        material = self._load_pkcs8(der)
        if material is not None:
            logger.info("Imported private key (PKCS#8)")
            return material

        material = self._load_sec1(der)
        logger.info("Imported private key (SEC1, re-wrapped)")
        return material

    def _load_pkcs8(self, der: bytes) -> Optional[PrivateKeyMaterial]:
        if not looks_like_pkcs8(der):
            return None
        try:
            key = serialization.load_der_private_key(der, password=None)
        except (ValueError, TypeError) as e:
            logger.debug(f"PKCS#8 load failed, trying SEC1: {type(e).__name__}")
            return None
        _ensure_p256(key)
        return PrivateKeyMaterial(key=key, curve=key.curve.name, source_encoding="pkcs8")

    def _load_sec1(self, der: bytes) -> PrivateKeyMaterial:
        scalar = find_private_scalar(der)
        if scalar is None:
            raise KeyFormatError(
                "No 32-byte private scalar found in key material",
                byte_length=len(der),
            )

        try:
            key = serialization.load_der_private_key(wrap_scalar_pkcs8(scalar), password=None)
        except (ValueError, TypeError):
            raise KeyFormatError(
                "Extracted private scalar was rejected",
                byte_length=len(der),
            )
        _ensure_p256(key)
        return PrivateKeyMaterial(key=key, curve=key.curve.name, source_encoding="sec1")


def import_private_key(pem: str) -> PrivateKeyMaterial:
    """Import a PEM private key (PKCS#8 or SEC1)."""
    return KeyMaterialImporter().import_key(pem)


# ============================================================
# PROCESS CACHE
# ============================================================

class KeyMaterialCache:
    """
    At-most-once key import.

    The first caller imports under a lock; everyone else reads the
    cached immutable value.
    """

    def __init__(self, importer: Optional[KeyMaterialImporter] = None):
        self._importer = importer or KeyMaterialImporter()
        self._lock = threading.Lock()
        self._material: Optional[PrivateKeyMaterial] = None

    @property
    def is_loaded(self) -> bool:
        return self._material is not None

    def get(self, pem: str) -> PrivateKeyMaterial:
        """Return the cached key, importing it on first use."""
        material = self._material
        if material is not None:
            return material

        with self._lock:
            if self._material is None:
                self._material = self._importer.import_key(pem)
            return self._material

    def clear(self) -> None:
        """Drop the cached key (tests, key rotation)."""
        with self._lock:
            self._material = None

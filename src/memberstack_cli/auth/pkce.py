"""PKCE verifier/challenge generation (:rfc:`7636`) and the CSRF state token."""

from __future__ import annotations

import base64
import hashlib
import secrets

from memberstack_cli.models import PKCEMaterial


def _base64url(raw: bytes) -> str:
    """URL-safe base64 without ``=`` padding."""
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def generate_code_verifier() -> str:
    """Return 32 random bytes as url-safe base64 (43 characters)."""
    return _base64url(secrets.token_bytes(32))


def generate_code_challenge(verifier: str) -> str:
    """Return the S256 challenge for *verifier*.

    The verifier is hashed as its ASCII text, not base64-decoded first.
    """
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return _base64url(digest)


def generate_state() -> str:
    """Return an independent 16-byte random hex token for CSRF binding."""
    return secrets.token_hex(16)


def generate_pkce_material() -> PKCEMaterial:
    """Generate fresh material for a single login attempt."""
    verifier = generate_code_verifier()
    return PKCEMaterial(
        code_verifier=verifier,
        code_challenge=generate_code_challenge(verifier),
        state=generate_state(),
    )

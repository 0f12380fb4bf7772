"""PKCE (Proof Key for Code Exchange) generation and management"""

import base64
import hashlib
import secrets
from typing import Optional, Tuple

from utils.storage import CODE_VERIFIER, STATE, CredentialVault
from .models import PkceCodes


def b64url_nopad(data: bytes) -> str:
    """Base64url encode without '=' padding"""
    return base64.urlsafe_b64encode(data).decode('utf-8').rstrip('=')


def code_challenge_for(code_verifier: str) -> str:
    """Derive the S256 code challenge for a verifier"""
    return b64url_nopad(hashlib.sha256(code_verifier.encode('utf-8')).digest())


class PKCEManager:
    """Generates PKCE handshakes and keeps the pending one in the vault

    The verifier and state only live in the vault between the authorize
    redirect and the callback; ``clear_pkce`` runs once the callback has been
    handled, whatever the outcome.
    """

    def __init__(self, vault: CredentialVault):
        self.vault = vault

    def generate_pkce(self) -> PkceCodes:
        """Generate a verifier (32 random bytes), its challenge and a state (16 bytes)

        Returns:
            Fresh PkceCodes
        """
        code_verifier = b64url_nopad(secrets.token_bytes(32))
        state = b64url_nopad(secrets.token_bytes(16))
        return PkceCodes(
            code_verifier=code_verifier,
            code_challenge=code_challenge_for(code_verifier),
            state=state,
        )

    def save_pkce(self, codes: PkceCodes):
        """Persist the verifier and state for the callback"""
        self.vault.set(CODE_VERIFIER, codes.code_verifier)
        self.vault.set(STATE, codes.state)

    def load_pkce(self) -> Tuple[Optional[str], Optional[str]]:
        """Load the pending handshake

        Returns:
            Tuple of (code_verifier, state), each None if not stored
        """
        return self.vault.get(CODE_VERIFIER), self.vault.get(STATE)

    def clear_pkce(self):
        """Delete the pending handshake so it cannot be replayed"""
        self.vault.delete(CODE_VERIFIER)
        self.vault.delete(STATE)

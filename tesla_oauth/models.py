"""Data models for Tesla OAuth authentication"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

import settings
from errors import ConfigurationError
from utils.storage import CLIENT_SECRET, ConfigStore, CredentialVault


@dataclass
class AuthConfig:
    """Client registration used to start OAuth flows

    Attributes:
        client_id: Application client ID
        client_secret: Application client secret
        redirect_uri: Registered redirect URI served by the callback listener
        scope: Space separated scopes requested during authorization
    """
    client_id: str
    client_secret: str = ""
    redirect_uri: str = settings.REDIRECT_URI
    scope: str = settings.SCOPES

    @classmethod
    def from_settings(
        cls,
        vault: Optional[CredentialVault] = None,
        config_store: Optional[ConfigStore] = None,
    ) -> "AuthConfig":
        """Resolve credentials: environment first, then the stored values"""
        client_id = settings.TESLA_CLIENT_ID
        if not client_id and config_store is not None:
            client_id = config_store.client_id or ""

        client_secret = settings.TESLA_CLIENT_SECRET
        if not client_secret and vault is not None:
            client_secret = vault.get(CLIENT_SECRET) or ""

        return cls(client_id=client_id.strip(), client_secret=client_secret.strip())

    def validate(self):
        """Raise ConfigurationError if the configuration cannot start a flow"""
        if not self.client_id.strip():
            raise ConfigurationError(
                "Client ID is required. Set TESLA_CLIENT_ID or run `energy-monitor configure`."
            )


@dataclass
class PkceCodes:
    """PKCE handshake values for one authorization attempt

    Attributes:
        code_verifier: Random secret kept locally until the code exchange
        code_challenge: SHA256 of the verifier, sent with the authorize request
        state: Anti-forgery token echoed back on the callback
    """
    code_verifier: str
    code_challenge: str
    state: str


@dataclass(frozen=True)
class UserIdentity:
    sub: str
    email: Optional[str] = None
    given_name: Optional[str] = None
    family_name: Optional[str] = None

    @property
    def display_name(self) -> str:
        name = " ".join(part for part in (self.given_name, self.family_name) if part)
        return name or self.email or self.sub


class AuthStatus(str, Enum):
    NOT_AUTHENTICATED = "not_authenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    ERROR = "error"


@dataclass(frozen=True)
class AuthState:
    """What the UI displays and which operations are permitted

    ``identity`` is set only for AUTHENTICATED, ``message`` only for ERROR.
    """
    status: AuthStatus
    identity: Optional[UserIdentity] = None
    message: Optional[str] = None

    @classmethod
    def not_authenticated(cls) -> "AuthState":
        return cls(AuthStatus.NOT_AUTHENTICATED)

    @classmethod
    def authenticating(cls) -> "AuthState":
        return cls(AuthStatus.AUTHENTICATING)

    @classmethod
    def authenticated(cls, identity: UserIdentity) -> "AuthState":
        return cls(AuthStatus.AUTHENTICATED, identity=identity)

    @classmethod
    def error(cls, message: str) -> "AuthState":
        return cls(AuthStatus.ERROR, message=message)

    @property
    def is_authenticated(self) -> bool:
        return self.status is AuthStatus.AUTHENTICATED

    @property
    def is_error(self) -> bool:
        return self.status is AuthStatus.ERROR


class TokenResponse(BaseModel):
    """Token endpoint response; refresh_token is absent for client_credentials"""
    model_config = ConfigDict(extra="ignore")

    access_token: str
    expires_in: int
    token_type: str = "Bearer"
    refresh_token: Optional[str] = None
    id_token: Optional[str] = None

"""Security configuration: basic authentication and OpenID Connect settings."""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass, field

import bcrypt

_CALLBACK_PATH = "/authorization-code/callback"


@dataclass
class BasicConfig:
    """Credentials for HTTP basic authentication.

    ``password_bcrypt_base64`` is the base64 (URL alphabet) encoding of the
    bcrypt hash of the password.
    """

    username: str = ""
    password_bcrypt_base64: str = ""

    def is_valid(self) -> bool:
        """Return whether both a username and a password hash are set."""
        return bool(self.username) and bool(self.password_bcrypt_base64)

    def _decoded_hash(self) -> bytes:
        try:
            return base64.b64decode(
                self.password_bcrypt_base64, altchars=b"-_", validate=True
            )
        except binascii.Error as error:
            raise ValueError(f"invalid base64 password hash: {error}") from error


@dataclass
class OIDCConfig:
    """Settings for authenticating through an OpenID Connect provider."""

    issuer_url: str = ""
    redirect_url: str = ""
    client_id: str = ""
    client_secret: str = ""
    scopes: list[str] = field(default_factory=list)
    allowed_subjects: list[str] = field(default_factory=list)

    def is_valid(self) -> bool:
        """Return whether every setting needed to talk to the provider is set."""
        return (
            bool(self.issuer_url)
            and bool(self.redirect_url)
            and self.redirect_url.endswith(_CALLBACK_PATH)
            and bool(self.client_id)
            and bool(self.client_secret)
            and bool(self.scopes)
        )

    def _is_subject_allowed(self, subject: str) -> bool:
        if not self.allowed_subjects:
            return True
        lowered = subject.lower()
        return any(allowed.lower() == lowered for allowed in self.allowed_subjects)


@dataclass
class SecurityConfig:
    """Which authentication mechanism protects the application."""

    basic: BasicConfig | None = None
    oidc: OIDCConfig | None = None

    def is_valid(self) -> bool:
        """Return whether at least one configured mechanism is valid."""
        return (self.basic is not None and self.basic.is_valid()) or (
            self.oidc is not None and self.oidc.is_valid()
        )

    def check_basic_auth(self, username: str | None, password: str | None) -> bool:
        """Return whether the given basic credentials grant access.

        Access is granted when no basic configuration or no password hash is
        set. Raises ValueError if the configured hash is not valid base64.
        """
        if self.basic is None or not self.basic.password_bcrypt_base64:
            return True
        decoded_hash = self.basic._decoded_hash()
        if username is None or password is None:
            return False
        if username != self.basic.username:
            return False
        try:
            return bcrypt.checkpw(password.encode(), decoded_hash)
        except ValueError:
            return False
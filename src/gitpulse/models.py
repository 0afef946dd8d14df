"""Canonical Pydantic models shared across all gitpulse modules.

This is the single source of truth for data shapes in the project. The models
fall into three groups:

**Configuration** -- :class:`AppConfig`, built once per process by
:func:`gitpulse.config.load_config` and frozen afterwards.

**Credential and token exchange** -- :class:`EncryptedTokenRecord` (the
on-disk token file), :class:`TokenResponse` and :class:`TokenErrorResponse`
(the provider's token endpoint payloads).

**API payloads** -- :class:`Notification`, :class:`IssueDetails` and
:class:`PullRequestDetails` plus their nested parts, validated at the
boundary by :class:`~gitpulse.api.client.ApiClient`.

All models use Pydantic v2. :func:`describe_validation_error` turns a
:class:`~pydantic.ValidationError` into a one-line ``path: message`` summary
suitable for error messages.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional
from urllib.parse import urlparse

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    StrictStr,
    ValidationError,
    field_validator,
)

ENCRYPTION_KEY_LENGTH = 32
"""Required length of the encryption key in bytes (AES-256)."""

_LOOPBACK_HOSTS = frozenset({"localhost", "127.0.0.1", "::1"})


def describe_validation_error(exc: ValidationError) -> str:
    """Render a validation error as ``"a.b: msg; c: msg"``.

    Args:
        exc: The error raised by a Pydantic model or ``TypeAdapter``.

    Returns:
        One line listing every offending field path with its message.
    """
    parts: list[str] = []
    for err in exc.errors():
        path = ".".join(str(p) for p in err["loc"]) or "<root>"
        parts.append(f"{path}: {err['msg']}")
    return "; ".join(parts)


# --- Configuration ---


class AppConfig(BaseModel):
    """Immutable process configuration.

    Secrets are held as :class:`~pydantic.SecretStr` so they are masked in
    ``repr()`` and in any accidental ``str()`` formatting.

    Example::

        AppConfig(
            client_id="Iv1.abc",
            client_secret="shh",
            encryption_key="0123456789abcdef0123456789abcdef",
            token_file=Path("/tmp/token.json"),
        )
    """

    model_config = ConfigDict(frozen=True)

    client_id: str = Field(min_length=1, description="OAuth2 client identifier")
    client_secret: SecretStr = Field(description="OAuth2 client secret")
    encryption_key: SecretStr = Field(
        description="32-character symmetric key used to seal the stored token"
    )
    redirect_uri: str = Field(
        default="http://localhost:3000/callback",
        description="Loopback callback URI registered with the provider",
    )
    authorize_url: str = Field(default="https://github.com/login/oauth/authorize")
    token_url: str = Field(default="https://github.com/login/oauth/access_token")
    api_url: str = Field(default="https://api.github.com")
    scopes: tuple[str, ...] = Field(default=("notifications", "repo"))
    token_file: Path = Field(description="Where the encrypted token record lives")
    log_level: Literal["debug", "info", "warning", "error"] = "info"
    shutdown_delay: float = Field(
        default=1.0,
        ge=0,
        description="Seconds between the success page and listener shutdown",
    )

    @field_validator("client_secret")
    @classmethod
    def _secret_not_empty(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value():
            raise ValueError("must not be empty")
        return value

    @field_validator("encryption_key")
    @classmethod
    def _key_length(cls, value: SecretStr) -> SecretStr:
        if len(value.get_secret_value().encode("utf-8")) != ENCRYPTION_KEY_LENGTH:
            raise ValueError(
                f"must be exactly {ENCRYPTION_KEY_LENGTH} characters"
            )
        return value

    @field_validator("authorize_url", "token_url", "api_url")
    @classmethod
    def _require_https(cls, value: str) -> str:
        parsed = urlparse(value)
        if parsed.scheme != "https" or not parsed.netloc:
            raise ValueError("must be an https:// URL")
        return value.rstrip("/")

    @field_validator("redirect_uri")
    @classmethod
    def _require_loopback(cls, value: str) -> str:
        parsed = urlparse(value)
        if parsed.scheme != "http":
            raise ValueError("must be an http:// loopback URI")
        if parsed.hostname not in _LOOPBACK_HOSTS:
            raise ValueError("host must be localhost, 127.0.0.1 or ::1")
        if parsed.port is None:
            raise ValueError("must include an explicit port")
        return value

    @property
    def encryption_key_bytes(self) -> bytes:
        """The raw AES-256 key."""
        return self.encryption_key.get_secret_value().encode("utf-8")

    @property
    def callback_host(self) -> str:
        """Host the loopback listener binds to."""
        host = urlparse(self.redirect_uri).hostname
        assert host is not None
        return "127.0.0.1" if host == "localhost" else host

    @property
    def callback_port(self) -> int:
        """Port the loopback listener binds to."""
        port = urlparse(self.redirect_uri).port
        assert port is not None
        return port

    @property
    def callback_path(self) -> str:
        """Path of the callback endpoint (``/callback`` by default)."""
        return urlparse(self.redirect_uri).path or "/"


# --- Credential file ---


class EncryptedTokenRecord(BaseModel):
    """On-disk form of the sealed access token.

    Serialised as ``{"iv": ..., "authTag": ..., "encrypted": ...}`` where
    each value is standard base64. The three fields are mutually required;
    unknown keys are rejected so a structural change never loads silently.
    """

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    iv: StrictStr = Field(description="Base64 96-bit GCM nonce")
    auth_tag: StrictStr = Field(alias="authTag", description="Base64 GCM tag")
    encrypted: StrictStr = Field(description="Base64 ciphertext")


# --- Token endpoint ---


class TokenResponse(BaseModel):
    """Successful token endpoint payload. Extra fields (``scope``, ``token_type``) are ignored."""

    access_token: StrictStr = Field(min_length=1)


class TokenErrorResponse(BaseModel):
    """Provider-reported token endpoint failure."""

    error: StrictStr
    error_description: Optional[str] = None

    @property
    def message(self) -> str:
        return self.error_description or self.error


# --- API payloads ---


class UserRef(BaseModel):
    login: str


class LabelRef(BaseModel):
    name: str


class TeamRef(BaseModel):
    name: str
    slug: str


class RepositoryRef(BaseModel):
    full_name: str


class NotificationSubject(BaseModel):
    title: str
    url: Optional[str]
    latest_comment_url: Optional[str]
    type: str


class Notification(BaseModel):
    """A single entry of ``GET /notifications``."""

    id: str
    subject: NotificationSubject
    reason: str
    unread: bool
    repository: RepositoryRef


class IssueDetails(BaseModel):
    """``GET /repos/{owner}/{repo}/issues/{number}``."""

    title: str
    body: Optional[str]
    state: str
    user: UserRef
    labels: list[LabelRef]
    comments: int


class PullRequestDetails(BaseModel):
    """``GET /repos/{owner}/{repo}/pulls/{number}``."""

    title: str
    body: Optional[str]
    state: str
    user: UserRef
    requested_reviewers: list[UserRef]
    requested_teams: list[TeamRef]
    changed_files: int
    additions: int
    deletions: int

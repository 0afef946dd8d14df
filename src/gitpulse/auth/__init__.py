"""Authentication subsystem.

Exports the four pieces of the sign-in flow, leaf first:

- :class:`CredentialCipher` -- AES-256-GCM sealing of the token.
- :class:`TokenStore` -- the encrypted on-disk token record.
- :class:`TokenExchangeClient` -- authorization code to access token.
- :class:`AuthorizationSession` -- loopback listener and state machine
  driving the other three.

:func:`open_token_store` builds the store from an
:class:`~gitpulse.models.AppConfig`; every command that needs the stored
credential goes through it.
"""

from gitpulse.auth.cipher import CredentialCipher, SealedToken
from gitpulse.auth.exchange import TokenExchangeClient
from gitpulse.auth.session import AuthorizationSession, CallbackResponse, SessionState
from gitpulse.auth.token_store import TokenStore
from gitpulse.models import AppConfig


def open_token_store(config: AppConfig) -> TokenStore:
    """Return the :class:`TokenStore` configured by *config*."""
    return TokenStore(config.token_file, CredentialCipher(config.encryption_key_bytes))


__all__ = [
    "AuthorizationSession",
    "CallbackResponse",
    "CredentialCipher",
    "SealedToken",
    "SessionState",
    "TokenExchangeClient",
    "TokenStore",
    "open_token_store",
]

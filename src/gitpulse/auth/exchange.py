"""Authorization-code to access-token exchange.

:class:`TokenExchangeClient` performs the server-to-server POST to the
provider's token endpoint and interprets its three possible answers:

1. Transport or HTTP failure -- ``AuthError`` with the status.
2. Provider-reported error (``{"error": ..., "error_description": ...}``,
   which GitHub sends with HTTP 200) -- ``AuthError`` with the description,
   falling back to the error code.
3. A success body that lacks a usable ``access_token`` -- ``AuthError``
   listing the offending fields.

Only a body that validates against :class:`~gitpulse.models.TokenResponse`
yields a token, which is returned exactly as sent.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from gitpulse.exceptions import AuthError
from gitpulse.models import (
    AppConfig,
    TokenErrorResponse,
    TokenResponse,
    describe_validation_error,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class TokenExchangeClient:
    """Exchange authorization codes for access tokens.

    Args:
        config: Supplies ``token_url``, ``client_id``, ``client_secret``
            and ``redirect_uri``.
        http_client: Optional pre-built :class:`httpx.Client` (tests pass
            one backed by :class:`httpx.MockTransport`). When ``None`` a
            client is created per call.
    """

    def __init__(
        self,
        config: AppConfig,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self._config = config
        self._http_client = http_client

    def exchange(self, code: str) -> str:
        """Trade *code* for an access token.

        Args:
            code: The one-time authorization code from the callback.

        Returns:
            The provider's ``access_token``, untransformed.

        Raises:
            AuthError: On network failure, non-2xx status, a provider error
                body, or a response without a valid ``access_token``.
        """
        payload = {
            "client_id": self._config.client_id,
            "client_secret": self._config.client_secret.get_secret_value(),
            "code": code,
            "redirect_uri": self._config.redirect_uri,
        }
        headers = {"Accept": "application/json"}

        try:
            if self._http_client is not None:
                response = self._http_client.post(
                    self._config.token_url, json=payload, headers=headers
                )
            else:
                response = httpx.post(
                    self._config.token_url,
                    json=payload,
                    headers=headers,
                    timeout=DEFAULT_TIMEOUT,
                )
        except httpx.HTTPError as exc:
            logger.error("Token exchange request failed: %s", type(exc).__name__)
            raise AuthError(f"Token exchange failed: {exc}") from exc

        if not response.is_success:
            logger.error("Token exchange HTTP error (status %d)", response.status_code)
            raise AuthError(
                f"Token exchange failed: {response.status_code} "
                f"{response.reason_phrase}".rstrip()
            )

        try:
            body: Any = response.json()
        except ValueError as exc:
            logger.error("Token exchange returned a non-JSON body")
            raise AuthError("Token response is not valid JSON") from exc

        if isinstance(body, dict) and body.get("error"):
            try:
                rejection = TokenErrorResponse.model_validate(body)
                message = rejection.message
            except ValidationError:
                message = str(body["error"])
            logger.error("Token exchange rejected by provider: %s", message)
            raise AuthError(message)

        try:
            token = TokenResponse.model_validate(body)
        except ValidationError as exc:
            details = describe_validation_error(exc)
            logger.error("Token exchange returned an unexpected response: %s", details)
            raise AuthError(f"Unexpected token response: {details}") from exc

        return token.access_token

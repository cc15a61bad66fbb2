# Module: src/agcoats/api_client.py
# Description: HTTP client for the AGCO ATS APIs, credential strategies and error normalization.

import json
import logging
from typing import Any, Dict, Optional

import requests
from requests.exceptions import ConnectionError as RequestsConnectionError

from .config import (
    ConfigStore,
    DATA_FAMILY,
    DEFAULT_BASE_URL,
    DEFAULT_SERVICES_URL,
    SERVICES_FAMILY,
)

logger = logging.getLogger(__name__)


# --- Exceptions ---

class AgcoAtsError(Exception):
    """Base exception for every error reported by the client."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ConfigurationError(AgcoAtsError):
    """Raised when no usable credential is configured."""
    pass


class ApiError(AgcoAtsError):
    """Raised for a non-success HTTP status."""
    pass


class AuthError(ApiError):
    """401/403 from the server."""
    pass


class NotFoundError(ApiError):
    pass


class RateLimitError(ApiError):
    pass


class ConnectivityError(AgcoAtsError):
    """Raised when the request never got a response."""
    pass


STATUS_ERRORS = {
    401: (AuthError, "Authentication failed. Check your API key or token."),
    403: (AuthError, "Access forbidden. You do not have permission to access this resource."),
    404: (NotFoundError, "Resource not found."),
    429: (RateLimitError, "Rate limit exceeded. Please wait before retrying."),
}

NO_RESPONSE_MESSAGE = "No response from AGCO ATS API. Check your internet connection."


def _error_detail(response: requests.Response) -> str:
    """Best-effort message from an error body: message, error, detail, then the raw body."""
    try:
        data = response.json()
    except ValueError:
        return response.text
    if isinstance(data, dict):
        for key in ("message", "error", "detail"):
            if data.get(key):
                return str(data[key])
    return json.dumps(data)


def raise_for_response(response: requests.Response) -> None:
    """Raises the normalized error for a non-2xx response, does nothing otherwise."""
    status = response.status_code
    if 200 <= status < 300:
        return
    if status in STATUS_ERRORS:
        error_class, message = STATUS_ERRORS[status]
        logger.debug(f"API returned {status}: {response.text[:200]}")
        raise error_class(message, status_code=status)
    message = _error_detail(response)
    raise ApiError(f"API Error ({status}): {message}", status_code=status)


# --- Credential strategies ---

class AuthStrategy:
    """How one API family builds its base URL and credential headers."""
    family = DATA_FAMILY
    base_url_key = "baseUrl"
    default_base_url = DEFAULT_BASE_URL
    allows_text_response = False

    def base_url(self, store: ConfigStore) -> str:
        return (store.get(self.base_url_key) or self.default_base_url).rstrip("/")

    def credential_headers(self, store: ConfigStore) -> Dict[str, str]:
        raise NotImplementedError


class DataApiAuth(AuthStrategy):
    """
    Equipment/fields/sensors API. A bearer token wins over the API key; the
    API key is sent both as a bearer credential and as X-API-Key.
    """

    def credential_headers(self, store: ConfigStore) -> Dict[str, str]:
        token = store.get("token")
        api_key = store.get("apiKey")
        if token:
            return {"Authorization": f"Bearer {token}"}
        if api_key:
            return {"Authorization": f"Bearer {api_key}", "X-API-Key": api_key}
        raise ConfigurationError(
            "AGCO ATS credentials not configured. Run: agcoats config set --api-key <key>"
        )


class ServicesApiAuth(AuthStrategy):
    """Aftermarket services API, authenticated with a session token from `agcoats auth`."""
    family = SERVICES_FAMILY
    base_url_key = "servicesUrl"
    default_base_url = DEFAULT_SERVICES_URL
    allows_text_response = True

    def credential_headers(self, store: ConfigStore) -> Dict[str, str]:
        token = store.get("token")
        if not token:
            raise ConfigurationError(
                "Authentication token not configured. Run: agcoats auth <username> <password>"
            )
        return {"Authorization": f"Bearer {token}"}


# --- Client ---

class ApiClient:
    """
    Sends one request at a time to an AGCO ATS API family and returns the
    decoded body, raising AgcoAtsError subclasses for failures.
    """

    def __init__(self, store: ConfigStore, strategy: AuthStrategy):
        """
        Args:
            store: Configuration source for credentials and base URLs.
            strategy: Credential/base-URL strategy of the API family.
        """
        self.store = store
        self.strategy = strategy

    def build_headers(self, authenticated: bool = True) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if authenticated:
            headers.update(self.strategy.credential_headers(self.store))
        return headers

    def request(
        self,
        method: str,
        path: str,
        body: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
        authenticated: bool = True,
    ) -> Any:
        """
        Issues a request and returns the decoded response.

        Args:
            method: HTTP method.
            path: Path relative to the family's base URL, starting with '/'.
            body: JSON-serializable request body, if any.
            params: Query parameters, if any.
            authenticated: Attach credential headers (fails early if none are configured).

        Returns:
            Decoded JSON, raw text for non-JSON responses of families that allow it,
            or None for an empty body.
        """
        # Credential assembly happens before any network activity
        headers = self.build_headers(authenticated=authenticated)
        url = f"{self.strategy.base_url(self.store)}{path}"
        logger.debug(f"{method} {url} params={params}")

        try:
            response = requests.request(
                method,
                url,
                headers=headers,
                json=body,
                params=params,
            )
        except RequestsConnectionError as e:
            logger.debug(f"Connection to {url} failed: {e}")
            raise ConnectivityError(NO_RESPONSE_MESSAGE) from e

        raise_for_response(response)
        return self._decode(response)

    def _decode(self, response: requests.Response) -> Any:
        if not response.content:
            return None
        content_type = response.headers.get("Content-Type", "")
        if self.strategy.allows_text_response and "json" not in content_type.lower():
            return response.text
        return response.json()

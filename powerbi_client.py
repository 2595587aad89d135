import logging
import threading
from typing import Any, Dict, Optional

import requests

from powerbi_errors import AuthenticationError, RequestError, TransportError
from powerbi_models import Credentials

logger = logging.getLogger(__name__)

LOGIN_URL = "https://login.microsoftonline.com"
POWERBI_RESOURCE = "https://analysis.windows.net/powerbi/api"
POWERBI_SCOPE = f"{POWERBI_RESOURCE}/.default"


class PowerBIClient:
    def __init__(self, credentials: Credentials, session: Optional[requests.Session] = None, timeout: float = 30):
        """
        Initializes the PowerBIClient.

        :param credentials: Service principal used to acquire the bearer token
        :param session: HTTP transport; a new requests.Session is created when omitted
        :param timeout: Timeout in seconds applied to every HTTP call
        """
        self.credentials = credentials
        self.session = session or requests.Session()
        self.timeout = timeout
        self._access_token: Optional[str] = None
        self._token_lock = threading.Lock()

    def _token_url(self) -> str:
        return f"{LOGIN_URL}/{self.credentials.tenant_id}/oauth2/token"

    def get_token(self) -> str:
        """
        Returns the bearer token, exchanging client credentials on first use.

        The token is cached for the lifetime of the client and never refreshed.

        :return: Access token string
        :raises AuthenticationError: If the exchange fails or the response has no access_token
        """
        if self._access_token is not None:
            return self._access_token

        with self._token_lock:
            if self._access_token is None:
                self._access_token = self._request_token()
        return self._access_token

    def _request_token(self) -> str:
        data = {
            "grant_type": "client_credentials",
            "client_id": self.credentials.client_id,
            "client_secret": self.credentials.client_secret,
            "resource": POWERBI_RESOURCE,
            "scope": POWERBI_SCOPE,
        }
        headers = {"Content-Type": "application/x-www-form-urlencoded"}

        try:
            response = self.session.post(self._token_url(), data=data, headers=headers, timeout=self.timeout)
            response.raise_for_status()
        except requests.HTTPError as e:
            raise AuthenticationError(
                f"Failed to fetch access token: {e.response.status_code} - {_error_detail(e.response)}"
            ) from e
        except requests.RequestException as e:
            raise AuthenticationError(f"Failed to fetch access token: {e}") from e

        try:
            result = response.json()
        except ValueError as e:
            raise AuthenticationError("Invalid token response: body is not JSON") from e

        if not isinstance(result, dict) or "access_token" not in result:
            detail = result.get("error_description") or result.get("error") if isinstance(result, dict) else None
            raise AuthenticationError(f"Invalid token response: {detail or 'no access_token returned'}")

        logger.info("Access token acquired successfully.")
        return result["access_token"]

    def send(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> requests.Response:
        """
        Sends an authenticated request to the Power BI REST API.

        :param method: HTTP method
        :param url: Absolute URL
        :param headers: Extra headers; the caller's dict is not modified
        :param json: Optional JSON body
        :param params: Optional query string parameters
        :return: The successful response
        :raises RequestError: If Power BI answers with a 4xx/5xx status
        :raises TransportError: On network failures
        """
        request_headers = dict(headers or {})
        request_headers["Authorization"] = f"Bearer {self.get_token()}"
        request_headers["Content-Type"] = "application/json"

        try:
            response = self.session.request(
                method, url, headers=request_headers, json=json, params=params, timeout=self.timeout
            )
            response.raise_for_status()
        except requests.HTTPError as e:
            raise RequestError(e.response.status_code, e.response.text) from e
        except requests.RequestException as e:
            raise TransportError(f"{method} {url} failed: {e}") from e

        logger.debug(f"{method} {url} -> {response.status_code}")
        return response

    def send_json(self, method: str, url: str, **kwargs) -> Any:
        """Like send(), but decodes the response body as JSON."""
        response = self.send(method, url, **kwargs)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise TransportError(f"{method} {url} returned a body that is not JSON: {response.text[:300]}") from e

    def close(self):
        self.session.close()


def _error_detail(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict):
        return body.get("error_description") or body.get("error") or response.text
    return response.text

"""HTTP gateway for the expense REST API"""

from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import requests

from ..auth.session import SessionManager
from ..core.navigation import LOGIN_ROUTE, Navigator
from ..utils.exceptions import (
    AuthorizationFailure,
    ForbiddenAction,
    NotFound,
    StaleResponse,
    TransportFailure,
    ValidationError,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)

Params = Union[Dict[str, Any], Sequence[Tuple[str, Any]], None]


def _error_message(response: requests.Response) -> Tuple[str, Optional[str]]:
    """Best-effort (message, field) from an error body."""
    try:
        body = response.json()
    except ValueError:
        text = (response.text or "").strip()
        return (text[:300] or f"HTTP {response.status_code}"), None

    if isinstance(body, dict):
        for key in ("message", "error", "detail"):
            if isinstance(body.get(key), str) and body[key]:
                return body[key], None
        # Field -> message map from bean validation
        if body and all(isinstance(v, str) for v in body.values()):
            field = next(iter(body))
            summary = "; ".join(f"{k}: {v}" for k, v in body.items())
            return summary, field
    if isinstance(body, str) and body:
        return body, None
    return f"HTTP {response.status_code}", None


class HttpGateway:
    """
    Every outbound call goes through here.

    Attaches the current credential, maps error statuses to typed
    exceptions and runs the central 401 teardown.
    """

    def __init__(
        self,
        base_url: str,
        session: SessionManager,
        navigator: Optional[Navigator] = None,
        login_route: str = LOGIN_ROUTE,
        connection_timeout: float = 10,
        read_timeout: float = 30,
        http: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session
        self.navigator = navigator
        self.login_route = login_route
        # (connect_timeout, read_timeout)
        self.timeout = (connection_timeout, read_timeout)
        self.http = http or requests.Session()

    def url_for(self, endpoint: str) -> str:
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    def request(
        self,
        method: str,
        endpoint: str,
        params: Params = None,
        json: Any = None,
        files: Optional[List[Tuple[str, Any]]] = None,
    ) -> requests.Response:
        """
        Make an HTTP request to the expense API

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API endpoint (without base URL)
            params: Query parameters
            json: JSON body
            files: Multipart parts

        Returns:
            The successful response

        Raises:
            AuthorizationFailure: 401, after the session was torn down
            StaleResponse: the session changed while the request was in flight
            ForbiddenAction: 403
            NotFound: 404
            ValidationError: 400/422
            TransportFailure: network errors and any other error status
        """
        url = self.url_for(endpoint)
        sent_token = self.session.token
        sent_epoch = self.session.epoch
        headers = {"Accept": "application/json"}
        if sent_token:
            headers["Authorization"] = f"Bearer {sent_token}"

        try:
            logger.debug("Sending API request", method=method, endpoint=endpoint, authenticated=bool(sent_token))
            response = self.http.request(
                method=method,
                url=url,
                params=params,
                json=json if not files else None,
                files=files,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            logger.error("Request timeout", endpoint=endpoint, timeout=self.timeout, error=str(e))
            raise TransportFailure(f"Request timeout after {self.timeout} seconds: {e}")
        except requests.exceptions.RequestException as e:
            logger.error("Request failed", endpoint=endpoint, error=str(e))
            raise TransportFailure(f"Request failed: {e}")

        logger.info(
            "Received API response",
            method=method,
            endpoint=endpoint,
            status_code=response.status_code,
        )

        if response.status_code == 401:
            self._handle_unauthorized(sent_token)
            message, _ = _error_message(response)
            raise AuthorizationFailure(message)

        if response.status_code >= 400:
            message, field = _error_message(response)
            if response.status_code in (400, 422):
                raise ValidationError(message, field=field)
            if response.status_code == 403:
                raise ForbiddenAction(message, status_code=403)
            if response.status_code == 404:
                raise NotFound(message)
            raise TransportFailure(message, status_code=response.status_code)

        # A response for a session that has since ended must not be applied
        if sent_token is not None and (
            self.session.epoch != sent_epoch or self.session.token != sent_token
        ):
            logger.warning("Dropping response for an ended session", endpoint=endpoint)
            raise StaleResponse()

        return response

    def _handle_unauthorized(self, sent_token: Optional[str]) -> None:
        if not self.session.handle_unauthorized(sent_token):
            return
        logger.warning("Unauthorized response, session cleared")
        if self.navigator is not None and not self.navigator.is_at(self.login_route):
            self.navigator.navigate(self.login_route, replace=True)

    # ------------------------------------------------------------------
    # Convenience wrappers
    # ------------------------------------------------------------------

    @staticmethod
    def json_of(response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise TransportFailure(f"Invalid JSON in response: {e}", status_code=response.status_code)

    def get_json(self, endpoint: str, params: Params = None) -> Any:
        return self.json_of(self.request("GET", endpoint, params=params))

    def post_json(self, endpoint: str, body: Any = None, files: Optional[List[Tuple[str, Any]]] = None) -> Any:
        return self.json_of(self.request("POST", endpoint, json=body, files=files))

    def put_json(self, endpoint: str, body: Any = None, files: Optional[List[Tuple[str, Any]]] = None) -> Any:
        return self.json_of(self.request("PUT", endpoint, json=body, files=files))

    def delete(self, endpoint: str) -> None:
        self.request("DELETE", endpoint)

    def close(self) -> None:
        self.http.close()

import logging
from typing import List, Optional

import requests

from app import config
from app.client.session import Session

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = config.LLM_TIMEOUT_SECONDS + 30  # server waits on the LLM first


class ApiError(Exception):
    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class SessionExpiredError(ApiError):
    """Raised when a protected call answers 401, the session is already cleared"""


class ReviewApiClient:
    """
    HTTP client for the Code Review API.

    Login and register populate the session, logout clears it, and any 401 on a
    protected call clears it as well.
    """

    def __init__(
        self,
        session: Session,
        base_url: str = config.CLIENT_API_URL,
        http: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.session = session
        self.base_url = base_url.rstrip("/")
        self.http = http or requests.Session()
        self.timeout = timeout

    # ============= INTERNALS =============

    def _request(self, method: str, path: str, protected: bool = False, **kwargs):
        headers = kwargs.pop("headers", {})
        if protected:
            if not self.session.is_authenticated:
                raise ApiError(401, "Not logged in")
            headers["Authorization"] = f"Bearer {self.session.token}"

        url = f"{self.base_url}{path}"
        try:
            response = self.http.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise ApiError(0, f"Could not reach {url}: {e}") from e

        if protected and response.status_code == 401:
            logger.info("Token rejected by the server, clearing session")
            self.session.clear()
            raise SessionExpiredError(401, "Session expired, please log in again.")

        return response

    @staticmethod
    def _error_message(response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or f"HTTP {response.status_code}"
        if isinstance(body, dict):
            detail = body.get("detail") or body.get("message")
            if isinstance(detail, list):
                # FastAPI validation errors
                return "; ".join(str(d.get("msg", d)) for d in detail)
            if detail:
                return str(detail)
        return f"HTTP {response.status_code}"

    def _start_session(self, response) -> dict:
        if response.status_code not in (200, 201):
            raise ApiError(response.status_code, self._error_message(response))
        data = response.json()
        user = {"id": data["id"], "username": data["username"], "email": data["email"]}
        self.session.start(data["token"], user)
        return user

    # ============= AUTH =============

    def register(self, username: str, email: str, password: str) -> dict:
        response = self._request(
            "POST", "/auth/register", json={"username": username, "email": email, "password": password}
        )
        return self._start_session(response)

    def login(self, email: str, password: str) -> dict:
        response = self._request("POST", "/auth/login", json={"email": email, "password": password})
        return self._start_session(response)

    def logout(self):
        self.session.clear()

    def me(self) -> dict:
        response = self._request("GET", "/auth/me", protected=True)
        if response.status_code != 200:
            raise ApiError(response.status_code, self._error_message(response))
        return response.json()

    # ============= REVIEWS =============

    def submit_review(self, code: str, language: str) -> dict:
        """
        Returns the server payload: {message, reviewId, reviewReport}.
        An unsaved report (storage failed) comes back with reviewId None.
        """
        response = self._request("POST", "/review/submit", protected=True, json={"code": code, "language": language})
        if response.status_code == 201:
            return response.json()

        if response.status_code == 500:
            try:
                body = response.json()
            except ValueError:
                body = None
            if isinstance(body, dict) and body.get("reviewReport"):
                return body

        raise ApiError(response.status_code, self._error_message(response))

    def history(self) -> List[dict]:
        response = self._request("GET", "/review/history", protected=True)
        if response.status_code != 200:
            raise ApiError(response.status_code, self._error_message(response))
        return response.json()

    def get_review(self, review_id: str) -> dict:
        response = self._request("GET", f"/review/{review_id}", protected=True)
        if response.status_code != 200:
            raise ApiError(response.status_code, self._error_message(response))
        return response.json()

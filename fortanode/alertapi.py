"""HTTP client for posting alert batches to the alert API."""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping, Optional

import requests

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class AlertAPIError(Exception):
    """The alert API answered with a non-2xx status."""

    def __init__(self, status: int, body: str) -> None:
        super().__init__(f"{status} error: {body}")
        self.status = status
        self.body = body


class AlertAPIClient:
    """Posts alert batches to the alert API."""

    def __init__(self, api_url: str, session: Optional[requests.Session] = None) -> None:
        self.api_url = api_url
        self._session = session if session is not None else requests.Session()

    def _post(self, path: str, body: Any, headers: Mapping[str, str]) -> Any:
        payload = json.dumps(body)
        response = self._session.post(
            f"{self.api_url}{path}",
            data=payload.encode("utf-8"),
            headers=dict(headers),
            timeout=DEFAULT_TIMEOUT,
        )
        text = response.text
        if not 200 <= response.status_code < 300:
            log.error(
                "alert api error",
                extra={
                    "apiUrl": self.api_url,
                    "path": path,
                    "body": payload,
                    "response": text,
                    "status": response.status_code,
                },
            )
            raise AlertAPIError(response.status_code, text)
        return json.loads(text)

    def post_batch(self, batch: Mapping[str, Any], token: str) -> Any:
        """Post ``batch`` under its ``ref`` and return the decoded response."""
        headers = {
            "content-type": "application/json",
            "Authorization": f"Bearer {token}",
        }
        return self._post(f"/batch/{batch['ref']}", batch, headers)
"""Authenticated Jenkins transport.

Every request made through :class:`HttpAdapter` resolves to an ``(error, data)``
pair instead of raising, so callers decide what a failure means.
"""

from __future__ import annotations

import asyncio
from typing import Any

import jenkins
import requests
from loguru import logger

from jenkins_helper.config_store import JenkinsConfig

DEFAULT_TIMEOUT = 30

Outcome = tuple[Exception | None, Any]

TRANSPORT_ERRORS = (jenkins.JenkinsException, requests.RequestException, ValueError)


def get_client(config: JenkinsConfig, timeout: int = DEFAULT_TIMEOUT) -> jenkins.Jenkins:
    """Create a Jenkins client from a connection config.

    Raises:
        ValueError: If url, username or token is missing.
    """
    if not config.is_complete():
        raise ValueError(
            "Jenkins is not configured. "
            "Please save the Jenkins URL, username and API token first."
        )
    return jenkins.Jenkins(
        config.url, username=config.username, password=config.token, timeout=timeout
    )


class HttpAdapter:
    """Runs blocking python-jenkins requests off the event loop."""

    def __init__(self, client: jenkins.Jenkins, timeout: int = DEFAULT_TIMEOUT) -> None:
        self._client = client
        self._timeout = timeout

    def _send(self, req: requests.Request) -> requests.Response:
        return self._client.jenkins_request(req)

    async def get_json(self, url: str) -> Outcome:
        logger.debug(f"GET {url}")
        try:
            response = await asyncio.to_thread(
                self._send, requests.Request("GET", url)
            )
            data = response.json()
            if data is None:
                raise ValueError(f"Empty JSON body from {url}")
            return None, data
        except TRANSPORT_ERRORS as e:
            logger.debug(f"GET {url} failed: {e!r}")
            return e, None

    async def post_form(self, url: str, data: dict[str, str]) -> Outcome:
        """POST form-encoded *data*; the value is the raw response."""
        logger.debug(f"POST {url} with {data}")
        try:
            response = await asyncio.to_thread(
                self._send, requests.Request("POST", url, data=data)
            )
            return None, response
        except TRANSPORT_ERRORS as e:
            logger.debug(f"POST {url} failed: {e!r}")
            return e, None

    async def post_json(self, url: str, payload: dict[str, Any]) -> Outcome:
        """POST JSON to a non-Jenkins URL, without Jenkins credentials."""
        logger.debug(f"POST {url} (json)")
        try:
            response = await asyncio.to_thread(
                requests.post, url, json=payload, timeout=self._timeout
            )
            response.raise_for_status()
            return None, response
        except requests.RequestException as e:
            logger.debug(f"POST {url} failed: {e!r}")
            return e, None

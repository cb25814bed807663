"""Typed operations against the Jenkins and Blue Ocean REST endpoints.

None of these retry; the lifecycle owns retry policy. Each returns an
``(error, value)`` pair.
"""

from __future__ import annotations

from typing import Any

from loguru import logger

from jenkins_helper import urls
from jenkins_helper.jenkins_client import HttpAdapter, Outcome
from jenkins_helper.models import GIT_BRANCH_PARAM


class TriggerError(Exception):
    """Jenkins accepted the request but did not hand back a queue location."""


class JenkinsGateway:
    def __init__(self, http: HttpAdapter) -> None:
        self._http = http

    async def fetch_jobs_tree(self, base_url: str) -> Outcome:
        url = f"{urls.ensure_trailing_slash(base_url)}{urls.JOBS_TREE}"
        return await self._http.get_json(url)

    async def fetch_queue_item(self, queue_url: str) -> Outcome:
        url = f"{urls.ensure_trailing_slash(queue_url)}{urls.JSON_API}"
        return await self._http.get_json(url)

    async def fetch_build(self, job_url: str, build_number: int) -> Outcome:
        url = f"{urls.ensure_trailing_slash(job_url)}{build_number}/{urls.JSON_API}"
        return await self._http.get_json(url)

    async def fetch_last_build(self, job_url: str) -> Outcome:
        url = f"{urls.ensure_trailing_slash(job_url)}{urls.LAST_BUILD}"
        return await self._http.get_json(url)

    async def fetch_stage_nodes(
        self, base_url: str, job_path: str, build_number: int
    ) -> Outcome:
        url = urls.blue_ocean_nodes_url(base_url, job_path, build_number)
        error, data = await self._http.get_json(url)
        if error is not None:
            return error, None
        if not isinstance(data, list):
            return ValueError(f"Unexpected stage node payload from {url}"), None
        return None, data

    async def trigger_build(self, job_url: str, branch: str) -> Outcome:
        """Start a parameterized build; the value is the queue item URL."""
        url = f"{urls.ensure_trailing_slash(job_url)}{urls.BUILD_WITH_PARAMS}"
        error, response = await self._http.post_form(url, {GIT_BRANCH_PARAM: branch})
        if error is not None:
            return error, None
        if response.status_code != 201:
            return TriggerError(f"Unexpected status {response.status_code} from {url}"), None
        location = response.headers.get("Location")
        if not location:
            return TriggerError(f"No Location header in response from {url}"), None
        return None, location

    async def post_webhook(self, webhook_url: str, payload: dict[str, Any]) -> Outcome:
        error, response = await self._http.post_json(webhook_url, payload)
        if error is not None:
            logger.error(f"Failed to send webhook to {webhook_url}: {error}")
        return error, response

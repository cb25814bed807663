"""URL helpers for Jenkins and Blue Ocean endpoints."""

from __future__ import annotations

from urllib.parse import urlsplit

JOBS_TREE = "api/json?tree=jobs[name,url,jobs[name,url,jobs[name,url]]]"
BUILD_WITH_PARAMS = "buildWithParameters"
JSON_API = "api/json"
LAST_BUILD = "lastBuild/api/json"
BLUE_OCEAN_BASE = "blue/rest/organizations/jenkins/pipelines"


def ensure_trailing_slash(url: str) -> str:
    return url if url.endswith("/") else f"{url}/"


def extract_job_path(job_url: str) -> str:
    """Turn a job URL into its slash-joined hierarchical name.

    ``https://h/job/Team/job/App/`` becomes ``Team/App``. Anything that does
    not parse as an absolute URL is split on ``/job/`` instead.
    """
    try:
        parts = urlsplit(job_url)
        if not parts.scheme or not parts.netloc:
            raise ValueError(f"not an absolute URL: {job_url!r}")
    except ValueError:
        return "/".join(job_url.split("/job/")[1:]).rstrip("/")
    return "/".join(p for p in parts.path.split("/") if p and p != "job")


def blue_ocean_nodes_url(base_url: str, job_path: str, build_number: int) -> str:
    # Test/App -> Test/pipelines/App
    segments = [p for p in job_path.split("/") if p]
    pipeline = "/pipelines/".join(segments)
    return (
        f"{ensure_trailing_slash(base_url)}{BLUE_OCEAN_BASE}/"
        f"{pipeline}/runs/{build_number}/nodes/"
    )

"""Find the Jenkins environments and git branches a build can target."""

from __future__ import annotations

import asyncio
import re

from git import Repo
from git.exc import CommandError, InvalidGitRepositoryError, NoSuchPathError
from loguru import logger

from jenkins_helper.gateway import JenkinsGateway
from jenkins_helper.models import BranchInfo, LabeledValue

_REMOTE_PREFIX = re.compile(r"^(?:remotes/)?origin/")


def normalize_branch_name(name: str) -> str:
    """Strip ``remotes/origin/`` / ``origin/`` prefixes for display."""
    previous = None
    while name != previous:
        previous = name
        name = _REMOTE_PREFIX.sub("", name.strip())
    return name


async def resolve_environments(
    gateway: JenkinsGateway, project_name: str, base_url: str
) -> list[LabeledValue]:
    """Jobs named like the project, one per top-level folder holding one.

    The folder name becomes the environment label. Matching ignores case but
    is otherwise exact.
    """
    error, data = await gateway.fetch_jobs_tree(base_url)
    if error is not None or not isinstance(data, dict):
        logger.error(f"Failed to fetch jobs tree from {base_url}: {error}")
        return []

    target = project_name.lower()
    envs: list[LabeledValue] = []
    for top in data.get("jobs") or []:
        for child in top.get("jobs") or []:
            name = child.get("name") or ""
            if name.lower() == target and child.get("url"):
                envs.append(LabeledValue(label=top.get("name", ""), value=child["url"]))
    return envs


def _remote_branches(repo: Repo) -> list[str]:
    lines = (line.strip() for line in repo.git.branch("-r").splitlines())
    return [b for b in lines if b.startswith("origin/") and "->" not in b]


def _current_branch(repo: Repo) -> str:
    return repo.active_branch.name


async def resolve_branches(repo_root: str, fetch_remote: bool = True) -> BranchInfo:
    """Remote branches of ``origin`` plus the checked-out branch.

    A failed fetch falls back to the locally known remote branches; the
    branch listing and the current-branch lookup fail independently.
    """
    try:
        repo = await asyncio.to_thread(
            Repo, repo_root, search_parent_directories=True
        )
    except (InvalidGitRepositoryError, NoSuchPathError) as e:
        logger.error(f"{repo_root} is not a git repository: {e}")
        return BranchInfo()

    if fetch_remote:
        try:
            await asyncio.to_thread(repo.git.fetch, "--prune")
        except CommandError as e:
            logger.warning(f"git fetch failed, using cached remote branches: {e}")

    branches, current = await asyncio.gather(
        asyncio.to_thread(_remote_branches, repo),
        asyncio.to_thread(_current_branch, repo),
        return_exceptions=True,
    )

    info = BranchInfo()
    if isinstance(branches, Exception):
        logger.error(f"Failed to list remote branches: {branches}")
    else:
        info.branch_options = [
            LabeledValue(label=normalize_branch_name(b), value=b) for b in branches
        ]

    if isinstance(current, Exception):
        logger.error(f"Failed to read current branch: {current}")
    elif current:
        info.current_branch = normalize_branch_name(current)

    return info

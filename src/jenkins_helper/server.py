"""Jenkins Helper MCP Server — trigger and follow builds of the current project."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from pathlib import Path
from typing import Any

import jenkins
from fastmcp import Context, FastMCP
from loguru import logger

from jenkins_helper.actions import extract_builder_and_branch
from jenkins_helper.config_store import JenkinsConfig, Session
from jenkins_helper.gateway import JenkinsGateway
from jenkins_helper.jenkins_client import HttpAdapter, get_client
from jenkins_helper.lifecycle import run_lifecycle
from jenkins_helper.log import setup_logger
from jenkins_helper.models import (
    STATE_FINISHED,
    BuildResult,
    LastBuildInfo,
    StageNode,
    TriggerIntent,
)
from jenkins_helper.polling import LifecyclePolicy
from jenkins_helper.resolver import resolve_branches, resolve_environments

mcp = FastMCP("Jenkins Helper")

_session: Session | None = None
_trigger_lock = asyncio.Lock()


def get_session() -> Session:
    """Return the process-wide session, loading the stored config once."""
    global _session
    if _session is None:
        _session = Session()
        _session.load()
    return _session


def get_gateway(config: JenkinsConfig) -> JenkinsGateway:
    return JenkinsGateway(HttpAdapter(get_client(config)))


def get_policy() -> LifecyclePolicy:
    return LifecyclePolicy.from_env()


def _format_error(e: Exception) -> dict[str, Any]:
    """Format an exception into a consistent error response."""
    return {"error": True, "message": str(e)}


def _mask(token: str) -> str:
    return "****" if token else ""


async def _last_build_info(gateway: JenkinsGateway, job_url: str) -> LastBuildInfo:
    error, build = await gateway.fetch_last_build(job_url)
    if error is not None or not isinstance(build, dict):
        logger.error(f"Failed to get last build of {job_url}: {error}")
        return LastBuildInfo()
    builder, branch = extract_builder_and_branch(build)
    return LastBuildInfo(
        builder=builder,
        branch=branch,
        timestamp=build.get("timestamp"),
        build_number=build.get("number"),
        build_url=build.get("url"),
        result=build.get("result") or None,
    )


# ---------------------------------------------------------------------------
# Tool 1: get_config
# ---------------------------------------------------------------------------
@mcp.tool
def get_config() -> dict[str, Any]:
    """Show the current Jenkins connection settings (token masked).

    Returns:
        A dict with the config and whether it is complete enough to use.
    """
    config = get_session().config
    data = config.to_dict()
    data["token"] = _mask(config.token)
    return {"success": True, "complete": config.is_complete(), "config": data}


# ---------------------------------------------------------------------------
# Tool 2: save_config
# ---------------------------------------------------------------------------
@mcp.tool
def save_config(
    url: str,
    username: str,
    token: str,
    webhook: str = "",
    default_env: str = "",
) -> dict[str, Any]:
    """Save Jenkins connection settings.

    Args:
        url: Jenkins server URL.
        username: Jenkins username.
        token: Jenkins API token for the user.
        webhook: Optional URL notified with the result of every build.
        default_env: Optional environment preselected for new builds.

    Returns:
        A dict indicating whether the settings were saved.
    """
    config = JenkinsConfig(
        url=url.strip(),
        username=username.strip(),
        token=token.strip(),
        webhook=webhook.strip(),
        default_env=default_env.strip(),
    )
    try:
        get_session().save(config)
        return {"success": True, "message": "Jenkins config saved."}
    except (ValueError, OSError) as e:
        return _format_error(e)


# ---------------------------------------------------------------------------
# Tool 3: clear_config
# ---------------------------------------------------------------------------
@mcp.tool
def clear_config() -> dict[str, Any]:
    """Forget the saved Jenkins connection settings."""
    try:
        get_session().clear()
        return {"success": True, "message": "Jenkins config cleared."}
    except OSError as e:
        return _format_error(e)


# ---------------------------------------------------------------------------
# Tool 4: load_build_data
# ---------------------------------------------------------------------------
@mcp.tool
async def load_build_data(workspace_root: str, fetch_remote: bool = True) -> dict[str, Any]:
    """List the branches and Jenkins environments available for a project.

    The project name is the name of the workspace folder; an environment is
    a top-level Jenkins folder holding a job with that name.

    Args:
        workspace_root: Path of the git working copy.
        fetch_remote: Fetch from origin (with prune) before listing branches.

    Returns:
        A dict with the project name, current branch, branch options,
        environment options and the configured default environment.
    """
    try:
        config = get_session().config
        gateway = get_gateway(config)
        project_name = Path(workspace_root).name

        branch_info, envs = await asyncio.gather(
            resolve_branches(workspace_root, fetch_remote=fetch_remote),
            resolve_environments(gateway, project_name, config.url),
        )

        return {
            "success": True,
            "project_name": project_name,
            "current_branch": branch_info.current_branch,
            "branch_options": [b.to_dict() for b in branch_info.branch_options],
            "env_options": [e.to_dict() for e in envs],
            "default_env": config.default_env or None,
        }
    except jenkins.JenkinsException as e:
        return _format_error(e)
    except ValueError as e:
        return _format_error(e)


# ---------------------------------------------------------------------------
# Tool 5: trigger_build
# ---------------------------------------------------------------------------
@mcp.tool
async def trigger_build(
    env: str,
    job_url: str,
    branch: str,
    ctx: Context,
    branch_label: str = "",
    project_name: str = "",
) -> dict[str, Any]:
    """Trigger a build and follow it until Jenkins reports a result.

    Stage progress and state changes are streamed to the client while the
    build runs. Only one build can be followed at a time.

    Args:
        env: Environment label the job belongs to.
        job_url: URL of the Jenkins job to build.
        branch: Full remote ref passed as the GIT_BRANCH parameter.
        branch_label: Display name of the branch.
        project_name: Project name reported to the webhook.

    Returns:
        A dict with the final result, every intermediate result, the last
        stage snapshot and the refreshed last-build info of the job.
    """
    if _trigger_lock.locked():
        return _format_error(RuntimeError("A build is already in progress."))

    async with _trigger_lock:
        try:
            config = get_session().config
            gateway = get_gateway(config)
            policy = get_policy()
        except jenkins.JenkinsException as e:
            return _format_error(e)
        except ValueError as e:
            return _format_error(e)

        intent = TriggerIntent(
            env=env,
            job_url=job_url,
            branch=branch,
            branch_label=branch_label or branch,
        )
        results: list[BuildResult] = []
        stages: list[StageNode] = []
        last_build: LastBuildInfo | None = None

        async def on_progress(nodes: list[StageNode]) -> None:
            stages[:] = nodes
            if ctx is not None:
                done = sum(1 for n in nodes if n.get("state") == STATE_FINISHED)
                await ctx.report_progress(progress=done, total=len(nodes))

        async def on_result(result: BuildResult) -> None:
            nonlocal last_build
            result = replace(result, env=env, project_name=project_name or None)
            results.append(result)
            if ctx is not None and result.message:
                await ctx.info(result.message)
            if not result.finished:
                return

            if config.webhook:
                payload = {
                    **result.to_dict(),
                    **intent.to_dict(),
                    "projectName": project_name,
                }
                await gateway.post_webhook(config.webhook, payload)
            last_build = await _last_build_info(gateway, job_url)

        await run_lifecycle(
            gateway, config.url, intent, on_progress, on_result, policy=policy
        )

        final = results[-1]
        return {
            "success": bool(final.success),
            "result": final.to_dict(),
            "results": [r.to_dict() for r in results],
            "stages": stages,
            "last_build": last_build.to_dict() if last_build else None,
        }


# ---------------------------------------------------------------------------
# Tool 6: get_last_build_result
# ---------------------------------------------------------------------------
@mcp.tool
async def get_last_build_result(job_url: str) -> dict[str, Any]:
    """Who built a job last, from which branch, and with what result.

    Args:
        job_url: URL of the Jenkins job.

    Returns:
        A dict with builder, branch, timestamp, build number, URL and result.
        Builder and branch are None when the last build cannot be read.
    """
    try:
        gateway = get_gateway(get_session().config)
    except jenkins.JenkinsException as e:
        return _format_error(e)
    except ValueError as e:
        return _format_error(e)

    info = await _last_build_info(gateway, job_url)
    return {"success": True, "job_url": job_url, **info.to_dict()}


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------
def main() -> None:
    setup_logger()
    mcp.run()


if __name__ == "__main__":
    main()

"""Drive one Jenkins build from trigger to final result.

Jenkins offers no completion callback, so the lifecycle polls: first the queue
item until an executor picks the build up, then the Blue Ocean stage nodes
until the pipeline settles, then the build detail for the authoritative
result. Callers observe it through two callbacks:

* ``on_progress(nodes)`` gets every non-empty stage snapshot, as returned by
  Blue Ocean. Each snapshot replaces the previous one.
* ``on_result(result)`` gets a :class:`BuildResult` per stage transition and
  exactly one ``finished`` result at the end.

:meth:`BuildLifecycle.run` does not raise; every failure turns into a
``finished`` result with ``success=False``.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Union

from loguru import logger

from jenkins_helper.actions import extract_builder_and_branch
from jenkins_helper.gateway import JenkinsGateway
from jenkins_helper.models import (
    EARLY_EXIT_RESULTS,
    RESULT_SUCCESS,
    STATE_FINISHED,
    BuildExecutable,
    BuildResult,
    StageNode,
    TriggerIntent,
)
from jenkins_helper.polling import LifecyclePolicy, Sleep, poll_until
from jenkins_helper.urls import ensure_trailing_slash, extract_job_path

ProgressCallback = Callable[[list[StageNode]], Union[None, Awaitable[None]]]
ResultCallback = Callable[[BuildResult], Union[None, Awaitable[None]]]

MSG_TRIGGER_FAILED = "Failed to trigger build: could not obtain queue location"
MSG_QUEUED = "Waiting for an executor..."
MSG_NO_EXECUTABLE = "Failed to trigger build: could not obtain build info"
MSG_BUILDING = "Building..."
MSG_TIMED_OUT = "Build timed out: the build did not finish in time"
MSG_NO_RESULT = "Build failed: cannot obtain result"
MSG_SUCCESS = "Build succeeded"
MSG_FAILED = "Build failed: {result}"
MSG_ERROR = "Build error: {error}"


async def _call(callback: Callable[[Any], Any], value: Any) -> None:
    ret = callback(value)
    if inspect.isawaitable(ret):
        await ret


def is_stage_failed(nodes: list[StageNode]) -> bool:
    return any(
        node.get("state") == STATE_FINISHED and node.get("result") in EARLY_EXIT_RESULTS
        for node in nodes
    )


def are_stages_finished(nodes: list[StageNode]) -> bool:
    return all(node.get("state") == STATE_FINISHED for node in nodes)


def parse_executable(queue_item: Any) -> BuildExecutable | None:
    """The executable of a queue item, once Jenkins has scheduled it."""
    if not isinstance(queue_item, dict):
        return None
    executable = queue_item.get("executable")
    if not isinstance(executable, dict):
        return None
    number, url = executable.get("number"), executable.get("url")
    if not number or not url:
        return None
    return BuildExecutable(number=int(number), url=ensure_trailing_slash(url))


class BuildLifecycle:
    def __init__(
        self,
        gateway: JenkinsGateway,
        base_url: str,
        policy: LifecyclePolicy | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._gateway = gateway
        self._base_url = base_url
        self._policy = policy or LifecyclePolicy()
        self._sleep = sleep

    async def run(
        self,
        intent: TriggerIntent,
        on_progress: ProgressCallback,
        on_result: ResultCallback,
    ) -> None:
        finished = False

        async def emit(result: BuildResult) -> None:
            nonlocal finished
            if result.finished:
                finished = True
            await _call(on_result, result)

        try:
            await self._drive(intent, on_progress, emit)
        except Exception as e:
            logger.exception(f"Build lifecycle error for {intent.job_url}")
            if finished:
                return
            try:
                await emit(
                    BuildResult(
                        stage="finished",
                        success=False,
                        message=MSG_ERROR.format(error=type(e).__name__),
                    )
                )
            except Exception:
                logger.exception("Result callback failed while reporting an error")

    async def _drive(
        self,
        intent: TriggerIntent,
        on_progress: ProgressCallback,
        emit: Callable[[BuildResult], Awaitable[None]],
    ) -> None:
        logger.info(f"Triggering {intent.job_url} on branch {intent.branch}")

        # Single shot: a retry would queue a second build.
        error, queue_url = await self._gateway.trigger_build(intent.job_url, intent.branch)
        if error is not None:
            logger.error(f"Failed to trigger build for {intent.job_url}: {error}")
            await emit(BuildResult(stage="finished", success=False, message=MSG_TRIGGER_FAILED))
            return

        await emit(BuildResult(stage="queued", message=MSG_QUEUED))

        executable = await self.wait_for_executable(queue_url)
        if executable is None:
            logger.error(f"Queue item {queue_url} was never scheduled")
            await emit(BuildResult(stage="finished", success=False, message=MSG_NO_EXECUTABLE))
            return

        await emit(
            BuildResult(
                stage="building",
                message=MSG_BUILDING,
                build_number=executable.number,
                build_url=executable.url,
            )
        )

        job_path = extract_job_path(intent.job_url)
        if not await self.wait_for_stages(executable.number, job_path, on_progress):
            logger.error(f"Build #{executable.number} of {job_path} timed out")
            await emit(
                BuildResult(
                    stage="finished",
                    success=False,
                    message=MSG_TIMED_OUT,
                    build_number=executable.number,
                    build_url=executable.url,
                )
            )
            return

        error, build = await self._gateway.fetch_build(intent.job_url, executable.number)
        if error is not None or not isinstance(build, dict):
            logger.error(f"Failed to get result of build #{executable.number}: {error}")
            await emit(
                BuildResult(
                    stage="finished",
                    success=False,
                    message=MSG_NO_RESULT,
                    build_number=executable.number,
                    build_url=executable.url,
                )
            )
            return

        result = build.get("result")
        success = result == RESULT_SUCCESS
        builder, branch = extract_builder_and_branch(build)
        logger.info(f"Build #{executable.number} of {job_path} finished: {result}")
        await emit(
            BuildResult(
                stage="finished",
                success=success,
                message=MSG_SUCCESS if success else MSG_FAILED.format(result=result),
                build_number=executable.number,
                build_url=build.get("url") or executable.url,
                result=result or None,
                duration=build.get("duration"),
                builder=builder,
                branch=branch,
            )
        )

    async def wait_for_executable(self, queue_url: str) -> BuildExecutable | None:
        async def attempt() -> BuildExecutable | None:
            error, item = await self._gateway.fetch_queue_item(queue_url)
            if error is not None:
                logger.warning(f"Queue poll of {queue_url} failed: {error}")
                return None
            return parse_executable(item)

        return await poll_until(attempt, self._policy.queue, self._sleep)

    async def wait_for_stages(
        self, build_number: int, job_path: str, on_progress: ProgressCallback
    ) -> bool:
        """Poll stage nodes; True once the pipeline outcome is settled."""

        async def attempt() -> bool | None:
            error, nodes = await self._gateway.fetch_stage_nodes(
                self._base_url, job_path, build_number
            )
            if error is not None:
                logger.warning(f"Stage poll of {job_path} #{build_number} failed: {error}")
                return None
            if not nodes:
                return None
            await _call(on_progress, nodes)
            # A failed stage decides the outcome even while later stages
            # are still pending.
            if is_stage_failed(nodes) or are_stages_finished(nodes):
                return True
            return None

        return bool(await poll_until(attempt, self._policy.build, self._sleep))


async def run_lifecycle(
    gateway: JenkinsGateway,
    base_url: str,
    intent: TriggerIntent,
    on_progress: ProgressCallback,
    on_result: ResultCallback,
    policy: LifecyclePolicy | None = None,
    sleep: Sleep = asyncio.sleep,
) -> None:
    await BuildLifecycle(gateway, base_url, policy, sleep).run(intent, on_progress, on_result)

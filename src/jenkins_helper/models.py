"""Data shapes shared by the resolver, the lifecycle and the MCP tools."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

Stage = Literal["queued", "building", "finished"]
StageNode = dict[str, Any]

# Blue Ocean node states and results.
STATE_FINISHED = "FINISHED"
RESULT_SUCCESS = "SUCCESS"
EARLY_EXIT_RESULTS = frozenset({"FAILURE", "ABORTED", "UNSTABLE"})

GIT_BRANCH_PARAM = "GIT_BRANCH"


@dataclass(frozen=True)
class LabeledValue:
    """A selectable option: an environment or a remote branch."""

    label: str
    value: str

    def to_dict(self) -> dict[str, str]:
        return {"label": self.label, "value": self.value}


@dataclass
class BranchInfo:
    current_branch: str | None = None
    branch_options: list[LabeledValue] = field(default_factory=list)


@dataclass(frozen=True)
class TriggerIntent:
    """Input to a single build attempt."""

    env: str
    job_url: str
    branch: str
    branch_label: str

    def to_dict(self) -> dict[str, str]:
        return {
            "env": self.env,
            "jobUrl": self.job_url,
            "branch": self.branch,
            "branchLabel": self.branch_label,
        }


@dataclass(frozen=True)
class BuildExecutable:
    number: int
    url: str


_RESULT_KEYS = {
    "stage": "stage",
    "success": "success",
    "message": "message",
    "build_number": "buildNumber",
    "build_url": "buildUrl",
    "result": "result",
    "duration": "duration",
    "builder": "builder",
    "branch": "branch",
    "env": "env",
    "project_name": "projectName",
}


@dataclass(frozen=True)
class BuildResult:
    """One snapshot of a build attempt's externally visible state.

    A new instance is emitted on every stage transition; exactly one
    ``finished`` snapshot closes an attempt.
    """

    stage: Stage
    success: bool | None = None
    message: str | None = None
    build_number: int | None = None
    build_url: str | None = None
    result: str | None = None
    duration: int | None = None
    builder: str | None = None
    branch: str | None = None
    env: str | None = None
    project_name: str | None = None

    @property
    def finished(self) -> bool:
        return self.stage == "finished"

    def to_dict(self) -> dict[str, Any]:
        """Render the camelCase wire form, leaving out unset fields."""
        data: dict[str, Any] = {}
        for attr, key in _RESULT_KEYS.items():
            value = getattr(self, attr)
            if value is not None:
                data[key] = value
        return data


@dataclass(frozen=True)
class LastBuildInfo:
    builder: str | None = None
    branch: str | None = None
    timestamp: int | None = None
    build_number: int | None = None
    build_url: str | None = None
    result: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "builder": self.builder,
            "branch": self.branch,
            "timestamp": self.timestamp,
            "build_number": self.build_number,
            "build_url": self.build_url,
            "result": self.result,
        }

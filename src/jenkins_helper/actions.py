"""Pull the builder and the git branch out of a build's ``actions`` list.

Jenkins does not guarantee an ordering or a fixed shape for actions, so both
lookups scan the list and give up quietly with None.
"""

from __future__ import annotations

from typing import Any

from jenkins_helper.models import GIT_BRANCH_PARAM

CAUSE_ACTION = "hudson.model.CauseAction"
USER_ID_CAUSE = "hudson.model.Cause$UserIdCause"
PARAMETERS_ACTION = "hudson.model.ParametersAction"


def _find(items: Any, key: str, value: str) -> dict[str, Any] | None:
    if not isinstance(items, list):
        return None
    for item in items:
        if isinstance(item, dict) and item.get(key) == value:
            return item
    return None


def extract_builder(build: dict[str, Any]) -> str | None:
    """Display name (or id) of the user who started the build."""
    action = _find(build.get("actions"), "_class", CAUSE_ACTION)
    if action is None:
        return None
    cause = _find(action.get("causes"), "_class", USER_ID_CAUSE)
    if cause is None:
        return None
    return cause.get("userName") or cause.get("userId") or None


def extract_branch(build: dict[str, Any]) -> str | None:
    """Value of the ``GIT_BRANCH`` build parameter."""
    action = _find(build.get("actions"), "_class", PARAMETERS_ACTION)
    if action is None:
        return None
    param = _find(action.get("parameters"), "name", GIT_BRANCH_PARAM)
    if param is None:
        return None
    value = param.get("value")
    if value is None or value == "":
        return None
    return str(value)


def extract_builder_and_branch(build: dict[str, Any]) -> tuple[str | None, str | None]:
    return extract_builder(build), extract_branch(build)

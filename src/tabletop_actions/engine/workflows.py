"""Static workflow definitions.

A workflow is an ordered list of step ids run by the orchestrator. The
table is loaded once at import and never changes while actions run.
"""

from __future__ import annotations

from dataclasses import dataclass

from tabletop_actions.core.exceptions import WorkflowConfigurationError


@dataclass(frozen=True)
class WorkflowDefinition:
    """A named, ordered list of workflow steps.

    Attributes:
        workflow: Workflow name.
        workflow_steps: Step ids, first to last.
    """

    workflow: str
    workflow_steps: tuple[str, ...]


WORKFLOW_CONFIGS: tuple[WorkflowDefinition, ...] = (
    WorkflowDefinition("attack", ("start", "attack", "complete")),
    WorkflowDefinition("damage", ("start", "damage", "complete")),
    WorkflowDefinition("save", ("start", "save", "complete")),
    WorkflowDefinition("check", ("start", "check", "complete")),
    WorkflowDefinition("attack-damage", ("start", "attack", "damage", "complete")),
    WorkflowDefinition("attack-save", ("start", "attack", "save", "complete")),
    WorkflowDefinition(
        "damage-save-applyDamage",
        ("start", "damage", "save", "applyDamage", "complete"),
    ),
    WorkflowDefinition(
        "attack-damage-save-applyDamage",
        ("start", "attack", "damage", "save", "applyDamage", "complete"),
    ),
)


def get_workflow(
    workflow_name: str,
    *,
    workflows: tuple[WorkflowDefinition, ...] | None = None,
) -> WorkflowDefinition:
    """Look up a workflow by name.

    Args:
        workflow_name: Workflow name.
        workflows: Alternate table; defaults to ``WORKFLOW_CONFIGS``.

    Returns:
        The workflow definition.

    Raises:
        WorkflowConfigurationError: If no workflow has that name.
    """
    table = WORKFLOW_CONFIGS if workflows is None else workflows
    for definition in table:
        if definition.workflow == workflow_name:
            return definition
    raise WorkflowConfigurationError(
        f"Invalid workflow: {workflow_name}",
        workflow=workflow_name,
        details={"available": get_available_workflows(workflows=table)},
    )


def get_available_workflows(
    *,
    workflows: tuple[WorkflowDefinition, ...] | None = None,
) -> list[str]:
    """Names of every workflow in the table."""
    table = WORKFLOW_CONFIGS if workflows is None else workflows
    return [definition.workflow for definition in table]


__all__ = [
    "WorkflowDefinition",
    "WORKFLOW_CONFIGS",
    "get_workflow",
    "get_available_workflows",
]

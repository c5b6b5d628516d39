"""
Handler registry
Tool and workflow schemas plus the alias table shared by the router and
any downstream dispatcher.
"""
from .schemas.email_tools import EMAIL_TOOLS
from .schemas.schedule_tools import SCHEDULE_TOOLS
from .schemas.task_tools import TASK_TOOLS
from .schemas.workflow_tools import WORKFLOW_TOOLS

TOOLS = WORKFLOW_TOOLS + SCHEDULE_TOOLS + TASK_TOOLS + EMAIL_TOOLS
TOOL_NAMES = {tool["name"] for tool in TOOLS}
WORKFLOW_NAMES = {tool["name"] for tool in WORKFLOW_TOOLS}

# Workflows that run the adaptive scheduling pipeline
DAY_PLANNING_WORKFLOW = "workflow_optimizeSchedule"
DAY_PLANNING_WORKFLOWS = {DAY_PLANNING_WORKFLOW, "workflow_schedule"}

FILL_WORK_BLOCK = "workflow_fillWorkBlock"
FILL_EMAIL_BLOCK = "workflow_fillEmailBlock"
VIEW_SCHEDULE = "schedule_viewSchedule"

TOOL_ALIASES = {
    # Schedule
    "viewSchedule": "schedule_viewSchedule",
    "createTimeBlock": "schedule_createTimeBlock",
    "moveTimeBlock": "schedule_moveTimeBlock",
    "deleteTimeBlock": "schedule_deleteTimeBlock",
    "findGaps": "schedule_findGaps",
    # Tasks
    "viewTasks": "task_viewTasks",
    "createTask": "task_createTask",
    "completeTask": "task_completeTask",
    "assignTaskToBlock": "task_assignToTimeBlock",
    # Email
    "viewEmails": "email_getBacklog",
    "getEmailBacklog": "email_getBacklog",
    # Workflows
    "optimizeSchedule": "workflow_optimizeSchedule",
    "planDay": "workflow_optimizeSchedule",
    "schedule": "workflow_schedule",
    "fillWorkBlock": "workflow_fillWorkBlock",
    "fillEmailBlock": "workflow_fillEmailBlock",
    "triageEmails": "workflow_triageEmails",
    "prioritizeTasks": "workflow_prioritizeTasks",
    "optimizeCalendar": "workflow_optimizeCalendar",
}


def canonical_tool_name(name: str) -> str:
    """Map a short or legacy name to its registered name; unknown names pass through"""
    return TOOL_ALIASES.get(name, name)


def is_workflow(name: str) -> bool:
    return canonical_tool_name(name) in WORKFLOW_NAMES


def describe_handlers() -> str:
    """One line per handler, for prompts"""
    return "\n".join(f"- {tool['name']}: {tool['description']}" for tool in TOOLS)


__all__ = [
    "TOOLS",
    "TOOL_NAMES",
    "WORKFLOW_NAMES",
    "TOOL_ALIASES",
    "DAY_PLANNING_WORKFLOW",
    "DAY_PLANNING_WORKFLOWS",
    "FILL_WORK_BLOCK",
    "FILL_EMAIL_BLOCK",
    "VIEW_SCHEDULE",
    "canonical_tool_name",
    "is_workflow",
    "describe_handlers",
]

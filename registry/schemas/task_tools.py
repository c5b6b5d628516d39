"""
Task tool schemas
"""

view_tasks_tool = {
    "name": "task_viewTasks",
    "description": "Lists the user's backlog tasks, highest score first.",
    "input_schema": {
        "type": "object",
        "properties": {
            "status": {"type": "string", "enum": ["backlog", "scheduled", "completed"]},
            "limit": {"type": "number"}
        },
        "required": []
    }
}

create_task_tool = {
    "name": "task_createTask",
    "description": "Adds a task to the backlog.",
    "input_schema": {
        "type": "object",
        "properties": {
            "title": {"type": "string"},
            "priority": {"type": "string", "enum": ["high", "medium", "low"]},
            "estimated_minutes": {"type": "number"}
        },
        "required": ["title"]
    }
}

complete_task_tool = {
    "name": "task_completeTask",
    "description": "Marks a task as done.",
    "input_schema": {
        "type": "object",
        "properties": {
            "task_id": {"type": "string"}
        },
        "required": ["task_id"]
    }
}

assign_to_block_tool = {
    "name": "task_assignToTimeBlock",
    "description": "Links a task to a work block.",
    "input_schema": {
        "type": "object",
        "properties": {
            "task_id": {"type": "string"},
            "block_id": {"type": "string"}
        },
        "required": ["task_id", "block_id"]
    }
}

TASK_TOOLS = [
    view_tasks_tool,
    create_task_tool,
    complete_task_tool,
    assign_to_block_tool,
]

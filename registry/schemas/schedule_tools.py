"""
Schedule tool schemas
Time-block reads and single-block edits. Times are HH:MM in the user's timezone.
"""

view_schedule_tool = {
    "name": "schedule_viewSchedule",
    "description": "Shows the user's time blocks for a date. Defaults to the date the user is viewing, or today.",
    "input_schema": {
        "type": "object",
        "properties": {
            "date": {"type": "string", "description": "Date as YYYY-MM-DD"}
        },
        "required": []
    }
}

create_time_block_tool = {
    "name": "schedule_createTimeBlock",
    "description": "Creates a work, meeting, email, break or blocked time block.",
    "input_schema": {
        "type": "object",
        "properties": {
            "type": {"type": "string", "enum": ["work", "meeting", "email", "break", "blocked"]},
            "title": {"type": "string"},
            "start_time": {"type": "string", "description": "HH:MM"},
            "end_time": {"type": "string", "description": "HH:MM"},
            "date": {"type": "string", "description": "YYYY-MM-DD"},
            "description": {"type": "string"}
        },
        "required": ["type", "title", "start_time", "end_time"]
    }
}

move_time_block_tool = {
    "name": "schedule_moveTimeBlock",
    "description": "Moves an existing block to a new start time, keeping its duration unless a new end time is given.",
    "input_schema": {
        "type": "object",
        "properties": {
            "block_id": {"type": "string"},
            "start_time": {"type": "string", "description": "HH:MM"},
            "end_time": {"type": "string", "description": "HH:MM"},
            "date": {"type": "string", "description": "YYYY-MM-DD"}
        },
        "required": ["block_id", "start_time"]
    }
}

delete_time_block_tool = {
    "name": "schedule_deleteTimeBlock",
    "description": "Deletes a time block. Requires confirmation before it is applied.",
    "input_schema": {
        "type": "object",
        "properties": {
            "block_id": {"type": "string"},
            "reason": {"type": "string"}
        },
        "required": ["block_id"]
    }
}

find_gaps_tool = {
    "name": "schedule_findGaps",
    "description": "Lists free intervals of at least the given length inside the work day.",
    "input_schema": {
        "type": "object",
        "properties": {
            "date": {"type": "string"},
            "min_duration": {"type": "number", "description": "Minutes, default 15"}
        },
        "required": []
    }
}

SCHEDULE_TOOLS = [
    view_schedule_tool,
    create_time_block_tool,
    move_time_block_tool,
    delete_time_block_tool,
    find_gaps_tool,
]

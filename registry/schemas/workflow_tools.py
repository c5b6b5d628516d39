"""
Workflow schemas
Multi-step handlers. Every workflow returns a proposal that the user must
confirm before anything changes.
"""

optimize_schedule_workflow = {
    "name": "workflow_optimizeSchedule",
    "description": "Plans or re-plans the user's day: fills gaps, consolidates fragmented focus time, assigns tasks and protects lunch.",
    "input_schema": {
        "type": "object",
        "properties": {
            "date": {"type": "string", "description": "YYYY-MM-DD, defaults to the viewed date or today"}
        },
        "required": []
    }
}

schedule_workflow = {
    "name": "workflow_schedule",
    "description": "Builds a schedule for a day from scratch when it is empty.",
    "input_schema": {
        "type": "object",
        "properties": {
            "date": {"type": "string"}
        },
        "required": []
    }
}

fill_work_block_workflow = {
    "name": "workflow_fillWorkBlock",
    "description": "Chooses backlog tasks for one work block. Needs a block id, or a block_time hint when the block is ambiguous.",
    "input_schema": {
        "type": "object",
        "properties": {
            "block_id": {"type": "string"},
            "block_time": {"type": "string", "enum": ["morning", "afternoon", "evening"]},
            "date": {"type": "string"}
        },
        "required": []
    }
}

fill_email_block_workflow = {
    "name": "workflow_fillEmailBlock",
    "description": "Chooses which emails to handle in one email block.",
    "input_schema": {
        "type": "object",
        "properties": {
            "block_id": {"type": "string"},
            "block_time": {"type": "string", "enum": ["morning", "afternoon", "evening"]},
            "date": {"type": "string"}
        },
        "required": []
    }
}

triage_emails_workflow = {
    "name": "workflow_triageEmails",
    "description": "Sorts the email backlog into respond now, schedule, quick reply and review later.",
    "input_schema": {"type": "object", "properties": {}, "required": []}
}

prioritize_tasks_workflow = {
    "name": "workflow_prioritizeTasks",
    "description": "Scores the backlog by priority, urgency, age and energy fit.",
    "input_schema": {
        "type": "object",
        "properties": {
            "energy_level": {"type": "string", "enum": ["high", "medium", "low"]}
        },
        "required": []
    }
}

optimize_calendar_workflow = {
    "name": "workflow_optimizeCalendar",
    "description": "Looks for meeting conflicts and back-to-back meetings across the week.",
    "input_schema": {"type": "object", "properties": {}, "required": []}
}

WORKFLOW_TOOLS = [
    optimize_schedule_workflow,
    schedule_workflow,
    fill_work_block_workflow,
    fill_email_block_workflow,
    triage_emails_workflow,
    prioritize_tasks_workflow,
    optimize_calendar_workflow,
]

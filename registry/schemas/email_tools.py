"""
Email tool schemas
Importance and urgency are classified upstream; these tools only read them.
"""

get_backlog_tool = {
    "name": "email_getBacklog",
    "description": "Shows unread and starred emails with their importance and urgency.",
    "input_schema": {
        "type": "object",
        "properties": {
            "max_results": {"type": "number", "description": "Default 50"},
            "urgent_only": {"type": "boolean"}
        },
        "required": []
    }
}

EMAIL_TOOLS = [get_backlog_tool]

"""
Supabase client for database access
Row-level reads for schedules, tasks, preferences and the email digest.
Errors propagate; callers decide how to degrade.
"""
from supabase import create_client, Client
from config import settings
from utils.logger import get_logger

logger = get_logger(__name__)

_client: Client | None = None


def get_supabase_client() -> Client:
    """Get or create Supabase client singleton"""
    global _client
    if _client is None:
        if not settings.SUPABASE_URL or not settings.SUPABASE_KEY:
            raise ValueError("Supabase URL and Key must be configured")
        _client = create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)
    return _client


def get_time_blocks(user_id: str, start_iso: str, end_iso: str) -> list[dict]:
    """Get time blocks starting inside [start_iso, end_iso) ordered by start time"""
    client = get_supabase_client()
    response = (
        client.table("time_blocks")
        .select("*")
        .eq("user_id", user_id)
        .gte("start_time", start_iso)
        .lt("start_time", end_iso)
        .order("start_time")
        .execute()
    )
    logger.info(f"get_time_blocks for {user_id}: found {len(response.data or [])} blocks")
    return response.data or []


def get_task_backlog(user_id: str) -> list[dict]:
    """Get all incomplete tasks for a user"""
    client = get_supabase_client()
    response = (
        client.table("tasks")
        .select("*")
        .eq("user_id", user_id)
        .neq("status", "completed")
        .execute()
    )
    logger.info(f"get_task_backlog for {user_id}: found {len(response.data or [])} tasks")
    return response.data or []


def get_unassigned_tasks(user_id: str) -> list[dict]:
    """Get backlog tasks not yet linked to a time block"""
    client = get_supabase_client()
    response = (
        client.table("tasks")
        .select("*")
        .eq("user_id", user_id)
        .eq("status", "backlog")
        .is_("assigned_block_id", "null")
        .execute()
    )
    logger.info(f"get_unassigned_tasks for {user_id}: found {len(response.data or [])} tasks")
    return response.data or []


def get_user_preferences(user_id: str) -> dict | None:
    """Get user preferences"""
    client = get_supabase_client()
    response = client.table("user_preferences").select("*").eq("user_id", user_id).maybe_single().execute()
    data = response.data if response else None
    logger.info(f"get_user_preferences for {user_id}: {'found' if data else 'not found'}")
    return data


def get_recent_emails(user_id: str, unread_only: bool = False, limit: int = 50) -> list[dict]:
    """Get the most recent emails for a user, newest first"""
    client = get_supabase_client()
    query = client.table("emails").select("*").eq("user_id", user_id)
    if unread_only:
        query = query.eq("is_unread", True)
    response = query.order("received_at", desc=True).limit(limit).execute()
    logger.info(f"get_recent_emails for {user_id}: found {len(response.data or [])} emails")
    return response.data or []

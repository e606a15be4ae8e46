"""
Color Card Request ID Utilities
Generate unique ids for card sessions and export jobs.
"""
import uuid
from datetime import datetime


def generate_request_id(prefix: str = "card") -> str:
    """
    Generate a unique id for tracking.

    Args:
        prefix: Leading tag, e.g. "card" for sessions or "export" for jobs

    Returns:
        Unique id string
    """
    timestamp = datetime.now().strftime("%Y%m%d%H%M%S")
    short_uuid = str(uuid.uuid4())[:8]
    return f"{prefix}-{timestamp}-{short_uuid}"


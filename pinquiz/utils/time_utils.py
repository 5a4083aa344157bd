from datetime import datetime
import pytz
from pinquiz.config import settings

def get_local_time():
    """Get current time in the configured timezone"""
    return datetime.now(pytz.timezone(settings.timezone))

def now_iso():
    """Current time as an ISO-8601 string for record timestamps"""
    return get_local_time().isoformat()
# flashquery/utils/ids.py

from enum import Enum
from uuid import uuid4

class IDPrefix(str, Enum):
    USER = "user"
    API_KEY = "key"
    TEAM = "team"
    CONNECTION = "conn"
    DATABASE = "db"
    ACCESS = "access"
    CHAT = "chat"
    MESSAGE = "msg"

def generate_prefixed_id(prefix: IDPrefix) -> str:
    """
    Generate a UUID string with a prefix.

    Args:
        prefix (IDPrefix): The entity prefix (e.g., USER, TEAM).

    Returns:
        str: A prefixed UUID string like 'team-xxxxxxxx-xxxx-xxxx-xxxx-xxxxxxxxxxxx'
    """
    return f"{prefix.value}-{uuid4()}"

"""
Import all models here to ensure they are registered with SQLAlchemy.
"""
# Import Base
from flashquery.models.base import Base

# Import all models
from flashquery.models.user import User
from flashquery.models.team import Team, team_members
from flashquery.models.api_key import ApiKey
from flashquery.models.connection import Connection
from flashquery.models.database import Database
from flashquery.models.access import Access
from flashquery.models.chat import Chat, Message, chat_databases

# This allows metadata.create_all to discover every table

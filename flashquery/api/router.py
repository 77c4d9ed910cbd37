"""
Main API router that includes all endpoint routers.
"""
from fastapi import APIRouter

from flashquery.api.v1.endpoints import (
    access,
    admin,
    api_keys,
    auth,
    chats,
    connections,
    databases,
    profile,
    query,
    teams,
    users,
    vectors,
)


# Create main API router
api_router = APIRouter()

# Include all endpoint routers with appropriate tags
api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(users.router, prefix="/users", tags=["Users"])
api_router.include_router(profile.router, prefix="/user", tags=["Profile"])
api_router.include_router(teams.router, prefix="/teams", tags=["Teams"])
api_router.include_router(api_keys.router, prefix="/teams/{team_id}/api-keys", tags=["API Keys"])
api_router.include_router(admin.router, prefix="/admin", tags=["Admin"])
api_router.include_router(connections.router, prefix="/connections", tags=["Connections"])
api_router.include_router(vectors.router, prefix="/databases/{database_id}/vectors", tags=["Vectors"])
api_router.include_router(databases.router, prefix="/databases", tags=["Databases"])
api_router.include_router(access.router, prefix="/access", tags=["Access"])
api_router.include_router(chats.router, prefix="/chats", tags=["Chats"])
api_router.include_router(query.router, tags=["Query"])

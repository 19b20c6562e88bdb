"""
API v1 Router

All resource endpoints live under /api/v1; authentication lives under /auth.
"""

from fastapi import APIRouter
from . import attachments, notifications, organizations, projects, search, tags, tasks, teams, users

router = APIRouter()

router.include_router(organizations.router, prefix="/orgs", tags=["Organizations"])
router.include_router(teams.router, prefix="/teams", tags=["Teams"])
router.include_router(projects.router, prefix="/projects", tags=["Projects"])
router.include_router(tasks.router, prefix="/tasks", tags=["Tasks"])
router.include_router(attachments.router, prefix="/attachments", tags=["Attachments"])
router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
router.include_router(tags.router, prefix="/tags", tags=["Tags"])
router.include_router(users.router, prefix="/users", tags=["Users"])
router.include_router(search.router, prefix="/search", tags=["Search"])


@router.get("/", tags=["API"])
async def api_root():
    """API root — returns version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/orgs",
            "/teams",
            "/projects",
            "/tasks",
            "/attachments",
            "/notifications",
            "/tags",
            "/users",
            "/search",
        ],
    }

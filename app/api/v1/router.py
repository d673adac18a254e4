from fastapi import APIRouter

from app.api.v1.health import router as health_router
from app.api.v1.projects import router as projects_router
from app.api.v1.members import router as members_router
from app.api.v1.audit import router as audit_router
from app.api.v1.users import router as users_router
from app.api.v1.registry import router as registry_router


v1_router = APIRouter()

# ------------------------------------------------------------------
# SYSTEM / CORE
# ------------------------------------------------------------------
v1_router.include_router(health_router, tags=["health"])

# ------------------------------------------------------------------
# PROJECTS / ACCESS
# ------------------------------------------------------------------
v1_router.include_router(projects_router, tags=["projects"])
v1_router.include_router(members_router, tags=["members"])

# ------------------------------------------------------------------
# PROVENANCE / ADMIN
# ------------------------------------------------------------------
v1_router.include_router(audit_router, tags=["audit"])
v1_router.include_router(users_router, tags=["users"])

# ------------------------------------------------------------------
# EXTERNAL REGISTRY
# ------------------------------------------------------------------
v1_router.include_router(registry_router, tags=["registry"])

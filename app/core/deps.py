# /app/core/deps.py
from typing import Any, Dict, Optional

from fastapi import Depends, Request, Response

from app.services.access_service import AccessService
from app.services.audit_service import AuditResult, AuditService, audit_metadata_from_request
from app.services.field_version_service import FieldVersionService
from app.services.membership_service import MembershipService
from app.services.projects_service import ProjectsService
from app.services.registry_search_service import RegistrySearchService
from app.services.registry_sync_service import RegistrySyncService
from app.services.users_service import UsersService

AUDIT_WARNING_HEADER = "X-Audit-Warning"


def get_access_service() -> AccessService:
    return AccessService()


def get_audit_service() -> AuditService:
    return AuditService()


def get_field_version_service() -> FieldVersionService:
    return FieldVersionService()


def get_projects_service() -> ProjectsService:
    return ProjectsService()


def get_membership_service() -> MembershipService:
    return MembershipService()


def get_users_service() -> UsersService:
    return UsersService()


def get_registry_sync_service() -> RegistrySyncService:
    return RegistrySyncService()


def get_registry_search_service(
    sync: RegistrySyncService = Depends(get_registry_sync_service),
) -> RegistrySearchService:
    return RegistrySearchService(sync)


def audit_metadata(request: Request) -> Optional[Dict[str, Any]]:
    return audit_metadata_from_request(request)


def surface_audit_warnings(response: Response, result: AuditResult) -> None:
    """
    The mutation already succeeded; a failed audit write is reported to the
    caller in a response header instead of an error status.
    """
    if result.warnings:
        response.headers[AUDIT_WARNING_HEADER] = "; ".join(result.warnings)

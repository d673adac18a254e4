from app.schemas.access import AccessDecisionResponse
from app.schemas.audit import AuditEntryResponse, FieldVersionResponse
from app.schemas.members import MemberResponse
from app.schemas.projects import ProjectResponse
from app.schemas.registry import InstitutionResponse, SyncInfoResponse, SyncOutcomeResponse
from app.schemas.users import UserResponse

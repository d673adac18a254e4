# Import every model so Base.metadata is complete (alembic autogenerate, create_all in tests)
from app.models.user import User  # noqa: F401
from app.models.project import Project  # noqa: F401
from app.models.membership import ProjectMembership  # noqa: F401
from app.models.audit_log import AuditLogEntry  # noqa: F401
from app.models.field_version import FieldVersion  # noqa: F401
from app.models.registry_source_state import RegistrySourceState  # noqa: F401
from app.models.registry_institution import RegistryInstitution  # noqa: F401

from backend.app.db.base_class import Base

# Import models to register metadata for Base.metadata.create_all in tests
from backend.app.models.guardian import Guardian  # noqa: F401
from backend.app.models.student import Student  # noqa: F401
from backend.app.models.user import User  # noqa: F401
from backend.app.models.link_request import GuardianLinkRequest  # noqa: F401
from backend.app.models.link_audit import GuardianLinkAuditEntry  # noqa: F401
from backend.app.models.link_incident import GuardianLinkIncident  # noqa: F401
from backend.app.models.link_retention import GuardianLinkRetention  # noqa: F401

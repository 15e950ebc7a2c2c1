from registry.entities.project import Project
from registry.entities.component_version import ComponentVersionRecord
from registry.entities.audit_log import AuditLog
from registry.entities.library_version import LibraryVersion, LibraryVersionComponent

__all__ = [
    "Project", "ComponentVersionRecord", "AuditLog",
    "LibraryVersion", "LibraryVersionComponent",
]

from .user import User
from .org import Org
from .org_membership import (
    OrgMembership,
    Role,
    MembershipStatus,
    PRIVILEGED_ROLES,
)
from .audit_log import AuditLog
from .contact_form import ContactForm, ContactStatus
from .content import Content
from .media import Media
from .system_log import SystemLog

__all__ = [
    "User",
    "Org",
    "OrgMembership",
    "Role",
    "MembershipStatus",
    "PRIVILEGED_ROLES",
    "AuditLog",
    "ContactForm",
    "ContactStatus",
    "Content",
    "Media",
    "SystemLog",
]

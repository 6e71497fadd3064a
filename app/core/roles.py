from enum import Enum


class Role(str, Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    EMPLOYEE = "employee"


class Capability(str, Enum):
    SUBMIT_OWN = "submit_own"
    APPROVE_TIME = "approve_time"
    LOCK_TIME = "lock_time"
    APPROVE_EXPENSES = "approve_expenses"
    MANAGE_COMPANY_EXPENSES = "manage_company_expenses"
    READ_AUDIT_LOG = "read_audit_log"
    VIEW_PENDING_COUNTS = "view_pending_counts"


ROLE_CAPABILITIES = {
    Role.EMPLOYEE: frozenset({Capability.SUBMIT_OWN}),
    Role.MANAGER: frozenset({Capability.SUBMIT_OWN, Capability.VIEW_PENDING_COUNTS}),
    Role.ADMIN: frozenset(Capability),
}


def has_capability(role: Role, capability: Capability) -> bool:
    return capability in ROLE_CAPABILITIES.get(role, frozenset())

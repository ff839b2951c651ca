from dataclasses import dataclass
from enum import Enum

from aquahome.errors import PermissionDenied


class Role(str, Enum):
    ADMIN = "admin"
    FRANCHISE_OWNER = "franchise_owner"
    SERVICE_AGENT = "service_agent"
    CUSTOMER = "customer"

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        try:
            return cls((value or "").strip().lower())
        except ValueError as exc:
            raise PermissionDenied("Invalid role.") from exc


@dataclass(frozen=True)
class Actor:
    id: int
    role: Role

    @classmethod
    def from_user(cls, user):
        return cls(id=int(user.id), role=Role.parse(user.role))


# Fields each role may touch through the general service request update.
SERVICE_REQUEST_UPDATE_FIELDS = {
    Role.ADMIN: frozenset({"status", "agent_id", "scheduled_time", "completion_time", "notes"}),
    Role.FRANCHISE_OWNER: frozenset({"status", "agent_id", "scheduled_time", "completion_time", "notes"}),
    Role.SERVICE_AGENT: frozenset({"status", "scheduled_time", "completion_time", "notes"}),
    Role.CUSTOMER: frozenset({"status"}),
}

# Roles allowed to run each operation at all; scope checks come after.
OPERATION_ROLES = {
    "create_order": frozenset({Role.CUSTOMER}),
    "assign_order_agent": frozenset({Role.ADMIN, Role.FRANCHISE_OWNER}),
    "list_agent_orders": frozenset({Role.SERVICE_AGENT}),
    "verify_payment": frozenset({Role.CUSTOMER}),
    "generate_monthly_payment": frozenset({Role.CUSTOMER}),
    "payment_history": frozenset({Role.ADMIN, Role.FRANCHISE_OWNER, Role.CUSTOMER}),
    "create_service_request": frozenset({Role.CUSTOMER}),
    "view_service_requests": frozenset(Role),
    "update_service_request": frozenset(Role),
    "assign_service_agent": frozenset({Role.ADMIN, Role.FRANCHISE_OWNER}),
    "cancel_service_request": frozenset(Role),
    "submit_service_feedback": frozenset({Role.CUSTOMER}),
    "agent_dashboard": frozenset({Role.SERVICE_AGENT}),
}


def require(actor, operation):
    if actor.role not in OPERATION_ROLES[operation]:
        raise PermissionDenied()


def allowed_update_fields(role):
    return SERVICE_REQUEST_UPDATE_FIELDS.get(role, frozenset())

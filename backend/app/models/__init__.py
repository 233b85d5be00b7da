from app.models.user import User
from app.models.audit import AuditLog
from app.models.operator_group import OperatorGroup, OperatorGroupMember
from app.models.routing_rule import TicketRoutingRule
from app.models.ticket import Ticket, TicketComment
from app.models.system_setting import SystemSetting
from app.models.user_preference import UserPreference

__all__ = [
    "User",
    "AuditLog",
    "OperatorGroup", "OperatorGroupMember",
    "TicketRoutingRule",
    "Ticket", "TicketComment",
    "SystemSetting",
    "UserPreference",
]

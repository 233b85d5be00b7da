from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, SoftDeleteMixin, TimestampMixin, UUIDMixin

ROLES = ("REQUESTER", "OPERATOR", "ADMIN")

# Roles that work tickets: they see queues, rules and groups.
OPERATOR_ROLES = ("OPERATOR", "ADMIN")


class User(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin):
    """Requesters raise tickets; operators work queues; admins also edit routing."""

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("role IN ('REQUESTER', 'OPERATOR', 'ADMIN')", name="role_known"),
    )

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(50), nullable=False, default="REQUESTER")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def is_operator(self) -> bool:
        return self.role in OPERATOR_ROLES

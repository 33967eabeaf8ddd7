import re
from uuid import uuid4

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship, validates

from loyalty_api.db.base import Base


EMAIL_PATTERN = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+"
    r"@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
)


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("points_balance >= 0", name="ck_users_points_balance_non_negative"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    email = Column(String, nullable=False, unique=True, index=True)
    points_balance = Column(Integer, nullable=False, default=0, server_default="0")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    redemptions = relationship("Redemption", back_populates="user")

    @validates("email")
    def _validate_email(self, key: str, email: str | None) -> str:
        value = (email or "").strip()
        if not value:
            raise ValueError("email is required")
        if not EMAIL_PATTERN.match(value):
            raise ValueError(f"email is invalid: {value!r}")
        return value

    @validates("points_balance")
    def _validate_points_balance(self, key: str, points: int | None) -> int:
        if points is None:
            raise ValueError("points_balance is required")
        if isinstance(points, bool) or int(points) != points:
            raise ValueError("points_balance must be an integer")
        if points < 0:
            raise ValueError("points_balance must be greater than or equal to 0")
        return int(points)

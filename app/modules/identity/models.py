"""Identity ORM models."""

from __future__ import annotations

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base, BaseModelMixin, value_enum
from app.core.enums import RoleEnum


class User(BaseModelMixin, Base):
    """Account able to sign in; administrators manage slots and options."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[RoleEnum] = mapped_column(
        value_enum(RoleEnum, "role_enum"),
        default=RoleEnum.CUSTOMER,
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

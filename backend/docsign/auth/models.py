from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from docsign.common.base_models import TimestampMixin, UUIDBase


class User(UUIDBase, TimestampMixin):
    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

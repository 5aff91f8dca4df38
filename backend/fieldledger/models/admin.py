from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, Boolean, JSON, DateTime, CheckConstraint, text
from typing import Optional, Dict, List
from datetime import datetime

from .base import Base
from fieldledger.constants.permissions import ROLE_SUPER_ADMIN, ROLE_SUB_ADMIN


class Admin(Base):
    __tablename__ = 'admins'
    ROLE_SUPER_ADMIN = ROLE_SUPER_ADMIN
    ROLE_SUB_ADMIN = ROLE_SUB_ADMIN
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(128), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(128), nullable=False, default='Admin')
    role: Mapped[str] = mapped_column(String(16), nullable=False, default=ROLE_SUB_ADMIN)
    # module -> [action, ...]; super-admin rows keep the full set for display only
    permissions: Mapped[Dict[str, List[str]]] = mapped_column(JSON, default=dict)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    reset_token: Mapped[Optional[str]] = mapped_column(String(128), index=True)
    reset_token_expiry: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'), server_onupdate=text('CURRENT_TIMESTAMP'))

    __table_args__ = (
        CheckConstraint(f"role IN ('{ROLE_SUPER_ADMIN}', '{ROLE_SUB_ADMIN}')", name='ck_admin_role'),
    )

    @property
    def is_super_admin(self) -> bool:
        return self.role == ROLE_SUPER_ADMIN

    def set_password(self, raw: str):
        from werkzeug.security import generate_password_hash
        self.password_hash = generate_password_hash(raw)

    def verify_password(self, raw: str) -> bool:
        from werkzeug.security import check_password_hash
        return check_password_hash(self.password_hash, raw)

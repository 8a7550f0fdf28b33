"""
用戶資料模型

僅保留淨值引擎需要的欄位：身份與偏好幣別。
帳號註冊與登入由外部認證服務負責。
"""

import uuid
from datetime import datetime

from sqlalchemy import String, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from networth.database import Base


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    email: Mapped[str] = mapped_column(
        String(255), unique=True, index=True, nullable=False
    )
    username: Mapped[str] = mapped_column(
        String(100), nullable=False
    )
    preferred_currency: Mapped[str | None] = mapped_column(
        String(3), nullable=True,
        comment="淨值顯示幣別（ISO 4217）",
    )
    is_active: Mapped[bool] = mapped_column(default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # 關聯：一個用戶擁有多個帳戶
    accounts = relationship(
        "Account", back_populates="user",
        cascade="all, delete-orphan", passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<User {self.email}>"

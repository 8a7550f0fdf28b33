"""
帳戶模型

一個帳戶代表一筆資產（現金、投資、房地產…）或負債（信用卡、貸款…），
以單一幣別記帳。餘額由 balance_entries 逐筆登錄。
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import String, Boolean, DateTime, Enum, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from networth.database import Base


class AccountType(str, enum.Enum):
    """帳戶類型列舉"""
    ASSET = "asset"          # 資產
    LIABILITY = "liability"  # 負債


class AccountCategory(str, enum.Enum):
    """帳戶分類"""
    CASH = "cash"
    SAVINGS = "savings"
    CHECKING = "checking"
    INVESTMENT = "investment"
    RETIREMENT = "retirement"
    REAL_ESTATE = "real_estate"
    VEHICLE = "vehicle"
    OTHER_ASSET = "other_asset"
    CREDIT_CARD = "credit_card"
    LOAN = "loan"
    MORTGAGE = "mortgage"
    LINE_OF_CREDIT = "line_of_credit"
    OTHER_LIABILITY = "other_liability"


class Account(Base):
    __tablename__ = "accounts"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[AccountType] = mapped_column(
        Enum(AccountType), nullable=False,
    )
    category: Mapped[AccountCategory | None] = mapped_column(
        Enum(AccountCategory), nullable=True,
    )
    currency: Mapped[str] = mapped_column(
        String(3), nullable=False,
        comment="帳戶幣別（ISO 4217）",
    )
    include_in_net_worth: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False,
        comment="是否計入淨值",
    )
    institution: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # 關聯（刪除帳戶時一併刪除餘額紀錄）
    user = relationship("User", back_populates="accounts")
    balance_entries = relationship(
        "BalanceEntry", back_populates="account",
        cascade="all, delete-orphan", passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Account {self.name} ({self.type.value}, {self.currency})>"

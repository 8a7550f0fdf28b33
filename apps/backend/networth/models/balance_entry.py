"""
餘額紀錄模型

用戶在任意日期登錄帳戶餘額，為稀疏且依日期排序的序列。
同一帳戶同一天只能有一筆紀錄，重複寫入視為衝突而非覆蓋。
"""

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    String, Date, DateTime, Numeric,
    CheckConstraint, ForeignKey, UniqueConstraint, func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from networth.database import Base


class BalanceEntry(Base):
    __tablename__ = "balance_entries"

    __table_args__ = (
        UniqueConstraint("account_id", "date", name="uq_account_date"),
        CheckConstraint("amount >= 0", name="ck_balance_amount_non_negative"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    account_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    date: Mapped[date] = mapped_column(
        Date, nullable=False, index=True,
        comment="餘額日期（無時間部分）",
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), nullable=False,
        comment="以帳戶幣別計價的餘額",
    )
    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(),
    )

    # 關聯
    account = relationship("Account", back_populates="balance_entries")

    def __repr__(self) -> str:
        return f"<BalanceEntry {self.account_id} {self.date} = {self.amount}>"

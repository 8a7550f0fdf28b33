"""
匯率模型

(base_currency, quote_currency, rate_date) → rate。
1 單位 base 可兌換 rate 單位 quote；並非每天都有資料。
"""

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    String, Date, DateTime, Numeric,
    UniqueConstraint, Index, func,
)
from sqlalchemy.orm import Mapped, mapped_column

from networth.database import Base


class ExchangeRate(Base):
    __tablename__ = "exchange_rates"

    # 同一幣別對同一天只能有一筆匯率
    __table_args__ = (
        UniqueConstraint(
            "base_currency", "quote_currency", "rate_date",
            name="uq_pair_date",
        ),
        Index("idx_rates_pair", "base_currency", "quote_currency"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    base_currency: Mapped[str] = mapped_column(String(3), nullable=False)
    quote_currency: Mapped[str] = mapped_column(String(3), nullable=False)
    rate_date: Mapped[date] = mapped_column(
        Date, nullable=False,
        comment="匯率生效日期",
    )
    rate: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=8), nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(),
    )

    def __repr__(self) -> str:
        return (
            f"<ExchangeRate {self.base_currency}/{self.quote_currency} "
            f"{self.rate_date} = {self.rate}>"
        )

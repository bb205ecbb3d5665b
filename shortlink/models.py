"""SQLAlchemy ORM model for alias mappings.

Data Model Layout
=================
::
    urls table
    ├─ id (BIGSERIAL PRIMARY KEY)
    ├─ url (TEXT NOT NULL)
    ├─ alias (TEXT NOT NULL UNIQUE, INDEXED)
    └─ created_at (TIMESTAMPTZ, DEFAULT NOW())

Key Behaviours
===============
- The unique index on ``alias`` is the only concurrency control for alias
  allocation; a violated insert surfaces as SQLSTATE 23505.
- Rows are immutable once written; they are only ever deleted.

Classes:
    ShortURL:  One persisted alias -> target mapping.
"""

import datetime

from sqlalchemy import BigInteger, DateTime, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from shortlink.database import Base

__all__ = ["ShortURL"]


class ShortURL(Base):
    __tablename__ = "urls"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    alias: Mapped[str] = mapped_column(Text, unique=True, index=True, nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<ShortURL(id={self.id}, alias='{self.alias}')>"

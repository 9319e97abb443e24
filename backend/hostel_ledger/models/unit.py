"""
Hostel Ledger Backend: Unit SQLAlchemy Model
==============================================

What:  ORM model representing the `units` table.
Why:   Lets SqlUnitStore persist the unit set in SQLite or PostgreSQL.
How:   One row per unit; hold columns are NULL while the unit is available.
Who:   Used only by SqlUnitStore. The ledger never sees rows, only Unit values.

Table Design Rationale:
    - unit_id: integer primary key assigned at provisioning (1..N), never reused
    - status: 'available' | 'checked_out'
    - holder / checked_out_at / due_at / location: all NULL or all set
    - CHECK constraint mirrors that rule, so even a manual UPDATE cannot
      store a half-filled hold
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from hostel_ledger.database import Base


class UnitRow(Base):
    __tablename__ = "units"

    unit_id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=False,
        comment="Unit number assigned at provisioning",
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="available",
        comment="available or checked_out",
    )

    holder: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Stored in UTC
    checked_out_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    due_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "(status = 'available' AND holder IS NULL AND checked_out_at IS NULL "
            "AND due_at IS NULL AND location IS NULL) OR "
            "(status = 'checked_out' AND holder IS NOT NULL AND checked_out_at IS NOT NULL "
            "AND due_at IS NOT NULL AND location IS NOT NULL)",
            name="ck_units_hold_fields",
        ),
        Index("idx_units_status_due_at", "status", "due_at"),
    )

    def __repr__(self) -> str:
        return f"<UnitRow(unit_id={self.unit_id}, status='{self.status}', holder={self.holder!r})>"

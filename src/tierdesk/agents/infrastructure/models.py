"""
Agent Infrastructure Models
============================

SQLAlchemy ORM model for the agents table.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import JSON, CheckConstraint, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from tierdesk.config import AgentStatus
from tierdesk.infrastructure.database import Base, UTCDateTime


class AgentModel(Base):
    """
    Database model for Agent entity.

    Maps to the 'agents' table. The check constraint backs the capacity
    invariant at the storage level.
    """
    __tablename__ = "agents"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    tier: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=AgentStatus.OFFLINE.value)

    current_load: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    specialties: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    last_assigned_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "current_load >= 0 AND current_load <= max_capacity",
            name="ck_agents_load_within_capacity"
        ),
    )

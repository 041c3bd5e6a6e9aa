"""Budget model - single-row monthly allocations per expense category."""

from sqlalchemy import JSON, Column, DateTime, Integer

from database import Base
from models.utils import utcnow

BUDGET_ROW_ID = 1


class Budget(Base):
    """Monthly budget. ``allocations`` maps category name to cents."""

    __tablename__ = "budgets"

    id = Column(Integer, primary_key=True, default=BUDGET_ROW_ID)
    allocations = Column(JSON, nullable=False, default=dict)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

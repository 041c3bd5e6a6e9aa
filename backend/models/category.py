"""Category and CategoryRule models - spending categories and keyword rules."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from database import Base


class Category(Base):
    """A spending category.

    ``plaid_name`` is the provider primary-category label that maps onto this
    category when no rule matches. ``expense`` marks categories that count
    toward spending and budgets.
    """

    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, unique=True, nullable=False)
    plaid_name = Column(String, nullable=True, index=True)
    expense = Column(Boolean, nullable=False, default=True)


class CategoryRule(Base):
    """Keyword rule. Lower ids win when several rules match."""

    __tablename__ = "category_rules"

    id = Column(Integer, primary_key=True, autoincrement=True)
    match_string = Column(String, nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False)

    # Relationships
    category = relationship("Category")

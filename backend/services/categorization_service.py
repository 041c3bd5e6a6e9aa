"""Service for assigning spending categories to bank transactions."""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from models import BUDGET_ROW_ID, Budget, Category, CategoryRule

logger = logging.getLogger(__name__)

UNCATEGORIZED = "Uncategorized"

# (name, provider alias, counts as expense)
DEFAULT_CATEGORIES: list[tuple[str, Optional[str], bool]] = [
    (UNCATEGORIZED, None, True),
    ("Food and Drink", "Food and Drink", True),
    ("Shops", "Shops", True),
    ("Travel", "Travel", True),
    ("Transfer", "Transfer", False),
    ("Payment", "Payment", False),
    ("Recreation", "Recreation", True),
    ("Service", "Service", True),
    ("Bank Fees", "Bank Fees", True),
    ("Rent and Utilities", "Rent and Utilities", True),
    ("Healthcare", "Healthcare", True),
    ("Personal", "Personal", True),
    ("Education", "Education", True),
    ("Government and Non-Profit", "Government and Non-Profit", True),
    ("Income", "Income", False),
    ("Venmo", None, True),
    ("Investments", None, False),
]

# (match string, category name)
DEFAULT_RULES: list[tuple[str, str]] = [
    ("venmo", "Venmo"),
    ("fidelity", "Investments"),
]


@dataclass(frozen=True)
class RuleMatcher:
    """A keyword rule prepared for matching."""

    id: int
    match_string: str  # already lowercased
    category_id: int


@dataclass
class CategoryTable:
    """Lookup data for the alias and fallback steps."""

    alias_to_id: dict[str, int] = field(default_factory=dict)
    uncategorized_id: Optional[int] = None

    @classmethod
    def from_categories(cls, categories: Iterable[Category]) -> "CategoryTable":
        table = cls()
        for category in categories:
            if category.plaid_name:
                table.alias_to_id.setdefault(category.plaid_name, category.id)
            if category.name == UNCATEGORIZED:
                table.uncategorized_id = category.id
        return table


def order_rules(rules: Iterable[CategoryRule]) -> list[RuleMatcher]:
    """Prepare rules for matching, lowest id first.

    Empty match strings are dropped; they would otherwise match everything.
    """
    prepared = [
        RuleMatcher(id=r.id, match_string=(r.match_string or "").lower(), category_id=r.category_id)
        for r in rules
    ]
    return sorted(
        (r for r in prepared if r.match_string),
        key=lambda r: r.id,
    )


def resolve_category_id(
    name: Optional[str],
    merchant_name: Optional[str],
    provider_category: Optional[str],
    rules: list[RuleMatcher],
    table: CategoryTable,
) -> Optional[int]:
    """Resolve the category for one transaction.

    Priority:
    1. First rule (by ascending id) whose match string appears in the
       lowercased name or merchant name
    2. The category whose alias equals the provider's primary category
    3. Uncategorized

    Args:
        name: Transaction description.
        merchant_name: Enriched merchant name, if any.
        provider_category: Provider's primary category label, if any.
        rules: Output of :func:`order_rules`.
        table: Output of :meth:`CategoryTable.from_categories`.

    Returns:
        The category id, or None only when no Uncategorized row exists.
    """
    name_lower = (name or "").lower()
    merchant_lower = (merchant_name or "").lower()

    for rule in rules:
        if rule.match_string in name_lower or rule.match_string in merchant_lower:
            return rule.category_id

    if provider_category:
        alias_id = table.alias_to_id.get(provider_category)
        if alias_id is not None:
            return alias_id

    return table.uncategorized_id


class CategoryService:
    """Service for category data: resolver inputs, listing and seeding."""

    def load_resolver_inputs(self, db: Session) -> tuple[list[RuleMatcher], CategoryTable]:
        """Read rules and categories once for a whole item sync."""
        rules = order_rules(db.query(CategoryRule).all())
        table = CategoryTable.from_categories(db.query(Category).all())
        return rules, table

    def list_all(self, db: Session) -> list[Category]:
        """All categories ordered by name."""
        return db.query(Category).order_by(Category.name).all()

    def seed_defaults(self, db: Session) -> None:
        """Insert default categories, rules and the budget row if missing.

        Existing rows are never modified, so user edits survive restarts.
        """
        existing = {c.name: c for c in db.query(Category).all()}
        added_categories = 0
        for name, alias, expense in DEFAULT_CATEGORIES:
            if name not in existing:
                category = Category(name=name, plaid_name=alias, expense=expense)
                db.add(category)
                existing[name] = category
                added_categories += 1
        db.flush()

        added_rules = 0
        if db.query(CategoryRule).count() == 0:
            for match_string, category_name in DEFAULT_RULES:
                db.add(CategoryRule(
                    match_string=match_string,
                    category_id=existing[category_name].id,
                ))
                added_rules += 1

        if db.get(Budget, BUDGET_ROW_ID) is None:
            db.add(Budget(id=BUDGET_ROW_ID, allocations={}))

        db.commit()
        if added_categories or added_rules:
            logger.info(
                "Seeded %d default categories and %d rules",
                added_categories, added_rules,
            )
        else:
            logger.info("Categories already exist, skipping seed")

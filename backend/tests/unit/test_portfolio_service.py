"""Tests for portfolio history reads."""

from datetime import date

import pytest

from integrations.exceptions import ProviderAPIError, ProviderError
from models import MonthlySnapshot, YearlySnapshot
from services.portfolio_service import PortfolioService
from tests.fixtures import add_daily
from tests.fixtures.mocks import SAMPLE_BROKERAGE_ACCOUNTS, SAMPLE_BROKERAGE_POSITIONS, MockSnapTradeClient

TODAY = date(2026, 3, 15)


class TestSnapshotHistory:
    def _seed(self, db):
        add_daily(db, date(2026, 2, 1), [("brk_roth", "VTI", 50)])  # outside the 30-day window
        add_daily(db, date(2026, 3, 1), [("brk_roth", "VTI", 100), ("brk_taxable", "AAPL", 40)])
        add_daily(db, date(2026, 3, 14), [("brk_roth", "VTI", 110), ("brk_roth", "BND", 5)])
        db.add_all([
            MonthlySnapshot(month=date(2023, 12, 1), account_id="brk_roth", portfolio_value_cents=1),
            MonthlySnapshot(month=date(2024, 1, 1), account_id="brk_roth", portfolio_value_cents=80),
            MonthlySnapshot(month=date(2024, 1, 1), account_id="brk_taxable", portfolio_value_cents=20),
            MonthlySnapshot(month=date(2026, 2, 1), account_id="brk_roth", portfolio_value_cents=95),
            YearlySnapshot(year=2023, account_id="brk_roth", portfolio_value_cents=70),
            YearlySnapshot(year=2023, account_id="brk_taxable", portfolio_value_cents=15),
        ])
        db.commit()

    def test_portfolio_totals(self, db):
        self._seed(db)

        history = PortfolioService().get_snapshot_history(db, today=TODAY)

        assert [(p.date, p.portfolio_value_cents) for p in history.daily] == [
            (date(2026, 3, 1), 140),
            (date(2026, 3, 14), 115),
        ]
        assert [(p.date, p.portfolio_value_cents) for p in history.monthly] == [
            (date(2024, 1, 1), 100),
            (date(2026, 2, 1), 95),
        ]
        assert [(p.date, p.portfolio_value_cents) for p in history.yearly] == [(date(2023, 12, 31), 85)]

    def test_single_account(self, db):
        self._seed(db)

        history = PortfolioService().get_snapshot_history(db, today=TODAY, account_id="brk_taxable")

        assert [(p.date, p.portfolio_value_cents) for p in history.daily] == [(date(2026, 3, 1), 40)]
        assert [p.portfolio_value_cents for p in history.monthly] == [20]
        assert [p.portfolio_value_cents for p in history.yearly] == [15]

    def test_empty(self, db):
        history = PortfolioService().get_snapshot_history(db, today=TODAY)
        assert (history.daily, history.monthly, history.yearly) == ([], [], [])


class TestHoldingsHistory:
    def test_filters_by_symbol(self, db):
        add_daily(db, date(2026, 3, 1), [("brk_roth", "VTI", 100), ("brk_taxable", "AAPL", 40)])
        add_daily(db, date(2026, 3, 14), [("brk_roth", "VTI", 110)])
        db.commit()

        points = PortfolioService.get_holdings_history(db, today=TODAY, symbol="VTI")

        assert [(p.date, p.value_cents) for p in points] == [(date(2026, 3, 1), 100), (date(2026, 3, 14), 110)]


class TestCurrentHoldings:
    def test_lists_live_positions(self, db, snaptrade_user):
        client = MockSnapTradeClient(accounts=SAMPLE_BROKERAGE_ACCOUNTS, positions=SAMPLE_BROKERAGE_POSITIONS)

        points = PortfolioService(brokerage_client=client).get_current_holdings(db)

        assert {(p.account_name, p.symbol) for p in points} == {
            ("Roth IRA", "VTI"),
            ("Roth IRA", "BND"),
            ("Individual", "AAPL"),
        }

    def test_skips_failed_accounts(self, db, snaptrade_user):
        client = MockSnapTradeClient(
            accounts=SAMPLE_BROKERAGE_ACCOUNTS,
            positions=SAMPLE_BROKERAGE_POSITIONS,
            failing_accounts={"brk_roth"},
        )

        points = PortfolioService(brokerage_client=client).get_current_holdings(db)

        assert [p.symbol for p in points] == ["AAPL"]

    def test_account_list_failure_raises(self, db, snaptrade_user):
        client = MockSnapTradeClient(accounts_error=ProviderAPIError("down", "SnapTrade", 503))

        with pytest.raises(ProviderError):
            PortfolioService(brokerage_client=client).get_current_holdings(db)

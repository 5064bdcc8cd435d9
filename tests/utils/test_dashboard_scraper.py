"""
Tests for the prop-firm dashboard scraper.
"""
import json
import pytest
from decimal import Decimal

from models.trade import InstrumentType, Side
from utils.dashboard_scraper import (
    InitialStateStrategy,
    TableScanStrategy,
    TradeExtractionStrategy,
    extract_metrics,
    scrape_dashboard,
)


def _state_page(state: dict, extra: str = "") -> str:
    return f"<html><head><script>window.__INITIAL_STATE__ = {json.dumps(state)};</script></head><body>{extra}</body></html>"


TRADE_TABLE = (
    "<table><tr><th>Symbol</th><th>Open</th><th>Profit</th></tr>"
    "<tr><td>EURUSD</td><td>2024-01-02 10:00</td><td>1.1000</td><td>2024-01-02 12:00</td><td>1.1050</td>"
    "<td>buy</td><td></td><td></td><td>1.0</td><td>$50.00</td><td>USD</td><td>D-9</td></tr>"
    "<tr><td>Total</td><td></td><td></td></tr>"
    "</table>"
)


def test_metrics_only_page():
    page = "<html><body><div>Balance: $50,000.00</div><div>Equity: $51,234.56</div></body></html>"

    result = scrape_dashboard(page)

    assert result.trades == []
    assert result.errors == []
    assert result.metrics.balance == Decimal("50000.00")
    assert result.metrics.equity == Decimal("51234.56")
    assert result.metrics.total_profit_loss == Decimal("0")
    assert result.metrics.profit_target is None
    assert result.strategy is None


def test_extract_metrics_all_labels():
    page = "Profit Target: $5,000 Daily Loss Limit: 2,500.00 Max Drawdown $4,000"
    metrics = extract_metrics(page)
    assert metrics.profit_target == Decimal("5000")
    assert metrics.daily_loss_limit == Decimal("2500.00")
    assert metrics.max_drawdown == Decimal("4000")


def test_initial_state_trades():
    state = {
        "account": {"balance": "100,250.50", "equity": 100300},
        "trades": [
            {"dealId": 11, "symbol": "NAS100", "openDate": "2024-01-02T10:00:00Z",
             "closeDate": "2024-01-02T11:00:00Z", "openPrice": "17,000.5", "closePrice": 17010,
             "type": "BUY", "lots": 1, "profit": -50.5},
            {"symbol": "eurusd", "openTime": "2024-01-03T10:00:00Z", "side": "sell", "pnl": 20},
        ],
    }

    result = scrape_dashboard(_state_page(state))

    assert result.strategy == "initial_state_json"
    assert len(result.trades) == 2
    first, second = result.trades
    assert first.broker_trade_id == "11"
    assert first.entry_price == Decimal("17000.5")
    assert first.pnl == Decimal("-50.5")
    assert first.side == Side.LONG
    assert first.instrument_type == InstrumentType.FUTURES
    assert first.platform == "DXTrade"
    assert first.import_source == "Hybrid Funding Dashboard"
    assert second.broker_trade_id == "eurusd_2024-01-03T10:00:00Z"
    assert second.side == Side.SHORT
    assert result.metrics.balance == Decimal("100250.50")
    assert result.metrics.equity == Decimal("100300")
    assert result.metrics.total_profit_loss == Decimal("-30.5")


def test_empty_json_trades_fall_through_to_table_scan():
    page = _state_page({"trades": [], "account": {"balance": 1000}}, extra=TRADE_TABLE)

    result = scrape_dashboard(page)

    assert result.strategy == "table_scan"
    assert len(result.trades) == 1
    trade = result.trades[0]
    assert trade.symbol == "EURUSD"
    assert trade.side == Side.LONG
    assert trade.pnl == Decimal("50.00")
    assert trade.broker_trade_id == "D-9"
    assert result.metrics.balance == Decimal("1000")


def test_table_scan_ignores_unrelated_tables():
    page = "<table><tr><td>Rules</td></tr><tr>" + "<td>x</td>" * 12 + "</tr></table>"
    assert TableScanStrategy().extract(page) == []


def test_table_scan_synthetic_id_without_deal_column():
    table = (
        "<table><tr><td>Symbol</td><td>P&L</td></tr>"
        "<tr><td>GBPUSD</td><td>2024-01-05 09:00</td><td>1.27</td><td>2024-01-05 10:00</td><td>1.26</td>"
        "<td>sell</td><td>-</td><td>-</td><td>1</td><td>100</td></tr></table>"
    )
    raw = TableScanStrategy().extract(table)
    assert raw[0]["broker_trade_id"] == "GBPUSD_2024-01-05 09:00"
    assert raw[0]["stop_loss"] is None


def test_failing_strategy_does_not_stop_the_chain():
    class BrokenStrategy(TradeExtractionStrategy):
        @property
        def name(self):
            return "broken"

        def extract(self, page):
            raise RuntimeError("layout changed")

    result = scrape_dashboard(TRADE_TABLE + "Balance: $10", strategies=(BrokenStrategy(), TableScanStrategy()))

    assert result.strategy == "table_scan"
    assert len(result.trades) == 1
    assert result.metrics.balance == Decimal("10")


def test_invalid_trade_recorded_as_error():
    state = {"trades": [{"dealId": 1, "symbol": "", "profit": 5}, {"dealId": 2, "symbol": "ES", "profit": 5}]}

    result = scrape_dashboard(_state_page(state))

    assert len(result.trades) == 1
    assert len(result.errors) == 1
    assert result.errors[0].line == 1


def test_malformed_json_is_not_fatal():
    page = "<script>window.__INITIAL_STATE__ = {broken json};</script>" + TRADE_TABLE
    result = scrape_dashboard(page)
    assert result.strategy == "table_scan"


@pytest.mark.parametrize("strategy", [InitialStateStrategy(), TableScanStrategy()])
def test_strategies_return_nothing_for_blank_page(strategy):
    assert strategy.extract("<html></html>") == []

"""
Scraper for prop-firm trading dashboards (Hybrid Funding / propaccount).

The dashboard is read in independent passes:
- labelled account metrics are pulled from the raw page text with regexes;
- trades come from the first extraction strategy that yields any, trying the
  embedded ``window.__INITIAL_STATE__`` JSON before scanning HTML tables.

A failing pass is logged and contributes nothing; it never stops the others.
"""
import re
import json
import html
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple

from models.statement import AccountMetrics, ParseError
from models.trade import TradeRecord
from utils.serde_utils import to_decimal
from utils.trade_normalizer import normalize_trade

logger = logging.getLogger(__name__)

DASHBOARD_PLATFORM = 'DXTrade'
DASHBOARD_IMPORT_SOURCE = 'Hybrid Funding Dashboard'

_AMOUNT = r'[:\s]*\$?([\d,]+\.?\d*)'

METRIC_PATTERNS: Tuple[Tuple[str, re.Pattern], ...] = (
    ('balance', re.compile(r'Balance' + _AMOUNT, re.IGNORECASE)),
    ('equity', re.compile(r'Equity' + _AMOUNT, re.IGNORECASE)),
    ('profit_target', re.compile(r'Profit\s*Target' + _AMOUNT, re.IGNORECASE)),
    ('daily_loss_limit', re.compile(r'Daily\s*Loss\s*Limit' + _AMOUNT, re.IGNORECASE)),
    ('max_drawdown', re.compile(r'Max\s*Draw\s*down' + _AMOUNT, re.IGNORECASE)),
)

INITIAL_STATE_PATTERN = re.compile(r'window\.__INITIAL_STATE__\s*=\s*({[\s\S]*?});')
TABLE_PATTERN = re.compile(r'<table[^>]*>[\s\S]*?</table>', re.IGNORECASE)
ROW_PATTERN = re.compile(r'<tr[^>]*>[\s\S]*?</tr>', re.IGNORECASE)
CELL_PATTERN = re.compile(r'<td[^>]*>([\s\S]*?)</td>', re.IGNORECASE)
TAG_PATTERN = re.compile(r'<[^>]*>')
NON_NUMERIC = re.compile(r'[^0-9.-]')

# Closed deal history columns:
# symbol, open date, open price, close date, close price, type,
# stop loss, take profit, lots, profit, duration, deal id
TABLE_MIN_CELLS = 10


@dataclass
class DashboardScrape:
    """Everything read from one dashboard page."""
    trades: List[TradeRecord] = field(default_factory=list)
    metrics: AccountMetrics = field(default_factory=AccountMetrics)
    errors: List[ParseError] = field(default_factory=list)
    strategy: Optional[str] = None


class TradeExtractionStrategy(ABC):
    """Base class for one way of finding trades in a dashboard page."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Strategy name used in logs."""
        pass

    @abstractmethod
    def extract(self, page: str) -> List[Dict[str, Any]]:
        """
        Extract raw trades from the page.

        Returns:
            Raw trade dictionaries keyed by TradeRecord field name
        """
        pass

    def account_metrics(self, page: str) -> Dict[str, Decimal]:
        """Account figures this strategy can read directly (none by default)."""
        return {}


def _number(value: Any) -> Optional[Decimal]:
    if value is None or value == '':
        return None
    if isinstance(value, str):
        return to_decimal(NON_NUMERIC.sub('', value))
    return to_decimal(value)


class InitialStateStrategy(TradeExtractionStrategy):
    """Reads trades from the page's embedded initial-state JSON."""

    @property
    def name(self) -> str:
        return 'initial_state_json'

    def _load_state(self, page: str) -> Optional[Dict[str, Any]]:
        match = INITIAL_STATE_PATTERN.search(page)
        if not match:
            return None
        state = json.loads(match.group(1))
        return state if isinstance(state, dict) else None

    def extract(self, page: str) -> List[Dict[str, Any]]:
        state = self._load_state(page)
        if not state:
            return []

        trades = []
        for item in state.get('trades') or []:
            symbol = item.get('symbol')
            open_date = item.get('openDate') or item.get('openTime')
            trades.append({
                'broker_trade_id': str(item.get('dealId') or item.get('id') or f"{symbol}_{open_date}"),
                'symbol': symbol,
                'entry_date': open_date,
                'entry_price': _number(item.get('openPrice')),
                'exit_date': item.get('closeDate') or item.get('closeTime'),
                'exit_price': _number(item.get('closePrice')),
                'side': item.get('type') or item.get('side'),
                'stop_loss': _number(item.get('stopLoss')) or None,
                'take_profit': _number(item.get('takeProfit')) or None,
                'quantity': _number(item.get('lots') or item.get('volume')),
                'pnl': _number(item.get('profit') if item.get('profit') is not None else item.get('pnl')),
            })
        return trades

    def account_metrics(self, page: str) -> Dict[str, Decimal]:
        state = self._load_state(page)
        account = (state or {}).get('account') or {}
        figures = {}
        for key in ('balance', 'equity'):
            value = _number(account.get(key))
            if value:
                figures[key] = value
        return figures


class TableScanStrategy(TradeExtractionStrategy):
    """Reads trades from any table that looks like a closed deal history."""

    @property
    def name(self) -> str:
        return 'table_scan'

    @staticmethod
    def _cell_text(cell: str) -> str:
        return html.unescape(TAG_PATTERN.sub('', cell)).strip()

    def extract(self, page: str) -> List[Dict[str, Any]]:
        trades = []
        for table in TABLE_PATTERN.findall(page):
            lowered = table.lower()
            if 'symbol' not in lowered or ('profit' not in lowered and 'p&l' not in lowered):
                continue
            for row in ROW_PATTERN.findall(table)[1:]:
                cells = [self._cell_text(cell) for cell in CELL_PATTERN.findall(row)]
                if len(cells) < TABLE_MIN_CELLS:
                    continue
                symbol, open_date = cells[0], cells[1]
                if not symbol or not open_date:
                    continue
                trades.append({
                    'broker_trade_id': (cells[11] if len(cells) > 11 and cells[11] else f"{symbol}_{open_date}"),
                    'symbol': symbol,
                    'entry_date': open_date,
                    'entry_price': _number(cells[2]) or Decimal('0'),
                    'exit_date': cells[3] or None,
                    'exit_price': _number(cells[4]) or Decimal('0'),
                    'side': cells[5].upper(),
                    'stop_loss': _number(cells[6]) or None,
                    'take_profit': _number(cells[7]) or None,
                    'quantity': _number(cells[8]) or Decimal('0'),
                    'pnl': _number(cells[9]) or Decimal('0'),
                })
        return trades


DEFAULT_STRATEGIES: Tuple[TradeExtractionStrategy, ...] = (
    InitialStateStrategy(),
    TableScanStrategy(),
)


def extract_metrics(page: str) -> AccountMetrics:
    """Read labelled account figures ("Balance: $50,000.00") from the raw page."""
    metrics = AccountMetrics()
    for field_name, pattern in METRIC_PATTERNS:
        try:
            match = pattern.search(page)
            if match:
                setattr(metrics, field_name, to_decimal(match.group(1)))
        except Exception as e:
            logger.warning(f"Could not read dashboard metric {field_name}: {str(e)}")
    return metrics


def scrape_dashboard(
    page: str,
    strategies: Sequence[TradeExtractionStrategy] = DEFAULT_STRATEGIES,
) -> DashboardScrape:
    """
    Extract trades and account metrics from a dashboard page.

    Args:
        page: Dashboard HTML
        strategies: Trade extraction strategies, tried in order until one yields trades

    Returns:
        DashboardScrape with normalized trades, metrics and per-trade errors
    """
    result = DashboardScrape(metrics=extract_metrics(page))

    raw_trades: List[Dict[str, Any]] = []
    for strategy in strategies:
        try:
            for key, value in strategy.account_metrics(page).items():
                setattr(result.metrics, key, value)
        except Exception as e:
            logger.warning(f"Strategy {strategy.name} could not read account figures: {str(e)}")
        if raw_trades:
            continue
        try:
            raw_trades = strategy.extract(page)
        except Exception as e:
            logger.warning(f"Strategy {strategy.name} failed: {str(e)}")
            raw_trades = []
        if raw_trades:
            result.strategy = strategy.name

    for index, raw in enumerate(raw_trades, start=1):
        try:
            result.trades.append(normalize_trade(
                raw,
                platform=DASHBOARD_PLATFORM,
                import_source=DASHBOARD_IMPORT_SOURCE,
            ))
        except Exception as e:
            logger.warning(f"Skipping dashboard trade {index}: {str(e)}")
            result.errors.append(ParseError(line=index, error=str(e)))

    result.metrics.total_profit_loss = sum((t.pnl for t in result.trades), Decimal('0'))
    logger.info(f"Scraped {len(result.trades)} trades from dashboard via {result.strategy or 'no strategy'}")
    return result

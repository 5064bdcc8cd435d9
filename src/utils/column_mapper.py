"""
Heuristic mapping of broker CSV headers onto trade fields.

Headers differ per broker ("Open Price", "Entry Price", "Price"; "Profit",
"P&L", "Realized"). Each header is tested against an ordered table of rules;
the first rule whose predicate matches decides the field the column feeds.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from utils.serde_utils import to_datetime, to_decimal, to_side

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ColumnRule:
    """One header rule: header predicate, target field and cell transform."""
    name: str
    predicate: Callable[[str], bool]
    field: str
    transform: Callable[[str], Any]


def _has_any(header: str, *keywords: str) -> bool:
    return any(keyword in header for keyword in keywords)


def _number(value: str) -> Any:
    return to_decimal(value, strict=True)


def _date(value: str) -> Any:
    # Unparsable dates are kept as the raw text and resolved by the normalizer
    parsed = to_datetime(value)
    return parsed if parsed is not None else value


def _text(value: str) -> Any:
    return value


def _is_instrument_type(h: str) -> bool:
    return (_has_any(h, 'instrument type', 'instrument_type', 'asset type', 'asset_type',
                     'asset class', 'security type')
            or h == 'asset')


def _is_symbol(h: str) -> bool:
    return (_has_any(h, 'symbol', 'instrument', 'ticker', 'item') or h == 'pair') and 'type' not in h


def _is_side(h: str) -> bool:
    if _has_any(h, 'side', 'direction', 'action'):
        return True
    return 'type' in h and not _has_any(h, 'instrument', 'asset', 'security')


def _is_trade_id(h: str) -> bool:
    return (_has_any(h, 'ticket', 'deal', 'position id', 'order id', 'trade id')
            or h in ('id', '#', 'position', 'order'))


def _is_entry_price(h: str) -> bool:
    return _has_any(h, 'entry', 'open') and 'price' in h


def _is_exit_price(h: str) -> bool:
    return _has_any(h, 'exit', 'close') and 'price' in h


def _is_quantity(h: str) -> bool:
    return _has_any(h, 'quantity', 'volume', 'lots', 'size', 'contracts', 'qty')


def _is_pnl(h: str) -> bool:
    if 'take' in h:
        return False
    return _has_any(h, 'profit', 'pnl', 'p&l', 'p/l', 'realized') or h == 'net'


def _is_entry_date(h: str) -> bool:
    return _has_any(h, 'entry', 'open') and _has_any(h, 'date', 'time')


def _is_exit_date(h: str) -> bool:
    return _has_any(h, 'exit', 'close') and _has_any(h, 'date', 'time')


def _is_generic_date(h: str) -> bool:
    return h in ('date', 'time', 'datetime', 'date/time', 'timestamp')


def _is_stop_loss(h: str) -> bool:
    return ('stop' in h and _has_any(h, 'loss', 'sl')) or h in ('sl', 's/l')


def _is_take_profit(h: str) -> bool:
    return ('take' in h and _has_any(h, 'profit', 'tp')) or h in ('tp', 't/p')


# Evaluated top to bottom for every header. Once a column has filled a field,
# later columns that map to the same field are ignored, which makes the bare
# "price" and "date" headers fallbacks for the entry fields.
COLUMN_RULES: Tuple[ColumnRule, ...] = (
    ColumnRule('instrument_type', _is_instrument_type, 'instrument_type', _text),
    ColumnRule('symbol', _is_symbol, 'symbol', _text),
    ColumnRule('side', _is_side, 'side', to_side),
    ColumnRule('broker_trade_id', _is_trade_id, 'broker_trade_id', _text),
    ColumnRule('entry_price', _is_entry_price, 'entry_price', _number),
    ColumnRule('exit_price', _is_exit_price, 'exit_price', _number),
    ColumnRule('price', lambda h: h == 'price', 'entry_price', _number),
    ColumnRule('quantity', _is_quantity, 'quantity', _number),
    ColumnRule('pnl', _is_pnl, 'pnl', _number),
    ColumnRule('entry_date', _is_entry_date, 'entry_date', _date),
    ColumnRule('exit_date', _is_exit_date, 'exit_date', _date),
    ColumnRule('date', _is_generic_date, 'entry_date', _date),
    ColumnRule('stop_loss', _is_stop_loss, 'stop_loss', _number),
    ColumnRule('take_profit', _is_take_profit, 'take_profit', _number),
    ColumnRule('commission', lambda h: _has_any(h, 'commission', 'fee'), 'commission', _number),
    ColumnRule('swap', lambda h: _has_any(h, 'swap', 'rollover'), 'swap', _number),
    ColumnRule('platform', lambda h: _has_any(h, 'platform', 'broker', 'account'), 'platform', _text),
)


def match_rule(header: str, rules: Sequence[ColumnRule] = COLUMN_RULES) -> Optional[ColumnRule]:
    """Return the first rule matching a header, or None for unmapped columns."""
    h = header.strip().lower()
    if not h:
        return None
    for rule in rules:
        if rule.predicate(h):
            return rule
    return None


def build_column_plan(headers: Sequence[str], rules: Sequence[ColumnRule] = COLUMN_RULES) -> List[Optional[ColumnRule]]:
    """Resolve the rule for each header once per document."""
    return [match_rule(header, rules) for header in headers]


def map_row(headers: Sequence[str], values: Sequence[str],
            plan: Optional[List[Optional[ColumnRule]]] = None) -> Dict[str, Any]:
    """
    Map one tokenized row onto a partial trade dictionary.

    Empty cells are ignored. Numeric cells that are present but not numbers
    raise ValueError, which the calling parser records against the row.

    Args:
        headers: Header row
        values: Cell values of one data row
        plan: Precomputed rules from build_column_plan (optional)

    Returns:
        Dictionary keyed by TradeRecord field name
    """
    if plan is None:
        plan = build_column_plan(headers)

    trade: Dict[str, Any] = {}
    for index, rule in enumerate(plan):
        if rule is None or index >= len(values):
            continue
        value = values[index]
        if not value or rule.field in trade:
            continue
        try:
            trade[rule.field] = rule.transform(value)
        except ValueError as e:
            raise ValueError(f"Column '{headers[index]}': {str(e)}") from e
    return trade

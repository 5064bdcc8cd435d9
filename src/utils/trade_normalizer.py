"""
Normalization of partially parsed trades into TradeRecord instances.
"""
import re
import logging
from decimal import Decimal
from typing import Any, Dict, Optional

from models.trade import InstrumentType, TradeRecord
from utils.serde_utils import to_datetime, to_decimal, to_side

logger = logging.getLogger(__name__)

CURRENCY_CODES = frozenset({
    'USD', 'EUR', 'GBP', 'JPY', 'CHF', 'AUD', 'NZD', 'CAD', 'SEK', 'NOK',
    'DKK', 'PLN', 'HUF', 'CZK', 'TRY', 'ZAR', 'MXN', 'SGD', 'HKD', 'CNH',
    'CNY', 'ILS', 'RUB',
})

CRYPTO_KEYWORDS = ('BTC', 'ETH', 'CRYPTO', 'USDT', 'XRP', 'SOL', 'DOGE', 'LTC', 'ADA', 'BNB')

INDEX_KEYWORDS = ('100', 'SPX', 'US30', 'US500', 'NAS', 'NDX', 'DJI', 'GER40', 'GER30', 'DAX', 'UK100', 'JP225')

CFD_KEYWORDS = ('XAU', 'XAG', 'XTI', 'XBR', 'OIL', 'BRENT', 'WTI')

# Futures roots with an optional contract month code and year, e.g. NQ, ESZ4, MNQH25
FUTURES_PATTERN = re.compile(
    r'^(NQ|MNQ|ES|MES|YM|MYM|RTY|M2K|CL|MCL|GC|MGC|SI|NG|HG|ZB|ZN|ZF|ZC|ZS|ZW|6E|6B|6J|6A)'
    r'([FGHJKMNQUVXZ]\d{1,2})?$'
)

OPTIONS_PATTERN = re.compile(r'\b(CALL|PUT)\b|^[A-Z]{1,6}\d{6}[CP]\d{8}$')


def infer_instrument_type(symbol: str) -> InstrumentType:
    """
    Infer the instrument class from a symbol.

    Checked in order: crypto, options, futures and index tickers, commodity
    CFDs, forex pairs made of two ISO currency codes. Anything else is Stocks.

    Examples:
        >>> infer_instrument_type("BTCUSD")
        <InstrumentType.CRYPTO: 'Crypto'>

        >>> infer_instrument_type("NAS100")
        <InstrumentType.FUTURES: 'Futures'>

        >>> infer_instrument_type("eurusd")
        <InstrumentType.FOREX: 'Forex'>
    """
    text = (symbol or '').strip().upper()
    stem = re.sub(r'[^A-Z0-9]', '', text)

    if any(keyword in text for keyword in CRYPTO_KEYWORDS):
        return InstrumentType.CRYPTO
    if OPTIONS_PATTERN.search(text):
        return InstrumentType.OPTIONS
    if FUTURES_PATTERN.match(stem) or any(keyword in stem for keyword in INDEX_KEYWORDS):
        return InstrumentType.FUTURES
    if any(keyword in stem for keyword in CFD_KEYWORDS):
        return InstrumentType.CFD
    if len(stem) >= 6 and stem[:3] in CURRENCY_CODES and stem[3:6] in CURRENCY_CODES:
        return InstrumentType.FOREX
    return InstrumentType.STOCKS


def to_instrument_type(value: Any) -> Optional[InstrumentType]:
    """Match an explicit instrument type case-insensitively, None when unknown."""
    if value is None:
        return None
    if isinstance(value, InstrumentType):
        return value
    token = str(value).strip().lower()
    for instrument_type in InstrumentType:
        if instrument_type.value.lower() == token:
            return instrument_type
    return None


def normalize_trade(
    raw: Dict[str, Any],
    platform: str = '',
    import_source: str = '',
    instrument_type: Optional[InstrumentType] = None,
) -> TradeRecord:
    """
    Coerce a partial trade dictionary into a TradeRecord.

    Numbers that cannot be read become 0 for quantity, commission and swap,
    and None for prices and stop levels. Dates that cannot be read become
    None. The instrument type comes from the override, then from an explicit
    value in the row, and is otherwise inferred from the symbol.

    Args:
        raw: Partial trade keyed by TradeRecord field name
        platform: Platform tag used when the row does not carry one
        import_source: Ingestion path description
        instrument_type: Forced instrument type (e.g. Futures for Rithmic)

    Returns:
        TradeRecord

    Raises:
        ValueError: If the row has no symbol or no readable P&L
    """
    symbol = str(raw.get('symbol') or '').strip().upper()
    if not symbol:
        raise ValueError("Trade has no symbol")

    pnl = to_decimal(raw.get('pnl'))
    if pnl is None:
        raise ValueError(f"Trade {symbol} has no readable P&L")

    resolved_type = (
        instrument_type
        or to_instrument_type(raw.get('instrument_type'))
        or infer_instrument_type(symbol)
    )

    broker_trade_id = raw.get('broker_trade_id')
    if broker_trade_id is not None:
        broker_trade_id = str(broker_trade_id).strip() or None

    return TradeRecord(
        symbol=symbol,
        side=to_side(raw.get('side')),
        entry_date=to_datetime(raw.get('entry_date')),
        exit_date=to_datetime(raw.get('exit_date')),
        entry_price=to_decimal(raw.get('entry_price')),
        exit_price=to_decimal(raw.get('exit_price')),
        quantity=to_decimal(raw.get('quantity')) or Decimal('0'),
        pnl=pnl,
        commission=to_decimal(raw.get('commission')) or Decimal('0'),
        swap=to_decimal(raw.get('swap')) or Decimal('0'),
        stop_loss=to_decimal(raw.get('stop_loss')),
        take_profit=to_decimal(raw.get('take_profit')),
        platform=str(raw.get('platform') or platform),
        instrument_type=resolved_type,
        import_source=import_source or str(raw.get('import_source') or ''),
        broker_trade_id=broker_trade_id,
    )

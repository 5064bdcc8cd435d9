import re
import html
import logging
import logging.config
import os
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Sequence, Union

from models.statement import ParseResult, StatementFormat
from models.trade import InstrumentType
from utils.column_mapper import build_column_plan, map_row
from utils.csv_tokenizer import split_lines, tokenize_line
from utils.dashboard_scraper import scrape_dashboard
from utils.format_detector import detect_format
from utils.serde_utils import to_decimal
from utils.trade_normalizer import normalize_trade

# Configure logging
log_conf = os.environ.get('LOGGING_CONFIG')
if log_conf:
    logging.config.fileConfig(log_conf)
else:
    logging.basicConfig(
        level=os.environ.get('LOG_LEVEL', 'INFO'),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

# Get logger for this module
logger = logging.getLogger(__name__)

__all__ = [
    'FormatProfile',
    'CSV_PROFILES',
    'PARSERS',
    'parse_statement',
    'parse_statement_text',
    'parse_generic_csv',
    'parse_mt4_csv',
    'parse_mt4_html',
    'parse_ctrader_csv',
    'parse_dashboard_html',
    'decode_content',
    'find_header_index',
    'strip_tags',
]

# Extraction callback used for PDFs: (document bytes, file name) -> ParseResult
AIExtractor = Callable[[bytes, str], ParseResult]

TABLE_PATTERN = re.compile(r'<table[^>]*>(.*?)</table>', re.IGNORECASE | re.DOTALL)
ROW_PATTERN = re.compile(r'<tr[^>]*>(.*?)</tr>', re.IGNORECASE | re.DOTALL)
CELL_PATTERN = re.compile(r'<td[^>]*>(.*?)</td>', re.IGNORECASE | re.DOTALL)
TAG_PATTERN = re.compile(r'<[^>]*>')

MT4_PLATFORM = 'MT4/MT5'
MT4_HTML_MIN_CELLS = 8
MT4_CSV_MIN_VALUES = 10


@dataclass(frozen=True)
class FormatProfile:
    """Metadata stamped onto trades by the shared header-driven CSV pipeline."""
    platform: str
    import_source: str
    format_label: str
    instrument_type: Optional[InstrumentType] = None
    force_platform: bool = True


CSV_PROFILES: Dict[StatementFormat, FormatProfile] = {
    StatementFormat.CSV: FormatProfile('CSV', 'CSV Import', 'Generic CSV', force_platform=False),
    StatementFormat.DXTRADE: FormatProfile('DXTrade', 'DXTrade Export', 'DXTrade'),
    StatementFormat.MATCH_TRADER: FormatProfile('MatchTrader', 'MatchTrader Export', 'MatchTrader'),
    StatementFormat.RITHMIC: FormatProfile('Rithmic', 'Rithmic Export', 'Rithmic', InstrumentType.FUTURES),
    StatementFormat.TRADING_VIEW: FormatProfile('TradingView', 'TradingView Export', 'TradingView'),
}


def strip_tags(cell: str) -> str:
    """Remove markup from an HTML cell and unescape entities."""
    return html.unescape(TAG_PATTERN.sub('', cell)).strip()


def decode_content(content: Union[str, bytes]) -> str:
    """Decode statement bytes, trying UTF-8 (with BOM) before Windows code pages."""
    if isinstance(content, str):
        return content
    for encoding in ('utf-8-sig', 'cp1252'):
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    return content.decode('latin-1')


def parse_generic_csv(text: str, profile: FormatProfile = CSV_PROFILES[StatementFormat.CSV]) -> ParseResult:
    """
    Header-driven CSV parser shared by the generic, DXTrade, MatchTrader,
    Rithmic and TradingView exports.

    Rows without a symbol or a P&L are not trades (totals, notes) and are
    dropped silently. Rows that fail to map are recorded as errors.
    """
    result = ParseResult(format=profile.format_label)
    lines = split_lines(text)
    if len(lines) < 2:
        result.add_error(0, 'CSV file is empty or invalid')
        return result

    headers = tokenize_line(lines[0])
    plan = build_column_plan(headers)

    for line_number, line in enumerate(lines[1:], start=2):
        try:
            raw = map_row(headers, tokenize_line(line), plan)
            if not raw.get('symbol') or raw.get('pnl') is None:
                continue
            if profile.force_platform:
                raw['platform'] = profile.platform
            result.trades.append(normalize_trade(
                raw,
                platform=profile.platform,
                import_source=profile.import_source,
                instrument_type=profile.instrument_type,
            ))
        except Exception as e:
            logger.warning(f"Skipping {profile.format_label} line {line_number}: {str(e)}")
            result.add_error(line_number, str(e))

    logger.info(f"Parsed {len(result.trades)} trades from {profile.format_label} "
                f"with {len(result.errors)} errors")
    return result


def parse_mt4_csv(text: str) -> ParseResult:
    """
    MetaTrader CSV export with fixed column positions:
    ticket, open time, type, size, symbol, price, S/L, T/P, close time,
    close price, commission, taxes, swap, profit.

    Rows whose type is neither buy nor sell (balance, credit) are skipped.
    """
    result = ParseResult(format='MetaTrader CSV')
    lines = split_lines(text)

    for line_number, line in enumerate(lines[1:], start=2):
        try:
            values = tokenize_line(line)
            if len(values) < MT4_CSV_MIN_VALUES:
                continue

            trade_type = values[2].lower()
            if 'buy' not in trade_type and 'sell' not in trade_type:
                continue

            pnl = _cell(values, 13)
            pnl = to_decimal(pnl) if pnl else 0
            if pnl is None:
                logger.debug(f"MT4 CSV line {line_number} has unreadable profit, skipping")
                continue

            raw: Dict[str, Any] = {
                'broker_trade_id': values[0],
                'entry_date': values[1],
                'side': trade_type,
                'quantity': values[3],
                'symbol': values[4],
                'entry_price': values[5],
                'stop_loss': _cell(values, 6),
                'take_profit': _cell(values, 7),
                'exit_date': _cell(values, 8),
                'exit_price': _cell(values, 9),
                'commission': _cell(values, 10),
                'swap': _cell(values, 12),
                'pnl': pnl,
            }
            if not raw['symbol']:
                continue
            result.trades.append(normalize_trade(raw, platform=MT4_PLATFORM, import_source='MT4/5 CSV'))
        except Exception as e:
            logger.warning(f"Skipping MT4 CSV line {line_number}: {str(e)}")
            result.add_error(line_number, str(e))

    return result


def parse_mt4_html(text: str) -> ParseResult:
    """
    MetaTrader 4/5 HTML statement.

    Only the first table is read. Data rows need at least eight cells:
    ticket, open time, type, size, symbol, open price, S/L, T/P, close time,
    close price, commission, swap, profit. Shorter rows and rows with an
    unreadable profit are skipped without an error.
    """
    result = ParseResult(format='MetaTrader 4/5 HTML')
    table = TABLE_PATTERN.search(text)
    if not table:
        logger.error("No trade table found in MT4/5 HTML statement")
        result.add_error(0, 'No trade table found in MT4/5 HTML')
        return result

    rows = ROW_PATTERN.findall(table.group(1))
    for index, row in enumerate(rows[1:], start=1):
        try:
            cells = [strip_tags(cell) for cell in CELL_PATTERN.findall(row)]
            if len(cells) < MT4_HTML_MIN_CELLS:
                continue

            profit = _cell(cells, 12)
            pnl = to_decimal(profit) if profit else 0
            if pnl is None or not cells[4]:
                continue

            raw: Dict[str, Any] = {
                'broker_trade_id': cells[0],
                'entry_date': cells[1],
                'side': cells[2],
                'quantity': cells[3],
                'symbol': cells[4],
                'entry_price': cells[5],
                'stop_loss': _cell(cells, 6),
                'take_profit': _cell(cells, 7),
                'exit_date': _cell(cells, 8),
                'exit_price': _cell(cells, 9),
                'commission': _cell(cells, 10),
                'swap': _cell(cells, 11),
                'pnl': pnl,
            }
            result.trades.append(normalize_trade(raw, platform=MT4_PLATFORM, import_source='MT4/5 HTML Statement'))
        except Exception as e:
            logger.warning(f"Skipping MT4 HTML row {index + 1}: {str(e)}")
            result.add_error(index + 1, str(e))

    return result


def find_header_index(headers: Sequence[str], predicate: Callable[[str], bool]) -> Optional[int]:
    """Index of the first header satisfying the predicate, or None."""
    for index, header in enumerate(headers):
        if predicate(header):
            return index
    return None


def parse_ctrader_csv(text: str) -> ParseResult:
    """
    cTrader history export. Columns are located by header keywords so that
    reordered exports still parse.
    """
    result = ParseResult(format='cTrader')
    lines = split_lines(text)
    if len(lines) < 2:
        result.add_error(0, 'CSV file is empty or invalid')
        return result

    headers = [h.lower() for h in tokenize_line(lines[0])]
    columns = {
        'symbol': find_header_index(headers, lambda h: 'symbol' in h),
        'side': find_header_index(headers, lambda h: 'side' in h or 'direction' in h),
        'quantity': find_header_index(headers, lambda h: 'volume' in h or 'quantity' in h),
        'entry_price': find_header_index(headers, lambda h: 'entry' in h and 'price' in h),
        'exit_price': find_header_index(headers, lambda h: ('close' in h or 'closing' in h) and 'price' in h),
        'pnl': find_header_index(headers, lambda h: 'net' in h and 'profit' in h),
        'entry_date': find_header_index(headers, lambda h: ('entry' in h or 'open' in h) and 'time' in h),
        'exit_date': find_header_index(headers, lambda h: ('close' in h or 'closing' in h) and 'time' in h),
        'commission': find_header_index(headers, lambda h: 'commission' in h),
        'swap': find_header_index(headers, lambda h: 'swap' in h),
        'broker_trade_id': find_header_index(headers, lambda h: 'position id' in h or h in ('id', 'position')),
    }
    if columns['pnl'] is None:
        columns['pnl'] = find_header_index(headers, lambda h: 'profit' in h)
    if columns['symbol'] is None or columns['pnl'] is None:
        result.add_error(0, 'cTrader export has no symbol or profit column')
        return result

    for line_number, line in enumerate(lines[1:], start=2):
        try:
            values = tokenize_line(line)
            raw = {field: _cell(values, index) for field, index in columns.items()}
            if not raw['symbol'] or not raw['pnl']:
                continue
            raw['pnl'] = to_decimal(raw['pnl'], strict=True)
            result.trades.append(normalize_trade(raw, platform='cTrader', import_source='cTrader CSV'))
        except Exception as e:
            logger.warning(f"Skipping cTrader line {line_number}: {str(e)}")
            result.add_error(line_number, str(e))

    return result


def parse_dashboard_html(text: str) -> ParseResult:
    """Saved prop-firm dashboard page; trades only, metrics are read by the sync."""
    scraped = scrape_dashboard(text)
    return ParseResult(trades=scraped.trades, errors=scraped.errors, format='Hybrid Funding Dashboard')


def _cell(values: Sequence[str], index: Optional[int]) -> Optional[str]:
    if index is None or index >= len(values):
        return None
    return values[index] or None


PARSERS: Dict[StatementFormat, Callable[[str], ParseResult]] = {
    StatementFormat.MT4_CSV: parse_mt4_csv,
    StatementFormat.MT4_HTML: parse_mt4_html,
    StatementFormat.CTRADER: parse_ctrader_csv,
    StatementFormat.DASHBOARD_HTML: parse_dashboard_html,
}
for _format, _profile in CSV_PROFILES.items():
    PARSERS[_format] = lambda text, profile=_profile: parse_generic_csv(text, profile)


def parse_statement_text(text: str, statement_format: StatementFormat) -> ParseResult:
    """Run the text parser registered for a format. Never raises."""
    parser = PARSERS.get(statement_format)
    if parser is None:
        result = ParseResult(format=statement_format.value)
        result.add_error(0, f"Unsupported format: {statement_format.value}")
        return result
    try:
        return parser(text)
    except Exception as e:
        logger.error(f"Parser for {statement_format.value} failed: {str(e)}", exc_info=True)
        result = ParseResult(format=statement_format.value)
        result.add_error(0, str(e))
        return result


def parse_statement(
    filename: str,
    content: Union[str, bytes],
    ai_extractor: Optional[AIExtractor] = None,
    statement_format: Optional[StatementFormat] = None,
) -> ParseResult:
    """
    Detect the format of a statement and parse it.

    PDFs go to the AI extractor when one is supplied; without one they yield a
    document-level error.

    Args:
        filename: Original file name
        content: Raw file content
        ai_extractor: Callback used for PDF documents
        statement_format: Skip detection and use this format

    Returns:
        ParseResult with trades, errors and the format label
    """
    statement_format = statement_format or detect_format(filename, content)
    logger.info(f"Parsing {filename} as {statement_format.value}")

    if statement_format == StatementFormat.PDF:
        if ai_extractor is None:
            result = ParseResult(format='PDF')
            result.add_error(0, 'PDF statements require AI extraction')
            return result
        data = content if isinstance(content, bytes) else content.encode('latin-1', errors='ignore')
        return ai_extractor(data, filename)

    return parse_statement_text(decode_content(content), statement_format)

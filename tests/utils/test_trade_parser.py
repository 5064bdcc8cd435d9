"""
Tests for the statement parsers.
"""
import unittest
from decimal import Decimal
from unittest.mock import MagicMock

from models.statement import ParseResult, StatementFormat
from models.trade import InstrumentType, Side
from utils.trade_parser import (
    CSV_PROFILES,
    decode_content,
    parse_ctrader_csv,
    parse_generic_csv,
    parse_mt4_csv,
    parse_mt4_html,
    parse_statement,
    parse_statement_text,
)

GENERIC_CSV = (
    "symbol,side,entry_price,exit_price,quantity,pnl\n"
    "EURUSD,buy,1.1000,1.1050,1,50\n"
    "GBPUSD,sell,1.3000,1.2950,1,50"
)

MT4_CSV = (
    "Ticket,Open Time,Type,Size,Symbol,Price,S/L,T/P,Close Time,Close Price,Commission,Taxes,Swap,Profit\n"
    "1001,2024.01.02 10:00:00,buy,1.00,EURUSD,1.1000,1.0950,1.1100,2024.01.02 12:00:00,1.1050,-7.00,0,-1.50,500.00\n"
    "1002,2024.01.03 09:00:00,balance,,,,,,,,,,,10000.00\n"
    "1003,2024.01.03 10:00:00,sell,0.50,GBPUSD,1.3000,,,2024.01.03 11:00:00,1.2950,-3.50,0,0,250.00\n"
)


def _mt4_html(*rows):
    header = "<tr>" + "".join(f"<td>{h}</td>" for h in (
        "Ticket", "Open Time", "Type", "Size", "Item", "Price", "S / L", "T / P",
        "Close Time", "Price", "Commission", "Swap", "Profit")) + "</tr>"
    body = "".join("<tr>" + "".join(f"<td>{c}</td>" for c in row) + "</tr>" for row in rows)
    return f"<html><body><table>{header}{body}</table></body></html>"


class TestGenericCsv(unittest.TestCase):
    def test_two_row_generic_csv(self):
        result = parse_generic_csv(GENERIC_CSV)

        self.assertEqual(result.format, "Generic CSV")
        self.assertEqual(result.errors, [])
        self.assertEqual(len(result.trades), 2)
        self.assertEqual([t.side for t in result.trades], [Side.LONG, Side.SHORT])
        self.assertEqual([t.pnl for t in result.trades], [Decimal("50"), Decimal("50")])
        self.assertEqual(result.trades[0].platform, "CSV")
        self.assertEqual(result.trades[0].instrument_type, InstrumentType.FOREX)

    def test_one_malformed_row_among_valid_rows(self):
        text = GENERIC_CSV + "\nUSDJPY,buy,150.00,151.00,1,not-a-number\nAUDUSD,buy,0.6500,0.6550,1,20"
        result = parse_generic_csv(text)

        self.assertEqual(len(result.trades), 3)
        self.assertEqual(len(result.errors), 1)
        self.assertEqual(result.errors[0].line, 4)
        self.assertIn("pnl", result.errors[0].error)

    def test_rows_without_symbol_or_pnl_skipped_silently(self):
        result = parse_generic_csv("symbol,pnl\nEURUSD,5\n,7\nTOTAL,\n")
        self.assertEqual(len(result.trades), 1)
        self.assertEqual(result.errors, [])

    def test_empty_document(self):
        result = parse_generic_csv("symbol,pnl\n")
        self.assertEqual(result.trades, [])
        self.assertEqual(result.errors[0].line, 0)
        self.assertEqual(result.errors[0].error, "CSV file is empty or invalid")

    def test_platform_column_kept_for_generic_csv(self):
        result = parse_generic_csv("symbol,pnl,broker\nAAPL,10,IBKR")
        self.assertEqual(result.trades[0].platform, "IBKR")

    def test_profiles_stamp_platform(self):
        text = "symbol,pnl,broker\nESZ4,100,Someone"
        rithmic = parse_generic_csv(text, CSV_PROFILES[StatementFormat.RITHMIC])
        self.assertEqual(rithmic.format, "Rithmic")
        self.assertEqual(rithmic.trades[0].platform, "Rithmic")
        self.assertEqual(rithmic.trades[0].import_source, "Rithmic Export")
        self.assertEqual(rithmic.trades[0].instrument_type, InstrumentType.FUTURES)

        dx = parse_generic_csv("symbol,pnl\nAAPL,1", CSV_PROFILES[StatementFormat.DXTRADE])
        self.assertEqual(dx.trades[0].platform, "DXTrade")
        self.assertEqual(dx.trades[0].instrument_type, InstrumentType.STOCKS)

    def test_explicit_asset_type_column(self):
        result = parse_generic_csv("symbol,asset type,pnl\nAAPL,Options,5\nSPY,Crypto,3\nQQQ,Bonds,1")
        self.assertEqual([t.instrument_type for t in result.trades],
                         [InstrumentType.OPTIONS, InstrumentType.CRYPTO, InstrumentType.STOCKS])
        self.assertEqual([t.symbol for t in result.trades], ["AAPL", "SPY", "QQQ"])

    def test_profile_override_beats_type_column(self):
        result = parse_generic_csv("symbol,instrument type,pnl\nES,Stocks,5",
                                   CSV_PROFILES[StatementFormat.RITHMIC])
        self.assertEqual(result.trades[0].instrument_type, InstrumentType.FUTURES)

    def test_broker_id_column_mapped(self):
        result = parse_generic_csv("Trade ID,Symbol,Profit\nT-1,EURUSD,5")
        self.assertEqual(result.trades[0].broker_trade_id, "T-1")


class TestMt4Csv(unittest.TestCase):
    def test_parses_buy_and_sell_rows(self):
        result = parse_mt4_csv(MT4_CSV)

        self.assertEqual(result.format, "MetaTrader CSV")
        self.assertEqual(len(result.trades), 2)
        first = result.trades[0]
        self.assertEqual(first.broker_trade_id, "1001")
        self.assertEqual(first.side, Side.LONG)
        self.assertEqual(first.quantity, Decimal("1.00"))
        self.assertEqual(first.stop_loss, Decimal("1.0950"))
        self.assertEqual(first.commission, Decimal("-7.00"))
        self.assertEqual(first.swap, Decimal("-1.50"))
        self.assertEqual(first.pnl, Decimal("500.00"))
        self.assertEqual(first.platform, "MT4/MT5")
        self.assertEqual(result.trades[1].side, Side.SHORT)

    def test_short_rows_ignored(self):
        result = parse_mt4_csv("Ticket,Open Time\n1,2024.01.01,buy")
        self.assertEqual(result.trades, [])
        self.assertEqual(result.errors, [])


class TestMt4Html(unittest.TestCase):
    def test_parses_trade_rows(self):
        page = _mt4_html(
            ("5001", "2024.02.01 10:00", "buy", "1.00", "eurusd", "1.0800", "0", "0",
             "2024.02.01 14:00", "1.0850", "-7.00", "0.00", "500.00"),
            ("5002", "2024.02.02 10:00", "sell", "2.00", "XAUUSD", "2030.00", "2040.00", "2000.00",
             "2024.02.02 15:00", "2020.00", "-14.00", "-3.00", "2 000.00"),
        )
        result = parse_mt4_html(page)

        self.assertEqual(result.format, "MetaTrader 4/5 HTML")
        self.assertEqual(result.errors, [])
        self.assertEqual([t.symbol for t in result.trades], ["EURUSD", "XAUUSD"])
        self.assertEqual(result.trades[1].pnl, Decimal("2000.00"))
        self.assertEqual(result.trades[1].instrument_type, InstrumentType.CFD)
        self.assertEqual(result.trades[1].take_profit, Decimal("2000.00"))

    def test_row_with_too_few_cells_skipped(self):
        result = parse_mt4_html(_mt4_html(("1", "2024.02.01", "buy", "1", "EURUSD")))
        self.assertEqual(result.trades, [])
        self.assertEqual(result.errors, [])

    def test_missing_table(self):
        result = parse_mt4_html("<html><body>No trades</body></html>")
        self.assertEqual(result.trades, [])
        self.assertEqual(result.errors[0].line, 0)

    def test_missing_profit_counts_as_zero(self):
        page = _mt4_html(("1", "2024.02.01 10:00", "buy", "1", "EURUSD", "1.1", "0", "0", "2024.02.01 11:00"))
        result = parse_mt4_html(page)
        self.assertEqual(result.trades[0].pnl, Decimal("0"))


class TestCTrader(unittest.TestCase):
    def test_keyword_located_columns(self):
        text = (
            "Position ID,Symbol,Direction,Volume,Entry price,Closing price,Opening time,Closing time,Net profit\n"
            "77,EURUSD,Buy,10000,1.1000,1.1020,2024-03-01 10:00:00,2024-03-01 11:00:00,20.00\n"
            "78,GBPUSD,Sell,10000,1.2700,1.2710,2024-03-02 10:00:00,2024-03-02 11:00:00,bad\n"
        )
        result = parse_ctrader_csv(text)

        self.assertEqual(result.format, "cTrader")
        self.assertEqual(len(result.trades), 1)
        trade = result.trades[0]
        self.assertEqual(trade.broker_trade_id, "77")
        self.assertEqual(trade.exit_price, Decimal("1.1020"))
        self.assertEqual(trade.pnl, Decimal("20.00"))
        self.assertEqual(trade.platform, "cTrader")
        self.assertEqual(len(result.errors), 1)
        self.assertEqual(result.errors[0].line, 3)

    def test_missing_profit_column(self):
        result = parse_ctrader_csv("Symbol,Direction\nEURUSD,Buy")
        self.assertEqual(result.trades, [])
        self.assertEqual(result.errors[0].line, 0)


class TestParseStatement(unittest.TestCase):
    def test_detects_and_parses_bytes(self):
        result = parse_statement("trades.csv", GENERIC_CSV.encode("utf-8-sig"))
        self.assertEqual(len(result.trades), 2)

    def test_pdf_without_extractor(self):
        result = parse_statement("statement.pdf", b"%PDF-1.4 ...")
        self.assertEqual(result.trades, [])
        self.assertEqual(result.errors[0].error, "PDF statements require AI extraction")

    def test_pdf_goes_to_extractor(self):
        extractor = MagicMock(return_value=ParseResult(format="AI Extracted (MT5)"))
        result = parse_statement("statement.pdf", b"%PDF-1.4 ...", ai_extractor=extractor)
        extractor.assert_called_once_with(b"%PDF-1.4 ...", "statement.pdf")
        self.assertEqual(result.format, "AI Extracted (MT5)")

    def test_parser_failure_becomes_document_error(self):
        result = parse_statement_text(None, StatementFormat.CSV)
        self.assertEqual(result.trades, [])
        self.assertEqual(result.errors[0].line, 0)

    def test_match_trader_export(self):
        text = "Symbol,Side,Profit,Platform\nEURUSD,buy,12.5,MatchTrader\n"
        result = parse_statement("history.csv", text)

        self.assertEqual(result.format, "MatchTrader")
        trade = result.trades[0]
        self.assertEqual(trade.platform, "MatchTrader")
        self.assertEqual(trade.import_source, "MatchTrader Export")
        self.assertEqual(trade.instrument_type, InstrumentType.FOREX)
        self.assertEqual(trade.pnl, Decimal("12.5"))

    def test_trading_view_export(self):
        text = "Symbol,Side,Profit,Note\nAAPL,sell,-4,paper trading\n"
        result = parse_statement("orders.csv", text)

        self.assertEqual(result.format, "TradingView")
        trade = result.trades[0]
        self.assertEqual(trade.platform, "TradingView")
        self.assertEqual(trade.import_source, "TradingView Export")
        self.assertEqual(trade.side, Side.SHORT)
        self.assertEqual(trade.instrument_type, InstrumentType.STOCKS)

    def test_saved_dashboard_page(self):
        page = ('<html><script>window.__INITIAL_STATE__ = '
                '{"trades": [{"dealId": "9", "symbol": "NQ", "type": "buy", "profit": 15}]};</script></html>')
        result = parse_statement("dashboard.html", page)
        self.assertEqual(result.format, "Hybrid Funding Dashboard")
        self.assertEqual(result.trades[0].broker_trade_id, "9")

    def test_decode_windows_1252(self):
        self.assertEqual(decode_content("EUR€".encode("cp1252")), "EUR€")


if __name__ == '__main__':
    unittest.main()

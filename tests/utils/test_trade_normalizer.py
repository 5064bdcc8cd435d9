"""
Unit tests for value conversion and trade normalization.
"""
import unittest
from datetime import datetime, timezone
from decimal import Decimal

from models.trade import InstrumentType, Side
from utils.serde_utils import to_datetime, to_decimal, to_side
from utils.trade_normalizer import infer_instrument_type, normalize_trade, to_instrument_type


class TestToDecimal(unittest.TestCase):
    def test_currency_and_separators(self):
        self.assertEqual(to_decimal("$1,234.50"), Decimal("1234.50"))
        self.assertEqual(to_decimal("€ 12"), Decimal("12"))

    def test_accounting_negative(self):
        self.assertEqual(to_decimal("(12.5)"), Decimal("-12.5"))

    def test_numbers_pass_through(self):
        self.assertEqual(to_decimal(3), Decimal("3"))
        self.assertEqual(to_decimal(0.1), Decimal("0.1"))

    def test_junk(self):
        self.assertIsNone(to_decimal("n/a"))
        self.assertIsNone(to_decimal(""))
        self.assertIsNone(to_decimal(None))
        self.assertIsNone(to_decimal(float("nan")))
        with self.assertRaises(ValueError):
            to_decimal("n/a", strict=True)
        with self.assertRaises(ValueError):
            to_decimal("Infinity", strict=True)


class TestToDatetime(unittest.TestCase):
    def test_iso_with_zulu(self):
        self.assertEqual(to_datetime("2024-01-02T03:04:05Z"), datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc))

    def test_metatrader_layout(self):
        self.assertEqual(to_datetime("2024.01.02 03:04:05"), datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc))

    def test_us_layout(self):
        self.assertEqual(to_datetime("01/31/2024 14:00"), datetime(2024, 1, 31, 14, 0, tzinfo=timezone.utc))

    def test_unreadable(self):
        self.assertIsNone(to_datetime("soon"))
        self.assertIsNone(to_datetime(""))


class TestToSide(unittest.TestCase):
    def test_long_tokens(self):
        for token in ("buy", "BUY LIMIT", "Long", "long"):
            with self.subTest(token=token):
                self.assertEqual(to_side(token), Side.LONG)

    def test_other_tokens_are_short(self):
        for token in ("sell", "SHORT", "s"):
            with self.subTest(token=token):
                self.assertEqual(to_side(token), Side.SHORT)

    def test_missing_side_is_unknown(self):
        self.assertIsNone(to_side(""))
        self.assertIsNone(to_side(None))


class TestInstrumentInference(unittest.TestCase):
    def test_inference(self):
        cases = {
            "EURUSD": InstrumentType.FOREX,
            "gbp/jpy": InstrumentType.FOREX,
            "BTCUSD": InstrumentType.CRYPTO,
            "ETH-PERP": InstrumentType.CRYPTO,
            "NQ": InstrumentType.FUTURES,
            "ESZ4": InstrumentType.FUTURES,
            "NAS100": InstrumentType.FUTURES,
            "SPX500": InstrumentType.FUTURES,
            "XAUUSD": InstrumentType.CFD,
            "AAPL 190 CALL": InstrumentType.OPTIONS,
            "AAPL240621C00190000": InstrumentType.OPTIONS,
            "AAPL": InstrumentType.STOCKS,
            "": InstrumentType.STOCKS,
        }
        for symbol, expected in cases.items():
            with self.subTest(symbol=symbol):
                self.assertEqual(infer_instrument_type(symbol), expected)

    def test_explicit_type(self):
        self.assertEqual(to_instrument_type("futures"), InstrumentType.FUTURES)
        self.assertIsNone(to_instrument_type("bonds"))


class TestNormalizeTrade(unittest.TestCase):
    def test_full_row(self):
        record = normalize_trade(
            {
                "symbol": "eurusd",
                "side": "sell",
                "entry_date": "2024.01.02 10:00",
                "entry_price": "1.1",
                "quantity": "",
                "pnl": "-12.50",
                "commission": "n/a",
                "broker_trade_id": " 42 ",
            },
            platform="MT4/MT5",
            import_source="MT4/5 CSV",
        )
        self.assertEqual(record.symbol, "EURUSD")
        self.assertEqual(record.side, Side.SHORT)
        self.assertEqual(record.entry_date, datetime(2024, 1, 2, 10, 0, tzinfo=timezone.utc))
        self.assertEqual(record.quantity, Decimal("0"))
        self.assertEqual(record.commission, Decimal("0"))
        self.assertEqual(record.pnl, Decimal("-12.50"))
        self.assertEqual(record.instrument_type, InstrumentType.FOREX)
        self.assertEqual(record.platform, "MT4/MT5")
        self.assertEqual(record.broker_trade_id, "42")

    def test_override_wins_over_inference(self):
        record = normalize_trade({"symbol": "EURUSD", "pnl": 1}, instrument_type=InstrumentType.FUTURES)
        self.assertEqual(record.instrument_type, InstrumentType.FUTURES)

    def test_row_platform_kept(self):
        record = normalize_trade({"symbol": "AAPL", "pnl": 1, "platform": "IBKR"}, platform="CSV")
        self.assertEqual(record.platform, "IBKR")

    def test_missing_symbol_or_pnl(self):
        with self.assertRaises(ValueError):
            normalize_trade({"pnl": 5})
        with self.assertRaises(ValueError):
            normalize_trade({"symbol": "EURUSD", "pnl": "abc"})


if __name__ == '__main__':
    unittest.main()

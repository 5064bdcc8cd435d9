"""
Unit tests for BrokerConnection and the sync log models.
"""
import unittest
import uuid
from decimal import Decimal

from pydantic import ValidationError

from models.broker_connection import BrokerConnection, ConnectionStatus
from models.statement import AccountMetrics, ParseResult
from models.sync_log import SyncLogEntry, SyncOutcome, SyncStatus, SyncType, TradeError


class TestBrokerConnection(unittest.TestCase):
    def _connection(self, **overrides):
        data = dict(userId="user123", brokerId="hybrid_funding", autoSync=True,
                    status=ConnectionStatus.CONNECTED, syncInterval=3600)
        data.update(overrides)
        return BrokerConnection(**data)

    def test_defaults(self):
        connection = BrokerConnection(userId="user123", brokerId="hybrid_funding")
        self.assertEqual(connection.sync_interval, 3600)
        self.assertEqual(connection.status, ConnectionStatus.PENDING)
        self.assertFalse(connection.auto_sync)

    def test_sync_interval_must_be_positive(self):
        with self.assertRaises(ValidationError):
            self._connection(syncInterval=0)

    def test_sync_due_when_never_synced(self):
        self.assertTrue(self._connection().is_sync_due(1_000))

    def test_sync_due_after_interval(self):
        connection = self._connection(lastSync=1_000_000)
        self.assertFalse(connection.is_sync_due(1_000_000 + 3_599_999))
        self.assertTrue(connection.is_sync_due(1_000_000 + 3_600_000))

    def test_not_due_unless_connected_auto_sync(self):
        self.assertFalse(self._connection(autoSync=False).is_sync_due(10**13))
        self.assertFalse(self._connection(status=ConnectionStatus.ERROR).is_sync_due(10**13))

    def test_dynamodb_round_trip(self):
        connection = self._connection(accountBalance=Decimal("50000.00"), lastSync=1_700_000_000_000)
        item = connection.to_dynamodb_item()
        self.assertEqual(item["status"], "connected")
        self.assertEqual(item["connectionId"], str(connection.connection_id))

        item["lastSync"] = Decimal(item["lastSync"])
        restored = BrokerConnection.from_dynamodb_item(item)
        self.assertEqual(restored.last_sync, 1_700_000_000_000)
        self.assertEqual(restored.account_balance, Decimal("50000.00"))

    def test_response_hides_username(self):
        connection = self._connection(username="trader@example.com")
        self.assertNotIn("username", connection.to_response())


class TestSyncOutcome(unittest.TestCase):
    def test_status_success_without_errors(self):
        self.assertEqual(SyncOutcome(imported=2).status, SyncStatus.SUCCESS)

    def test_status_partial_with_errors(self):
        outcome = SyncOutcome(imported=2, errors=[TradeError(trade="EURUSD", error="boom")])
        self.assertEqual(outcome.status, SyncStatus.PARTIAL)

    def test_response_shape(self):
        outcome = SyncOutcome(
            imported=1, updated=2, skipped=3, total_fetched=6, duration_ms=120,
            metrics=AccountMetrics(balance=Decimal("50000"), total_profit_loss=Decimal("25")),
        )
        body = outcome.to_response()

        self.assertEqual(body["success"], True)
        self.assertEqual(body["totalTrades"], 6)
        self.assertEqual(body["metrics"], {"balance": Decimal("50000"), "totalProfitLoss": Decimal("25")})
        self.assertNotIn("errors", body)
        self.assertNotIn("format", body)

    def test_response_includes_errors_and_format(self):
        outcome = SyncOutcome(errors=[TradeError(line=3, error="bad")], format="Generic CSV")
        body = outcome.to_response()
        self.assertEqual(body["errors"], [{"line": 3, "error": "bad"}])
        self.assertEqual(body["format"], "Generic CSV")


class TestSyncLogEntry(unittest.TestCase):
    def test_from_outcome(self):
        connection_id = uuid.uuid4()
        outcome = SyncOutcome(imported=1, skipped=1, total_fetched=2,
                              errors=[TradeError(trade="GBPUSD", error="failed", brokerTradeId="9")])
        entry = SyncLogEntry.from_outcome(outcome, "user123", connection_id, SyncType.SCHEDULED)

        self.assertEqual(entry.status, SyncStatus.PARTIAL)
        self.assertEqual(entry.trades_fetched, 2)
        item = entry.to_dynamodb_item()
        self.assertEqual(item["syncType"], "scheduled")
        self.assertEqual(item["errors"][0]["brokerTradeId"], "9")

    def test_from_dynamodb_item_converts_decimals(self):
        entry = SyncLogEntry(userId="u", brokerConnectionId=uuid.uuid4(), syncType=SyncType.STATEMENT_IMPORT,
                             status=SyncStatus.SUCCESS, errors=[TradeError(line=4, error="x")])
        item = entry.to_dynamodb_item()
        item["durationMs"] = Decimal("15")
        item["errors"][0]["line"] = Decimal("4")

        restored = SyncLogEntry.from_dynamodb_item(item)
        self.assertEqual(restored.duration_ms, 15)
        self.assertEqual(restored.errors[0].line, 4)


class TestParseResult(unittest.TestCase):
    def test_add_error(self):
        result = ParseResult(format="csv")
        result.add_error(0, "CSV file is empty or invalid")
        self.assertEqual(result.errors[0].line, 0)
        self.assertEqual(result.trades, [])


if __name__ == '__main__':
    unittest.main()

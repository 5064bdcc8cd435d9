"""
Sync log models: the audit record written after every sync or statement import.
"""
import enum
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Dict, Any
from typing_extensions import Self

from pydantic import BaseModel, Field, ConfigDict

from models.statement import AccountMetrics


class SyncStatus(str, enum.Enum):
    """Enum for sync outcomes"""
    SUCCESS = "success"
    PARTIAL = "partial"
    ERROR = "error"


class SyncType(str, enum.Enum):
    """Enum for what triggered the sync"""
    DASHBOARD_SCRAPE = "dashboard_scrape"
    STATEMENT_IMPORT = "statement_import"
    SCHEDULED = "scheduled"


class TradeError(BaseModel):
    """A failure tied to one trade (or one statement line) during a sync."""
    trade: Optional[str] = None
    error: str
    line: Optional[int] = None
    broker_trade_id: Optional[str] = Field(default=None, alias="brokerTradeId")

    model_config = ConfigDict(populate_by_name=True)


class SyncOutcome(BaseModel):
    """Counts and errors of one sync run, as returned to the caller."""
    imported: int = 0
    updated: int = 0
    skipped: int = 0
    total_fetched: int = Field(default=0, alias="totalFetched")
    errors: List[TradeError] = Field(default_factory=list)
    duration_ms: int = Field(default=0, alias="durationMs")
    metrics: Optional[AccountMetrics] = None
    format: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)

    @property
    def status(self) -> "SyncStatus":
        """
        partial when anything went wrong on the way, success otherwise.
        A run that never produced an outcome is logged as error by the caller.
        """
        return SyncStatus.PARTIAL if self.errors else SyncStatus.SUCCESS

    def to_response(self) -> Dict[str, Any]:
        """Response body for the sync trigger endpoints."""
        body: Dict[str, Any] = {
            'success': True,
            'imported': self.imported,
            'updated': self.updated,
            'skipped': self.skipped,
            'totalTrades': self.total_fetched,
            'metrics': self.metrics.to_response() if self.metrics else {},
            'durationMs': self.duration_ms,
        }
        if self.errors:
            body['errors'] = [e.model_dump(by_alias=True, exclude_none=True) for e in self.errors]
        if self.format:
            body['format'] = self.format
        return body


class SyncLogEntry(BaseModel):
    """
    Persisted audit record of one sync run.
    """
    sync_log_id: uuid.UUID = Field(default_factory=uuid.uuid4, alias="syncLogId")
    user_id: str = Field(alias="userId")
    broker_connection_id: uuid.UUID = Field(alias="brokerConnectionId")
    sync_type: SyncType = Field(alias="syncType")
    status: SyncStatus
    trades_fetched: int = Field(default=0, alias="tradesFetched")
    trades_imported: int = Field(default=0, alias="tradesImported")
    trades_updated: int = Field(default=0, alias="tradesUpdated")
    trades_skipped: int = Field(default=0, alias="tradesSkipped")
    errors: List[TradeError] = Field(default_factory=list)
    error_message: Optional[str] = Field(default=None, alias="errorMessage")
    duration_ms: int = Field(default=0, alias="durationMs")
    sync_timestamp: int = Field(default_factory=lambda: int(datetime.now(timezone.utc).timestamp() * 1000), alias="syncTimestamp")

    model_config = ConfigDict(
        populate_by_name=True,
        use_enum_values=False,
    )

    @classmethod
    def from_outcome(
        cls,
        outcome: SyncOutcome,
        user_id: str,
        broker_connection_id: uuid.UUID,
        sync_type: SyncType,
    ) -> "SyncLogEntry":
        return cls(
            user_id=user_id,
            broker_connection_id=broker_connection_id,
            sync_type=sync_type,
            status=outcome.status,
            trades_fetched=outcome.total_fetched,
            trades_imported=outcome.imported,
            trades_updated=outcome.updated,
            trades_skipped=outcome.skipped,
            errors=list(outcome.errors),
            duration_ms=outcome.duration_ms,
        )

    def to_dynamodb_item(self) -> Dict[str, Any]:
        item = self.model_dump(mode='python', by_alias=True, exclude_none=True)
        item['syncLogId'] = str(self.sync_log_id)
        item['brokerConnectionId'] = str(self.broker_connection_id)
        item['syncType'] = self.sync_type.value
        item['status'] = self.status.value
        return item

    @classmethod
    def from_dynamodb_item(cls, data: Dict[str, Any]) -> Self:
        converted = data.copy()
        for field in ('tradesFetched', 'tradesImported', 'tradesUpdated',
                      'tradesSkipped', 'durationMs', 'syncTimestamp'):
            if isinstance(converted.get(field), Decimal):
                converted[field] = int(converted[field])
        for error in converted.get('errors') or []:
            if isinstance(error.get('line'), Decimal):
                error['line'] = int(error['line'])
        return cls.model_validate(converted)

    def to_response(self) -> Dict[str, Any]:
        return self.to_dynamodb_item()

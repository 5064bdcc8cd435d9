"""
Trade models for the trading journal sync backend.

TradeRecord is the transient, canonical output of the statement parsers.
Trade is the persisted entity stored in DynamoDB, one per broker trade.
"""
import enum
import uuid
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Dict, Any
from typing_extensions import Self

from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict

logger = logging.getLogger(__name__)

# Namespace for deterministic trade ids derived from (connection, broker trade id)
TRADE_ID_NAMESPACE = uuid.UUID("6f1c8a52-3d4e-4b8f-9a21-5c7e0d9b2f64")


class Side(str, enum.Enum):
    """Enum for trade direction"""
    LONG = "Long"
    SHORT = "Short"


class InstrumentType(str, enum.Enum):
    """Enum for instrument classes"""
    FOREX = "Forex"
    FUTURES = "Futures"
    STOCKS = "Stocks"
    OPTIONS = "Options"
    CRYPTO = "Crypto"
    CFD = "CFD"


class TradeStatus(str, enum.Enum):
    """Enum for trade lifecycle status"""
    OPEN = "open"
    CLOSED = "closed"


class TradeRecord(BaseModel):
    """
    A single normalized trade as produced by a statement parser.

    It has no identity of its own; reconciliation decides whether it becomes
    a new Trade, patches an existing one, or is discarded.
    """
    symbol: str = Field(min_length=1, max_length=50)
    side: Optional[Side] = None
    entry_date: Optional[datetime] = Field(default=None, alias="entryDate")
    exit_date: Optional[datetime] = Field(default=None, alias="exitDate")
    entry_price: Optional[Decimal] = Field(default=None, alias="entryPrice")
    exit_price: Optional[Decimal] = Field(default=None, alias="exitPrice")
    quantity: Decimal = Decimal("0")
    pnl: Decimal
    commission: Decimal = Decimal("0")
    swap: Decimal = Decimal("0")
    stop_loss: Optional[Decimal] = Field(default=None, alias="stopLoss")
    take_profit: Optional[Decimal] = Field(default=None, alias="takeProfit")
    platform: str = ""
    instrument_type: InstrumentType = Field(default=InstrumentType.STOCKS, alias="instrumentType")
    import_source: str = Field(default="", alias="importSource")
    broker_trade_id: Optional[str] = Field(default=None, alias="brokerTradeId", max_length=200)

    model_config = ConfigDict(
        populate_by_name=True,
        use_enum_values=False,
    )

    @field_validator('symbol')
    @classmethod
    def normalize_symbol(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("Symbol must not be empty")
        return v

    @field_validator('pnl')
    @classmethod
    def check_finite_pnl(cls, v: Decimal) -> Decimal:
        if not v.is_finite():
            raise ValueError("P&L must be a finite number")
        return v

    @property
    def pnl_net(self) -> Decimal:
        return self.pnl - self.commission - self.swap

    def effective_trade_id(self, platform_prefix: Optional[str] = None) -> str:
        """
        Return the dedup key for this trade: the broker id when present,
        otherwise a synthetic id built from symbol and entry date.
        """
        if self.broker_trade_id:
            return self.broker_trade_id
        entry = self.entry_date.isoformat() if self.entry_date else ""
        if platform_prefix:
            return f"{platform_prefix}_{self.symbol}_{entry}"
        return f"{self.symbol}_{entry}"


def derive_trade_id(broker_connection_id: uuid.UUID, broker_trade_id: str) -> uuid.UUID:
    """Deterministic primary key for a connection-scoped broker trade."""
    return uuid.uuid5(TRADE_ID_NAMESPACE, f"{broker_connection_id}:{broker_trade_id}")


class Trade(BaseModel):
    """
    Represents a trade persisted for a user, optionally owned by a broker connection.
    """
    trade_id: uuid.UUID = Field(default_factory=uuid.uuid4, alias="tradeId")
    user_id: str = Field(alias="userId")
    broker_connection_id: Optional[uuid.UUID] = Field(default=None, alias="brokerConnectionId")
    broker_trade_id: Optional[str] = Field(default=None, alias="brokerTradeId", max_length=200)
    symbol: str = Field(min_length=1, max_length=50)
    side: Optional[Side] = None
    entry_date: Optional[datetime] = Field(default=None, alias="entryDate")
    exit_date: Optional[datetime] = Field(default=None, alias="exitDate")
    entry_price: Optional[Decimal] = Field(default=None, alias="entryPrice")
    exit_price: Optional[Decimal] = Field(default=None, alias="exitPrice")
    quantity: Decimal = Decimal("0")
    pnl: Decimal
    pnl_net: Optional[Decimal] = Field(default=None, alias="pnlNet")
    commission: Decimal = Decimal("0")
    swap: Decimal = Decimal("0")
    stop_loss: Optional[Decimal] = Field(default=None, alias="stopLoss")
    take_profit: Optional[Decimal] = Field(default=None, alias="takeProfit")
    platform: Optional[str] = Field(default=None, max_length=100)
    instrument_type: Optional[InstrumentType] = Field(default=None, alias="instrumentType")
    import_source: Optional[str] = Field(default=None, alias="importSource", max_length=200)
    trade_status: TradeStatus = Field(default=TradeStatus.CLOSED, alias="tradeStatus")
    created_at: int = Field(default_factory=lambda: int(datetime.now(timezone.utc).timestamp() * 1000), alias="createdAt")
    updated_at: int = Field(default_factory=lambda: int(datetime.now(timezone.utc).timestamp() * 1000), alias="updatedAt")

    model_config = ConfigDict(
        populate_by_name=True,
        json_encoders={
            Decimal: str,
            uuid.UUID: str
        },
        use_enum_values=False,
    )

    @field_validator('created_at', 'updated_at')
    @classmethod
    def check_positive_timestamp(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Timestamp must be a positive integer representing milliseconds since epoch")
        return v

    @model_validator(mode='after')
    def fill_derived_fields(self) -> Self:
        if self.pnl_net is None:
            self.pnl_net = self.pnl - self.commission - self.swap
        return self

    @classmethod
    def from_record(
        cls,
        record: TradeRecord,
        user_id: str,
        broker_connection_id: Optional[uuid.UUID] = None,
        broker_trade_id: Optional[str] = None,
    ) -> "Trade":
        """
        Build a new persisted Trade from a parsed record.

        When the trade belongs to a broker connection its id is derived from
        the (connection, broker trade id) pair, so a second create for the same
        pair collides on the primary key instead of producing a duplicate.
        """
        broker_trade_id = broker_trade_id or record.broker_trade_id
        data: Dict[str, Any] = record.model_dump(exclude={"broker_trade_id"})
        data.update(
            user_id=user_id,
            broker_connection_id=broker_connection_id,
            broker_trade_id=broker_trade_id,
            trade_status=TradeStatus.CLOSED if record.exit_date else TradeStatus.OPEN,
        )
        if broker_connection_id and broker_trade_id:
            data["trade_id"] = derive_trade_id(broker_connection_id, broker_trade_id)
        return cls.model_validate(data)

    def to_dynamodb_item(self) -> Dict[str, Any]:
        """
        Serialize to a flat dictionary suitable for DynamoDB.
        Datetimes become ISO-8601 strings, UUIDs become strings, numbers stay Decimal.
        """
        data = self.model_dump(by_alias=True, exclude_none=True)
        for key, value in data.items():
            if isinstance(value, uuid.UUID):
                data[key] = str(value)
            elif isinstance(value, datetime):
                data[key] = value.isoformat()
            elif isinstance(value, enum.Enum):
                data[key] = value.value
        return data

    @classmethod
    def from_dynamodb_item(cls, data: Dict[str, Any]) -> Self:
        """Deserialize a DynamoDB item into a Trade."""
        converted_data = data.copy()
        for field in ('createdAt', 'updatedAt'):
            if isinstance(converted_data.get(field), Decimal):
                converted_data[field] = int(converted_data[field])
        return cls.model_validate(converted_data)


class TradeUpdate(BaseModel):
    """
    Patch applied to an existing trade when a re-synced trade has changed.
    Entry fields are deliberately absent: they are never overwritten.
    """
    exit_date: Optional[datetime] = Field(default=None, alias="exitDate")
    exit_price: Optional[Decimal] = Field(default=None, alias="exitPrice")
    pnl: Decimal
    pnl_net: Optional[Decimal] = Field(default=None, alias="pnlNet")
    stop_loss: Optional[Decimal] = Field(default=None, alias="stopLoss")
    take_profit: Optional[Decimal] = Field(default=None, alias="takeProfit")

    model_config = ConfigDict(populate_by_name=True)

    def to_dynamodb_updates(self) -> Dict[str, Any]:
        """Attribute updates keyed by DynamoDB attribute name, None values kept."""
        updates: Dict[str, Any] = {}
        for key, value in self.model_dump(by_alias=True).items():
            if isinstance(value, datetime):
                value = value.isoformat()
            updates[key] = value
        if self.exit_date is not None:
            updates["tradeStatus"] = TradeStatus.CLOSED.value
        return updates

"""
Broker connection model: one linked brokerage or prop-firm account.
"""
import decimal
import enum
import uuid
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Dict, Any
from typing_extensions import Self

from pydantic import BaseModel, Field, field_validator, ConfigDict

logger = logging.getLogger(__name__)

DEFAULT_SYNC_INTERVAL_SECONDS = 3600


class ConnectionStatus(str, enum.Enum):
    """Enum for broker connection states"""
    PENDING = "pending"
    CONNECTED = "connected"
    ERROR = "error"
    DISCONNECTED = "disconnected"


class ConnectionType(str, enum.Enum):
    """Enum for how trades reach the journal"""
    DASHBOARD = "dashboard"
    STATEMENT = "statement"
    API = "api"


class BrokerConnection(BaseModel):
    """
    Represents a broker account linked by a user, with its cached account figures.
    """
    connection_id: uuid.UUID = Field(default_factory=uuid.uuid4, alias="connectionId")
    user_id: str = Field(alias="userId")
    broker_id: str = Field(max_length=100, alias="brokerId")
    broker_name: Optional[str] = Field(default=None, max_length=100, alias="brokerName")
    account_number: Optional[str] = Field(default=None, max_length=100, alias="accountNumber")
    username: Optional[str] = Field(default=None, max_length=200)
    connection_type: ConnectionType = Field(default=ConnectionType.DASHBOARD, alias="connectionType")
    auto_sync: bool = Field(default=False, alias="autoSync")
    sync_interval: int = Field(default=DEFAULT_SYNC_INTERVAL_SECONDS, gt=0, alias="syncInterval")  # seconds
    status: ConnectionStatus = ConnectionStatus.PENDING
    account_balance: Optional[Decimal] = Field(default=None, alias="accountBalance")
    account_equity: Optional[Decimal] = Field(default=None, alias="accountEquity")
    error_message: Optional[str] = Field(default=None, max_length=2000, alias="errorMessage")
    last_sync: Optional[int] = Field(default=None, alias="lastSync")  # milliseconds since epoch

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

    @field_validator('created_at', 'updated_at', 'last_sync')
    @classmethod
    def check_positive_timestamp(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 0:
            raise ValueError("Timestamp must be a positive integer representing milliseconds since epoch")
        return v

    def is_sync_due(self, now_ms: int) -> bool:
        """True when an auto-sync connection has never synced or its interval has elapsed."""
        if not self.auto_sync or self.status != ConnectionStatus.CONNECTED:
            return False
        if self.last_sync is None:
            return True
        return now_ms - self.last_sync >= self.sync_interval * 1000

    def to_dynamodb_item(self) -> Dict[str, Any]:
        """
        Serializes the BrokerConnection to a dictionary suitable for DynamoDB.
        """
        item = self.model_dump(mode='python', by_alias=True, exclude_none=True)
        item['connectionId'] = str(self.connection_id)
        item['connectionType'] = self.connection_type.value
        item['status'] = self.status.value
        return item

    @classmethod
    def from_dynamodb_item(cls, data: Dict[str, Any]) -> Self:
        """
        Deserializes a DynamoDB item into a BrokerConnection instance.
        """
        converted = data.copy()
        for field in ('createdAt', 'updatedAt', 'lastSync', 'syncInterval'):
            if isinstance(converted.get(field), Decimal):
                converted[field] = int(converted[field])
        for field in ('accountBalance', 'accountEquity'):
            if converted.get(field) is not None:
                try:
                    converted[field] = Decimal(str(converted[field]))
                except decimal.InvalidOperation:
                    raise ValueError(f"Invalid decimal value for {field} from DB: {converted[field]}")
        return cls.model_validate(converted)

    def to_response(self) -> Dict[str, Any]:
        """camelCase API representation; the login username is not echoed back."""
        data = self.model_dump(by_alias=True, exclude={'username'})
        data['connectionId'] = str(self.connection_id)
        return data

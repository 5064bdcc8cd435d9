"""
Models package for the trading journal sync backend.
"""

from .trade import (
    Trade,
    TradeRecord,
    TradeUpdate,
    TradeStatus,
    Side,
    InstrumentType,
    derive_trade_id,
)

from .statement import (
    StatementFormat,
    ParseError,
    ParseResult,
    AccountMetrics,
)

from .broker_connection import (
    BrokerConnection,
    ConnectionStatus,
    ConnectionType,
)

from .sync_log import (
    SyncLogEntry,
    SyncOutcome,
    SyncStatus,
    SyncType,
    TradeError,
)

__all__ = [
    'Trade',
    'TradeRecord',
    'TradeUpdate',
    'TradeStatus',
    'Side',
    'InstrumentType',
    'derive_trade_id',
    'StatementFormat',
    'ParseError',
    'ParseResult',
    'AccountMetrics',
    'BrokerConnection',
    'ConnectionStatus',
    'ConnectionType',
    'SyncLogEntry',
    'SyncOutcome',
    'SyncStatus',
    'SyncType',
    'TradeError',
]

__all__ = sorted(list(set(__all__)))

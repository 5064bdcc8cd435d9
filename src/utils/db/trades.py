"""
Trade database operations.

Trades belonging to a broker connection are keyed by a UUIDv5 derived from
(brokerConnectionId, brokerTradeId), and created with a conditional put, so
the table itself rejects a second trade for the same broker deal.
"""

import logging
import uuid
from typing import List
from boto3.dynamodb.conditions import Key

from models import Trade, TradeUpdate
from .base import (
    tables,
    dynamodb_operation,
    retry_on_throttle,
    monitor_performance,
)
from .helpers import build_update_expression, paginated_query, to_db_id

logger = logging.getLogger(__name__)


@monitor_performance(operation_type="query", warn_threshold_ms=500)
@retry_on_throttle(max_attempts=3)
@dynamodb_operation("list_connection_trades")
def list_connection_trades(broker_connection_id: uuid.UUID) -> List[Trade]:
    """
    List every trade owned by a broker connection.

    Args:
        broker_connection_id: The broker connection's ID

    Returns:
        List of Trade objects
    """
    trades, _ = paginated_query(
        table=tables.trades,
        query_params={
            'IndexName': 'BrokerConnectionIdIndex',
            'KeyConditionExpression': Key('brokerConnectionId').eq(to_db_id(broker_connection_id)),
        },
        transform=Trade.from_dynamodb_item,
    )
    logger.info(f"Listed {len(trades)} trades for broker connection {broker_connection_id}")
    return trades


@monitor_performance(warn_threshold_ms=300)
@retry_on_throttle(max_attempts=3)
@dynamodb_operation("create_trade")
def create_trade(trade: Trade) -> Trade:
    """
    Create a trade unless one with the same ID already exists.

    Raises:
        ConflictError: If the trade ID is already taken
    """
    tables.trades.put_item(
        Item=trade.to_dynamodb_item(),
        ConditionExpression='attribute_not_exists(tradeId)',
    )
    return trade


@monitor_performance(warn_threshold_ms=300)
@retry_on_throttle(max_attempts=3)
@dynamodb_operation("update_trade")
def update_trade(trade_id: uuid.UUID, update: TradeUpdate) -> None:
    """
    Apply a reconciliation patch to an existing trade.

    Raises:
        ConflictError: If the trade no longer exists
    """
    expression, names, values = build_update_expression(update.to_dynamodb_updates())
    names['#tradeIdKey'] = 'tradeId'
    tables.trades.update_item(
        Key={'tradeId': to_db_id(trade_id)},
        UpdateExpression=expression,
        ConditionExpression='attribute_exists(#tradeIdKey)',
        ExpressionAttributeNames=names,
        ExpressionAttributeValues=values,
    )

"""
Broker connection database operations.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional
from boto3.dynamodb.conditions import Attr, Key

from models import BrokerConnection, ConnectionStatus
from .base import (
    tables,
    dynamodb_operation,
    retry_on_throttle,
    monitor_performance,
    NotFound,
    checked_mandatory_resource,
)
from .helpers import build_update_expression, paginated_query, paginated_scan, to_db_id

logger = logging.getLogger(__name__)


def checked_mandatory_broker_connection(connection_id: Optional[uuid.UUID], user_id: str) -> BrokerConnection:
    """
    Fetch a broker connection the user owns.

    Raises:
        NotFound: If connection_id is None or the connection doesn't exist
        NotAuthorized: If the user doesn't own the connection
    """
    return checked_mandatory_resource(connection_id, user_id, get_broker_connection, "Broker connection")


@monitor_performance(warn_threshold_ms=200)
@retry_on_throttle(max_attempts=3)
@dynamodb_operation("get_broker_connection")
def get_broker_connection(connection_id: uuid.UUID) -> Optional[BrokerConnection]:
    """Retrieve a broker connection by ID, None if absent."""
    response = tables.broker_connections.get_item(Key={'connectionId': to_db_id(connection_id)})
    if 'Item' in response:
        return BrokerConnection.from_dynamodb_item(response['Item'])
    return None


@monitor_performance(operation_type="query", warn_threshold_ms=500)
@retry_on_throttle(max_attempts=3)
@dynamodb_operation("find_connection_by_account")
def find_connection_by_account(user_id: str, account_number: str) -> BrokerConnection:
    """
    Find the user's connection for a broker account number.

    Raises:
        NotFound: If the user has no connection for that account
    """
    connections, _ = paginated_query(
        table=tables.broker_connections,
        query_params={
            'IndexName': 'UserIdIndex',
            'KeyConditionExpression': Key('userId').eq(user_id),
            'FilterExpression': Attr('accountNumber').eq(account_number),
        },
        max_items=1,
        transform=BrokerConnection.from_dynamodb_item,
    )
    if not connections:
        raise NotFound("Connection not found for account")
    return connections[0]


@monitor_performance(warn_threshold_ms=300)
@retry_on_throttle(max_attempts=3)
@dynamodb_operation("update_broker_connection")
def update_broker_connection(connection_id: uuid.UUID, updates: Dict[str, Any]) -> None:
    """
    Update connection attributes.

    Args:
        connection_id: The connection's ID
        updates: Attribute values keyed by DynamoDB attribute name; None removes the attribute
    """
    expression, names, values = build_update_expression(updates)
    tables.broker_connections.update_item(
        Key={'connectionId': to_db_id(connection_id)},
        UpdateExpression=expression,
        ExpressionAttributeNames=names,
        ExpressionAttributeValues=values,
    )


@monitor_performance(operation_type="scan", warn_threshold_ms=2000)
@retry_on_throttle(max_attempts=3)
@dynamodb_operation("list_due_auto_sync_connections")
def list_due_auto_sync_connections(now_ms: int) -> List[BrokerConnection]:
    """
    List connected auto-sync connections whose sync interval has elapsed.

    Args:
        now_ms: Current time in milliseconds since epoch

    Returns:
        Connections that should be synced now
    """
    connections, _ = paginated_scan(
        table=tables.broker_connections,
        scan_params={
            'FilterExpression': Attr('autoSync').eq(True) & Attr('status').eq(ConnectionStatus.CONNECTED.value),
        },
        transform=BrokerConnection.from_dynamodb_item,
    )
    due = [c for c in connections if c.is_sync_due(now_ms)]
    logger.info(f"{len(due)} of {len(connections)} auto-sync connections are due")
    return due

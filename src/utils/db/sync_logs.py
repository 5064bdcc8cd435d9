"""
Sync log database operations.
"""

import logging
import uuid
from typing import List
from boto3.dynamodb.conditions import Key

from models import SyncLogEntry
from .base import (
    tables,
    dynamodb_operation,
    retry_on_throttle,
    monitor_performance,
    validate_params,
    is_valid_uuid,
    is_valid_limit,
)
from .helpers import paginated_query, to_db_id

logger = logging.getLogger(__name__)


@monitor_performance(warn_threshold_ms=300)
@retry_on_throttle(max_attempts=3)
@dynamodb_operation("create_sync_log")
def create_sync_log(entry: SyncLogEntry) -> SyncLogEntry:
    """Persist one sync log entry."""
    tables.sync_logs.put_item(Item=entry.to_dynamodb_item())
    return entry


@validate_params(broker_connection_id=is_valid_uuid, limit=is_valid_limit)
@monitor_performance(operation_type="query", warn_threshold_ms=500)
@retry_on_throttle(max_attempts=3)
@dynamodb_operation("list_connection_sync_logs")
def list_connection_sync_logs(broker_connection_id: uuid.UUID, limit: int = 50) -> List[SyncLogEntry]:
    """
    List a connection's sync logs, newest first.

    Args:
        broker_connection_id: The broker connection's ID
        limit: Maximum number of entries (1-1000)
    """
    entries, _ = paginated_query(
        table=tables.sync_logs,
        query_params={
            'IndexName': 'BrokerConnectionIdIndex',
            'KeyConditionExpression': Key('brokerConnectionId').eq(to_db_id(broker_connection_id)),
            'ScanIndexForward': False,
            'Limit': limit,
        },
        max_items=limit,
        transform=SyncLogEntry.from_dynamodb_item,
    )
    return entries

"""
Scheduled auto-sync: runs a dashboard sync for every connection that is due.

Triggered by an EventBridge schedule. One connection failing never stops the
others.
"""
import logging
from typing import Dict, Any

from models.broker_connection import BrokerConnection, ConnectionStatus
from models.sync_log import SyncType
from services.trade_sync_service import SyncError, TradeSyncService
from utils.db import current_timestamp, list_due_auto_sync_connections, update_broker_connection
from utils.http_fetch import FetchError

logger = logging.getLogger(__name__)


def _mark_failed(connection: BrokerConnection, message: str) -> None:
    try:
        update_broker_connection(connection.connection_id, {
            'status': ConnectionStatus.ERROR.value,
            'errorMessage': message[:2000],
        })
    except Exception as e:
        logger.error(f"Could not mark connection {connection.connection_id} as failed: {str(e)}")


def handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    now_ms = current_timestamp()
    connections = list_due_auto_sync_connections(now_ms)
    service = TradeSyncService()

    succeeded = 0
    failed = []
    for connection in connections:
        try:
            outcome = service.run_sync(connection, sync_type=SyncType.SCHEDULED)
            succeeded += 1
            logger.info(f"Scheduled sync of {connection.connection_id}: {outcome.status.value}")
        except (FetchError, SyncError) as e:
            # already recorded on the connection and in its sync log
            logger.error(f"Scheduled sync of {connection.connection_id} failed: {str(e)}")
            failed.append({"connectionId": str(connection.connection_id), "error": str(e)})
        except Exception as e:
            logger.error(f"Scheduled sync of {connection.connection_id} could not start: {str(e)}")
            _mark_failed(connection, str(e))
            failed.append({"connectionId": str(connection.connection_id), "error": str(e)})

    logger.info(f"Scheduled sync finished: {succeeded} succeeded, {len(failed)} failed of {len(connections)} due")
    return {
        "due": len(connections),
        "succeeded": succeeded,
        "failed": failed,
    }

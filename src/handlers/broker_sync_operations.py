import base64
import logging
import uuid
from typing import Dict, Any

from models.broker_connection import BrokerConnection
from services.trade_sync_service import TradeSyncService
from utils.db import (
    checked_mandatory_broker_connection,
    find_connection_by_account,
    list_connection_sync_logs,
)
from utils.handler_decorators import (
    log_request_response,
    require_authenticated_user,
    require_resource_ownership,
    standard_error_handling,
)
from utils.lambda_utils import (
    mandatory_body_parameter,
    optional_query_parameter,
    parse_body,
    preflight_response,
)

logger = logging.getLogger(__name__)


def _resolve_connection(body: Dict[str, Any], user_id: str) -> BrokerConnection:
    """Find the caller's connection by connectionId, or by broker account number."""
    connection_id = body.get("connectionId")
    if connection_id:
        return checked_mandatory_broker_connection(uuid.UUID(str(connection_id)), user_id)
    account_id = body.get("accountId")
    if account_id:
        return find_connection_by_account(user_id, str(account_id))
    raise ValueError("connectionId or accountId is required")


def sync_connection_handler(event: Dict[str, Any], user_id: str) -> Dict[str, Any]:
    """Scrape the connection's dashboard and reconcile its trades."""
    body = parse_body(event)
    connection = _resolve_connection(body, user_id)
    outcome = TradeSyncService().run_sync(connection, force_refresh=bool(body.get("forceRefresh", False)))
    return outcome.to_response()


def import_statement_handler(event: Dict[str, Any], user_id: str) -> Dict[str, Any]:
    """Import an uploaded statement, given inline as base64 or as an S3 key."""
    body = parse_body(event)
    connection_id = mandatory_body_parameter(event, "connectionId")
    connection = checked_mandatory_broker_connection(uuid.UUID(str(connection_id)), user_id)
    file_name = mandatory_body_parameter(event, "fileName")

    content = None
    if body.get("content"):
        content = base64.b64decode(body["content"], validate=True)
    elif not body.get("s3Key"):
        raise ValueError("Either content or s3Key is required")

    outcome = TradeSyncService().import_statement(
        connection,
        file_name,
        content=content,
        s3_key=body.get("s3Key"),
        force_refresh=bool(body.get("forceRefresh", False)),
    )
    return outcome.to_response()


@require_resource_ownership("connectionId", "broker_connection")
def list_sync_logs_handler(event: Dict[str, Any], user_id: str, connection: BrokerConnection) -> Dict[str, Any]:
    """Audit trail of a connection's syncs, newest first."""
    limit = int(optional_query_parameter(event, "limit") or 50)
    logs = list_connection_sync_logs(connection.connection_id, limit=limit)
    return {
        "syncLogs": [log.to_response() for log in logs],
        "metadata": {"totalLogs": len(logs)},
    }


@log_request_response
@require_authenticated_user
@standard_error_handling
def _route(event: Dict[str, Any], user_id: str) -> Dict[str, Any]:
    route = event.get("routeKey")
    if not route:
        raise ValueError("Route not specified")

    route_map = {
        "POST /broker-connections/sync": sync_connection_handler,
        "POST /statements/import": import_statement_handler,
        "GET /broker-connections/{connectionId}/sync-logs": list_sync_logs_handler,
    }

    handler_func = route_map.get(route)
    if not handler_func:
        raise ValueError(f"Unsupported route: {route}")

    return handler_func(event, user_id)


def handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Main handler for broker sync operations."""
    method = ((event.get("requestContext") or {}).get("http") or {}).get("method")
    if method == "OPTIONS" or str(event.get("routeKey", "")).startswith("OPTIONS "):
        return preflight_response()
    return _route(event, context)

"""
Database utilities for DynamoDB operations.

This module provides a clean interface for all database operations.
Imports are organized by resource type for easy navigation.
"""

# ============================================================================
# Core Infrastructure
# ============================================================================

from .base import (
    # Table management
    tables,
    DynamoDBTables,

    # Exceptions
    NotAuthorized,
    NotFound,
    ConflictError,

    # Decorators
    dynamodb_operation,
    retry_on_throttle,
    monitor_performance,
    validate_params,

    # Validators
    is_valid_uuid,
    is_valid_limit,

    # Helper functions
    check_user_owns_resource,
    checked_mandatory_resource,
)

from .helpers import (
    to_db_id,
    paginated_query,
    paginated_scan,
    build_update_expression,
    current_timestamp,
)

# ============================================================================
# Trade Operations
# ============================================================================

from .trades import (
    list_connection_trades,
    create_trade,
    update_trade,
)

# ============================================================================
# Broker Connection Operations
# ============================================================================

from .broker_connections import (
    get_broker_connection,
    checked_mandatory_broker_connection,
    find_connection_by_account,
    update_broker_connection,
    list_due_auto_sync_connections,
)

# ============================================================================
# Sync Log Operations
# ============================================================================

from .sync_logs import (
    create_sync_log,
    list_connection_sync_logs,
)

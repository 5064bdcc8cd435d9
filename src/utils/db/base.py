"""
Core database infrastructure.

This module provides:
- DynamoDB table management for trades, broker connections and sync logs
- Decorators for cross-cutting concerns (errors, throttling, timing, validation)
- Common exceptions
- Ownership helpers
"""

import os
import inspect
import logging
import boto3
import uuid
import time
from typing import Dict, Any, Optional, Tuple, Callable, TypeVar, Protocol
from functools import wraps
from botocore.exceptions import ClientError
from pydantic import ValidationError

logger = logging.getLogger(__name__)

# ============================================================================
# Protocols
# ============================================================================

class HasUserId(Protocol):
    """Protocol for resources that have a user_id attribute."""
    user_id: str


T = TypeVar('T')
TResource = TypeVar('TResource', bound=HasUserId)

# ============================================================================
# Exceptions
# ============================================================================

class NotAuthorized(Exception):
    """Raised when a user is not authorized to access a resource."""
    pass

class NotFound(Exception):
    """Raised when a requested resource is not found."""
    pass

class ConflictError(Exception):
    """Raised when a conditional write finds the item already present."""
    pass


# ============================================================================
# Decorators
# ============================================================================

def dynamodb_operation(operation_name: Optional[str] = None):
    """
    Decorator for consistent DynamoDB error handling and logging.

    - ConditionalCheckFailedException becomes ConflictError
    - pydantic ValidationError becomes ValueError
    - everything else is logged with context and re-raised

    Usage:
        @dynamodb_operation("create_trade")
        def create_trade(trade: Trade) -> None:
            ...
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            op_name = operation_name or func.__name__
            try:
                logger.debug(f"Starting {op_name}")
                result = func(*args, **kwargs)
                logger.info(f"Successfully completed {op_name}")
                return result
            except ClientError as e:
                error_code = e.response.get('Error', {}).get('Code', 'Unknown')
                error_msg = e.response.get('Error', {}).get('Message', str(e))
                if error_code == 'ConditionalCheckFailedException':
                    logger.info(f"Conditional check failed in {op_name}: {error_msg}")
                    raise ConflictError(f"{op_name}: item already exists or changed") from e
                logger.error(
                    f"DynamoDB error in {op_name}: {error_code} - {error_msg}",
                    exc_info=True,
                    extra={
                        'operation': op_name,
                        'error_code': error_code,
                        'function': func.__name__
                    }
                )
                raise
            except ValidationError as e:
                logger.error(
                    f"Validation error in {op_name}: {str(e)}",
                    exc_info=True,
                    extra={'operation': op_name}
                )
                raise ValueError(f"Invalid data in {op_name}: {str(e)}")
            except (NotFound, NotAuthorized, ConflictError):
                raise
            except Exception as e:
                logger.error(
                    f"Unexpected error in {op_name}: {str(e)}",
                    exc_info=True,
                    extra={'operation': op_name}
                )
                raise
        return wrapper
    return decorator


def retry_on_throttle(
    max_attempts: int = 3,
    base_delay: float = 0.1,
    max_delay: float = 5.0,
    exponential_base: float = 2,
    retry_on: Tuple[str, ...] = (
        'ProvisionedThroughputExceededException',
        'ThrottlingException',
        'RequestLimitExceeded'
    )
):
    """
    Decorator to retry DynamoDB operations on throttling with exponential backoff.

    delay = min(base_delay * exponential_base ** attempt, max_delay); only the
    error codes in retry_on are retried, anything else propagates at once.

    Usage:
        @retry_on_throttle(max_attempts=3)
        @dynamodb_operation("list_connection_trades")
        def list_connection_trades(...):
            ...
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            for attempt in range(max_attempts):
                try:
                    return func(*args, **kwargs)
                except ClientError as e:
                    error_code = e.response.get('Error', {}).get('Code', 'Unknown')
                    if error_code not in retry_on or attempt >= max_attempts - 1:
                        raise
                    delay = min(base_delay * (exponential_base ** attempt), max_delay)
                    logger.warning(
                        f"Throttled on {func.__name__} "
                        f"(attempt {attempt + 1}/{max_attempts}), "
                        f"retrying in {delay:.2f}s... Error: {error_code}"
                    )
                    time.sleep(delay)
            raise RuntimeError(f"Unexpected state in retry_on_throttle for {func.__name__}")
        return wrapper
    return decorator


def monitor_performance(
    operation_type: str = "db_operation",
    warn_threshold_ms: float = 1000,
    error_threshold_ms: float = 5000
):
    """
    Decorator to log operation timing.

    Below warn_threshold_ms the timing is logged at DEBUG, up to
    error_threshold_ms at WARNING, above that at ERROR. Never changes the
    wrapped function's behaviour.
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            start_time = time.time()
            try:
                return func(*args, **kwargs)
            finally:
                elapsed_ms = (time.time() - start_time) * 1000
                log_context = {
                    'operation': func.__name__,
                    'operation_type': operation_type,
                    'elapsed_ms': elapsed_ms
                }
                if elapsed_ms > error_threshold_ms:
                    logger.error(
                        f"SLOW OPERATION: {func.__name__} took {elapsed_ms:.2f}ms "
                        f"(threshold: {error_threshold_ms}ms)",
                        extra=log_context
                    )
                elif elapsed_ms > warn_threshold_ms:
                    logger.warning(
                        f"Slow operation: {func.__name__} took {elapsed_ms:.2f}ms "
                        f"(threshold: {warn_threshold_ms}ms)",
                        extra=log_context
                    )
                else:
                    logger.debug(f"{func.__name__} completed in {elapsed_ms:.2f}ms", extra=log_context)
        return wrapper
    return decorator


def validate_params(**validators):
    """
    Decorator to validate function parameters before the call.

    Usage:
        @validate_params(connection_id=is_valid_uuid, limit=is_valid_limit)
        def list_connection_sync_logs(connection_id, limit=50):
            ...
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        sig = inspect.signature(func)

        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            bound_args = sig.bind(*args, **kwargs)
            bound_args.apply_defaults()
            for param_name, validator_func in validators.items():
                if param_name in bound_args.arguments:
                    value = bound_args.arguments[param_name]
                    if not validator_func(value):
                        raise ValueError(f"Invalid value for parameter '{param_name}': {value}")
            return func(*args, **kwargs)
        return wrapper
    return decorator


# ============================================================================
# Common Validators (for use with validate_params decorator)
# ============================================================================

def is_valid_uuid(value: Any) -> bool:
    """Validator for UUID parameters; None passes for optional parameters."""
    if value is None:
        return True
    try:
        uuid.UUID(str(value))
        return True
    except (ValueError, AttributeError):
        return False


def is_valid_limit(value: int) -> bool:
    """Validator for pagination limit (1-1000)."""
    return isinstance(value, int) and 1 <= value <= 1000


# ============================================================================
# Table Management
# ============================================================================

class DynamoDBTables:
    """
    Singleton for managing DynamoDB table resources.

    Tables are created lazily on first access, with names read from the
    environment variables in TABLE_CONFIGS.

    Usage:
        trades = tables.trades
        connections = tables.broker_connections
    """
    _instance: Optional['DynamoDBTables'] = None

    TABLE_CONFIGS = {
        'trades': 'TRADES_TABLE',
        'broker_connections': 'BROKER_CONNECTIONS_TABLE',
        'sync_logs': 'SYNC_LOGS_TABLE',
    }

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if not self._initialized:
            self._dynamodb = boto3.resource('dynamodb', region_name=os.environ.get('AWS_REGION', 'eu-west-2'))
            self._tables: Dict[str, Any] = {}
            self._initialized = True

    def _get_table(self, table_key: str) -> Optional[Any]:
        if table_key in self._tables:
            return self._tables[table_key]

        env_var_name = self.TABLE_CONFIGS[table_key]
        table_name = os.environ.get(env_var_name)
        if not table_name:
            logger.warning(f"{env_var_name} is not set; the {table_key} table is unavailable")
            return None

        self._tables[table_key] = self._dynamodb.Table(table_name)
        logger.info(f"Using {table_name} for {table_key}")
        return self._tables[table_key]

    @property
    def trades(self) -> Any:
        """Get trades table."""
        return self._get_table('trades')

    @property
    def broker_connections(self) -> Any:
        """Get broker connections table."""
        return self._get_table('broker_connections')

    @property
    def sync_logs(self) -> Any:
        """Get sync logs table."""
        return self._get_table('sync_logs')


# Global instance
tables = DynamoDBTables()


# ============================================================================
# Helper Functions
# ============================================================================

def check_user_owns_resource(resource_user_id: str, requesting_user_id: str) -> None:
    """
    Raises:
        NotAuthorized: If the requesting user does not own the resource
    """
    if resource_user_id != requesting_user_id:
        raise NotAuthorized("Not authorized to access this resource")


def checked_mandatory_resource(
    resource_id: Optional[uuid.UUID],
    user_id: str,
    getter_func: Callable[[uuid.UUID], Optional[TResource]],
    resource_name: str
) -> TResource:
    """
    Fetch a resource and check the requesting user owns it.

    Raises:
        NotFound: If resource_id is None, or resource doesn't exist
        NotAuthorized: If user doesn't own the resource
    """
    if not resource_id:
        raise NotFound(f"{resource_name} ID is required")

    resource = getter_func(resource_id)
    if not resource:
        raise NotFound(f"{resource_name} not found")

    check_user_owns_resource(resource.user_id, user_id)
    return resource

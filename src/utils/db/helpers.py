"""
Helper functions for database operations.

This module provides:
- UUID conversion helpers
- Pagination helpers
- Update expression building
- Timestamp helpers
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import List, Dict, Any, Optional, Union, Tuple, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


# ============================================================================
# UUID Conversion Helpers
# ============================================================================

def to_db_id(id_value: Union[str, uuid.UUID, None]) -> Optional[str]:
    """
    Convert UUID to string for DynamoDB keys and filters.

    Example:
        key = {'connectionId': to_db_id(connection_id)}
    """
    if id_value is None:
        return None
    return str(id_value)


# ============================================================================
# Pagination Helpers
# ============================================================================

def _paginate(
    call: Callable[..., Dict[str, Any]],
    params: Dict[str, Any],
    max_items: Optional[int],
    transform: Optional[Callable[[Dict], T]],
) -> Tuple[List[Any], Optional[Dict[str, Any]]]:
    items: List[Any] = []
    current_params = params.copy()
    last_evaluated_key = None

    while True:
        response = call(**current_params)
        batch = response.get('Items', [])
        if transform:
            batch = [transform(item) for item in batch]
        items.extend(batch)
        last_evaluated_key = response.get('LastEvaluatedKey')

        if max_items and len(items) >= max_items:
            items = items[:max_items]
            break
        if not last_evaluated_key:
            break
        current_params['ExclusiveStartKey'] = last_evaluated_key

    return items, last_evaluated_key


def paginated_query(
    table: Any,
    query_params: Dict[str, Any],
    max_items: Optional[int] = None,
    transform: Optional[Callable[[Dict], T]] = None
) -> Tuple[List[T], Optional[Dict[str, Any]]]:
    """
    Execute a DynamoDB query across all pages.

    Args:
        table: DynamoDB table resource
        query_params: Query parameters (KeyConditionExpression, IndexName, ...)
        max_items: Maximum items to return (None for all)
        transform: Optional function applied to each item

    Returns:
        Tuple of (items, last_evaluated_key)

    Example:
        trades, _ = paginated_query(
            table=tables.trades,
            query_params={
                'IndexName': 'BrokerConnectionIdIndex',
                'KeyConditionExpression': Key('brokerConnectionId').eq(str(connection_id)),
            },
            transform=Trade.from_dynamodb_item
        )
    """
    items, last_key = _paginate(table.query, query_params, max_items, transform)
    logger.debug(f"Paginated query returned {len(items)} items")
    return items, last_key


def paginated_scan(
    table: Any,
    scan_params: Dict[str, Any],
    max_items: Optional[int] = None,
    transform: Optional[Callable[[Dict], T]] = None
) -> Tuple[List[T], Optional[Dict[str, Any]]]:
    """Execute a DynamoDB scan across all pages; same contract as paginated_query."""
    items, last_key = _paginate(table.scan, scan_params, max_items, transform)
    logger.debug(f"Paginated scan returned {len(items)} items")
    return items, last_key


# ============================================================================
# Update Expression Builder
# ============================================================================

def build_update_expression(
    updates: Dict[str, Any],
    timestamp_field: Optional[str] = 'updatedAt',
) -> Tuple[str, Dict[str, str], Dict[str, Any]]:
    """
    Build a DynamoDB UpdateExpression from an attribute dictionary.

    Attributes set to None are REMOVEd rather than written, since DynamoDB
    has no use for explicit nulls on optional attributes.

    Returns:
        Tuple of (update_expression, expression_attribute_names, expression_attribute_values)

    Example:
        expr, names, values = build_update_expression({'pnl': Decimal('75'), 'stopLoss': None})
        # "SET #pnl = :pnl, #updatedAt = :updatedAt REMOVE #stopLoss"
    """
    if not updates:
        raise ValueError("At least one attribute must be updated")

    set_parts: List[str] = []
    remove_parts: List[str] = []
    expr_attr_names: Dict[str, str] = {}
    expr_attr_values: Dict[str, Any] = {}

    for key, value in updates.items():
        safe_key = key.replace('-', '_').replace('.', '_')
        expr_attr_names[f"#{safe_key}"] = key
        if value is None:
            remove_parts.append(f"#{safe_key}")
        else:
            set_parts.append(f"#{safe_key} = :{safe_key}")
            expr_attr_values[f":{safe_key}"] = value

    if timestamp_field:
        safe_timestamp = timestamp_field.replace('-', '_').replace('.', '_')
        set_parts.append(f"#{safe_timestamp} = :{safe_timestamp}")
        expr_attr_names[f"#{safe_timestamp}"] = timestamp_field
        expr_attr_values[f":{safe_timestamp}"] = current_timestamp()

    expression_parts = []
    if set_parts:
        expression_parts.append("SET " + ", ".join(set_parts))
    if remove_parts:
        expression_parts.append("REMOVE " + ", ".join(remove_parts))

    return " ".join(expression_parts), expr_attr_names, expr_attr_values


# ============================================================================
# Timestamp Helpers
# ============================================================================

def current_timestamp() -> int:
    """Current UTC time in milliseconds (DynamoDB timestamp format)."""
    return int(datetime.now(timezone.utc).timestamp() * 1000)



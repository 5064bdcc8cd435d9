"""
Handler decorators for reducing boilerplate code in Lambda handlers.

They take care of authentication, error-to-status mapping, request logging and
ownership checks so the handlers only hold the request-specific logic.
"""

import logging
import traceback
import uuid
from datetime import datetime, timezone
from functools import wraps
from typing import Dict, Any, Callable

from pydantic import ValidationError

from utils.auth import get_user_from_event, NotAuthorized, NotFound
from utils.lambda_utils import create_response
from utils.db import checked_mandatory_broker_connection
from utils.http_fetch import FetchError
from services.trade_sync_service import SyncError

logger = logging.getLogger(__name__)


def standard_error_handling(func: Callable) -> Callable:
    """
    Decorator that provides standard error handling for Lambda handlers.

    Maps common exceptions to appropriate HTTP status codes:
    - ValidationError, ValueError, KeyError -> 400 Bad Request
    - NotFound -> 404 Not Found
    - NotAuthorized -> 403 Forbidden
    - FetchError, SyncError -> the status code they carry
    - Exception -> 500 Internal Server Error

    Handlers decorated with this can focus on business logic and return raw data.
    The decorator will wrap the result in a proper API Gateway response.
    """
    @wraps(func)
    def wrapper(*args, **kwargs) -> Dict[str, Any]:
        try:
            result = func(*args, **kwargs)

            # If handler returns a dict with statusCode, it's already a response
            if isinstance(result, dict) and "statusCode" in result:
                return result

            return create_response(200, result)

        except (ValidationError, ValueError, KeyError) as e:
            logger.error(f"Validation error in {func.__name__}: {str(e)}")
            return create_response(400, {"message": str(e)})

        except NotFound as e:
            logger.warning(f"Resource not found in {func.__name__}: {str(e)}")
            return create_response(404, {"message": str(e)})

        except NotAuthorized as e:
            logger.warning(f"Authorization error in {func.__name__}: {str(e)}")
            return create_response(403, {"message": str(e)})

        except (FetchError, SyncError) as e:
            logger.error(f"Sync failure in {func.__name__}: {str(e)}")
            return create_response(e.status_code, {"success": False, "message": str(e)})

        except Exception as e:
            logger.error(f"Unexpected error in {func.__name__}: {str(e)}")
            logger.error(f"Stacktrace: {traceback.format_exc()}")
            return create_response(500, {"message": f"Error in {func.__name__.replace('_handler', '')}"})

    return wrapper


def require_resource_ownership(resource_param: str, resource_type: str):
    """
    Decorator factory that verifies resource ownership with explicit resource type.

    Args:
        resource_param: The path parameter holding the resource ID (e.g. "connectionId")
        resource_type: The type of resource to verify ("broker_connection")

    The verified resource is passed to the handler after user_id.
    """
    checker_map = {
        "broker_connection": checked_mandatory_broker_connection,
    }

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(event: Dict[str, Any], user_id: str, *args, **kwargs) -> Dict[str, Any]:
            path_params = event.get("pathParameters") or {}
            resource_id = path_params.get(resource_param)
            if not resource_id:
                raise ValueError(f"Path parameter '{resource_param}' is required")

            checker = checker_map.get(resource_type)
            if not checker:
                raise NotImplementedError(f"Resource ownership checking not implemented for resource type '{resource_type}'")

            resource = checker(uuid.UUID(resource_id), user_id)
            return func(event, user_id, resource, *args, **kwargs)

        return wrapper
    return decorator


def log_request_response(func: Callable) -> Callable:
    """
    Decorator that logs request and response details for debugging and monitoring.
    """
    @wraps(func)
    def wrapper(event: Dict[str, Any], *args, **kwargs) -> Dict[str, Any]:
        request_context = event.get("requestContext") or {}
        request_id = request_context.get("requestId", "unknown")
        method = (request_context.get("http") or {}).get("method", "unknown")
        route = event.get("routeKey", "unknown")

        start_time = datetime.now(timezone.utc)
        logger.info(f"[{request_id}] {method} {route} - Request started")

        try:
            result = func(event, *args, **kwargs)
        except Exception as e:
            duration_ms = (datetime.now(timezone.utc) - start_time).total_seconds() * 1000
            logger.error(f"[{request_id}] {method} {route} - Error after {duration_ms:.1f}ms: {str(e)}")
            raise

        duration_ms = (datetime.now(timezone.utc) - start_time).total_seconds() * 1000
        status_code = result.get("statusCode", "unknown") if isinstance(result, dict) else "unknown"
        logger.info(f"[{request_id}] {method} {route} - Response {status_code} in {duration_ms:.1f}ms")
        return result

    return wrapper


def require_authenticated_user(func: Callable) -> Callable:
    """
    Decorator that extracts and validates the authenticated user from the event.
    The user's id is passed as the second parameter to the handler.
    """
    @wraps(func)
    def wrapper(event: Dict[str, Any], context: Any, *args, **kwargs) -> Dict[str, Any]:
        user = get_user_from_event(event)
        if not user:
            logger.warning("Authentication required but no user found in event")
            return create_response(401, {"message": "Unauthorized"})

        return func(event, user["id"], *args, **kwargs)

    return wrapper

from typing import Dict, Any, Optional
import base64
import json
import uuid
from datetime import datetime
from decimal import Decimal

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type,Authorization",
    "Access-Control-Allow-Methods": "GET,POST,OPTIONS"
}


class DecimalEncoder(json.JSONEncoder):
    def default(self, obj):
        if isinstance(obj, Decimal):
            # Whole amounts as ints, everything else as floats, so clients get numbers
            return float(obj) if obj % 1 else int(obj)
        if isinstance(obj, uuid.UUID):
            return str(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        return super(DecimalEncoder, self).default(obj)


def create_response(status_code: int, body: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Create a standardized API response."""
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "application/json", **CORS_HEADERS},
        "body": json.dumps(body, cls=DecimalEncoder) if body is not None else ""
    }


def preflight_response() -> Dict[str, Any]:
    """Empty 204 answer to a CORS preflight request."""
    return {"statusCode": 204, "headers": dict(CORS_HEADERS), "body": ""}


def optional_query_parameter(event: Dict[str, Any], parameter_name: str) -> Optional[str]:
    """Extract a query parameter from the event."""
    return (event.get('queryStringParameters') or {}).get(parameter_name)


# extract parameters from json payload body
def parse_body(event: Dict[str, Any]) -> Dict[str, Any]:
    """Decode the JSON body of an API Gateway event (base64 bodies included)."""
    raw = event.get('body') or '{}'
    if event.get('isBase64Encoded'):
        raw = base64.b64decode(raw).decode('utf-8')
    try:
        body = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON body: {str(e)}") from e
    if not isinstance(body, dict):
        raise ValueError("Request body must be a JSON object")
    return body


def optional_body_parameter(event: Dict[str, Any], parameter_name: str) -> Any:
    """Extract a json-encoded body parameter from the event."""
    return parse_body(event).get(parameter_name)


def mandatory_body_parameter(event: Dict[str, Any], parameter_name: str) -> Any:
    """Extract a mandatory json-encoded body parameter from the event."""
    parameter_value = optional_body_parameter(event, parameter_name)
    if not parameter_value:
        raise KeyError(f"Body parameter {parameter_name} is required")
    return parameter_value

"""
Utils package.

Conventions:
- All models are Pydantic models with camelCase aliases for storage and API payloads.
- Stored timestamps are epoch milliseconds; parsed trade dates are timezone-aware datetimes.
- Application-specific IDs are UUIDs; broker ids are kept verbatim as strings.
- Models persisted to DynamoDB implement `to_dynamodb_item()` and `from_dynamodb_item(data)`.
"""

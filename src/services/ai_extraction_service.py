"""
AI-assisted trade extraction for statements the deterministic parsers cannot
read (PDF exports).

The model is asked, through a forced tool call, to return trades matching a
fixed JSON schema. Its answer is untrusted: every trade is validated and
re-normalized here, and any failure of the call itself becomes a single
document-level parse error.
"""
import logging
import os
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional, Protocol

import boto3

from models.statement import ParseResult
from utils.sync_config import SyncSettings
from utils.trade_normalizer import normalize_trade

logger = logging.getLogger(__name__)

EXTRACTION_TOOL_NAME = 'record_trades'

TRADE_EXTRACTION_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "platform": {"type": "string", "description": "Trading platform or broker that produced the statement"},
        "trades": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "tradeId": {"type": "string"},
                    "symbol": {"type": "string"},
                    "side": {"type": "string", "description": "Long or Short"},
                    "entryDate": {"type": "string", "description": "ISO-8601"},
                    "exitDate": {"type": "string", "description": "ISO-8601"},
                    "entryPrice": {"type": "number"},
                    "exitPrice": {"type": "number"},
                    "quantity": {"type": "number"},
                    "commission": {"type": "number"},
                    "swap": {"type": "number"},
                    "pnl": {"type": "number"},
                    "instrumentType": {"type": "string"},
                },
                "required": ["symbol", "side", "pnl"],
            },
        },
    },
    "required": ["trades"],
}

EXTRACTION_PROMPT = """You are reading a broker trade statement.
Extract every COMPLETED trade (a position that was both opened and closed) and record it with the record_trades tool.
Rules:
- Pair each opening transaction with the transaction that closed it; do not emit open positions, deposits, withdrawals or fees on their own.
- side is "Long" for positions opened with a buy and "Short" for positions opened with a sell.
- Dates must be ISO-8601 (YYYY-MM-DDTHH:MM:SS).
- pnl is the realized profit of the trade in account currency; losses are negative numbers.
- Use the statement's own ticket, deal or position number as tradeId when one is shown.
- If the statement has no completed trades, return an empty trades list."""


class StructuredExtractor(Protocol):
    """Anything that turns a document into data matching a JSON schema."""

    def extract(self, document: bytes, filename: str, prompt: str, schema: Dict[str, Any]) -> Dict[str, Any]:
        ...


class BedrockStructuredExtractor:
    """Structured extraction through the Bedrock Converse API with a forced tool call."""

    def __init__(self, settings: Optional[SyncSettings] = None, client: Any = None):
        self.settings = settings or SyncSettings.from_env()
        self.client = client or boto3.client('bedrock-runtime', region_name=self.settings.aws_region)

    @staticmethod
    def _document_block(document: bytes, filename: str) -> Dict[str, Any]:
        stem, extension = os.path.splitext(os.path.basename(filename or 'statement.pdf'))
        # Bedrock document names allow letters, digits, spaces, hyphens, parentheses and brackets only
        name = ''.join(ch if ch.isalnum() or ch in ' -()[]' else '-' for ch in stem)[:100] or 'statement'
        return {
            "document": {
                "format": (extension.lstrip('.').lower() or 'pdf'),
                "name": name,
                "source": {"bytes": document},
            }
        }

    def extract(self, document: bytes, filename: str, prompt: str, schema: Dict[str, Any]) -> Dict[str, Any]:
        response = self.client.converse(
            modelId=self.settings.bedrock_model_id,
            messages=[{
                "role": "user",
                "content": [self._document_block(document, filename), {"text": prompt}],
            }],
            toolConfig={
                "tools": [{
                    "toolSpec": {
                        "name": EXTRACTION_TOOL_NAME,
                        "description": "Record the completed trades found in the statement",
                        "inputSchema": {"json": schema},
                    }
                }],
                "toolChoice": {"tool": {"name": EXTRACTION_TOOL_NAME}},
            },
            inferenceConfig={"temperature": 0},
        )
        for block in response.get('output', {}).get('message', {}).get('content', []):
            tool_use = block.get('toolUse')
            if tool_use and tool_use.get('name') == EXTRACTION_TOOL_NAME:
                return tool_use.get('input') or {}
        raise ValueError("Model response did not contain extracted trades")


def _ai_trade_to_raw(item: Dict[str, Any], now: datetime) -> Dict[str, Any]:
    side = str(item.get('side') or '').strip().lower()
    return {
        'symbol': item.get('symbol'),
        'side': 'Long' if side in ('long', 'buy') else 'Short',
        'entry_date': item.get('entryDate') or now,
        'exit_date': item.get('exitDate') or now,
        'entry_price': item.get('entryPrice'),
        'exit_price': item.get('exitPrice'),
        'quantity': item.get('quantity') if item.get('quantity') is not None else Decimal('1'),
        'commission': item.get('commission') or 0,
        'swap': item.get('swap') or 0,
        'pnl': item.get('pnl'),
        'broker_trade_id': item.get('tradeId'),
    }


def extract_trades_via_ai(
    document: bytes,
    filename: str,
    extractor: Optional[StructuredExtractor] = None,
) -> ParseResult:
    """
    Extract trades from an unstructured statement with the structured extractor.

    Never raises: a failed call yields one line-0 error, an empty answer yields
    an informational line-0 error, and each unusable trade yields its own error.

    Args:
        document: Raw document bytes
        filename: Original file name (its extension selects the document format)
        extractor: Extraction backend; Bedrock when omitted

    Returns:
        ParseResult with format "AI Extracted (<platform>)"
    """
    result = ParseResult(format='AI Extracted')
    try:
        extractor = extractor or BedrockStructuredExtractor()
        data = extractor.extract(document, filename, EXTRACTION_PROMPT, TRADE_EXTRACTION_SCHEMA)
    except Exception as e:
        logger.error(f"AI extraction failed for {filename}: {str(e)}", exc_info=True)
        result.add_error(0, f"AI extraction failed: {str(e)}")
        return result

    if not isinstance(data, dict):
        result.add_error(0, "AI extraction returned an unexpected shape")
        return result

    platform = str(data.get('platform') or 'Unknown').strip() or 'Unknown'
    result.format = f"AI Extracted ({platform})"
    items = data.get('trades')
    if not isinstance(items, list):
        items = []

    now = datetime.now(timezone.utc)
    for index, item in enumerate(items, start=1):
        if not isinstance(item, dict):
            result.add_error(index, "Extracted trade is not an object")
            continue
        if not item.get('symbol') or item.get('pnl') is None:
            result.add_error(index, f"Extracted trade is missing symbol or pnl: {item.get('symbol') or '?'}")
            continue
        try:
            # instrument type is re-inferred from the symbol rather than taken from the model
            result.trades.append(normalize_trade(
                _ai_trade_to_raw(item, now),
                platform=platform,
                import_source='AI PDF Extraction',
            ))
        except Exception as e:
            logger.warning(f"Rejecting extracted trade {index}: {str(e)}")
            result.add_error(index, str(e))

    if not result.trades and not result.errors:
        result.add_error(0, 'No completed trades found in document')

    logger.info(f"AI extraction produced {len(result.trades)} trades and {len(result.errors)} errors for {filename}")
    return result

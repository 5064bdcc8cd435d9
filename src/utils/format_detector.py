"""
Statement format detection based on file name and content inspection.
"""
import os
import logging
from typing import Tuple, Union

from models.statement import StatementFormat

logger = logging.getLogger(__name__)

# Number of leading lines scanned for platform fingerprints
FINGERPRINT_LINES = 10

# Checked in order; the first keyword found anywhere in the leading lines wins.
# This is a raw substring match, so a note or a description column mentioning
# a platform name can misclassify the file.
CSV_FINGERPRINTS: Tuple[Tuple[StatementFormat, Tuple[str, ...]], ...] = (
    (StatementFormat.MT4_CSV, ("metatrader", "ticket")),
    (StatementFormat.CTRADER, ("ctrader", "position id")),
    (StatementFormat.DXTRADE, ("dxtrade", "devexperts")),
    (StatementFormat.MATCH_TRADER, ("match-trader", "matchtrader")),
    (StatementFormat.RITHMIC, ("rithmic",)),
    (StatementFormat.TRADING_VIEW, ("tradingview", "paper trading")),
)

DASHBOARD_MARKERS = ("__initial_state__", "propaccount", "hybrid funding")


def detect_format(filename: str, content: Union[str, bytes]) -> StatementFormat:
    """
    Classify a statement document.

    The file extension is checked first, then content signatures. CSV and
    text files are matched against platform fingerprints and fall back to
    generic CSV. Never raises.

    Args:
        filename: Original file name (may be empty)
        content: Document content or a leading sample of it

    Returns:
        StatementFormat for the parser that should handle the document
    """
    try:
        return _detect(filename or "", content)
    except Exception as e:
        logger.error(f"Error detecting statement format for {filename}: {str(e)}")
        return StatementFormat.CSV


def _detect(filename: str, content: Union[str, bytes]) -> StatementFormat:
    if isinstance(content, bytes):
        if content.startswith(b"%PDF"):
            return StatementFormat.PDF
        content = content.decode("utf-8", errors="ignore")

    extension = detect_extension(filename)

    if extension == "pdf" or content.startswith("%PDF"):
        return StatementFormat.PDF

    lowered = content.lower()
    if extension in ("html", "htm") or "<html" in lowered or "<table" in lowered:
        if any(marker in lowered for marker in DASHBOARD_MARKERS):
            return StatementFormat.DASHBOARD_HTML
        return StatementFormat.MT4_HTML

    if extension in ("csv", "txt"):
        detected = detect_platform_fingerprint(content)
        logger.info(f"Fingerprint detection result for {filename}: {detected.value}")
        return detected

    return StatementFormat.CSV


def detect_extension(filename: str) -> str:
    """Lower-cased file extension without the dot, or an empty string."""
    _, extension = os.path.splitext(filename)
    return extension.lower()[1:] if extension else ""


def detect_platform_fingerprint(content: str) -> StatementFormat:
    """
    Scan the first lines of a CSV export for platform keywords.

    Returns:
        The platform-specific format, or generic CSV when nothing matches
    """
    first_lines = "\n".join(content.splitlines()[:FINGERPRINT_LINES]).lower()
    for statement_format, keywords in CSV_FINGERPRINTS:
        if any(keyword in first_lines for keyword in keywords):
            return statement_format
    return StatementFormat.CSV

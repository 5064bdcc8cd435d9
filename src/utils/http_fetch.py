"""
Outbound HTTP fetching for broker dashboards and statement URLs.
"""
import logging
from typing import Dict, Optional

import requests

from utils.sync_config import SyncSettings

logger = logging.getLogger(__name__)


class FetchError(Exception):
    """Raised when a remote document cannot be fetched."""

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message)
        self.status_code = status_code


def browser_headers(settings: SyncSettings) -> Dict[str, str]:
    """Headers that make the request look like a desktop browser page load."""
    return {
        'User-Agent': settings.user_agent,
        'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8',
        'Accept-Language': 'en-US,en;q=0.5',
        'Connection': 'keep-alive',
    }


def fetch_text(url: str, settings: Optional[SyncSettings] = None,
               session: Optional[requests.Session] = None) -> str:
    """
    GET a page and return its body text.

    Args:
        url: Page URL
        settings: Sync settings (timeout, User-Agent); read from the environment when omitted
        session: Optional requests session to reuse

    Returns:
        Response body as text

    Raises:
        FetchError: On a non-2xx status (carrying that status) or a transport failure (502)
    """
    settings = settings or SyncSettings.from_env()
    client = session or requests
    try:
        response = client.get(url, headers=browser_headers(settings), timeout=settings.http_timeout_seconds)
    except requests.RequestException as e:
        logger.error(f"Request to {url} failed: {str(e)}")
        raise FetchError(f"Failed to fetch {url}: {str(e)}") from e

    if not response.ok:
        logger.error(f"Fetch of {url} returned {response.status_code}")
        raise FetchError(f"Failed to fetch dashboard: {response.status_code}", status_code=response.status_code)

    logger.info(f"Fetched {len(response.text)} characters from {url}")
    return response.text


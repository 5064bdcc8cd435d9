"""
Configuration for broker sync and statement import.

All settings come from the Lambda environment; defaults suit a dev stage.
"""
import os
from dataclasses import dataclass

DEFAULT_DASHBOARD_URL = 'https://hybridfundingdashboard.propaccount.com/es/overview?accountId={account_id}'

DEFAULT_USER_AGENT = (
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'
)


@dataclass
class SyncSettings:
    """Tunables for fetching, parsing and extracting broker data."""

    dashboard_url_template: str = DEFAULT_DASHBOARD_URL
    """Dashboard URL with an {account_id} placeholder."""

    user_agent: str = DEFAULT_USER_AGENT
    """Browser-like User-Agent sent with dashboard requests."""

    http_timeout_seconds: float = 30.0
    """Connect/read timeout for outbound HTTP requests."""

    bedrock_model_id: str = 'amazon.nova-pro-v1:0'
    """Model used for structured extraction from PDF statements."""

    statements_bucket: str = 'tradejournal-dev-statements'
    """S3 bucket holding uploaded statements."""

    aws_region: str = 'eu-west-2'
    """Region for boto3 clients."""

    def __post_init__(self):
        if '{account_id}' not in self.dashboard_url_template:
            raise ValueError(
                f"Dashboard URL template must contain {{account_id}}, got {self.dashboard_url_template}"
            )
        if self.http_timeout_seconds <= 0:
            raise ValueError(f"HTTP timeout must be positive, got {self.http_timeout_seconds}")

    @classmethod
    def from_env(cls) -> 'SyncSettings':
        return cls(
            dashboard_url_template=os.environ.get('HYBRID_FUNDING_DASHBOARD_URL', DEFAULT_DASHBOARD_URL),
            user_agent=os.environ.get('SCRAPER_USER_AGENT', DEFAULT_USER_AGENT),
            http_timeout_seconds=float(os.environ.get('HTTP_TIMEOUT_SECONDS', '30')),
            bedrock_model_id=os.environ.get('BEDROCK_MODEL_ID', 'amazon.nova-pro-v1:0'),
            statements_bucket=os.environ.get('FILE_STORAGE_BUCKET', 'tradejournal-dev-statements'),
            aws_region=os.environ.get('AWS_REGION', 'eu-west-2'),
        )

    def dashboard_url(self, account_id: str) -> str:
        return self.dashboard_url_template.format(account_id=account_id)

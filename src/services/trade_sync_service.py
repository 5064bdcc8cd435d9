"""
Sync orchestration: fetch or read a statement, parse it, reconcile it against
the connection's stored trades, persist the result and write the audit log.

Row-level failures are collected into the outcome and never abort a run. Only
a failed fetch or an unexpected exception is fatal; a fatal run marks the
connection as errored and writes a sync log with status error before the
exception is raised to the caller.
"""
import logging
import time
from decimal import Decimal
from typing import Callable, List, Optional, Union

from models.broker_connection import BrokerConnection, ConnectionStatus
from models.statement import AccountMetrics, ParseError
from models.sync_log import SyncLogEntry, SyncOutcome, SyncStatus, SyncType, TradeError
from models.trade import Trade, TradeRecord
from services.ai_extraction_service import extract_trades_via_ai
from services.reconciliation_service import ReconciliationPlan, reconcile
from utils.dashboard_scraper import scrape_dashboard
from utils.db import (
    ConflictError,
    NotAuthorized,
    NotFound,
    create_sync_log,
    create_trade,
    current_timestamp,
    list_connection_trades,
    update_broker_connection,
    update_trade,
)
from utils.http_fetch import FetchError, fetch_text
from utils.s3_dao import get_object_content, split_s3_location, statement_key_belongs_to
from utils.sync_config import SyncSettings
from utils.trade_parser import AIExtractor, parse_statement

logger = logging.getLogger(__name__)

# Synthetic ids of dashboard trades without a deal id are prefixed with this
DASHBOARD_ID_PREFIX = 'hf'


class SyncError(Exception):
    """A sync run failed as a whole."""

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.status_code = status_code


def _elapsed_ms(started: float) -> int:
    return int((time.time() - started) * 1000)


class TradeSyncService:
    """Runs dashboard syncs and statement imports for broker connections."""

    def __init__(
        self,
        settings: Optional[SyncSettings] = None,
        fetcher: Optional[Callable[[str, SyncSettings], str]] = None,
        ai_extractor: Optional[AIExtractor] = None,
    ):
        self.settings = settings or SyncSettings.from_env()
        self.fetcher = fetcher or fetch_text
        self.ai_extractor = ai_extractor or extract_trades_via_ai

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def run_sync(
        self,
        connection: BrokerConnection,
        force_refresh: bool = False,
        sync_type: SyncType = SyncType.DASHBOARD_SCRAPE,
    ) -> SyncOutcome:
        """
        Scrape the connection's dashboard and bring its stored trades up to date.

        Args:
            connection: The broker connection to sync
            force_refresh: Rewrite every matched trade even if its P&L is unchanged
            sync_type: Tag written to the sync log (scheduled runs pass SCHEDULED)

        Returns:
            SyncOutcome with counts, per-row errors and account metrics

        Raises:
            ValueError: If the connection has no account id to scrape
            FetchError: If the dashboard could not be fetched
            SyncError: On any other failure of the run as a whole
        """
        account_id = connection.account_number or connection.username
        if not account_id:
            raise ValueError("Connection has no account number to sync")

        started = time.time()
        logger.info(f"Starting {sync_type.value} sync for connection {connection.connection_id}")
        try:
            page = self.fetcher(self.settings.dashboard_url(account_id), self.settings)
            scrape = scrape_dashboard(page)
            return self._apply(
                connection,
                trades=scrape.trades,
                parse_errors=scrape.errors,
                metrics=scrape.metrics,
                statement_format=None,
                sync_type=sync_type,
                started=started,
                force_refresh=force_refresh,
                platform_prefix=DASHBOARD_ID_PREFIX,
            )
        except FetchError as e:
            self._record_failure(connection, sync_type, started, str(e))
            raise
        except Exception as e:
            logger.error(f"Sync failed for connection {connection.connection_id}: {str(e)}", exc_info=True)
            self._record_failure(connection, sync_type, started, str(e))
            raise SyncError(str(e)) from e

    def import_statement(
        self,
        connection: BrokerConnection,
        file_name: str,
        content: Optional[Union[str, bytes]] = None,
        s3_key: Optional[str] = None,
        force_refresh: bool = False,
    ) -> SyncOutcome:
        """
        Import an uploaded statement file into the connection's trades.

        The file is given inline or as an S3 key under the user's prefix.

        Raises:
            ValueError: If neither content nor s3_key is given
            NotAuthorized: If the S3 location is outside the statements bucket
                or the user's prefix
            NotFound: If the S3 object does not exist
            SyncError: If the import fails as a whole
        """
        if content is None:
            content = self._read_uploaded_statement(connection, s3_key)

        started = time.time()
        logger.info(f"Importing statement {file_name} for connection {connection.connection_id}")
        try:
            parsed = parse_statement(file_name, content, ai_extractor=self.ai_extractor)
            metrics = AccountMetrics(total_profit_loss=sum((t.pnl for t in parsed.trades), Decimal('0')))
            return self._apply(
                connection,
                trades=parsed.trades,
                parse_errors=parsed.errors,
                metrics=metrics,
                statement_format=parsed.format,
                sync_type=SyncType.STATEMENT_IMPORT,
                started=started,
                force_refresh=force_refresh,
                platform_prefix='',
            )
        except Exception as e:
            logger.error(f"Statement import failed for connection {connection.connection_id}: {str(e)}", exc_info=True)
            self._record_failure(connection, SyncType.STATEMENT_IMPORT, started, str(e))
            raise SyncError(str(e)) from e

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _read_uploaded_statement(self, connection: BrokerConnection, s3_key: Optional[str]) -> bytes:
        if not s3_key:
            raise ValueError("Either content or s3Key is required")
        bucket, key = split_s3_location(s3_key, self.settings.statements_bucket)
        if bucket != self.settings.statements_bucket:
            logger.warning(f"Rejected statement read from bucket {bucket} for user {connection.user_id}")
            raise NotAuthorized("Not authorized to read this statement")
        if not statement_key_belongs_to(key, connection.user_id):
            raise NotAuthorized("Not authorized to read this statement")
        data = get_object_content(key, bucket)
        if data is None:
            raise NotFound("Statement file not found")
        return data

    def _apply(
        self,
        connection: BrokerConnection,
        trades: List[TradeRecord],
        parse_errors: List[ParseError],
        metrics: AccountMetrics,
        statement_format: Optional[str],
        sync_type: SyncType,
        started: float,
        force_refresh: bool,
        platform_prefix: str,
    ) -> SyncOutcome:
        outcome = SyncOutcome(
            total_fetched=len(trades),
            metrics=metrics,
            format=statement_format,
            errors=[TradeError(line=e.line, error=e.error) for e in parse_errors],
        )

        existing = list_connection_trades(connection.connection_id)
        plan = reconcile(trades, existing, force_refresh=force_refresh, platform_prefix=platform_prefix)
        self._persist(plan, connection, outcome)

        outcome.duration_ms = _elapsed_ms(started)
        self._mark_synced(connection, metrics)
        create_sync_log(SyncLogEntry.from_outcome(
            outcome,
            user_id=connection.user_id,
            broker_connection_id=connection.connection_id,
            sync_type=sync_type,
        ))
        logger.info(
            f"Sync for connection {connection.connection_id} finished with status {outcome.status.value}: "
            f"imported={outcome.imported} updated={outcome.updated} skipped={outcome.skipped} "
            f"errors={len(outcome.errors)} in {outcome.duration_ms}ms"
        )
        return outcome

    def _persist(self, plan: ReconciliationPlan, connection: BrokerConnection, outcome: SyncOutcome) -> None:
        """Write the plan one row at a time; a failing row is recorded and the loop continues."""
        outcome.skipped += len(plan.to_skip)

        for planned in plan.to_create:
            try:
                trade = Trade.from_record(
                    planned.record,
                    user_id=connection.user_id,
                    broker_connection_id=connection.connection_id,
                    broker_trade_id=planned.broker_trade_id,
                )
                create_trade(trade)
                outcome.imported += 1
            except ConflictError:
                logger.info(f"Trade {planned.broker_trade_id} already stored, skipping")
                outcome.skipped += 1
            except Exception as e:
                logger.warning(f"Failed to create trade {planned.broker_trade_id}: {str(e)}")
                outcome.errors.append(TradeError(
                    trade=planned.record.symbol,
                    error=str(e),
                    broker_trade_id=planned.broker_trade_id,
                ))

        for planned in plan.to_update:
            try:
                update_trade(planned.existing.trade_id, planned.update)
                outcome.updated += 1
            except Exception as e:
                logger.warning(f"Failed to update trade {planned.existing.trade_id}: {str(e)}")
                outcome.errors.append(TradeError(
                    trade=planned.record.symbol,
                    error=str(e),
                    broker_trade_id=planned.existing.broker_trade_id,
                ))

    def _mark_synced(self, connection: BrokerConnection, metrics: AccountMetrics) -> None:
        updates = {
            'lastSync': current_timestamp(),
            'status': ConnectionStatus.CONNECTED.value,
            'errorMessage': None,
        }
        if metrics.balance is not None:
            updates['accountBalance'] = metrics.balance
        if metrics.equity is not None:
            updates['accountEquity'] = metrics.equity
        update_broker_connection(connection.connection_id, updates)

    def _record_failure(self, connection: BrokerConnection, sync_type: SyncType,
                        started: float, message: str) -> None:
        """Mark the connection as errored and log the failed run; the original failure is re-raised by the caller."""
        try:
            update_broker_connection(connection.connection_id, {
                'status': ConnectionStatus.ERROR.value,
                'errorMessage': message[:2000],
            })
            create_sync_log(SyncLogEntry(
                user_id=connection.user_id,
                broker_connection_id=connection.connection_id,
                sync_type=sync_type,
                status=SyncStatus.ERROR,
                error_message=message,
                duration_ms=_elapsed_ms(started),
            ))
        except Exception as e:
            logger.error(f"Could not record sync failure for connection {connection.connection_id}: {str(e)}",
                         exc_info=True)

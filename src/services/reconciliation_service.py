"""
Reconciliation of freshly parsed trades against a connection's stored trades.

Each parsed trade is classified as a create, an update or a skip. The
classification is a pure function of its inputs; persisting the plan is the
sync orchestrator's job.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, NamedTuple, Set

from models.trade import Trade, TradeRecord, TradeUpdate

logger = logging.getLogger(__name__)

# Two P&L values closer than this are the same trade result
PNL_TOLERANCE = Decimal("0.01")


class PlannedCreate(NamedTuple):
    """A parsed trade with no stored counterpart."""
    broker_trade_id: str
    record: TradeRecord


class PlannedUpdate(NamedTuple):
    """A stored trade and the patch that brings it in line with the parsed one."""
    existing: Trade
    update: TradeUpdate
    record: TradeRecord


class PlannedSkip(NamedTuple):
    broker_trade_id: str
    record: TradeRecord
    reason: str


@dataclass
class ReconciliationPlan:
    to_create: List[PlannedCreate] = field(default_factory=list)
    to_update: List[PlannedUpdate] = field(default_factory=list)
    to_skip: List[PlannedSkip] = field(default_factory=list)

    def summary(self) -> str:
        return f"create={len(self.to_create)} update={len(self.to_update)} skip={len(self.to_skip)}"


def pnl_changed(existing_pnl: Decimal, parsed_pnl: Decimal) -> bool:
    """True when the two P&L values differ by more than PNL_TOLERANCE."""
    return abs(Decimal(existing_pnl) - Decimal(parsed_pnl)) > PNL_TOLERANCE


def build_update(record: TradeRecord) -> TradeUpdate:
    """Patch carrying only the fields a re-sync may change; entry fields never move."""
    return TradeUpdate(
        exit_date=record.exit_date,
        exit_price=record.exit_price,
        pnl=record.pnl,
        pnl_net=record.pnl_net,
        stop_loss=record.stop_loss,
        take_profit=record.take_profit,
    )


def reconcile(
    parsed: Iterable[TradeRecord],
    existing: Iterable[Trade],
    force_refresh: bool = False,
    platform_prefix: str = "",
) -> ReconciliationPlan:
    """
    Classify parsed trades against the stored trades of one connection.

    Args:
        parsed: Trades produced by a parser, in document order
        existing: Snapshot of the connection's stored trades
        force_refresh: Update every matched trade even when its P&L is unchanged
        platform_prefix: Prefix for synthetic ids of trades without a broker id

    Returns:
        ReconciliationPlan; at most one entry per effective trade id lands in
        to_create or to_update, later repeats within the batch are skipped
    """
    by_broker_id: Dict[str, Trade] = {
        trade.broker_trade_id: trade for trade in existing if trade.broker_trade_id
    }
    plan = ReconciliationPlan()
    seen: Set[str] = set()

    for record in parsed:
        trade_id = record.effective_trade_id(platform_prefix or None)
        if trade_id in seen:
            if not record.broker_trade_id and record.entry_date is None:
                # No id and no date: every row of this symbol shares one synthetic id
                logger.warning(f"Trade {record.symbol} has no broker id or entry date; "
                               f"skipping it as a repeat of {trade_id}")
            plan.to_skip.append(PlannedSkip(trade_id, record, "duplicate in batch"))
            continue
        seen.add(trade_id)

        stored = by_broker_id.get(trade_id)
        if stored is None:
            plan.to_create.append(PlannedCreate(trade_id, record))
        elif force_refresh or pnl_changed(stored.pnl, record.pnl):
            plan.to_update.append(PlannedUpdate(stored, build_update(record), record))
        else:
            plan.to_skip.append(PlannedSkip(trade_id, record, "unchanged"))

    logger.info(f"Reconciliation plan: {plan.summary()}")
    return plan

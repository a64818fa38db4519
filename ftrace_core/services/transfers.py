from __future__ import annotations

import dataclasses
import logging
from typing import Iterable, List, Optional, Sequence

from ftrace_core.domain.models import EventTraceEntry, FlowsDetail, StrategyExecution
from ftrace_core.domain.trace import RECONCILE_TOLERANCE, Transfer, TransferReason
from ftrace_core.services.flows import is_transfer_like

logger = logging.getLogger(__name__)


def infer_transfer_reason(event_type: str, cash_delta: float) -> TransferReason:
    upper = event_type.upper()
    if "RMD" in upper:
        return TransferReason.RMD_WITHDRAWAL
    if "ROTH_CONVERSION" in upper:
        return TransferReason.ROTH_CONVERSION
    if "REBALANCE" in upper:
        return TransferReason.REBALANCING
    if "CONTRIBUTION" in upper:
        return TransferReason.SCHEDULED_CONTRIBUTION
    if "WITHDRAWAL" in upper:
        return TransferReason.PLANNED_SALE
    return TransferReason.PLANNED_SALE if cash_delta > 0 else TransferReason.SCHEDULED_CONTRIBUTION


@dataclasses.dataclass
class _TransferLedger:
    month: str
    transfers: List[Transfer] = dataclasses.field(default_factory=list)
    # Set when the event trace already explains that direction for the month.
    found_withdrawal: bool = False
    found_contribution: bool = False

    def add(
        self,
        amount: float,
        reason: TransferReason,
        source_account: Optional[str] = None,
        target_account: Optional[str] = None,
        event_id: Optional[str] = None,
    ) -> None:
        self.transfers.append(
            Transfer(
                id=f"{self.month}_transfer_{len(self.transfers)}",
                amount=amount,
                reason=reason,
                source_account=source_account,
                target_account=target_account,
                event_id=event_id,
            )
        )


def _add_event_transfers(
    ledger: _TransferLedger,
    month_offset: int,
    event_trace: Iterable[EventTraceEntry],
    event_ids: Sequence[str],
) -> None:
    wanted = set(event_ids)
    for entry in event_trace:
        if entry.month_offset != month_offset or entry.event_id not in wanted:
            continue
        cash_delta = entry.cash_delta
        if not is_transfer_like(cash_delta, entry.invested_delta):
            continue
        if cash_delta > 0:
            ledger.found_withdrawal = True
            source, target = "investment", "cash"
        else:
            ledger.found_contribution = True
            source, target = "cash", "investment"
        ledger.add(cash_delta, infer_transfer_reason(entry.event_type, cash_delta), source, target, entry.event_id)


def _add_aggregate_transfers(ledger: _TransferLedger, flows: FlowsDetail) -> None:
    auto_shortfall = flows.auto_shortfall_cover or 0.0
    planned_sales = flows.total_withdrawals - auto_shortfall

    if auto_shortfall > RECONCILE_TOLERANCE:
        ledger.add(auto_shortfall, TransferReason.AUTO_RESTORE_FLOOR, "investment", "cash")

    if planned_sales > RECONCILE_TOLERANCE and not ledger.found_withdrawal:
        ledger.add(planned_sales, TransferReason.PLANNED_SALE, "investment", "cash")

    if flows.total_contributions > RECONCILE_TOLERANCE and not ledger.found_contribution:
        ledger.add(-flows.total_contributions, TransferReason.SCHEDULED_CONTRIBUTION, "cash", "investment")


def _add_internal_transfers(
    ledger: _TransferLedger,
    flows: FlowsDetail,
    executions: Iterable[StrategyExecution],
) -> None:
    # Zero amounts: these are already inside the totals above or never cross buckets.
    for execution in executions:
        strategy = execution.strategy_type.upper()
        if strategy == "ROTH_CONVERSION":
            ledger.add(0.0, TransferReason.ROTH_CONVERSION, "tax_deferred", "roth")
        elif strategy == "REBALANCING":
            ledger.add(0.0, TransferReason.REBALANCING)
        elif strategy == "RMD" and flows.rmd_amount > RECONCILE_TOLERANCE:
            ledger.add(0.0, TransferReason.RMD_WITHDRAWAL, "tax_deferred", "cash")


def build_transfers(
    month: str,
    month_offset: int,
    flows: FlowsDetail,
    executions: Iterable[StrategyExecution],
    event_trace: Iterable[EventTraceEntry],
    event_ids: Sequence[str],
) -> List[Transfer]:
    """
    Attribute the month's transfer_cash to labeled transfers.

    Each direction is attributed from exactly one source: the event trace when it
    contains a qualifying entry, the aggregate flows totals otherwise.
    """
    ledger = _TransferLedger(month=month)
    _add_event_transfers(ledger, month_offset, event_trace, event_ids)
    if ledger.found_withdrawal or ledger.found_contribution:
        logger.debug(
            "Transfers for %s attributed from events (withdrawal=%s, contribution=%s)",
            month,
            ledger.found_withdrawal,
            ledger.found_contribution,
        )
    _add_aggregate_transfers(ledger, flows)
    _add_internal_transfers(ledger, flows, executions)
    return ledger.transfers

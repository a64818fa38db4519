from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, List, Optional, Sequence

from ftrace_core.domain.models import (
    AccountBalances,
    Assumptions,
    EventTraceEntry,
    MonthSnapshot,
    RealizedMonthVariables,
    TraceOptions,
)
from ftrace_core.domain.trace import TraceData, TraceRunMeta
from ftrace_core.services import flows as flows_service
from ftrace_core.services import growth as growth_service
from ftrace_core.services import reconciler
from ftrace_core.services import summary as summary_service
from ftrace_core.services import transfers as transfers_service

logger = logging.getLogger(__name__)


def build_run_meta(options: TraceOptions) -> TraceRunMeta:
    return TraceRunMeta(
        scenario_id=options.scenario_id,
        seed=options.seed,
        equity_allocation=options.equity_allocation,
        cash_floor=options.cash_floor,
        simulation_mode=options.simulation_mode,
        model_description=options.model_description,
    )


def build_event_lookup(event_trace: Sequence[EventTraceEntry]) -> Dict[str, EventTraceEntry]:
    # An event can recur across months; the first occurrence carries its metadata.
    lookup: Dict[str, EventTraceEntry] = {}
    for entry in event_trace:
        lookup.setdefault(entry.event_id, entry)
    return lookup


def group_events_by_offset(event_trace: Sequence[EventTraceEntry]) -> Dict[int, List[EventTraceEntry]]:
    by_offset: Dict[int, List[EventTraceEntry]] = defaultdict(list)
    for entry in event_trace:
        by_offset[entry.month_offset].append(entry)
    return dict(by_offset)


def build_trace_data(
    snapshots: Sequence[MonthSnapshot],
    assumptions: Optional[Assumptions] = None,
    options: Optional[TraceOptions] = None,
) -> TraceData:
    """
    Transform ordered monthly snapshots into a reconciled, attributed trace.

    One forward pass: each month's starts are the previous month's ends, the
    reconciler builds the row, and the attributors explain its three drivers.
    """
    options = options or TraceOptions()
    event_trace = list(options.event_trace)
    events_by_offset = group_events_by_offset(event_trace)
    realized_by_offset: Dict[int, RealizedMonthVariables] = {
        rpv.month_offset: rpv for rpv in options.realized_path_variables
    }

    trace = TraceData(
        meta=build_run_meta(options),
        event_lookup=build_event_lookup(event_trace),
        assumptions=assumptions or Assumptions(),
    )

    prev_cash_end = 0.0
    prev_inv_end = 0.0
    prev_accounts: Optional[AccountBalances] = None

    for index, snapshot in enumerate(snapshots):
        month = reconciler.format_month(snapshot.calendar_year, snapshot.calendar_month)
        trace.months_by_offset[snapshot.month_offset] = month
        month_events = events_by_offset.get(snapshot.month_offset, [])

        account_end = reconciler.account_balances(snapshot)
        if index == 0:
            cash_start, inv_start = reconciler.month_zero_starts(snapshot, options)
            account_start = reconciler.month_zero_account_starts(account_end, options)
        else:
            cash_start, inv_start = prev_cash_end, prev_inv_end
            account_start = prev_accounts
        trace.account_starts_by_month[month] = account_start
        trace.account_ends_by_month[month] = account_end

        row = reconciler.reconcile_month(snapshot, index, cash_start, inv_start, options.cash_floor, month=month)
        trace.rows.append(row)

        trace.flow_items_by_month[month] = flows_service.build_flow_items(
            month, snapshot.month_offset, snapshot.flows, snapshot.event_ids, month_events
        )
        trace.transfers_by_month[month] = transfers_service.build_transfers(
            month,
            snapshot.month_offset,
            snapshot.flows,
            snapshot.strategy_executions,
            month_events,
            snapshot.event_ids,
        )
        trace.world_vars_by_month[month] = growth_service.build_world_vars(
            snapshot.market_returns, realized_by_offset.get(snapshot.month_offset)
        )
        trace.growth_components_by_month[month] = growth_service.build_growth_components(
            row.inv_start - row.transfer_cash,
            snapshot.market_returns,
            options.equity_allocation,
            row.market_return_impact,
        )

        prev_cash_end = row.cash_end
        prev_inv_end = row.inv_end
        prev_accounts = account_end

    trace.summary = summary_service.summarize(trace.rows)
    logger.debug(
        "Built trace %s: %d months, %d reconciled",
        options.scenario_id,
        trace.summary.total_months,
        trace.summary.reconciled_months,
    )
    return trace

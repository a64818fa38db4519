from ftrace_core.domain.models import EventTraceEntry, FlowsDetail, StrategyExecution
from ftrace_core.domain.trace import TransferReason
from ftrace_core.services.transfers import build_transfers, infer_transfer_reason


def _transfer_event(event_id: str, event_type: str, cash_delta: float, month_offset: int = 0) -> EventTraceEntry:
    return EventTraceEntry(
        event_id=event_id,
        month_offset=month_offset,
        event_type=event_type,
        cash_before=10000,
        cash_after=10000 + cash_delta,
        tax_deferred_before=50000,
        tax_deferred_after=50000 - cash_delta,
    )


def test_aggregate_contribution_when_no_events():
    transfers = build_transfers("2025-01", 0, FlowsDetail(total_contributions=750), [], [], [])

    assert len(transfers) == 1
    assert transfers[0].amount == -750
    assert transfers[0].reason == TransferReason.SCHEDULED_CONTRIBUTION
    assert (transfers[0].source_account, transfers[0].target_account) == ("cash", "investment")
    assert transfers[0].id == "2025-01_transfer_0"


def test_withdrawals_split_into_auto_restore_and_planned_sale():
    flows = FlowsDetail(total_withdrawals=3000, auto_shortfall_cover=1200)
    transfers = build_transfers("2025-01", 0, flows, [], [], [])

    assert [(t.reason, t.amount) for t in transfers] == [
        (TransferReason.AUTO_RESTORE_FLOOR, 1200),
        (TransferReason.PLANNED_SALE, 1800),
    ]
    assert sum(t.amount for t in transfers) == 3000


def test_event_withdrawal_replaces_aggregate_planned_sale():
    flows = FlowsDetail(total_withdrawals=2000, total_contributions=400)
    trace = [_transfer_event("rmd-2025", "RMD_DISTRIBUTION", 2000)]
    transfers = build_transfers("2025-01", 0, flows, [], trace, ["rmd-2025"])

    reasons = [t.reason for t in transfers]
    assert reasons == [TransferReason.RMD_WITHDRAWAL, TransferReason.SCHEDULED_CONTRIBUTION]
    assert transfers[0].amount == 2000
    assert transfers[0].event_id == "rmd-2025"
    assert (transfers[0].source_account, transfers[0].target_account) == ("investment", "cash")
    # Contribution direction had no qualifying event, so the aggregate total is used.
    assert transfers[1].amount == -400
    assert TransferReason.PLANNED_SALE not in reasons


def test_event_contribution_replaces_aggregate_contribution():
    flows = FlowsDetail(total_contributions=1000)
    trace = [_transfer_event("401k", "CONTRIBUTION", -1000)]
    transfers = build_transfers("2025-01", 0, flows, [], trace, ["401k"])

    assert len(transfers) == 1
    assert transfers[0].amount == -1000
    assert transfers[0].event_id == "401k"


def test_auto_restore_is_kept_alongside_event_withdrawal():
    flows = FlowsDetail(total_withdrawals=1500, auto_shortfall_cover=500)
    trace = [_transfer_event("sale", "WITHDRAWAL", 1000)]
    transfers = build_transfers("2025-01", 0, flows, [], trace, ["sale"])

    assert [t.reason for t in transfers] == [TransferReason.PLANNED_SALE, TransferReason.AUTO_RESTORE_FLOOR]


def test_non_offsetting_events_are_not_transfers():
    entry = EventTraceEntry(
        event_id="gift",
        month_offset=0,
        event_type="INCOME",
        cash_before=0,
        cash_after=1000,
        taxable_before=0,
        taxable_after=1000,
    )
    transfers = build_transfers("2025-01", 0, FlowsDetail(total_withdrawals=300), [], [entry], ["gift"])

    assert [t.reason for t in transfers] == [TransferReason.PLANNED_SALE]
    assert transfers[0].event_id is None


def test_event_outside_month_or_id_list_is_ignored():
    trace = [
        _transfer_event("sale", "WITHDRAWAL", 1000, month_offset=5),
        _transfer_event("other", "WITHDRAWAL", 1000),
    ]
    transfers = build_transfers("2025-01", 0, FlowsDetail(total_withdrawals=1000), [], trace, ["sale"])

    assert len(transfers) == 1
    assert transfers[0].event_id is None


def test_internal_transfers_are_zero_amount():
    flows = FlowsDetail(total_withdrawals=2000, rmd_amount=2000)
    executions = [
        StrategyExecution("ROTH_CONVERSION", 10000),
        StrategyExecution("REBALANCING"),
        StrategyExecution("RMD", 2000),
        StrategyExecution("TAX_PAYMENT", 300),
    ]
    transfers = build_transfers("2025-01", 0, flows, executions, [], [])

    assert [t.reason for t in transfers] == [
        TransferReason.PLANNED_SALE,
        TransferReason.ROTH_CONVERSION,
        TransferReason.REBALANCING,
        TransferReason.RMD_WITHDRAWAL,
    ]
    assert [t.amount for t in transfers[1:]] == [0.0, 0.0, 0.0]
    assert (transfers[1].source_account, transfers[1].target_account) == ("tax_deferred", "roth")
    assert sum(t.amount for t in transfers) == 2000


def test_rmd_execution_without_rmd_amount_is_skipped():
    transfers = build_transfers("2025-01", 0, FlowsDetail(), [StrategyExecution("RMD")], [], [])
    assert transfers == []


def test_infer_transfer_reason():
    assert infer_transfer_reason("RMD", 100) == TransferReason.RMD_WITHDRAWAL
    assert infer_transfer_reason("ROTH_CONVERSION", -1) == TransferReason.ROTH_CONVERSION
    assert infer_transfer_reason("PORTFOLIO_REBALANCE", 5) == TransferReason.REBALANCING
    assert infer_transfer_reason("SCHEDULED_CONTRIBUTION", -5) == TransferReason.SCHEDULED_CONTRIBUTION
    assert infer_transfer_reason("WITHDRAWAL", 5) == TransferReason.PLANNED_SALE
    assert infer_transfer_reason("LIQUIDATION", 5) == TransferReason.PLANNED_SALE
    assert infer_transfer_reason("PURCHASE", -5) == TransferReason.SCHEDULED_CONTRIBUTION

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from ftrace_core.domain.models import (
    AccountState,
    EnginePayload,
    EventTraceEntry,
    FlowsDetail,
    MarketReturns,
    MonthSnapshot,
    RealizedMonthVariables,
    StrategyExecution,
)

# Engine payload keys (camelCase) -> dataclass fields.
FLOW_FIELDS = {
    "totalIncome": "total_income",
    "salaryIncome": "salary_income",
    "bonusIncome": "bonus_income",
    "rsuIncome": "rsu_income",
    "socialSecurityIncome": "social_security_income",
    "pensionIncome": "pension_income",
    "dividendIncome": "dividend_income",
    "interestIncome": "interest_income",
    "totalExpenses": "total_expenses",
    "housingExpenses": "housing_expenses",
    "transportationExpenses": "transportation_expenses",
    "foodExpenses": "food_expenses",
    "otherExpenses": "other_expenses",
    "debtPaymentsPrincipal": "debt_payments_principal",
    "debtPaymentsInterest": "debt_payments_interest",
    "totalContributions": "total_contributions",
    "totalWithdrawals": "total_withdrawals",
    "rmdAmount": "rmd_amount",
    "taxWithheld": "tax_withheld",
    "taxesPaid": "taxes_paid",
    "rothConversionAmount": "roth_conversion_amount",
    "investmentGrowth": "investment_growth",
    "autoShortfallCover": "auto_shortfall_cover",
}

OPTIONAL_RETURN_FIELDS = {
    "Inflation": "inflation",
    "Intl": "intl",
    "Other": "other",
    "Home": "home",
    "Rent": "rent",
    "IndividualStock": "individual_stock",
}

ACCOUNT_FIELDS = {
    "taxable": "taxable",
    "taxDeferred": "tax_deferred",
    "roth": "roth",
    "hsa": "hsa",
    "fiveTwoNine": "education",
}

EVENT_REQUIRED_COLUMNS = {"eventId", "monthOffset", "eventType"}
EVENT_BALANCE_COLUMNS = {
    "cashBefore": "cash_before",
    "cashAfter": "cash_after",
    "taxableBefore": "taxable_before",
    "taxableAfter": "taxable_after",
    "taxDeferredBefore": "tax_deferred_before",
    "taxDeferredAfter": "tax_deferred_after",
    "rothBefore": "roth_before",
    "rothAfter": "roth_after",
}


def load_payload(path: str | Path) -> EnginePayload:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(path)
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object in {path}")

    states = data.get("monthlyStates")
    if not isinstance(states, list):
        raise ValueError("Payload is missing the 'monthlyStates' array")
    return EnginePayload(
        snapshots=parse_month_states(states),
        event_trace=parse_event_trace(data.get("eventTrace") or []),
        realized_path_variables=parse_realized_path(data.get("realizedPathVariables") or []),
    )


def parse_month_states(states: Iterable[Dict[str, Any]]) -> List[MonthSnapshot]:
    snapshots: List[MonthSnapshot] = []
    for i, state in enumerate(states):
        accounts = {
            field: _parse_account(state.get(key)) for key, field in ACCOUNT_FIELDS.items()
        }
        snapshots.append(
            MonthSnapshot(
                month_offset=int(state.get("monthOffset", i)),
                calendar_year=int(state["calendarYear"]),
                calendar_month=int(state["calendarMonth"]),
                cash=float(state.get("cash") or 0.0),
                age=_optional_float(state.get("age")),
                flows=parse_flows(state.get("flows") or {}),
                market_returns=parse_market_returns(state.get("marketReturns") or {}),
                strategy_executions=tuple(
                    StrategyExecution(
                        strategy_type=str(ex.get("strategyType", "")),
                        amount=float(ex.get("amount") or 0.0),
                    )
                    for ex in state.get("strategyExecutions") or []
                ),
                event_ids=tuple(str(e) for e in state.get("eventIds") or []),
                **accounts,
            )
        )
    return snapshots


def parse_flows(data: Dict[str, Any]) -> FlowsDetail:
    return FlowsDetail(**{field: float(data.get(key) or 0.0) for key, field in FLOW_FIELDS.items()})


def parse_market_returns(data: Dict[str, Any]) -> MarketReturns:
    return MarketReturns(
        equity=float(data.get("SPY") or 0.0),
        bond=float(data.get("BND") or 0.0),
        **{field: _optional_float(data.get(key)) for key, field in OPTIONAL_RETURN_FIELDS.items()},
    )


def parse_event_trace(records: List[Dict[str, Any]]) -> List[EventTraceEntry]:
    if not records:
        return []
    df = pd.DataFrame(records)
    missing = EVENT_REQUIRED_COLUMNS - set(df.columns)
    if missing:
        raise ValueError(f"Missing columns in event trace: {missing}")

    for column in EVENT_BALANCE_COLUMNS:
        df[column] = pd.to_numeric(df[column], errors="coerce").fillna(0.0) if column in df.columns else 0.0
    df["eventName"] = df["eventName"].fillna("") if "eventName" in df.columns else ""

    entries: List[EventTraceEntry] = []
    for _, row in df.iterrows():
        entries.append(
            EventTraceEntry(
                event_id=str(row["eventId"]),
                month_offset=int(row["monthOffset"]),
                event_type=str(row["eventType"]),
                event_name=str(row["eventName"]),
                **{field: float(row[column]) for column, field in EVENT_BALANCE_COLUMNS.items()},
            )
        )
    return entries


def parse_realized_path(records: Iterable[Dict[str, Any]]) -> List[RealizedMonthVariables]:
    return [
        RealizedMonthVariables(
            month_offset=int(r["monthOffset"]),
            invested_base_for_return=float(r.get("investedBaseForReturn") or 0.0),
            asset_weights={str(k): float(v) for k, v in (r.get("assetWeights") or {}).items()},
            weighted_return=float(r.get("weightedReturn") or 0.0),
            computed_growth_dollars=float(r.get("computedGrowthDollars") or 0.0),
            spy_volatility=_optional_float(r.get("spyVolatility")),
            bnd_volatility=_optional_float(r.get("bndVolatility")),
            intl_volatility=_optional_float(r.get("intlVolatility")),
        )
        for r in records
    ]


def _parse_account(data: Optional[Dict[str, Any]]) -> Optional[AccountState]:
    if data is None:
        return None
    return AccountState(total_value=float(data.get("totalValue") or 0.0))


def _optional_float(value: Any) -> Optional[float]:
    return None if value is None else float(value)

from ftrace_core.services.flows import build_flow_items  # noqa: F401
from ftrace_core.services.growth import build_growth_components, build_world_vars  # noqa: F401
from ftrace_core.services.pipeline import build_trace_data  # noqa: F401
from ftrace_core.services.reconciler import reconcile_month  # noqa: F401
from ftrace_core.services.summary import residual_stats, summarize  # noqa: F401
from ftrace_core.services.transfers import build_transfers  # noqa: F401

__all__ = [
    "build_flow_items",
    "build_growth_components",
    "build_world_vars",
    "build_trace_data",
    "reconcile_month",
    "residual_stats",
    "summarize",
    "build_transfers",
]

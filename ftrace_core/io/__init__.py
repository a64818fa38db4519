from ftrace_core.io.snapshots import load_payload  # noqa: F401
from ftrace_core.io.config import (  # noqa: F401
    load_assumptions,
    load_trace_options,
)
from ftrace_core.io.export import generate_export, write_export  # noqa: F401

__all__ = ["load_payload", "load_assumptions", "load_trace_options", "generate_export", "write_export"]

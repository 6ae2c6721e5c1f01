# procscribe/__init__.py
"""
Package marker + explicit export of the per-turn entry points so callers can
`from procscribe import run_turn` without knowing the module layout.
"""
from procscribe.graph import TurnPipeline, reload_graph, run_turn, update_diagram  # noqa: F401
from procscribe.schema import ProcessState, TurnRequest, TurnResult  # noqa: F401

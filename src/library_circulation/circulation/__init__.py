"""
Circulation core: policy table, fines, inventory ledger, reservation queue,
member eligibility and the engine that coordinates them.
"""

from .engine import CirculationEngine, build_engine, get_engine, reset_engine, set_engine
from .errors import (
    CirculationError,
    CopyCountInvariantError,
    FailureGroup,
    FailureKind,
    PersistenceError,
)
from .policy import DEFAULT_POLICIES, Policy, PolicyTable, policy

__all__ = [
    "DEFAULT_POLICIES",
    "CirculationEngine",
    "CirculationError",
    "CopyCountInvariantError",
    "FailureGroup",
    "FailureKind",
    "PersistenceError",
    "Policy",
    "PolicyTable",
    "build_engine",
    "get_engine",
    "policy",
    "reset_engine",
    "set_engine",
]

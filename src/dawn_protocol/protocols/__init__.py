"""Protocol step catalog and adaptive selection."""

from dawn_protocol.protocols.selector import (
    Adaptation,
    assess_adaptation,
    get_maintenance_protocol,
    get_protocol,
)
from dawn_protocol.protocols.steps import (
    STEP_CATALOG,
    BreathCadence,
    Protocol,
    ProtocolContext,
    ProtocolStep,
    StepKind,
)

__all__ = [
    "Adaptation",
    "BreathCadence",
    "Protocol",
    "ProtocolContext",
    "ProtocolStep",
    "STEP_CATALOG",
    "StepKind",
    "assess_adaptation",
    "get_maintenance_protocol",
    "get_protocol",
]

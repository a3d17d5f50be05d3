"""Adaptive protocol selection from context, day index and recent score deltas."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from dawn_protocol.protocols.steps import (
    BREATH_STEP_GENTLE,
    BREATH_STEP_INTENSE,
    BREATH_STEP_MAINTENANCE,
    BREATH_STEP_STANDARD,
    HYDRATION_STEP,
    HYDRATION_STEP_MAINTENANCE,
    LIGHT_STEP_GENTLE,
    LIGHT_STEP_LOW_LIGHT,
    LIGHT_STEP_MAINTENANCE,
    LIGHT_STEP_STANDARD,
    MOVEMENT_STEP_EXTENDED,
    MOVEMENT_STEP_GENTLE,
    MOVEMENT_STEP_STANDARD,
    Protocol,
    ProtocolContext,
)

logger = logging.getLogger(__name__)

ADAPTATION_WINDOW = 3
INTENSE_DELTA_THRESHOLD = 5


@dataclass(frozen=True)
class Adaptation:
    """Adaptation signal derived from the most recent deltas."""

    needs_gentler: bool = False
    needs_intense: bool = False

    @property
    def suffix(self) -> str:
        """Protocol id suffix; gentler wins if both are set."""
        if self.needs_gentler:
            return "-gentle"
        if self.needs_intense:
            return "-intense"
        return ""


def assess_adaptation(recent_deltas: Sequence[Any]) -> Adaptation:
    """Decide whether to ease off or push harder.

    Looks only at the last three deltas: all non-positive means the protocol
    should be gentler, all above 5 means it can be more intense. Fewer than
    three usable deltas means no adaptation.
    """
    deltas = [
        d for d in recent_deltas
        if isinstance(d, (int, float)) and not isinstance(d, bool)
    ]
    if len(deltas) < ADAPTATION_WINDOW:
        return Adaptation()

    window = deltas[-ADAPTATION_WINDOW:]
    return Adaptation(
        needs_gentler=all(d <= 0 for d in window),
        needs_intense=all(d > INTENSE_DELTA_THRESHOLD for d in window),
    )


def get_protocol(
    context: ProtocolContext | str,
    day_index: int,
    recent_deltas: Sequence[Any] = (),
) -> Protocol:
    """Build the protocol for a session.

    Args:
        context: Environment the session runs in; unknown values mean standard.
        day_index: Zero-based count of the user's completed sessions.
        recent_deltas: Post-minus-pre score deltas, oldest first.

    Returns:
        Light, breath, movement and hydration steps in that order.
    """
    ctx = ProtocolContext.parse(context)
    adaptation = assess_adaptation(recent_deltas)

    if ctx is ProtocolContext.LOW_LIGHT:
        light = LIGHT_STEP_LOW_LIGHT
        breath = BREATH_STEP_GENTLE if adaptation.needs_gentler else BREATH_STEP_STANDARD
        movement = MOVEMENT_STEP_EXTENDED if adaptation.needs_intense else MOVEMENT_STEP_STANDARD
    elif ctx is ProtocolContext.GENTLE:
        light = LIGHT_STEP_GENTLE
        breath = BREATH_STEP_GENTLE
        movement = MOVEMENT_STEP_GENTLE
    else:
        light = LIGHT_STEP_STANDARD
        if adaptation.needs_gentler:
            breath = BREATH_STEP_GENTLE
        elif adaptation.needs_intense:
            breath = BREATH_STEP_INTENSE
        else:
            breath = BREATH_STEP_STANDARD
        movement = MOVEMENT_STEP_EXTENDED if adaptation.needs_intense else MOVEMENT_STEP_STANDARD

    if adaptation.suffix:
        logger.debug(f"Adapting {ctx.value} protocol on day {day_index}: {adaptation.suffix}")

    return Protocol(
        id=f"{ctx.value}-day{day_index}{adaptation.suffix}",
        name=f"Day {day_index + 1} Protocol",
        steps=(light, breath, movement, HYDRATION_STEP),
    )


def get_maintenance_protocol(context: ProtocolContext | str) -> Protocol:
    """Shortened three-minute protocol for free users past the trial.

    Step content is the same for every context and never adapts.
    """
    ctx = ProtocolContext.parse(context)
    return Protocol(
        id=f"maintenance-{ctx.value}",
        name="Maintenance Protocol",
        steps=(LIGHT_STEP_MAINTENANCE, BREATH_STEP_MAINTENANCE, HYDRATION_STEP_MAINTENANCE),
    )

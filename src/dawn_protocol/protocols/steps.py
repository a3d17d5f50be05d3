"""Protocol step types and the fixed step catalog."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ProtocolContext(str, Enum):
    """Environment the protocol is performed in."""

    STANDARD = "standard"
    LOW_LIGHT = "low_light"
    GENTLE = "gentle"

    @classmethod
    def parse(cls, value: Any) -> ProtocolContext:
        """Coerce a context value, falling back to standard for anything unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return cls.STANDARD


class StepKind(str, Enum):
    """Kind of guided activity."""

    LIGHT = "light"
    BREATH = "breath"
    MOVEMENT = "movement"
    HYDRATION = "hydration"


@dataclass(frozen=True)
class BreathCadence:
    """Inhale / hold / exhale timing repeated for a number of cycles."""

    inhale_seconds: int
    hold_seconds: int
    exhale_seconds: int
    cycles: int

    def to_dict(self) -> dict[str, int]:
        return {
            "inhale_seconds": self.inhale_seconds,
            "hold_seconds": self.hold_seconds,
            "exhale_seconds": self.exhale_seconds,
            "cycles": self.cycles,
        }


@dataclass(frozen=True)
class ProtocolStep:
    """One timed unit of guided activity."""

    id: str
    name: str
    duration_seconds: int
    instructions: str
    kind: StepKind
    breath_cadence: BreathCadence | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "duration_seconds": self.duration_seconds,
            "instructions": self.instructions,
            "type": self.kind.value,
        }
        if self.breath_cadence is not None:
            data["breath_cadence"] = self.breath_cadence.to_dict()
        return data


@dataclass(frozen=True)
class Protocol:
    """Ordered steps for one session."""

    id: str
    name: str
    steps: tuple[ProtocolStep, ...]

    @property
    def total_duration_seconds(self) -> int:
        return sum(step.duration_seconds for step in self.steps)

    @property
    def total_duration_display(self) -> str:
        """Format total duration as MM:SS."""
        minutes, seconds = divmod(self.total_duration_seconds, 60)
        return f"{minutes:02d}:{seconds:02d}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "total_duration_seconds": self.total_duration_seconds,
            "steps": [step.to_dict() for step in self.steps],
        }


# Light exposure

LIGHT_STEP_STANDARD = ProtocolStep(
    id="light-standard",
    name="Light Exposure",
    duration_seconds=150,
    instructions=(
        "Position yourself near a window or step outside. Face the light source "
        "(not directly at the sun). Let natural light reach your eyes for the next "
        "few minutes. If indoors, turn on bright lights and face them."
    ),
    kind=StepKind.LIGHT,
)

LIGHT_STEP_LOW_LIGHT = ProtocolStep(
    id="light-low-light",
    name="Indoor Light Exposure",
    duration_seconds=180,  # longer indoors
    instructions=(
        "Turn on the brightest lights in your space. Position yourself close to the "
        "light source. If you have a desk lamp, face it directly. The goal is maximum "
        "light exposure to signal wakefulness to your brain."
    ),
    kind=StepKind.LIGHT,
)

LIGHT_STEP_GENTLE = ProtocolStep(
    id="light-gentle",
    name="Gentle Light Exposure",
    duration_seconds=120,
    instructions=(
        "Open your curtains or blinds. Allow soft, natural light into your space. "
        "Position yourself comfortably where light can reach you. No need for harsh "
        "brightness."
    ),
    kind=StepKind.LIGHT,
)

# Breathwork

BREATH_STEP_STANDARD = ProtocolStep(
    id="breath-standard",
    name="Energizing Breathwork",
    duration_seconds=180,
    instructions=(
        "Follow the breathing pattern: Inhale deeply through your nose, brief hold, "
        "then exhale through your mouth. This pattern activates your alertness system."
    ),
    kind=StepKind.BREATH,
    breath_cadence=BreathCadence(inhale_seconds=4, hold_seconds=2, exhale_seconds=4, cycles=18),
)

BREATH_STEP_GENTLE = ProtocolStep(
    id="breath-gentle",
    name="Gentle Breathwork",
    duration_seconds=180,
    instructions=(
        "Breathe slowly and naturally. Inhale through your nose, pause briefly, "
        "exhale through your mouth. Keep it comfortable and relaxed."
    ),
    kind=StepKind.BREATH,
    breath_cadence=BreathCadence(inhale_seconds=5, hold_seconds=1, exhale_seconds=5, cycles=16),
)

BREATH_STEP_INTENSE = ProtocolStep(
    id="breath-intense",
    name="Energizing Breathwork",
    duration_seconds=180,
    instructions=(
        "Follow the breathing pattern with slightly faster cadence: Quick inhale, "
        "brief hold, strong exhale. This pattern boosts alertness."
    ),
    kind=StepKind.BREATH,
    breath_cadence=BreathCadence(inhale_seconds=3, hold_seconds=2, exhale_seconds=3, cycles=22),
)

# Movement

MOVEMENT_STEP_STANDARD = ProtocolStep(
    id="movement-standard",
    name="Micro-Movement",
    duration_seconds=180,
    instructions=(
        "Stand up and perform these simple movements:\n\n"
        "1. Arm circles (30 seconds)\n"
        "2. Gentle neck rolls (30 seconds)\n"
        "3. Shoulder shrugs (30 seconds)\n"
        "4. Torso twists (30 seconds)\n"
        "5. March in place (60 seconds)\n\n"
        "No equipment needed. Move at your own pace."
    ),
    kind=StepKind.MOVEMENT,
)

MOVEMENT_STEP_GENTLE = ProtocolStep(
    id="movement-gentle",
    name="Gentle Movement",
    duration_seconds=150,
    instructions=(
        "While seated or standing:\n\n"
        "1. Slowly roll your shoulders (30 seconds)\n"
        "2. Gentle neck stretches (30 seconds)\n"
        "3. Wiggle your fingers and toes (30 seconds)\n"
        "4. Gentle arm stretches (30 seconds)\n"
        "5. Deep breaths while stretching (30 seconds)"
    ),
    kind=StepKind.MOVEMENT,
)

MOVEMENT_STEP_EXTENDED = ProtocolStep(
    id="movement-extended",
    name="Active Movement",
    duration_seconds=210,
    instructions=(
        "Stand up and energize:\n\n"
        "1. Arm circles (30 seconds)\n"
        "2. Jumping jacks or high knees (45 seconds)\n"
        "3. Torso twists (30 seconds)\n"
        "4. Squats (30 seconds)\n"
        "5. March in place with arm swings (45 seconds)"
    ),
    kind=StepKind.MOVEMENT,
)

# Hydration

HYDRATION_STEP = ProtocolStep(
    id="hydration",
    name="Hydration",
    duration_seconds=90,
    instructions=(
        "Drink a full glass of water (8-16 oz). Your body has been without water for "
        "hours. Hydration helps:\n\n"
        "- Boost energy levels\n"
        "- Improve cognitive function\n"
        "- Kickstart metabolism\n\n"
        "Sip steadily, no need to rush."
    ),
    kind=StepKind.HYDRATION,
)

# Maintenance (free tier after the trial)

LIGHT_STEP_MAINTENANCE = ProtocolStep(
    id="light-maintenance",
    name="Quick Light",
    duration_seconds=60,
    instructions="Get near a light source. Face the light for one minute.",
    kind=StepKind.LIGHT,
)

BREATH_STEP_MAINTENANCE = ProtocolStep(
    id="breath-maintenance",
    name="Quick Breath",
    duration_seconds=60,
    instructions="Take 6 deep breaths. Inhale 4 seconds, exhale 4 seconds.",
    kind=StepKind.BREATH,
    breath_cadence=BreathCadence(inhale_seconds=4, hold_seconds=0, exhale_seconds=4, cycles=6),
)

HYDRATION_STEP_MAINTENANCE = ProtocolStep(
    id="hydration-maintenance",
    name="Hydrate",
    duration_seconds=60,
    instructions="Drink a glass of water.",
    kind=StepKind.HYDRATION,
)

STEP_CATALOG: dict[str, ProtocolStep] = {
    step.id: step
    for step in (
        LIGHT_STEP_STANDARD,
        LIGHT_STEP_LOW_LIGHT,
        LIGHT_STEP_GENTLE,
        BREATH_STEP_STANDARD,
        BREATH_STEP_GENTLE,
        BREATH_STEP_INTENSE,
        MOVEMENT_STEP_STANDARD,
        MOVEMENT_STEP_GENTLE,
        MOVEMENT_STEP_EXTENDED,
        HYDRATION_STEP,
        LIGHT_STEP_MAINTENANCE,
        BREATH_STEP_MAINTENANCE,
        HYDRATION_STEP_MAINTENANCE,
    )
}

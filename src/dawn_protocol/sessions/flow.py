"""Session flow: plan, pre-test, protocol, post-test, finalize."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from dawn_protocol.billing.entitlement import Plan, requires_paywall
from dawn_protocol.core.config import Config, get_config
from dawn_protocol.protocols.selector import get_maintenance_protocol, get_protocol
from dawn_protocol.protocols.steps import Protocol, ProtocolContext
from dawn_protocol.scoring.reaction import (
    Improvement,
    ReactionSample,
    ReactionTestResult,
    compute_improvement,
    compute_reaction_score,
    get_recent_deltas,
)
from dawn_protocol.sessions.models import Session
from dawn_protocol.sessions.repository import SessionRepository
from dawn_protocol.sessions.schemas import SessionStartResponse, StartSessionRequest

logger = logging.getLogger(__name__)


@dataclass
class SessionPlan:
    """What today's session will look like."""

    protocol: Protocol
    day_index: int
    plan: Plan
    requires_paywall: bool = False
    recent_deltas: list[int] = field(default_factory=list)

    @property
    def is_maintenance(self) -> bool:
        return self.protocol.id.startswith("maintenance-")

    def to_response(self, session_id: str | None = None) -> SessionStartResponse:
        return SessionStartResponse(
            session_id=session_id,
            protocol=self.protocol.to_dict(),
            day_index=self.day_index,
            requires_paywall=self.requires_paywall,
        )


@dataclass
class SessionOutcome:
    """Results shown after a session is finalized."""

    session: Session
    improvement: Improvement
    minutes_saved: int
    next_day_index: int
    show_soft_prompt: bool = False


class SessionFlow:
    """Drives one session through its phases and persists it after each one.

    Usage:
        flow = SessionFlow(store)
        session, plan = await flow.start_session(StartSessionRequest(context="gentle"))
        await flow.record_pre_test(session, pre_samples)
        await flow.record_pre_energy(session, 2)
        # ... user performs plan.protocol ...
        await flow.record_post_test(session, post_samples)
        outcome = await flow.record_post_energy(session, 4)
    """

    def __init__(self, repository: SessionRepository, config: Config | None = None):
        self.repository = repository
        self.config = config or get_config()

    async def plan_session(
        self, context: ProtocolContext | str, maintenance: bool = False
    ) -> SessionPlan:
        """Pick today's protocol from the day counter, entitlement and recent deltas."""
        day_index = await self.repository.get_day_index()
        plan = await self.repository.get_entitlement()
        paywalled = requires_paywall(plan, day_index, self.config.trial)

        if maintenance or paywalled:
            if paywalled:
                logger.info(f"Day {day_index + 1} on free plan, offering maintenance protocol")
            return SessionPlan(
                protocol=get_maintenance_protocol(context),
                day_index=day_index,
                plan=plan,
                requires_paywall=paywalled,
            )

        recent = await self.repository.get_last_n_sessions(self.config.adaptation.history_window)
        deltas = get_recent_deltas(recent)
        return SessionPlan(
            protocol=get_protocol(context, day_index, deltas),
            day_index=day_index,
            plan=plan,
            recent_deltas=deltas,
        )

    async def start_session(
        self,
        request: StartSessionRequest | None = None,
        now: datetime | None = None,
    ) -> tuple[Session, SessionPlan]:
        """Create and persist a new session with its protocol."""
        request = request or StartSessionRequest()
        now = now or datetime.now()
        session_plan = await self.plan_session(request.context, request.maintenance)

        session = Session(
            device_id=await self.repository.get_device_id(),
            context=request.context,
            protocol_id=session_plan.protocol.id,
            day_index=session_plan.day_index,
            started_at=now,
            wake_time_reported=(
                datetime.combine(now.date(), request.wake_time) if request.wake_time else None
            ),
        )
        await self.repository.save_session(session)

        logger.info(f"Started session {session.id} with protocol {session.protocol_id}")
        return session, session_plan

    async def record_pre_test(
        self, session: Session, samples: Iterable[ReactionSample]
    ) -> ReactionTestResult:
        result = compute_reaction_score(samples)
        session.record_pre_test(result)
        await self.repository.save_session(session)
        return result

    async def record_pre_energy(self, session: Session, rating: int) -> None:
        session.record_pre_energy(rating)
        await self.repository.save_session(session)

    async def record_post_test(
        self, session: Session, samples: Iterable[ReactionSample]
    ) -> ReactionTestResult:
        result = compute_reaction_score(samples)
        session.record_post_test(result)
        await self.repository.save_session(session)
        return result

    async def record_post_energy(
        self, session: Session, rating: int, now: datetime | None = None
    ) -> SessionOutcome:
        """Record the final energy rating; this finalizes the session."""
        session.record_post_energy(rating)
        return await self.complete_session(session, now)

    async def complete_session(
        self, session: Session, now: datetime | None = None
    ) -> SessionOutcome:
        session.complete(now)
        return await self._finalize(session, now)

    async def skip_post_test(
        self, session: Session, now: datetime | None = None
    ) -> SessionOutcome:
        session.skip_post_test(now)
        return await self._finalize(session, now)

    async def _finalize(self, session: Session, now: datetime | None) -> SessionOutcome:
        await self.repository.save_session(session)

        improvement = compute_improvement(
            session.reaction_pre_score or 0, session.reaction_post_score or 0
        )
        show_prompt = await self.repository.should_show_soft_prompt(
            now, self.config.trial.soft_prompt_cooldown_hours
        )
        outcome = SessionOutcome(
            session=session,
            improvement=improvement,
            minutes_saved=session.minutes_saved_est or 0,
            next_day_index=await self.repository.get_day_index(),
            show_soft_prompt=show_prompt,
        )
        logger.info(
            f"Completed session {session.id}: delta={improvement.delta}, "
            f"minutes_saved={outcome.minutes_saved}"
        )
        return outcome

"""Tests for the session flow end to end over both repositories."""

from __future__ import annotations

from datetime import datetime, time

import pytest

from dawn_protocol.billing.entitlement import Plan, Subscription
from dawn_protocol.sessions.flow import SessionFlow
from dawn_protocol.sessions.schemas import StartSessionRequest


@pytest.fixture(params=["sqlite", "memory"])
def flow(request, config) -> SessionFlow:
    repository = request.getfixturevalue("store" if request.param == "sqlite" else "memory_repo")
    return SessionFlow(repository, config)


async def run_session(flow: SessionFlow, make_samples, pre_ms, post_ms, context="standard"):
    session, plan = await flow.start_session(StartSessionRequest(context=context))
    await flow.record_pre_test(session, make_samples(*pre_ms))
    await flow.record_pre_energy(session, 2)
    await flow.record_post_test(session, make_samples(*post_ms))
    outcome = await flow.record_post_energy(session, 4)
    return session, plan, outcome


class TestSessionFlow:
    async def test_first_session(self, flow, make_samples) -> None:
        started = datetime(2026, 3, 1, 7, 0)
        session, plan = await flow.start_session(
            StartSessionRequest(context="low_light", wake_time=time(6, 30)), now=started
        )
        assert plan.day_index == 0
        assert plan.plan is Plan.FREE
        assert not plan.requires_paywall
        assert plan.protocol.id == "low_light-day0"
        assert session.protocol_id == plan.protocol.id
        assert session.wake_time_reported == datetime(2026, 3, 1, 6, 30)

        stored = await flow.repository.get_session(session.id)
        assert stored is not None
        assert not stored.is_completed

        pre = await flow.record_pre_test(session, make_samples(400, 500, 450))
        assert pre.score == 444
        await flow.record_pre_energy(session, 2)
        post = await flow.record_post_test(session, make_samples(300, 320, 310))
        assert post.score == 645

        outcome = await flow.record_post_energy(session, 4, now=datetime(2026, 3, 1, 7, 15))
        assert outcome.improvement.delta == 201
        # 45 * 0.45 = 20.25
        assert outcome.minutes_saved == 20
        assert outcome.next_day_index == 1
        assert outcome.show_soft_prompt

        stored = await flow.repository.get_session(session.id)
        assert stored.is_finalized
        assert stored.energy_post == 4

    async def test_day_index_advances_per_session(self, flow, make_samples) -> None:
        for expected_day in range(3):
            session, plan, outcome = await run_session(flow, make_samples, [400], [380])
            assert session.day_index == expected_day
            assert plan.protocol.name == f"Day {expected_day + 1} Protocol"
            assert outcome.next_day_index == expected_day + 1

    async def test_poor_results_soften_the_protocol(self, flow, make_samples) -> None:
        for _ in range(3):
            await run_session(flow, make_samples, [300], [320])

        await flow.repository.set_subscription(Subscription(plan=Plan.PLUS, status="active"))
        plan = await flow.plan_session("standard")
        assert plan.recent_deltas == [-42, -42, -42]
        assert plan.protocol.id == "standard-day3-gentle"
        assert plan.protocol.steps[1].id == "breath-gentle"

    async def test_strong_results_intensify_the_protocol(self, flow, make_samples) -> None:
        await flow.repository.set_subscription(Subscription(plan=Plan.PRO, status="trialing"))
        for _ in range(3):
            await run_session(flow, make_samples, [400], [300])

        plan = await flow.plan_session("standard")
        assert plan.protocol.id == "standard-day3-intense"
        assert not plan.requires_paywall

    async def test_free_plan_hits_paywall_after_trial(self, flow, make_samples) -> None:
        for _ in range(3):
            await run_session(flow, make_samples, [400], [380])

        session, plan = await flow.start_session(StartSessionRequest(context="gentle"))
        assert plan.requires_paywall
        assert plan.is_maintenance
        assert plan.protocol.id == "maintenance-gentle"
        assert plan.protocol.total_duration_seconds == 180
        assert session.day_index == 3

    async def test_maintenance_on_request(self, flow) -> None:
        plan = await flow.plan_session("standard", maintenance=True)
        assert plan.is_maintenance
        assert not plan.requires_paywall

    async def test_skip_post_test(self, flow, make_samples) -> None:
        session, _ = await flow.start_session()
        await flow.record_pre_test(session, make_samples(300))
        outcome = await flow.skip_post_test(session)
        assert outcome.minutes_saved == 0
        assert outcome.next_day_index == 1
        assert session.reaction_post_score is None

    async def test_cannot_finalize_twice(self, flow, make_samples) -> None:
        session, _, _ = await run_session(flow, make_samples, [400], [300])
        with pytest.raises(ValueError):
            await flow.complete_session(session)

    async def test_invalid_energy_is_not_saved(self, flow) -> None:
        session, _ = await flow.start_session()
        with pytest.raises(ValueError):
            await flow.record_pre_energy(session, 9)
        stored = await flow.repository.get_session(session.id)
        assert stored.energy_pre is None

    async def test_start_response(self, flow) -> None:
        session, plan = await flow.start_session()
        response = plan.to_response(session.id)
        assert response.session_id == session.id
        assert response.protocol["id"] == "standard-day0"
        assert len(response.protocol["steps"]) == 4
        assert response.day_index == 0

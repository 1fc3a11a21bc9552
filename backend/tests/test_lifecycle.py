"""Tests for mission creation, start/end transitions, the expiry sweep and archiving."""

from datetime import timedelta

import pytest

from server_missions.models.mission import ACTIVE, COMPLETED, FAILED, SCHEDULED
from server_missions.services import aggregator, lifecycle, templates
from server_missions.services.errors import Expired, InvalidInput, InvalidState, NotFound
from server_missions.services.store import get_mission, get_participant, requirements_of, utcnow


class TestCreate:
    def test_creates_scheduled_mission_with_zero_progress(self, db, make_mission) -> None:
        mission = make_mission(start_immediately=False)
        assert mission.status == SCHEDULED
        assert mission.started_at is None
        assert requirements_of(db, mission.id) == {"iron_ore": 100.0}
        assert mission.tier_names == ["bronze", "gold"]

    @pytest.mark.parametrize(
        "overrides",
        [
            {"name": "  "},
            {"requirements": {}},
            {"requirements": {"items": {"iron_ore": 5}}},
            {"requirements": {"iron_ore": -1}},
            {"requirements": {"iron_ore": 0.0001}},
            {"requirements": {"iron_ore": True}},
            {"requirements": {"": 5}},
            {"tiers_config": []},
            {"tiers_config": [{"name": "gold", "multiplier": 1.0}, {"name": "bronze", "multiplier": 0.1}]},
            {"rewards_by_tier": {"platinum": {"gold": 5}}},
            {"rewards_by_tier": {"gold": {"gold": -5}}},
            {"rewards_by_tier": {"gold": {"items": [{"item_key": "x", "quantity": 0}]}}},
            {"personal_share": 0},
        ],
    )
    def test_rejects_invalid_config(self, make_mission, overrides) -> None:
        with pytest.raises(InvalidInput):
            make_mission(**overrides)

    def test_fractional_requirement_is_kept_exactly(self, db, make_mission) -> None:
        mission = make_mission(requirements={"iron_ore": 2.5, "herb": 0.001})
        assert requirements_of(db, mission.id) == {"herb": 0.001, "iron_ore": 2.5}

    def test_rejects_past_end_time(self, make_mission) -> None:
        now = utcnow()
        with pytest.raises(InvalidInput):
            make_mission(now=now, ends_at=now - timedelta(minutes=1))

    def test_template(self, db) -> None:
        mission = templates.create_from_template(db, "resource_drive", start_immediately=True)
        assert mission.status == ACTIVE
        assert requirements_of(db, mission.id) == {"herb": 5000.0, "hide": 3000.0, "iron_ore": 10000.0}
        assert mission.tier_names[-1] == "legendary"

    def test_unknown_template(self, db) -> None:
        with pytest.raises(NotFound):
            templates.create_from_template(db, "nope")


class TestStart:
    def test_start_once(self, db, make_mission) -> None:
        mission = make_mission(start_immediately=False)
        started = lifecycle.start_mission(db, mission.id)
        assert started.status == ACTIVE
        assert started.started_at is not None
        with pytest.raises(InvalidState):
            lifecycle.start_mission(db, mission.id)

    def test_start_after_end_time(self, db, make_mission) -> None:
        now = utcnow()
        mission = make_mission(now=now, start_immediately=False)
        with pytest.raises(Expired):
            lifecycle.start_mission(db, mission.id, now=now + timedelta(hours=2))
        assert get_mission(db, mission.id).status == SCHEDULED

    def test_unknown_mission(self, db) -> None:
        with pytest.raises(NotFound):
            lifecycle.start_mission(db, 999)


class TestEnd:
    def test_end_below_requirements_fails_and_freezes(self, db, make_mission) -> None:
        mission = make_mission()
        aggregator.contribute(db, mission.id, "alice", {"iron_ore": 30})
        aggregator.contribute(db, mission.id, "bob", {"iron_ore": 10})

        result = lifecycle.end_mission(db, mission.id)
        assert result.transitioned
        assert result.status == FAILED
        assert result.mission.completed_at is not None
        assert result.mission.finalized_at is not None

        alice = get_participant(db, mission.id, "alice")
        bob = get_participant(db, mission.id, "bob")
        assert (alice.tier, alice.rank) == ("bronze", 1)
        assert (bob.tier, bob.rank) == (None, 2)

        with pytest.raises(InvalidState):
            aggregator.contribute(db, mission.id, "alice", {"iron_ore": 70})
        assert get_participant(db, mission.id, "alice").final_score == pytest.approx(0.3)

    def test_forced_end_completes(self, db, make_mission) -> None:
        mission = make_mission()
        aggregator.contribute(db, mission.id, "alice", {"iron_ore": 10})
        result = lifecycle.end_mission(db, mission.id, forced=True)
        assert result.status == COMPLETED

    def test_end_resolves_by_requirements(self, db, make_mission) -> None:
        mission = make_mission(requirements={"iron_ore": 10, "herb": 0})
        lifecycle.end_mission(db, mission.id)
        assert get_mission(db, mission.id).status == FAILED

        mission = make_mission(requirements={"herb": 0})
        assert lifecycle.end_mission(db, mission.id).status == COMPLETED

    def test_second_end_is_a_no_op(self, db, make_mission) -> None:
        mission = make_mission()
        first = lifecycle.end_mission(db, mission.id, forced=True)
        second = lifecycle.end_mission(db, mission.id, forced=False)
        assert first.transitioned and not second.transitioned
        assert second.status == COMPLETED

    def test_scheduled_mission_cannot_end(self, db, make_mission) -> None:
        mission = make_mission(start_immediately=False)
        with pytest.raises(InvalidState):
            lifecycle.end_mission(db, mission.id)


class TestExpire:
    def test_sweep_closes_only_due_missions(self, db, make_mission) -> None:
        now = utcnow()
        short = make_mission(now=now, ends_at=now + timedelta(minutes=5))
        met = make_mission(now=now, ends_at=now + timedelta(minutes=5), requirements={"iron_ore": 10})
        long = make_mission(now=now, ends_at=now + timedelta(days=1))
        aggregator.contribute(db, short.id, "alice", {"iron_ore": 5}, now=now)
        # completes on the spot and is left alone by the sweep
        aggregator.contribute(db, met.id, "alice", {"iron_ore": 10}, now=now)

        later = now + timedelta(minutes=10)
        results = lifecycle.expire_due_missions(db, now=later)

        statuses = {r.mission.id: r.status for r in results if r.transitioned}
        assert statuses == {short.id: FAILED}
        assert get_mission(db, met.id).status == COMPLETED
        assert get_mission(db, long.id).status == ACTIVE
        assert lifecycle.expire_due_missions(db, now=later) == []

    def test_sweep_completes_when_requirements_met(self, db, make_mission) -> None:
        now = utcnow()
        mission = make_mission(now=now, ends_at=now + timedelta(minutes=5), requirements={"herb": 0})
        results = lifecycle.expire_due_missions(db, now=now + timedelta(minutes=10))
        assert [(r.mission.id, r.status) for r in results] == [(mission.id, COMPLETED)]


class TestArchive:
    def test_archive_terminal_only(self, db, make_mission) -> None:
        mission = make_mission()
        with pytest.raises(InvalidState):
            lifecycle.archive_mission(db, mission.id)
        lifecycle.end_mission(db, mission.id)
        assert lifecycle.archive_mission(db, mission.id).archived

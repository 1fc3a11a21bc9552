"""Concurrent contributions and transitions against one mission.

Every worker gets its own session, as separate API requests would.
"""

from concurrent.futures import ThreadPoolExecutor

import pytest

from server_missions.models.mission import COMPLETED
from server_missions.services import aggregator, lifecycle
from server_missions.services.errors import InvalidState
from server_missions.services.store import contribution_of, get_mission, get_participant, progress_of


def _run(session_factory, fn, *args, **kwargs):
    with session_factory() as session:
        try:
            return fn(session, *args, **kwargs)
        except InvalidState as exc:
            return exc


@pytest.fixture
def finalize_calls(monkeypatch):
    calls = []
    real = lifecycle.finalize

    def counting(db, mission_id, now):
        calls.append(mission_id)
        return real(db, mission_id, now)

    monkeypatch.setattr(lifecycle, "finalize", counting)
    return calls


class TestConcurrentContributions:
    def test_no_lost_updates(self, db, session_factory, make_mission) -> None:
        mission = make_mission(requirements={"iron_ore": 100000})
        users = [f"user-{i}" for i in range(8)]
        jobs = [(u, {"iron_ore": 1}) for u in users for _ in range(25)]

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(
                pool.map(
                    lambda job: _run(session_factory, aggregator.contribute, mission.id, *job),
                    jobs,
                )
            )

        assert all(isinstance(r, aggregator.ContributionResult) for r in results)
        assert progress_of(db, mission.id) == {"iron_ore": 200.0}
        for u in users:
            p = get_participant(db, mission.id, u)
            assert contribution_of(db, p.id) == {"iron_ore": 25.0}

    def test_completion_happens_exactly_once(
        self, db, session_factory, make_mission, finalize_calls
    ) -> None:
        mission = make_mission(requirements={"iron_ore": 50})

        with ThreadPoolExecutor(max_workers=10) as pool:
            results = list(
                pool.map(
                    lambda i: _run(
                        session_factory, aggregator.contribute, mission.id, f"user-{i}", {"iron_ore": 10}
                    ),
                    range(10),
                )
            )

        accepted = [r for r in results if isinstance(r, aggregator.ContributionResult)]
        rejected = [r for r in results if isinstance(r, InvalidState)]
        assert len(accepted) == 5
        assert len(rejected) == 5
        assert sum(1 for r in accepted if r.just_completed) == 1
        assert finalize_calls == [mission.id]

        assert get_mission(db, mission.id).status == COMPLETED
        assert progress_of(db, mission.id) == {"iron_ore": 50.0}

    def test_operator_end_racing_auto_completion(
        self, db, session_factory, make_mission, finalize_calls
    ) -> None:
        mission = make_mission(requirements={"iron_ore": 10})

        def work(i):
            if i % 2:
                return _run(session_factory, lifecycle.end_mission, mission.id, forced=True)
            return _run(session_factory, aggregator.contribute, mission.id, f"user-{i}", {"iron_ore": 10})

        with ThreadPoolExecutor(max_workers=6) as pool:
            results = list(pool.map(work, range(6)))

        transitions = [r for r in results if isinstance(r, lifecycle.TransitionResult) and r.transitioned]
        completions = [r for r in results if isinstance(r, aggregator.ContributionResult) and r.just_completed]
        assert len(transitions) + len(completions) == 1
        assert finalize_calls == [mission.id]
        assert get_mission(db, mission.id).status == COMPLETED

    def test_fractional_contributions_complete_exactly_once(
        self, db, session_factory, make_mission, finalize_calls
    ) -> None:
        mission = make_mission(requirements={"herb": 1})

        with ThreadPoolExecutor(max_workers=10) as pool:
            results = list(
                pool.map(
                    lambda i: _run(
                        session_factory, aggregator.contribute, mission.id, f"user-{i}", {"herb": 0.1}
                    ),
                    range(10),
                )
            )

        assert all(isinstance(r, aggregator.ContributionResult) for r in results)
        assert sum(1 for r in results if r.just_completed) == 1
        assert finalize_calls == [mission.id]
        assert get_mission(db, mission.id).status == COMPLETED
        assert progress_of(db, mission.id) == {"herb": 1.0}

"""Tests for leaderboard ordering, filtering, pagination and frozen results."""

from datetime import timedelta

import pytest

from server_missions.services import aggregator, leaderboard, lifecycle
from server_missions.services.errors import InvalidInput, NotFound
from server_missions.services.store import utcnow


@pytest.fixture
def board_mission(db, make_mission):
    """Six participants: scores 0.6, 0.3 (x2, bob joined first), 0.2, 0.1 and 0."""
    now = utcnow()
    # fair share is 100 so the shared bar of 1000 is never reached
    mission = make_mission(now=now, requirements={"iron_ore": 1000}, personal_share=0.1)
    joins = [
        ("bob", "north", 30),
        ("carol", "south", 30),
        ("alice", "north", 60),
        ("dave", "south", 20),
        ("erin", "north", 10),
    ]
    for i, (user, guild, amount) in enumerate(joins):
        aggregator.contribute(
            db, mission.id, user, {"iron_ore": amount}, guild_id=guild, now=now + timedelta(seconds=i)
        )
    aggregator.join_mission(db, mission.id, "frank", guild_id="south", now=now + timedelta(seconds=10))
    return mission


def _users(board):
    return [s.user_id for s in board.entries]


class TestOrdering:
    def test_score_then_join_time(self, db, board_mission) -> None:
        board = leaderboard.get_leaderboard(db, board_mission.id)
        assert _users(board) == ["alice", "bob", "carol", "dave", "erin", "frank"]
        assert [s.rank for s in board.entries] == [1, 2, 3, 4, 5, 6]
        assert [s.tier for s in board.entries] == ["bronze", "bronze", "bronze", None, None, None]
        assert not board.frozen

    def test_order_is_stable_across_reads(self, db, board_mission) -> None:
        first = _users(leaderboard.get_leaderboard(db, board_mission.id))
        second = _users(leaderboard.get_leaderboard(db, board_mission.id))
        assert first == second

    def test_live_read_writes_nothing(self, db, board_mission) -> None:
        leaderboard.get_leaderboard(db, board_mission.id)
        for p in board_mission.participants:
            db.refresh(p)
            assert p.rank is None and p.tier is None


class TestFilteringAndPaging:
    def test_filters_apply_before_pagination(self, db, board_mission) -> None:
        board = leaderboard.get_leaderboard(db, board_mission.id, guild_filter="south", page=1, page_size=2)
        assert _users(board) == ["carol", "dave"]
        # ranks stay the positions in the full board
        assert [s.rank for s in board.entries] == [3, 4]
        assert board.pagination == {
            "page": 1,
            "page_size": 2,
            "total": 3,
            "total_pages": 2,
            "has_next": True,
            "has_prev": False,
        }
        page2 = leaderboard.get_leaderboard(db, board_mission.id, guild_filter="south", page=2, page_size=2)
        assert _users(page2) == ["frank"]
        assert not page2.pagination["has_next"] and page2.pagination["has_prev"]

    def test_tier_filter(self, db, board_mission) -> None:
        bronze = leaderboard.get_leaderboard(db, board_mission.id, tier_filter="bronze")
        assert _users(bronze) == ["alice", "bob", "carol"]
        untiered = leaderboard.get_leaderboard(db, board_mission.id, tier_filter=leaderboard.NO_TIER)
        assert _users(untiered) == ["dave", "erin", "frank"]

    def test_user_position_off_page(self, db, board_mission) -> None:
        board = leaderboard.get_leaderboard(db, board_mission.id, user_id="erin", page=1, page_size=2)
        assert _users(board) == ["alice", "bob"]
        assert board.user_position.user_id == "erin"
        assert board.user_position.rank == 5

    def test_user_position_ignores_filters(self, db, board_mission) -> None:
        board = leaderboard.get_leaderboard(db, board_mission.id, user_id="alice", guild_filter="south")
        assert "alice" not in _users(board)
        assert board.user_position.rank == 1

    def test_non_participant_has_no_position(self, db, board_mission) -> None:
        board = leaderboard.get_leaderboard(db, board_mission.id, user_id="nobody")
        assert board.user_position is None

    def test_page_past_the_end_is_empty(self, db, board_mission) -> None:
        board = leaderboard.get_leaderboard(db, board_mission.id, page=5, page_size=10)
        assert board.entries == []
        assert board.pagination["total"] == 6

    @pytest.mark.parametrize("page,page_size", [(0, 10), (1, 0), (1, leaderboard.MAX_PAGE_SIZE + 1)])
    def test_rejects_bad_paging(self, db, board_mission, page, page_size) -> None:
        with pytest.raises(InvalidInput):
            leaderboard.get_leaderboard(db, board_mission.id, page=page, page_size=page_size)

    def test_unknown_mission(self, db) -> None:
        with pytest.raises(NotFound):
            leaderboard.get_leaderboard(db, 999)


class TestFrozen:
    def test_frozen_board_serves_stored_results(self, db, board_mission) -> None:
        lifecycle.end_mission(db, board_mission.id)
        board = leaderboard.get_leaderboard(db, board_mission.id)
        assert board.frozen
        assert board.status == "failed"
        assert _users(board) == ["alice", "bob", "carol", "dave", "erin", "frank"]
        assert [s.rank for s in board.entries] == [1, 2, 3, 4, 5, 6]
        assert board.entries[0].score == pytest.approx(0.6)

    def test_empty_mission(self, db, make_mission) -> None:
        mission = make_mission()
        board = leaderboard.get_leaderboard(db, mission.id)
        assert board.entries == []
        assert board.pagination["total_pages"] == 0

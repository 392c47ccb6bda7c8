"""Tests for goalpilot/domain/scheduling/goal_graph.py."""

import pytest

from goalpilot.domain.errors import CyclicDependency, DuplicateGoal, InvalidTransition, UnknownGoal
from goalpilot.domain.models.goal import Goal, GoalCondition, GoalHorizon, GoalStatus
from goalpilot.domain.scheduling.goal_graph import GoalGraph


def _goal(goal_id: str, *deps: str, **kwargs) -> Goal:
    return Goal(id=goal_id, description=f"goal {goal_id}", dependencies=list(deps), **kwargs)


def _ids(goals) -> list:
    return [g.id for g in goals]


def _complete(graph: GoalGraph, goal_id: str, result="ok") -> None:
    graph.get_ready_goals()
    graph.mark_active(goal_id)
    graph.mark_completed(goal_id, result)


def _fail(graph: GoalGraph, goal_id: str, reason="boom") -> None:
    graph.get_ready_goals()
    graph.mark_active(goal_id)
    graph.mark_failed(goal_id, reason)


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class TestAddGoal:
    def test_acyclic_insertion(self) -> None:
        graph = GoalGraph()
        graph.add_goals([_goal("a"), _goal("b", "a"), _goal("c", "a", "b")])
        assert _ids(graph.get_goals()) == ["a", "b", "c"]
        assert len(graph) == 3

    def test_inserted_goal_is_pending(self) -> None:
        graph = GoalGraph()
        stored = graph.add_goal(_goal("a", status=GoalStatus.COMPLETED, result="stale"))
        assert stored.status == GoalStatus.PENDING
        assert stored.result is None

    def test_self_dependency_is_a_cycle(self) -> None:
        graph = GoalGraph()
        with pytest.raises(CyclicDependency) as exc_info:
            graph.add_goal(_goal("a", "a"))
        assert exc_info.value.cycle == ["a", "a"]
        assert "a" not in graph

    def test_cycle_through_forward_reference(self) -> None:
        graph = GoalGraph()
        graph.add_goal(_goal("a", "c"))
        graph.add_goal(_goal("b", "a"))

        with pytest.raises(CyclicDependency) as exc_info:
            graph.add_goal(_goal("c", "b"))

        assert exc_info.value.cycle == ["c", "b", "a", "c"]
        assert "c" not in graph
        assert len(graph) == 2

    def test_duplicate_id_rejected(self) -> None:
        graph = GoalGraph()
        graph.add_goal(_goal("a"))
        with pytest.raises(DuplicateGoal):
            graph.add_goal(_goal("a"))

    def test_duplicate_dependencies_collapsed(self) -> None:
        graph = GoalGraph()
        graph.add_goal(_goal("a"))
        assert graph.add_goal(_goal("b", "a", "a")).dependencies == ["a"]

    def test_unknown_goal_lookup(self) -> None:
        with pytest.raises(UnknownGoal):
            GoalGraph().get_goal("missing")


# ---------------------------------------------------------------------------
# Ready promotion and transitions
# ---------------------------------------------------------------------------


class TestReadyPromotion:
    def test_dependency_chain(self) -> None:
        graph = GoalGraph()
        graph.add_goals([_goal("g1"), _goal("g2", "g1")])

        assert _ids(graph.get_ready_goals()) == ["g1"]

        graph.mark_active("g1")
        graph.mark_completed("g1", "r")

        assert _ids(graph.get_ready_goals()) == ["g2"]
        assert graph.get_goal("g1").result == "r"

    def test_promotion_is_idempotent(self) -> None:
        graph = GoalGraph()
        graph.add_goals([_goal("a"), _goal("b")])

        assert _ids(graph.get_ready_goals()) == ["a", "b"]
        assert graph.get_ready_goals() == []
        assert _ids(graph.get_goals_by_status(GoalStatus.READY)) == ["a", "b"]

    def test_missing_dependency_never_ready(self) -> None:
        graph = GoalGraph()
        graph.add_goal(_goal("b", "a"))
        assert graph.get_ready_goals() == []
        assert graph.get_unresolved_dependencies("b") == ["a"]

        graph.add_goal(_goal("a"))
        assert graph.get_unresolved_dependencies("b") == []
        assert _ids(graph.get_ready_goals()) == ["a"]

    def test_failed_dependency_deadlocks(self) -> None:
        graph = GoalGraph()
        graph.add_goals([_goal("g1"), _goal("g2", "g1")])
        _fail(graph, "g1", "boom")

        assert graph.get_ready_goals() == []
        assert graph.get_goals_by_status(GoalStatus.ACTIVE) == []
        assert graph.get_goal("g2").status == GoalStatus.PENDING

        blocking = graph.get_blocking_goals("g2")
        assert _ids(blocking) == ["g1"]
        assert blocking[0].status == GoalStatus.FAILED
        assert graph.get_goal("g1").failure_reason == "boom"


class TestTransitions:
    @pytest.mark.parametrize(
        "setup, action",
        [
            ("pending", "mark_active"),
            ("pending", "mark_completed"),
            ("ready", "mark_completed"),
            ("ready", "mark_failed"),
            ("completed", "mark_active"),
            ("completed", "mark_failed"),
            ("failed", "mark_completed"),
        ],
    )
    def test_illegal_transition(self, setup: str, action: str) -> None:
        graph = GoalGraph()
        graph.add_goal(_goal("a"))
        if setup == "ready":
            graph.get_ready_goals()
        elif setup == "completed":
            _complete(graph, "a")
        elif setup == "failed":
            _fail(graph, "a")

        args = ("a",) if action == "mark_active" else ("a", "x")
        with pytest.raises(InvalidTransition) as exc_info:
            getattr(graph, action)(*args)

        assert exc_info.value.current == setup
        assert graph.get_goal("a").status.value == setup

    def test_listener_sees_creation_and_transitions(self) -> None:
        seen = []
        graph = GoalGraph(on_transition=lambda goal, previous: seen.append(
            (goal.id, previous.value if previous else None, goal.status.value)
        ))
        graph.add_goal(_goal("a"))
        _complete(graph, "a")

        assert seen == [
            ("a", None, "pending"),
            ("a", "pending", "ready"),
            ("a", "ready", "active"),
            ("a", "active", "completed"),
        ]

    def test_listener_failure_does_not_block_transition(self) -> None:
        def broken(goal, previous):
            raise RuntimeError("listener down")

        graph = GoalGraph(on_transition=broken)
        graph.add_goal(_goal("a"))
        _complete(graph, "a")
        assert graph.get_goal("a").status == GoalStatus.COMPLETED

    def test_snapshots_are_detached(self) -> None:
        graph = GoalGraph()
        graph.add_goal(_goal("a"))
        snapshot = graph.get_goal("a")
        snapshot.status = GoalStatus.COMPLETED
        snapshot.dependencies.append("z")

        stored = graph.get_goal("a")
        assert stored.status == GoalStatus.PENDING
        assert stored.dependencies == []


# ---------------------------------------------------------------------------
# Derived conditions
# ---------------------------------------------------------------------------


class TestConditions:
    def test_blocked_and_unreachable(self) -> None:
        graph = GoalGraph()
        graph.add_goals([_goal("a"), _goal("b", "a"), _goal("c", "b"), _goal("d", "missing")])
        _fail(graph, "a")

        assert graph.get_condition("a") == GoalCondition.FAILED
        assert graph.get_condition("b") == GoalCondition.BLOCKED
        assert graph.get_condition("c") == GoalCondition.UNREACHABLE
        assert graph.get_condition("d") == GoalCondition.BLOCKED
        assert _ids(graph.get_blocked_goals()) == ["b", "d"]
        assert _ids(graph.get_unreachable_goals()) == ["c"]
        assert graph.has_failed_ancestor("c")
        assert not graph.has_failed_ancestor("d")

        # Derived conditions are never stored
        assert graph.get_goal("b").status == GoalStatus.PENDING
        assert graph.get_goal("c").status == GoalStatus.PENDING

    def test_plain_pending(self) -> None:
        graph = GoalGraph()
        graph.add_goals([_goal("a"), _goal("b", "a")])
        assert graph.get_condition("b") == GoalCondition.PENDING

    def test_summary_counts_every_condition(self) -> None:
        graph = GoalGraph()
        graph.add_goals([_goal("a"), _goal("b", "a"), _goal("c")])
        _fail(graph, "a")

        summary = graph.summary()
        assert summary["failed"] == 1
        assert summary["blocked"] == 1
        assert summary["ready"] == 1
        assert summary["completed"] == 0
        assert set(summary) == {c.value for c in GoalCondition}

    def test_horizon_filter(self) -> None:
        graph = GoalGraph()
        graph.add_goals([
            _goal("a"),
            _goal("b", horizon=GoalHorizon.LONG),
            _goal("c", horizon=GoalHorizon.SHORT),
        ])
        assert _ids(graph.get_goals_by_horizon("short")) == ["a", "c"]
        assert _ids(graph.get_goals_by_horizon(GoalHorizon.LONG)) == ["b"]

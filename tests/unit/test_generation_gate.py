"""Unit tests for kubeop.cache.generation_gate.GenerationGate."""

from __future__ import annotations

from hypothesis import given
from hypothesis import strategies as st

from kubeop.cache.generation_gate import GenerationGate
from tests.fakes import FINALIZER, make_snapshot

# ---------------------------------------------------------------------------
# should_skip
# ---------------------------------------------------------------------------


class TestShouldSkip:
    def test_unknown_identity_is_never_processed(self) -> None:
        gate = GenerationGate()
        assert gate.should_skip(make_snapshot(generation=7), generation_aware=True) is False
        assert gate.last_processed("a1") is None

    def test_not_generation_aware_never_skips(self) -> None:
        gate = GenerationGate()
        gate.mark_processed(make_snapshot(generation=3), True, FINALIZER)
        assert gate.should_skip(make_snapshot(generation=1), generation_aware=False) is False

    def test_same_generation_is_skipped(self) -> None:
        gate = GenerationGate()
        gate.mark_processed(make_snapshot(generation=3), True, FINALIZER)
        assert gate.should_skip(make_snapshot(generation=3), generation_aware=True) is True

    def test_older_generation_is_skipped(self) -> None:
        gate = GenerationGate()
        gate.mark_processed(make_snapshot(generation=3), True, FINALIZER)
        assert gate.should_skip(make_snapshot(generation=2), generation_aware=True) is True

    def test_newer_generation_passes(self) -> None:
        gate = GenerationGate()
        gate.mark_processed(make_snapshot(generation=3), True, FINALIZER)
        assert gate.should_skip(make_snapshot(generation=4), generation_aware=True) is False

    def test_marked_for_deletion_always_passes(self) -> None:
        """Generation does not change during deletion, so deletions are never skipped."""
        gate = GenerationGate()
        gate.mark_processed(make_snapshot(generation=3), True, FINALIZER)
        deleting = make_snapshot(generation=3, deletion_timestamp="2024-01-15T10:30:00Z")
        assert gate.should_skip(deleting, generation_aware=True) is False

    def test_identities_are_independent(self) -> None:
        gate = GenerationGate()
        gate.mark_processed(make_snapshot(uid="a1", generation=5), True, FINALIZER)
        assert gate.should_skip(make_snapshot(uid="b2", generation=1), generation_aware=True) is False


# ---------------------------------------------------------------------------
# mark_processed / evict
# ---------------------------------------------------------------------------


class TestMarkProcessed:
    def test_records_generation_when_finalizer_present(self) -> None:
        gate = GenerationGate()
        assert gate.mark_processed(make_snapshot(generation=2), True, FINALIZER) is True
        assert gate.last_processed("a1") == 2

    def test_missing_finalizer_leaves_prior_value(self) -> None:
        gate = GenerationGate()
        gate.mark_processed(make_snapshot(generation=1), True, FINALIZER)
        assert gate.mark_processed(make_snapshot(generation=2, finalizers=()), True, FINALIZER) is False
        assert gate.last_processed("a1") == 1

    def test_not_generation_aware_is_noop(self) -> None:
        gate = GenerationGate()
        assert gate.mark_processed(make_snapshot(generation=2), False, FINALIZER) is False
        assert gate.last_processed("a1") is None
        assert len(gate) == 0

    def test_other_finalizer_does_not_count(self) -> None:
        gate = GenerationGate()
        snapshot = make_snapshot(generation=2, finalizers=("someone.else/finalizer",))
        assert gate.mark_processed(snapshot, True, FINALIZER) is False

    def test_overwrites_previous_value(self) -> None:
        gate = GenerationGate()
        gate.mark_processed(make_snapshot(generation=4), True, FINALIZER)
        gate.mark_processed(make_snapshot(generation=9), True, FINALIZER)
        assert gate.last_processed("a1") == 9

    def test_evict_removes_entry(self) -> None:
        gate = GenerationGate()
        gate.mark_processed(make_snapshot(generation=4), True, FINALIZER)
        gate.evict("a1")
        assert gate.last_processed("a1") is None
        assert gate.should_skip(make_snapshot(generation=4), generation_aware=True) is False

    def test_evict_unknown_identity_is_noop(self) -> None:
        gate = GenerationGate()
        gate.evict("never-seen")
        assert len(gate) == 0


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------


class TestGateProperties:
    @given(st.lists(st.integers(min_value=0, max_value=10_000), min_size=1, max_size=30, unique=True))
    def test_increasing_generations_all_pass_and_gate_ends_at_max(self, generations: list[int]) -> None:
        gate = GenerationGate()
        passed = 0
        for generation in sorted(generations):
            snapshot = make_snapshot(generation=generation)
            if not gate.should_skip(snapshot, generation_aware=True):
                passed += 1
                gate.mark_processed(snapshot, True, FINALIZER)
        assert passed == len(generations)
        assert gate.last_processed("a1") == max(generations)

    @given(st.integers(min_value=0, max_value=1000), st.integers(min_value=0, max_value=1000))
    def test_redelivery_at_or_below_recorded_is_skipped(self, recorded: int, redelivered: int) -> None:
        gate = GenerationGate()
        gate.mark_processed(make_snapshot(generation=recorded), True, FINALIZER)
        skipped = gate.should_skip(make_snapshot(generation=redelivered), generation_aware=True)
        assert skipped is (redelivered <= recorded)

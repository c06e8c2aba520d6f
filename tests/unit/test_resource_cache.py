"""Unit tests for kubeop.cache.resource_cache.ResourceCache."""

from __future__ import annotations

from kubeop.cache.resource_cache import ResourceCache
from tests.fakes import make_snapshot


class TestResourceCache:
    def test_get_unknown_returns_none(self) -> None:
        cache = ResourceCache()
        assert cache.get("missing") is None
        assert "missing" not in cache

    def test_upsert_then_get(self) -> None:
        cache = ResourceCache()
        snapshot = make_snapshot(generation=1)
        cache.upsert(snapshot)
        assert cache.get("a1") is snapshot
        assert len(cache) == 1

    def test_latest_delivery_wins_even_if_older_generation(self) -> None:
        """The cache never compares generations; the last delivery is stored."""
        cache = ResourceCache()
        cache.upsert(make_snapshot(generation=5, payload={"v": "new"}))
        cache.upsert(make_snapshot(generation=4, payload={"v": "late"}))
        cached = cache.get("a1")
        assert cached is not None
        assert cached.generation == 4
        assert cached.payload == {"v": "late"}
        assert len(cache) == 1

    def test_remove(self) -> None:
        cache = ResourceCache()
        snapshot = make_snapshot()
        cache.upsert(snapshot)
        assert cache.remove("a1") is snapshot
        assert cache.get("a1") is None
        assert cache.remove("a1") is None

    def test_list_with_predicate(self) -> None:
        cache = ResourceCache()
        cache.upsert(make_snapshot(uid="a1", namespace="team-a"))
        cache.upsert(make_snapshot(uid="b2", namespace="team-b"))
        cache.upsert(make_snapshot(uid="c3", namespace="team-a"))

        assert len(cache.list()) == 3
        team_a = cache.list(lambda s: s.identity.namespace == "team-a")
        assert sorted(s.uid for s in team_a) == ["a1", "c3"]

    def test_iteration_yields_uids(self) -> None:
        cache = ResourceCache()
        cache.upsert(make_snapshot(uid="a1"))
        cache.upsert(make_snapshot(uid="b2"))
        assert sorted(cache) == ["a1", "b2"]

"""Tests for subscribe() — precision, optional paths, rebinding, cycles."""

import pytest

from proxystate import ReentrantHandlerError, Subscription, UntrackedGetterError, subscribe, wrap


class Counter:
    def __init__(self):
        self.count = 0

    def __call__(self):
        self.count += 1


class TestPrecision:
    def test_sibling_mutation_is_ignored(self):
        a = wrap({"b": {"c": 1}, "d": 1})
        hits = Counter()
        subscribe(lambda: a["b"]["c"], hits)
        a["d"] = 2
        assert hits.count == 0

    def test_fires_once_per_mutation(self):
        a = wrap({"b": {"c": 1}, "d": 1})
        hits = Counter()
        subscribe(lambda: a["b"]["c"], hits)
        a["b"]["c"] = 2
        assert hits.count == 1
        a["b"]["c"] = 3
        assert hits.count == 2

    def test_same_value_is_not_a_change(self):
        a = wrap({"n": 1000, "s": "x"})
        hits = Counter()
        subscribe(lambda: a["n"], hits)
        a["n"] = 999 + 1
        assert hits.count == 0

    def test_parent_edge_sees_deep_change(self):
        a = wrap({"b": {"c": {"d": 1}}})
        hits = Counter()
        subscribe(lambda: a["b"], hits)
        a["b"]["c"]["d"] = 2
        assert hits.count == 1

    def test_unsubscribe_is_final(self):
        a = wrap({"b": 1})
        hits = Counter()
        unsubscribe = subscribe(lambda: a["b"], hits)
        a["b"] = 2
        unsubscribe()
        a["b"] = 3
        unsubscribe()
        assert hits.count == 1

    def test_returns_unsubscribe_of_subscription(self):
        a = wrap({"b": 1})
        unsubscribe = subscribe(lambda: a["b"], lambda: None)
        assert isinstance(unsubscribe.__self__, Subscription)
        assert unsubscribe.__self__.edge == (a, "b")
        assert "active" in repr(unsubscribe.__self__)
        unsubscribe()
        assert unsubscribe.__self__.edge is None
        assert "disposed" in repr(unsubscribe.__self__)


class TestOptionalPaths:
    def test_arrival_sequence(self):
        a = wrap({})
        hits = Counter()
        subscribe(lambda: a["b"].get("c"), hits)

        a["b"] = {}
        assert hits.count == 1
        a["b"]["c"] = {"x": 1, "y": 2}
        assert hits.count == 2
        a["b"] = {"c": {"x": 1, "y": 2}}
        assert hits.count == 2
        a["b"] = {"c": {"x": 1, "y": 3}}
        assert hits.count == 3

    def test_missing_path_tracks_deepest_edge(self):
        a = wrap({"b": {}})
        unsubscribe = subscribe(lambda: a["b"]["c"]["d"], lambda: None)
        subscription = unsubscribe.__self__
        assert subscription.edge == (a["b"], "c")
        assert subscription.found is False

    def test_assign_then_delete(self):
        a = wrap({})
        hits = Counter()
        unsubscribe = subscribe(lambda: a["b"], hits)
        a["b"] = {}
        del a["b"]
        unsubscribe()
        a["b"] = {}
        del a["b"]
        assert hits.count == 2

    def test_none_arrival_is_not_a_change(self):
        a = wrap({"b": {}})
        hits = Counter()
        subscribe(lambda: a["b"].get("c"), hits)
        a["b"] = {"c": None}
        assert hits.count == 0

    def test_unresolved_before_and_after_stays_quiet(self):
        a = wrap({})
        hits = Counter()
        subscribe(lambda: a["b"]["c"]["x"], hits)
        a["b"] = {}
        assert hits.count == 0
        a["b"]["c"] = {"x": 1}
        assert hits.count == 1

    def test_nested_walkthrough(self):
        a = wrap({})
        hits = Counter()
        unsubscribes = [
            subscribe(lambda: a["b"].get("c"), hits),
            subscribe(lambda: a["b"]["c"]["x"], hits),
            subscribe(lambda: a["b"]["c"]["z"]["f"], hits),
        ]

        a["b"] = {}
        a["b"] = {"c": None}
        a["b"]["c"] = {"x": 1, "y": 2}
        assert hits.count == 3

        a["b"] = {"c": {"x": 1, "y": 2}}
        assert hits.count == 3

        a["b"] = {"c": {"x": 1, "y": 3}}
        assert hits.count == 4

        a["b"]["c"]["z"] = {"f": "hello"}
        a["b"]["c"]["z"]["f"] = "hell"
        assert hits.count == 8

        a["b"] = {"c": {"x": 2, "y": 3, "z": {"f": "heaven"}}}
        assert hits.count == 11

        for unsubscribe in unsubscribes:
            unsubscribe()
        a["b"] = {"c": {"x": 22, "y": 3, "z": {"f": "left behind"}}}
        assert hits.count == 11


class TestRebinding:
    def test_follows_replacement(self):
        a = wrap({"b": {"c": 1}})
        old = a["b"]
        hits = Counter()
        unsubscribe = subscribe(lambda: a["b"]["c"], hits)

        a["b"] = {"c": 1}
        assert hits.count == 0
        assert unsubscribe.__self__.edge == (a["b"], "c")

        old["c"] = 99
        assert hits.count == 0
        a["b"]["c"] = 2
        assert hits.count == 1

    def test_firing_order_is_deepest_first(self):
        a = wrap({"b": {"c": 1}})
        order = []
        subscribe(lambda: a["b"], lambda: order.append("b"))
        subscribe(lambda: a["b"]["c"], lambda: order.append("c"))
        a["b"]["c"] = 2
        assert order == ["c", "b"]

    def test_kind_change_fires_descendants(self):
        a = wrap({"p": {"q": {"r": 1}}})
        fired = []
        subscribe(lambda: a["p"], lambda: fired.append("p"))
        subscribe(lambda: a["p"]["q"], lambda: fired.append("q"))
        subscribe(lambda: a["p"]["q"]["r"], lambda: fired.append("r"))
        a["p"] = [1, 2]
        assert sorted(fired) == ["p", "q", "r"]
        assert fired[-1] == "p"

    def test_subscribe_inside_callback(self):
        a = wrap({"b": 1, "c": 1})
        hits = Counter()
        subscribe(lambda: a["b"], lambda: subscribe(lambda: a["c"], hits))
        a["b"] = 2
        a["c"] = 2
        assert hits.count == 1


class TestCyclesAndSharing:
    def test_self_cycle(self):
        x = wrap({})
        x["y"] = x
        hits = Counter()
        subscribe(lambda: x["y"]["y"]["z"], hits)
        x["z"] = 1
        assert hits.count == 1

    def test_cycle_through_ancestors(self):
        a = wrap({"b": 1, "c": {"d": 2, "e": {"f": {}}}})
        a["c"]["e"]["f"] = a["c"]
        hits = Counter()
        subscribe(lambda: a["c"]["e"], hits)

        a["c"]["d"] = 3
        assert hits.count == 1

        a["c"]["e"]["f"] = a
        a["b"] = 33
        assert hits.count == 3

    def test_shared_reference_within_root(self):
        b = wrap({"b": {"c": {"a": 1}}, "d": {"e": {"a": 1}}})
        b["b"]["c"] = b["d"]["e"]
        hits = Counter()
        subscribe(lambda: b["b"]["c"], hits)
        b["d"]["e"]["a"] = 2
        assert hits.count == 1

    def test_shared_reference_across_roots(self):
        shared = {"v": 1}
        left = wrap({"n": shared})
        right = wrap({"m": shared})
        hits = Counter()
        subscribe(lambda: right["m"], hits)
        left["n"]["v"] = 2
        assert hits.count == 1

    def test_duplicate_keys_in_one_container(self):
        s = wrap({"x": {"v": 1}})
        s["y"] = s["x"]
        fired = []
        subscribe(lambda: s["x"], lambda: fired.append("x"))
        subscribe(lambda: s["y"], lambda: fired.append("y"))
        s["x"]["v"] = 2
        assert sorted(fired) == ["x", "y"]


class TestReentrancy:
    def test_self_retrigger_is_reported(self, errors):
        b = wrap({"c": {"a": 1}})

        def bump():
            b["c"]["a"] += 1

        subscribe(lambda: b["c"]["a"], bump)
        b["c"]["a"] += 1

        assert len(errors) == 1
        assert isinstance(errors[0], ReentrantHandlerError)
        assert "infinite loop" in str(errors[0])
        assert b["c"]["a"] == 3

    def test_handlers_may_write_other_edges(self, errors):
        s = wrap({"celsius": 0, "fahrenheit": 32})
        subscribe(lambda: s["celsius"], lambda: s.__setitem__("fahrenheit", s["celsius"] * 9 / 5 + 32))
        hits = Counter()
        subscribe(lambda: s["fahrenheit"], hits)
        s["celsius"] = 100
        assert s["fahrenheit"] == 212
        assert hits.count == 1
        assert errors == []


class TestGetterErrors:
    def test_untracked_getter(self):
        with pytest.raises(UntrackedGetterError):
            subscribe(lambda: 42, lambda: None)

    def test_other_errors_propagate(self):
        a = wrap({"n": 0})
        with pytest.raises(ZeroDivisionError):
            subscribe(lambda: 1 / a["n"], lambda: None)

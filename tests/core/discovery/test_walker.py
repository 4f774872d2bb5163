from __future__ import annotations

from types import SimpleNamespace

from src.core.discovery.walker import is_expandable, iter_children, walk


def _collect(root, max_nodes=100, max_depth=5):
    seen: list[tuple[str, object]] = []

    def visit(node, key, child):
        seen.append((key, child))
        return True

    stats = walk(root, visit, max_nodes, max_depth)
    return stats, seen


def test_cycle_terminates() -> None:
    root: dict = {}
    root["self"] = root
    root["child"] = {"parent": root}

    stats, seen = _collect(root)

    assert stats.nodes == 2
    assert not stats.truncated
    assert [k for k, _ in seen] == ["self", "child", "parent"]


def test_node_budget_truncates() -> None:
    root = {f"k{i}": {"leaf": i} for i in range(10)}

    stats, _seen = _collect(root, max_nodes=3)

    assert stats.nodes == 3
    assert stats.truncated


def test_depth_budget() -> None:
    root = {"a": {"b": {"c": {"d": {"e": {}}}}}}

    stats, seen = _collect(root, max_depth=2)

    assert stats.max_depth_reached == 2
    # the node at depth 2 is expanded, its children are visited but not queued
    assert "c" in [k for k, _ in seen]
    assert "d" not in [k for k, _ in seen]


def test_visit_false_prevents_expansion() -> None:
    root = {"skip": {"inner": lambda: None}, "keep": {"inner2": lambda: None}}
    keys: list[str] = []

    def visit(node, key, child):
        keys.append(key)
        return key != "skip"

    walk(root, visit, 100, 5)

    assert "inner2" in keys
    assert "inner" not in keys


def test_functions_and_primitives_are_leaves() -> None:
    assert not is_expandable(lambda: None)
    assert not is_expandable("text")
    assert not is_expandable(3)
    assert not is_expandable(dict)
    assert is_expandable({})
    assert is_expandable(SimpleNamespace())


def test_raising_property_is_skipped() -> None:
    class Host:
        @property
        def broken(self):
            raise RuntimeError("boom")

        def send(self):
            return None

    names = [name for name, _ in iter_children(Host())]

    assert "send" in names
    assert "broken" not in names


def test_empty_budget_visits_nothing() -> None:
    stats, seen = _collect({"a": 1}, max_nodes=0)
    assert stats.nodes == 0
    assert seen == []

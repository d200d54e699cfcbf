"""Tests for the category tree builder and expansion state."""

import pytest

from fakes import make_memo
from memosync.memos.categories import (
    CategoryNode,
    ExpansionState,
    all_categories,
    build_category_tree,
    split_category,
)


def _assert_counts(node: CategoryNode) -> int:
    expected = len(node.memos) + sum(_assert_counts(c) for c in node.children.values())
    assert node.count == expected, node.path
    return expected


def _terminal_ids(node: CategoryNode) -> list[int]:
    ids = [m.id for m in node.memos]
    for child in node.children.values():
        ids.extend(_terminal_ids(child))
    return ids


def test_two_groups_example() -> None:
    memos = [make_memo(1, "work/proj"), make_memo(2, "work/proj"), make_memo(3, "life")]

    tree = build_category_tree(memos)

    assert list(tree.root.children) == ["work", "life"]
    work = tree.node("work")
    assert work.memos == []
    assert list(work.children) == ["proj"]
    assert [m.id for m in tree.node("work/proj").memos] == [1, 2]
    assert [m.id for m in tree.node("life").memos] == [3]
    assert work.count == 2
    assert tree.node("life").count == 1
    assert tree.total == 3


def test_deep_paths_are_grouped_at_max_depth() -> None:
    memo = make_memo(1, "a/b/c/d")

    tree = build_category_tree([memo], max_depth=2)

    assert "a/b/c" not in tree
    assert [m.id for m in tree.node("a/b").memos] == [1]
    assert memo.category == "a/b/c/d"
    assert tree.node("a/b").memos[0].category == "a/b/c/d"


def test_empty_and_blank_segments() -> None:
    memos = [make_memo(1, ""), make_memo(2, "a//b"), make_memo(3, " / x /  "), make_memo(4, "   ")]

    tree = build_category_tree(memos)

    assert [m.id for m in tree.node("etc").memos] == [1, 4]
    assert [m.id for m in tree.node("a/b").memos] == [2]
    assert [m.id for m in tree.node("x").memos] == [3]


def test_every_memo_lands_in_exactly_one_node() -> None:
    categories = ["a", "a/b", "a/b/c", "", "z/y", "a/b", "q/r/s/t", "etc"]
    memos = [make_memo(i, c) for i, c in enumerate(categories, start=1)]

    tree = build_category_tree(memos)

    ids = _terminal_ids(tree.root)
    assert sorted(ids) == list(range(1, len(memos) + 1))
    assert _assert_counts(tree.root) == len(memos)


def test_parent_holds_own_memos_and_children() -> None:
    tree = build_category_tree([make_memo(1, "a"), make_memo(2, "a/b"), make_memo(3, "a/c/d")])

    a = tree.node("a")
    assert [m.id for m in a.memos] == [1]
    assert a.count == 3
    assert tree.node("a/c").count == 1


def test_depth_one() -> None:
    tree = build_category_tree([make_memo(1, "a/b"), make_memo(2, "a")], max_depth=1)

    assert len(tree) == 1
    assert [m.id for m in tree.node("a").memos] == [1, 2]


def test_rebuild_is_deterministic() -> None:
    memos = [make_memo(i, c) for i, c in enumerate(["b/x", "a", "b/y", "a/z"], start=1)]

    first = build_category_tree(memos)
    second = build_category_tree(memos)

    assert first.paths() == second.paths() == ["b", "b/x", "b/y", "a", "a/z"]


def test_split_category_rejects_zero_depth() -> None:
    with pytest.raises(ValueError):
        split_category("a/b", max_depth=0)


def test_all_categories() -> None:
    memos = [make_memo(1, "b/c/d"), make_memo(2, ""), make_memo(3, "a"), make_memo(4, "a")]
    assert all_categories(memos) == ["a", "b/c/d", "etc"]


class TestExpansion:

    def test_walk_hides_collapsed_children(self) -> None:
        tree = build_category_tree([make_memo(1, "work/proj"), make_memo(2, "life")])
        expanded = ExpansionState()

        assert [r.node.path for r in tree.walk(expanded)] == ["work", "life"]

        expanded.toggle("work")
        rows = list(tree.walk(expanded))
        assert [r.node.path for r in rows] == ["work", "work/proj", "life"]
        assert rows[0].expanded is True
        assert rows[1].depth == 2

    def test_expansion_survives_rebuild(self) -> None:
        memos = [make_memo(1, "work/proj")]
        expanded = ExpansionState(["work"])

        build_category_tree(memos)
        rebuilt = build_category_tree(memos + [make_memo(2, "work/other")])

        assert expanded.is_expanded("work")
        assert [r.node.path for r in rebuilt.walk(expanded)] == ["work", "work/proj", "work/other"]

    def test_toggle_expand_all_and_clear(self) -> None:
        tree = build_category_tree([make_memo(1, "a/b"), make_memo(2, "c")])
        expanded = ExpansionState()

        assert expanded.toggle("a") is True
        assert expanded.toggle("a") is False

        expanded.expand_all(tree)
        assert expanded.snapshot() == {"a", "a/b", "c"}

        expanded.collapse("c")
        assert not expanded.is_expanded("c")

        expanded.clear()
        assert len(expanded) == 0

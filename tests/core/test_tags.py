"""Tests for tag ownership arithmetic."""

from src.core.tags import next_labels, next_tags, same_tags


def test_next_tags_replaces_managed_and_keeps_user_tags():
    """Managed tags are replaced by desired ones, user tags survive."""
    current = {10, 20, 99}
    managed = {10, 20, 30}
    desired = {20, 30}

    assert next_tags(current, managed, desired) == {20, 30, 99}


def test_next_tags_is_idempotent():
    """Applying the result a second time changes nothing."""
    managed = {1, 2}
    desired = {2}
    once = next_tags({1, 5}, managed, desired)

    assert next_tags(once, managed, desired) == once == {2, 5}


def test_next_tags_removes_stale_managed_tags_when_nothing_is_desired():
    assert next_tags({1, 2, 3}, {1, 2}, set()) == {3}


def test_next_labels_compares_case_insensitively_and_keeps_spelling():
    """Plex labels differing only by case are the same label."""
    current = {"Trending", "Favorites"}
    managed = {"trending", "halloween"}
    desired = {"trending"}

    labels = next_labels(current, managed, desired)

    assert labels == {"Trending", "Favorites"}
    assert same_tags(labels, current, key=str.casefold)


def test_next_labels_drops_managed_label_regardless_of_case():
    labels = next_labels({"HALLOWEEN", "Kids"}, {"halloween"}, set())

    assert labels == {"Kids"}


def test_same_tags_detects_differences():
    assert same_tags([1, 2], {2, 1})
    assert not same_tags([1, 2], [1])
    assert not same_tags(["A"], ["a"])

import itertools

import pytest

from pathwatch.changes import (ALL_CHANGES, CHANGE_LABELS, ChangeEvent,
                               ChangeKind, render_changes)


def test_render_single_kinds():
    for kind, label in CHANGE_LABELS:
        assert render_changes(kind) == label


def test_render_empty_mask():
    assert render_changes(ChangeKind.NONE) == ""
    assert render_changes(0) == ""


def test_render_uses_table_order():
    assert render_changes(ChangeKind.WRITE | ChangeKind.DELETE) == "DELETE,WRITE"
    assert render_changes(ChangeKind.REVOKE | ChangeKind.EXTEND | ChangeKind.WRITE) == "WRITE,EXTEND,REVOKE"


def test_render_all_kinds():
    assert render_changes(ALL_CHANGES) == "DELETE,WRITE,EXTEND,ATTRIB,LINK,RENAME,REVOKE"


@pytest.mark.parametrize("size", [2, 3])
def test_render_any_subset_follows_table(size):
    for subset in itertools.combinations(CHANGE_LABELS, size):
        mask = 0
        # Combine in reverse so bit order never matches output order by accident.
        for kind, _ in reversed(subset):
            mask |= kind
        expected = ",".join(label for _, label in subset)
        assert render_changes(mask) == expected


def test_render_is_idempotent():
    mask = ChangeKind.ATTRIB | ChangeKind.LINK
    assert render_changes(mask) == render_changes(mask)


def test_render_ignores_unknown_bits():
    assert render_changes(0x1000 | int(ChangeKind.RENAME)) == "RENAME"


def test_change_event_render():
    event = ChangeEvent(path="/tmp/a", kinds=ChangeKind.WRITE)
    assert event.render() == b"/tmp/a\tWRITE\n"


def test_change_event_render_empty_flags():
    event = ChangeEvent(path="/tmp/a", kinds=ChangeKind.NONE)
    assert event.render() == b"/tmp/a\t\n"


def test_change_event_keeps_undecodable_bytes():
    path = b"/tmp/caf\xe9".decode("utf-8", "surrogateescape")
    event = ChangeEvent(path=path, kinds=ChangeKind.DELETE)
    assert event.render() == b"/tmp/caf\xe9\tDELETE\n"

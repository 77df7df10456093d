import pytest

from memochat.memory.patch import apply_memory_edits


def test_removal_requires_exact_match() -> None:
    result = apply_memory_edits(["a", "b", "c"], {"remove": [{"lineStart": 2, "exactText": "b"}], "add": []})

    assert result.lines == ["a", "c"]
    assert result.removed == 1

    unchanged = apply_memory_edits(["a", "b", "c"], {"remove": [{"lineStart": 2, "exactText": "X"}]})
    assert unchanged.lines == ["a", "b", "c"]
    assert unchanged.removed == 0


def test_removal_order_is_independent_of_input_order() -> None:
    ops = [{"lineStart": 1, "exactText": "a"}, {"lineStart": 3, "exactText": "c"}]

    forward = apply_memory_edits(["a", "b", "c"], {"remove": ops})
    backward = apply_memory_edits(["a", "b", "c"], {"remove": list(reversed(ops))})

    assert forward.lines == backward.lines == ["b"]
    assert forward.removed == backward.removed == 2


def test_multi_line_removal_with_trailing_newline() -> None:
    result = apply_memory_edits(["a", "b", "c", "d"], {"remove": [{"lineStart": 2, "exactText": "b\r\nc\n"}]})

    assert result.lines == ["a", "d"]
    assert result.removed == 2


def test_multi_line_removal_running_past_the_end_is_skipped() -> None:
    result = apply_memory_edits(["a", "b"], {"remove": [{"lineStart": 2, "exactText": "b\nc"}]})

    assert result.lines == ["a", "b"]
    assert result.removed == 0


@pytest.mark.parametrize(
    "op",
    [
        {"lineStart": 0, "exactText": "a"},
        {"lineStart": 4, "exactText": "a"},
        {"lineStart": -1, "exactText": "c"},
        {"lineStart": "1", "exactText": "a"},
        {"lineStart": 1.5, "exactText": "a"},
        {"lineStart": float("nan"), "exactText": "a"},
        {"lineStart": True, "exactText": "a"},
        {"lineStart": 1, "exactText": None},
        {"lineStart": 1, "exactText": ""},
        {"exactText": "a"},
        "not-a-dict",
        None,
    ],
)
def test_malformed_removals_are_ignored(op) -> None:
    result = apply_memory_edits(["a", "b", "c"], {"remove": [op]})

    assert result.lines == ["a", "b", "c"]
    assert result.removed == 0


def test_additions_are_trimmed_and_deduplicated() -> None:
    result = apply_memory_edits(["a"], {"add": ["  x  ", "x", "a", "", "   ", 5, None, "y"]})

    assert result.lines == ["a", "x", "y"]
    assert result.added == 2


def test_removal_then_readd_in_same_request() -> None:
    result = apply_memory_edits(["a", "b"], {"remove": [{"lineStart": 1, "exactText": "a"}], "add": ["a"]})

    assert result.lines == ["b", "a"]
    assert result.removed == 1
    assert result.added == 1


def test_existing_duplicates_are_collapsed_keeping_first() -> None:
    result = apply_memory_edits(["a", "b", "a", "c", "b"], {"remove": [], "add": []})

    assert result.lines == ["a", "b", "c"]
    assert result.deduped == 2


def test_reapplying_the_same_request_is_a_noop() -> None:
    request = {
        "remove": [{"lineStart": 2, "exactText": "old fact"}],
        "add": ["new fact"],
    }
    first = apply_memory_edits(["keep", "old fact"], request)
    second = apply_memory_edits(first.lines, request)

    assert first.lines == ["keep", "new fact"]
    assert second.lines == first.lines
    assert second.applied == {"removed": 0, "added": 0, "deduped": 0}


def test_input_list_is_not_mutated() -> None:
    lines = ["a", "b"]
    apply_memory_edits(lines, {"remove": [{"lineStart": 1, "exactText": "a"}], "add": ["c"]})

    assert lines == ["a", "b"]


@pytest.mark.parametrize("actions", [None, "remove everything", ["a"], 42])
def test_non_mapping_request_returns_input_unchanged(actions) -> None:
    result = apply_memory_edits(["a"], actions)

    assert result.lines == ["a"]
    assert result.applied == {"removed": 0, "added": 0, "deduped": 0}


def test_non_list_sections_are_ignored() -> None:
    result = apply_memory_edits(["a"], {"remove": {"lineStart": 1, "exactText": "a"}, "add": "b"})

    assert result.lines == ["a"]
    assert result.applied == {"removed": 0, "added": 0, "deduped": 0}


def test_whole_number_float_line_start_is_accepted() -> None:
    result = apply_memory_edits(["a", "b", "c"], {"remove": [{"lineStart": 2.0, "exactText": "b"}]})

    assert result.lines == ["a", "c"]
    assert result.removed == 1

from docchunk.processing.chunking import SEARCH_RANGE, find_breakpoint

HEADER_TEXT = "Header text here.\n\n# Next Section\nMore content here that continues for a while."


def test_backward_search_prefers_header_over_closer_newline() -> None:
    expected = HEADER_TEXT.index("# Next") + 2

    assert find_breakpoint(HEADER_TEXT, len(HEADER_TEXT), "backward") == expected
    assert find_breakpoint(HEADER_TEXT, 40, "backward") == expected


def test_forward_search_returns_start_of_first_match() -> None:
    assert find_breakpoint(HEADER_TEXT, 0, "forward") == HEADER_TEXT.index("\n# ")
    assert find_breakpoint("one two three", 0, "forward") == 3


def test_paragraph_break_beats_single_newline() -> None:
    text = "alpha beta\n\ngamma delta\nepsilon zeta"

    assert find_breakpoint(text, len(text), "backward") == 12


def test_sentence_end_beats_word_boundary() -> None:
    assert find_breakpoint("one two. three four", 19, "backward") == 9
    assert find_breakpoint("one two three", 13, "backward") == 8


def test_returns_target_when_no_boundary_in_window() -> None:
    assert find_breakpoint("abcdef", 4, "backward") == 4
    assert find_breakpoint("abcdef", 2, "forward") == 2


def test_search_window_is_limited_to_search_range() -> None:
    text = "a b" + "x" * (SEARCH_RANGE + 50)

    assert find_breakpoint(text, len(text), "backward") == len(text)
    assert find_breakpoint(text, 0, "forward") == 1


def test_bound_narrows_the_window() -> None:
    text = "aaaa bbbb cccc"

    assert find_breakpoint(text, 14, "backward") == 10
    assert find_breakpoint(text, 14, "backward", bound=10) == 14
    assert find_breakpoint(text, 0, "forward", bound=4) == 0

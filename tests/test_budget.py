from unittest.mock import MagicMock, patch

import pytest

from bingchain.budget import TokenBudgeter


def char_budgeter(budget=100, response_limit=20):
    # Ceiling is budget - response_limit characters, including the "\n" joiner.
    return TokenBudgeter(budget, response_limit, counter=len)


# ---------------------------------------------------------------------------
# Shrinking
# ---------------------------------------------------------------------------

def test_text_within_budget_is_untouched():
    assert char_budgeter().truncate("short text") == "short text"

def test_long_text_is_cut_to_budget():
    budgeter = char_budgeter()
    result = budgeter.truncate("a" * 500)
    assert result
    assert set(result) == {"a"}
    assert budgeter.within_budget(result)

def test_context_counts_against_budget():
    budgeter = char_budgeter()
    alone = budgeter.truncate("b" * 70)
    with_history = budgeter.truncate("b" * 70, context="h" * 40)
    assert alone == "b" * 70
    assert len(with_history) < len(alone)
    assert budgeter.within_budget(with_history, context="h" * 40)

def test_input_is_capped_before_counting():
    counter = MagicMock(return_value=0)
    budgeter = TokenBudgeter(10, 0, counter=counter)
    assert budgeter.truncate("x" * 100) == "x" * 20

def test_unsatisfiable_budget_terminates_with_empty_text():
    budgeter = char_budgeter(budget=10, response_limit=20)
    assert budgeter.truncate("some text that can never fit") == ""

def test_history_alone_over_budget_terminates():
    budgeter = char_budgeter()
    assert budgeter.truncate("tail", context="h" * 500) == ""

def test_shrink_steps_are_bounded():
    calls = []

    def counter(text):
        calls.append(text)
        return len(text)

    TokenBudgeter(2000, 0, counter=counter).truncate("z" * 4000, context="q" * 1990)
    assert len(calls) < 60

@pytest.mark.parametrize("text", ["", "fits", "w " * 300, "long-" * 1000])
def test_truncate_is_idempotent(text):
    budgeter = char_budgeter()
    once = budgeter.truncate(text, context="ctx")
    assert budgeter.truncate(once, context="ctx") == once

@patch("bingchain.budget.display")
def test_truncation_is_announced_once(mock_display):
    char_budgeter().truncate("c" * 400)
    mock_display.truncating.assert_called_once()

@patch("bingchain.budget.display")
def test_no_announcement_when_text_fits(mock_display):
    char_budgeter().truncate("fits")
    mock_display.truncating.assert_not_called()

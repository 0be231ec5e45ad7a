# budget.py
# Token Budgeter: keeps retrieved text inside the prompt budget.

from typing import Callable

from bingchain import display

TokenCounter = Callable[[str], int]


def tiktoken_counter(encoding_name: str = "cl100k_base") -> TokenCounter:
    import tiktoken

    encoding = tiktoken.get_encoding(encoding_name)

    def count(text: str) -> int:
        return len(encoding.encode(text, disallowed_special=()))

    return count


class TokenBudgeter:
    """
    Bounds `context + text` to `budget - response_limit` tokens by cutting
    the tail of `text`.

    The cut starts at 10% and grows by 10% per step; below a 10% keep
    ratio it shrinks multiplicatively, so even a budget smaller than any
    single step empties the text in a bounded number of steps.
    """

    def __init__(self, budget: int, response_limit: int, counter: TokenCounter | None = None) -> None:
        self.budget = budget
        self.response_limit = response_limit
        self._counter = counter
        self._cache: dict[str, int] = {}

    @property
    def ceiling(self) -> int:
        return self.budget - self.response_limit

    def count(self, text: str) -> int:
        if self._counter is None:
            self._counter = tiktoken_counter()
        if text not in self._cache:
            if len(self._cache) >= 256:
                self._cache.clear()
            self._cache[text] = self._counter(text)
        return self._cache[text]

    def within_budget(self, text: str, context: str = "") -> bool:
        return self.count(f"{context}\n{text}") <= self.ceiling

    def truncate(self, text: str, context: str = "") -> str:
        text = text[: self.budget * 2]
        keep = 0.9
        steps = 0
        while text and not self.within_budget(text, context):
            steps += 1
            if steps == 1:
                display.truncating()
            text = text[: round(len(text) * keep)]
            if keep > 0.1:
                keep = round(keep - 0.1, 2)
            else:
                keep *= 0.66
        return text

# history.py
# Running Q/A transcript, plus the on-disk list of past questions used for
# interactive recall.

import os

import yaml

from bingchain.models import HistoryEntry


class HistoryManager:
    """Append-ordered transcript of completed exchanges."""

    def __init__(self) -> None:
        self._entries: list[HistoryEntry] = []

    def add(self, question: str, answer: str) -> str:
        self._entries.append(HistoryEntry(question=question, answer=answer))
        return self.render()

    def reset(self) -> None:
        self._entries = []

    @property
    def entries(self) -> list[HistoryEntry]:
        return list(self._entries)

    def questions(self) -> list[str]:
        return [entry.question for entry in self._entries]

    def render(self) -> str:
        return "".join(entry.render() for entry in self._entries)

    def __len__(self) -> int:
        return len(self._entries)


class QuestionStore:
    """
    Past questions persisted as a YAML list, most recent first, without
    duplicates.
    """

    def __init__(self, path: str) -> None:
        self.path = path

    def load(self) -> list[str]:
        if not os.path.exists(self.path):
            return []
        with open(self.path, encoding="utf-8") as fh:
            try:
                data = yaml.safe_load(fh)
            except yaml.YAMLError:
                return []
        if not isinstance(data, list):
            return []
        return [str(item) for item in data]

    def remember(self, question: str) -> list[str]:
        question = question.strip()
        questions = self.load()
        if not question:
            return questions
        questions = [question] + [q for q in questions if q != question]
        with open(self.path, "w", encoding="utf-8") as fh:
            yaml.safe_dump(questions, fh, allow_unicode=True)
        return questions

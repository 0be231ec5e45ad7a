from bingchain.history import HistoryManager, QuestionStore


# ---------------------------------------------------------------------------
# Transcript
# ---------------------------------------------------------------------------

def test_history_renders_in_order():
    history = HistoryManager()
    history.add("What is 2+2?", "4")
    rendered = history.add("And 3+3?", "6")
    assert rendered == "Q:What is 2+2?\nA:4\nQ:And 3+3?\nA:6\n"
    assert history.questions() == ["What is 2+2?", "And 3+3?"]
    assert len(history) == 2

def test_history_reset():
    history = HistoryManager()
    history.add("q", "a")
    history.reset()
    assert history.render() == ""
    assert len(history) == 0

def test_entries_are_a_copy():
    history = HistoryManager()
    history.add("q", "a")
    history.entries.clear()
    assert len(history) == 1


# ---------------------------------------------------------------------------
# Question store
# ---------------------------------------------------------------------------

def test_missing_file_loads_empty(tmp_path):
    assert QuestionStore(str(tmp_path / "none.yaml")).load() == []

def test_remember_puts_latest_first_without_duplicates(tmp_path):
    store = QuestionStore(str(tmp_path / "history.yaml"))
    store.remember("first")
    store.remember("second")
    assert store.remember("  first ") == ["first", "second"]
    assert QuestionStore(store.path).load() == ["first", "second"]

def test_blank_question_is_not_stored(tmp_path):
    store = QuestionStore(str(tmp_path / "history.yaml"))
    assert store.remember("   ") == []

def test_corrupt_file_loads_empty(tmp_path):
    path = tmp_path / "history.yaml"
    path.write_text("key: [unclosed", encoding="utf-8")
    assert QuestionStore(str(path)).load() == []

def test_non_list_file_loads_empty(tmp_path):
    path = tmp_path / "history.yaml"
    path.write_text("just: a mapping\n", encoding="utf-8")
    assert QuestionStore(str(path)).load() == []

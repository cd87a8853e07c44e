import threading

from proposal_engine.utils.task_manager import TaskManager


def test_start_task_is_exclusive() -> None:
    manager = TaskManager()

    assert manager.start_task("llm_content:acme", "narrative") is True
    assert manager.start_task("llm_content:acme") is False
    assert manager.get_task_info("llm_content:acme")['status'] == 'in_progress'

    manager.complete_task("llm_content:acme")
    assert manager.is_task_active("llm_content:acme") is False
    assert manager.get_task_info("llm_content:acme") == {}


def test_background_task_deduplicates_and_clears() -> None:
    manager = TaskManager()
    release = threading.Event()
    calls = []

    def work(value):
        calls.append(value)
        release.wait(5)

    thread = manager.run_in_background("key", work, 1)
    assert manager.run_in_background("key", work, 2) is None
    release.set()
    thread.join(5)

    assert calls == [1]
    assert manager.is_task_active("key") is False


def test_background_failures_are_contained() -> None:
    manager = TaskManager()

    def boom():
        raise RuntimeError("failed")

    thread = manager.run_in_background("key", boom)
    thread.join(5)

    assert manager.is_task_active("key") is False

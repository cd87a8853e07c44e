"""
In-process de-duplication of background tasks, keyed per company.
"""
import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, Optional

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class TaskManager:
    """Tracks active tasks so the same key is never worked on twice at once."""

    def __init__(self):
        self._active_tasks: Dict[str, Dict] = {}
        self._task_lock = threading.Lock()

    def is_task_active(self, task_key: str) -> bool:
        with self._task_lock:
            return task_key in self._active_tasks

    def start_task(self, task_key: str, description: str = "") -> bool:
        """Register a task. Returns True if started, False if already active."""
        with self._task_lock:
            if task_key in self._active_tasks:
                return False
            self._active_tasks[task_key] = {
                'started_at': datetime.now().isoformat(),
                'description': description,
                'status': 'in_progress'
            }
            return True

    def complete_task(self, task_key: str):
        with self._task_lock:
            self._active_tasks.pop(task_key, None)

    def get_task_info(self, task_key: str) -> Dict:
        with self._task_lock:
            return dict(self._active_tasks.get(task_key, {}))

    def run_in_background(self, task_key: str, target: Callable[..., Any], *args,
                          description: str = "", **kwargs) -> Optional[threading.Thread]:
        """Run `target` on a daemon thread unless `task_key` is already active.

        Failures are logged and never re-raised.
        """
        if not self.start_task(task_key, description):
            logger.info(f"⏭️ Task already in progress, skipping: {task_key}")
            return None

        def runner():
            try:
                target(*args, **kwargs)
                logger.info(f"✅ Background task completed: {task_key}")
            except Exception as e:
                logger.error(f"❌ Background task failed for {task_key}: {e}")
            finally:
                self.complete_task(task_key)

        thread = threading.Thread(target=runner, name=f"task-{task_key}", daemon=True)
        thread.start()
        return thread

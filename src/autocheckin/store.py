"""JSON file configuration store.

The scheduler reads it every tick; the command surface writes it. A lock
serializes read-modify-write cycles from concurrent callers in this process.
"""

import threading
import uuid
from pathlib import Path

from pydantic import ValidationError

from autocheckin.errors import ParseError, TaskNotFoundError
from autocheckin.logging import get_logger
from autocheckin.models import AppConfig, Task

logger = get_logger(__name__)


class ConfigStore:
    def __init__(self, path: str | Path = "data/config.json") -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def load(self) -> AppConfig:
        """Read a fresh snapshot. Missing or invalid files yield the default config."""
        with self._lock:
            return self._read()

    def save(self, config: AppConfig) -> None:
        with self._lock:
            self._write(config)

    def add_task(self, task: Task) -> Task:
        """Append a task, assigning a uuid4 id if it has none.

        Raises:
            ParseError: If the stored file exists but is invalid.
        """
        if not task.id:
            task = task.model_copy(update={"id": str(uuid.uuid4())})
        with self._lock:
            config = self._read(strict=True)
            config.tasks.append(task)
            self._write(config)
        logger.info("task_added", task_id=task.id, name=task.name)
        return task

    def update_task(self, task: Task) -> None:
        with self._lock:
            config = self._read(strict=True)
            idx = self._index(config, task.id)
            config.tasks[idx] = task
            self._write(config)
        logger.info("task_updated", task_id=task.id)

    def delete_task(self, task_id: str) -> None:
        with self._lock:
            config = self._read(strict=True)
            del config.tasks[self._index(config, task_id)]
            self._write(config)
        logger.info("task_deleted", task_id=task_id)

    def _read(self, strict: bool = False) -> AppConfig:
        if not self.path.exists():
            return AppConfig()
        try:
            return AppConfig.model_validate_json(self.path.read_text(encoding="utf-8"))
        except ValidationError as e:
            logger.warning("config_invalid", path=str(self.path), error=str(e))
            # Writing the default back would wipe every stored task
            if strict:
                raise ParseError(f"Parse Error: invalid config file {self.path}") from e
            return AppConfig()

    def _write(self, config: AppConfig) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            config.model_dump_json(by_alias=True, indent=2), encoding="utf-8"
        )

    @staticmethod
    def _index(config: AppConfig, task_id: str) -> int:
        for idx, task in enumerate(config.tasks):
            if task.id == task_id:
                return idx
        raise TaskNotFoundError(f"Task not found: {task_id}")

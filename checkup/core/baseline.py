"""
File-backed baseline store.

Layout: one pair of files per topic key under the operator's checkup folder:

    <folder>/<key>.saved.txt    - snapshot promoted by the operator
    <folder>/<key>.current.txt  - capture written by the last run

The engine only reads saved snapshots and writes current captures.
"""

import logging
import shutil
from pathlib import Path
from typing import List, Optional

from ..errors import CheckupError

logger = logging.getLogger(__name__)

SAVED_SUFFIX = ".saved.txt"
CURRENT_SUFFIX = ".current.txt"


class BaselineStore:
    """Хранилище эталонных snapshot'ов."""

    def __init__(self, folder: Path):
        """
        Args:
            folder: Директория checkup (создаётся оператором вручную)
        """
        self.folder = Path(folder).expanduser()

    @property
    def available(self) -> bool:
        """Директория существует - snapshot-проверки включены."""
        return self.folder.is_dir()

    @staticmethod
    def _file_stem(topic_key: str) -> str:
        return topic_key.replace("/", "__")

    def saved_path(self, topic_key: str) -> Path:
        return self.folder / f"{self._file_stem(topic_key)}{SAVED_SUFFIX}"

    def current_path(self, topic_key: str) -> Path:
        return self.folder / f"{self._file_stem(topic_key)}{CURRENT_SUFFIX}"

    def read_snapshot(self, topic_key: str) -> Optional[str]:
        """
        Прочитать сохранённый snapshot.

        Returns:
            Текст snapshot'а или None, если его нет (это нормальное состояние)
        """
        path = self.saved_path(topic_key)
        if not path.is_file():
            return None
        try:
            with open(path, encoding="utf-8", errors="replace", newline="") as f:
                return f.read()
        except OSError as e:
            logger.warning(f"Cannot read snapshot {path}: {e}")
            return None

    def write_current_capture(self, topic_key: str, text: str) -> None:
        """Записать текущий снимок (только если директория существует)."""
        if not self.available:
            return
        path = self.current_path(topic_key)
        try:
            with open(path, "w", encoding="utf-8", newline="") as f:
                f.write(text)
        except OSError as e:
            logger.warning(f"Cannot write current capture {path}: {e}")

    def promote(self, topic_key: str) -> Path:
        """
        Сделать текущий снимок эталоном (действие оператора, не движка).

        Raises:
            CheckupError: если текущего снимка нет
        """
        current = self.current_path(topic_key)
        if not current.is_file():
            raise CheckupError(f"No current capture for '{topic_key}' ({current})")
        saved = self.saved_path(topic_key)
        shutil.copyfile(current, saved)
        logger.info(f"Promoted {current.name} to {saved.name}")
        return saved

    def list_captures(self) -> List[str]:
        """Ключи topic, для которых есть текущий снимок."""
        if not self.available:
            return []
        keys = []
        for path in sorted(self.folder.glob(f"*{CURRENT_SUFFIX}")):
            keys.append(path.name[: -len(CURRENT_SUFFIX)].replace("__", "/"))
        return keys

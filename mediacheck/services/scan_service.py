"""Обход входного каталога и сопоставление с шаблоном ожидаемых отказов."""
from __future__ import annotations

import fnmatch
import logging
import os
from pathlib import Path
from typing import Union

from mediacheck.models.media_model import FileGroups, TestTarget

logger = logging.getLogger(__name__)


class FatalScanError(Exception):
    """Входной каталог не удалось прочитать; прогон невозможен."""


class ScanService:
    def __init__(self, expected_failures: str = "") -> None:
        self._expected_failures = expected_failures

    def group_files(self, directory: Union[str, Path]) -> FileGroups:
        """Группирует файлы каталога по расширению (без рекурсии).

        Returns:
            Словарь `.ext -> [TestTarget, ...]`; внутри группы файлы упорядочены по имени.

        Raises:
            FatalScanError: если каталог не удаётся прочитать.
        """
        root = Path(directory)
        try:
            entries = sorted(os.scandir(root), key=lambda e: e.name)
        except OSError as exc:
            raise FatalScanError(f"Error reading directory {root}: {exc}") from exc

        groups: FileGroups = {}
        for entry in entries:
            if entry.is_dir():
                continue
            path = root / entry.name
            ext = _extension(entry.name)
            groups.setdefault(ext, []).append(TestTarget(path=path, extension=ext))
        return groups

    def is_expected_failure(self, file_path: Union[str, Path]) -> bool:
        pattern = self._expected_failures
        if not pattern:
            return False
        name = Path(file_path).name
        try:
            _check_pattern(pattern)
        except ValueError as exc:
            logger.error("Error matching pattern: %s", exc)
            return False
        return fnmatch.fnmatchcase(name, pattern)


def _check_pattern(pattern: str) -> None:
    """Отклоняет шаблоны, которые `fnmatch` молча прочёл бы буквально.

    Ошибкой считаются незакрытый класс `[...`, пустой класс (`]` сразу после
    `[`, `[!` или `[^`) и завершающий `\\`. Обратная косая черта внутри шаблона
    не экранирует следующий символ: `fnmatch` сравнивает её как обычный символ.

    Raises:
        ValueError: для шаблона из перечисленных выше случаев.
    """
    if pattern.endswith("\\"):
        raise ValueError(f"syntax error in pattern {pattern!r}: trailing backslash")
    i, n = 0, len(pattern)
    while i < n:
        if pattern[i] != "[":
            i += 1
            continue
        j = i + 1
        if j < n and pattern[j] in "!^":
            j += 1
        if j < n and pattern[j] == "]":
            raise ValueError(f"syntax error in pattern {pattern!r}: empty character class")
        while j < n and pattern[j] != "]":
            j += 1
        if j >= n:
            raise ValueError(f"syntax error in pattern {pattern!r}: unterminated character class")
        i = j + 1


def _extension(name: str) -> str:
    # everything from the last dot, so a bare ".png" keeps ".png" (Path.suffix gives "")
    dot = name.rfind(".")
    return name[dot:].lower() if dot >= 0 else ""

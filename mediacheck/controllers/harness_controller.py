"""Контроллер прогона: обход групп файлов и маршрутизация по сервисам.

SOLID:
- SRP: класс решает, какой сервис обрабатывает файл, и сводит итоги; проверки
  и кодеки живут в сервисах.
- DIP: сервисы передаются извне, что позволяет подменять кодеки в тестах.
Clean Code:
- Вместо глобального флага отказа итог прогона возвращается значением `RunOutcome`.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Union

from mediacheck.models.media_model import FileOutcome, RunOutcome, TestTarget
from mediacheck.services.inspect_service import InspectService
from mediacheck.services.scan_service import ScanService
from mediacheck.services.transform_service import TransformService


@dataclass
class HarnessController:
    """Связывает сканер каталога, инспектор и трансформацию.

    Ответственности:
    - Группировка файлов по расширению (порядок расширений стабилен).
    - Выбор сервиса: графические форматы трансформируются, остальные инспектируются.
    - Учёт ожидаемых отказов и сводка итогов.
    """
    scan: ScanService
    inspector: InspectService
    transformer: TransformService

    def run(self, input_dir: Union[str, Path]) -> RunOutcome:
        """Обрабатывает все файлы каталога.

        Raises:
            FatalScanError: если каталог не читается.
        """
        groups = self.scan.group_files(input_dir)
        outcome = RunOutcome()
        for ext in sorted(groups):
            print(f"Processing {ext} files:")
            for target in groups[ext]:
                outcome.add(self.process_file(target))
            print()
        return outcome

    def process_file(self, target: TestTarget) -> FileOutcome:
        file_outcome = FileOutcome(
            target=target,
            expected_to_fail=self.scan.is_expected_failure(target.path),
        )
        if target.is_graphical:
            self.transformer.test_file(file_outcome)
        else:
            self.inspector.inspect_file(file_outcome)

        if file_outcome.failed:
            if file_outcome.expected_to_fail:
                print("  Note: This failure was expected")
        elif target.is_graphical:
            print("  Test completed successfully")
        if not target.is_graphical:
            print("  Inspection completed")
        return file_outcome

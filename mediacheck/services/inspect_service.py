"""Инспекция неграфических файлов: заголовок, длительность и проверки по типу.

Принципы:
- SRP: сервис только читает метаданные через декодер и применяет правила
  для расширения; решение об ожидаемом отказе принимает контроллер.
- Ошибки одного файла не выходят за пределы `FileOutcome`.
"""
from __future__ import annotations

import logging
from typing import List

from mediacheck.models.media_model import AUDIO_FORMATS, VIDEO_FORMATS, FileOutcome, TestTarget
from mediacheck.services.codec_service import CodecError, CodecService

logger = logging.getLogger(__name__)


class InspectService:
    def __init__(self, codec: CodecService) -> None:
        self._codec = codec

    def inspect_file(self, outcome: FileOutcome) -> FileOutcome:
        """Читает файл цели и проверяет его; причины отказа дописываются в `outcome`."""
        target = outcome.target
        print(f"Inspecting file: {target.path}")
        try:
            buffer = target.path.read_bytes()
        except OSError as exc:
            logger.error("Error reading file %s: %s", target.path, exc)
            outcome.fail(f"read error: {exc}")
            return outcome

        for reason in self.inspect_buffer(buffer, target):
            outcome.fail(reason)
        return outcome

    def inspect_buffer(self, buffer: bytes, target: TestTarget) -> List[str]:
        """Открывает декодер по байтам и возвращает список причин отказа (пустой, если всё в порядке)."""
        try:
            decoder = self._codec.open_decoder(buffer)
        except CodecError as exc:
            logger.error("Error creating decoder for %s: %s", target.path, exc)
            print("  Unable to decode file")
            return [f"decode error: {exc}"]

        with decoder:
            try:
                header = decoder.header()
                duration = decoder.duration()
            except CodecError as exc:
                logger.error("Error reading header for %s: %s", target.path, exc)
                print("  Unable to read file header")
                return [f"header error: {exc}"]

            print(f"  Format: {decoder.description()}")
            print(f"  Dimensions: {header.width} x {header.height}")
            print(f"  Duration: {duration:g}")
            print(f"  Animated: {header.is_animated}")
            if duration < 0:
                print("  Note: Negative duration (typical for images)")

            return self._check_by_type(target.extension, header.width, header.height, duration)

    def _check_by_type(self, ext: str, width: int, height: int, duration: float) -> List[str]:
        failures: List[str] = []
        if ext in VIDEO_FORMATS:
            if width == 0 or height == 0:
                print("  Warning: Video file has zero dimensions")
                failures.append("video has zero dimensions")
            if duration <= 0:
                print("  Warning: Video file has non-positive duration")
                failures.append("video has non-positive duration")
        elif ext in AUDIO_FORMATS:
            if duration <= 0:
                print("  Warning: Audio file has non-positive duration")
                failures.append("audio has non-positive duration")
        elif ext == ".aac":
            # reported only; AAC streams without a header-declared length are accepted
            if duration <= 0:
                print("  Warning: AAC audio file has non-positive duration")
        elif ext == ".webp":
            if width == 0 or height == 0:
                print("  Warning: WebP file has zero dimensions")
                failures.append("webp has zero dimensions")
        return failures

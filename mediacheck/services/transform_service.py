"""Трансформация графических файлов: уменьшение вдвое, WebP, проверка результата.

Принципы:
- SRP: сервис выполняет последовательность «декодировать, преобразовать,
  перепроверить, записать» для одного файла; сами кодеки инкапсулированы в
  `codec_service`.
- Декодер одноразовый: для анимированного прохода открывается новый экземпляр.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from mediacheck.models.media_model import (
    ANIMATED_SUFFIX,
    MAX_TRANSFORM_SIZE,
    OUTPUT_CAPACITY,
    STATIC_SUFFIX,
    FileOutcome,
    TestTarget,
    TransformOptions,
)
from mediacheck.services.codec_service import CodecError, CodecService, Decoder, EncoderService

logger = logging.getLogger(__name__)


class TransformService:
    def __init__(
        self,
        codec: CodecService,
        output_dir: Path,
        capacity: int = OUTPUT_CAPACITY,
        max_size: int = MAX_TRANSFORM_SIZE,
    ) -> None:
        self._codec = codec
        self._output_dir = Path(output_dir)
        self._capacity = capacity
        self._max_size = max_size

    def test_file(self, outcome: FileOutcome) -> FileOutcome:
        """Прогоняет статическую (и, для анимации, анимированную) трансформацию файла цели."""
        target = outcome.target
        print(f"Testing graphical file: {target.path}")
        try:
            buffer = target.path.read_bytes()
        except OSError as exc:
            logger.error("Error reading file %s: %s", target.path, exc)
            outcome.fail(f"read error: {exc}")
            return outcome

        try:
            decoder = self._codec.open_decoder(buffer)
        except CodecError as exc:
            logger.error("Error creating decoder for %s: %s", target.path, exc)
            outcome.fail(f"decode error: {exc}")
            return outcome

        with decoder, EncoderService(self._max_size) as encoder:
            try:
                header = decoder.header()
            except CodecError as exc:
                logger.error("Error reading header for %s: %s", target.path, exc)
                outcome.fail(f"header error: {exc}")
                return outcome

            print(f"  Format: {decoder.description()}")
            print(f"  Dimensions: {header.width} x {header.height}")
            print(f"  Animated: {header.is_animated}")

            options = TransformOptions.half_size(header)
            reason = self.perform_transform(decoder, encoder, options, target, STATIC_SUFFIX)
            if reason:
                outcome.fail(reason)

            if header.is_animated:
                # the first decoder was consumed by the static pass
                try:
                    animated_decoder = self._codec.open_decoder(buffer)
                except CodecError as exc:
                    logger.error("Error creating decoder for animated output %s: %s", target.path, exc)
                    outcome.fail(f"decode error: {exc}")
                else:
                    with animated_decoder:
                        reason = self.perform_transform(
                            animated_decoder, encoder, options.animated(), target, ANIMATED_SUFFIX
                        )
                    if reason:
                        outcome.fail(reason)

        return outcome

    def perform_transform(
        self,
        decoder: Decoder,
        encoder: EncoderService,
        options: TransformOptions,
        target: TestTarget,
        suffix: str,
    ) -> Optional[str]:
        """Одна трансформация с перепроверкой размеров и записью результата.

        Returns:
            `None` при успехе, иначе причину отказа. Ничего не записывается, если
            трансформация или проверка не прошли.
        """
        try:
            data = encoder.transform(decoder, options, self._capacity)
        except CodecError as exc:
            logger.error("Error resizing %s: %s", target.path, exc)
            return f"transform error: {exc}"

        try:
            with self._codec.open_decoder(data) as resized:
                resized_header = resized.header()
        except CodecError as exc:
            logger.error("Error reading resized image of %s: %s", target.path, exc)
            return f"resized output unreadable: {exc}"

        if (resized_header.width, resized_header.height) != (options.width, options.height):
            logger.error(
                "Resized dimensions (%dx%d) do not match specified dimensions (%dx%d) for %s",
                resized_header.width, resized_header.height, options.width, options.height, target.path,
            )
            return "resized dimensions do not match specified dimensions"
        print(f"  Resized dimensions match: {resized_header.width}x{resized_header.height}")

        output_path = self._output_dir / f"{target.name}{suffix}"
        try:
            output_path.write_bytes(data)
        except OSError as exc:
            logger.error("Error writing output file %s: %s", output_path, exc)
            return f"write error: {exc}"

        print(f"  Resized and saved to: {output_path}")
        return None

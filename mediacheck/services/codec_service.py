"""Адаптер внешних кодеков: Pillow для изображений, ffprobe для аудио и видео.

Принципы:
- SRP: модуль только открывает декодеры и перекодирует изображения; проверки
  и отчёт живут в сервисах инспекции и трансформации.
- DIP: остальной код видит узкий контракт декодера (`header`, `duration`,
  `description`, `close`) и не знает, какая библиотека за ним стоит.
- Ресурсы: декодеры и кодировщик являются контекстными менеджерами и
  освобождаются на любом пути выхода.
"""
from __future__ import annotations

import io
import json
import logging
import subprocess
import tempfile
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from PIL import Image, ImageOps as PilImageOps, ImageSequence, UnidentifiedImageError

from mediacheck.config import DEFAULT_FFPROBE, DEFAULT_PROBE_TIMEOUT_S
from mediacheck.models.media_model import (
    JPEG_QUALITY,
    MAX_TRANSFORM_SIZE,
    PNG_COMPRESSION,
    RESIZE_EXACT,
    RESIZE_FIT,
    RESIZE_METHODS,
    RESIZE_NONE,
    WEBP_QUALITY,
    DecodedHeader,
    TransformOptions,
)

logger = logging.getLogger(__name__)

# target extension -> (Pillow format, animation support)
_ENCODERS = {
    ".webp": ("WEBP", True),
    ".png": ("PNG", True),
    ".jpg": ("JPEG", False),
    ".jpeg": ("JPEG", False),
}
_DEFAULT_FRAME_MS = 100
# Pillow formats whose extra frames are animation frames
_ANIMATED_FORMATS = frozenset({"GIF", "WEBP", "PNG"})


class CodecError(Exception):
    """Базовая ошибка внешнего кодека."""


class DecodeError(CodecError):
    pass


class HeaderError(CodecError):
    pass


class TransformError(CodecError):
    pass


class ImageDecoder:
    """Декодер изображений поверх `PIL.Image`.

    Экземпляр одноразовый для трансформации: после `EncoderService.transform`
    повторная передача того же декодера завершается `TransformError`.
    """

    def __init__(self, buffer: bytes) -> None:
        try:
            self._image = Image.open(io.BytesIO(buffer))
        except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as exc:
            raise DecodeError(f"unrecognised image data: {exc}") from exc
        self._header: Optional[DecodedHeader] = None
        self._consumed = False

    @property
    def image(self) -> Image.Image:
        return self._image

    def header(self) -> DecodedHeader:
        if self._header is None:
            try:
                width, height = self._image.size
                # n_frames walks the whole file for GIF, so truncated data fails here
                n_frames = getattr(self._image, "n_frames", 1)
            except (OSError, EOFError, ValueError) as exc:
                raise HeaderError(f"unreadable image header: {exc}") from exc
            # multi-page TIFF and MPO hold several stills, not an animation
            is_animated = n_frames > 1 and self._image.format in _ANIMATED_FORMATS
            self._header = DecodedHeader(width=width, height=height, is_animated=is_animated)
        return self._header

    def duration(self) -> float:
        """Суммарная длительность анимации в секундах; -1.0 для статичных изображений."""
        if not self.header().is_animated:
            return -1.0
        total_ms = 0
        try:
            for frame in ImageSequence.Iterator(self._image):
                total_ms += int(frame.info.get("duration", 0))
            self._image.seek(0)
        except (OSError, EOFError) as exc:
            raise HeaderError(f"unreadable animation frames: {exc}") from exc
        return total_ms / 1000.0

    def description(self) -> str:
        return self._image.format or "unknown"

    def consume(self) -> None:
        if self._consumed:
            raise TransformError("decoder has already been used for a transform")
        self._consumed = True

    def close(self) -> None:
        self._image.close()

    def __enter__(self) -> "ImageDecoder":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


class MediaDecoder:
    """Декодер аудио и видео: метаданные контейнера через `ffprobe -of json`."""

    def __init__(self, buffer: bytes, ffprobe_bin: str = DEFAULT_FFPROBE,
                 timeout: float = DEFAULT_PROBE_TIMEOUT_S) -> None:
        self._probe = _run_ffprobe(buffer, ffprobe_bin, timeout)
        streams = self._probe.get("streams") or []
        if not streams:
            raise DecodeError("ffprobe found no decodable streams")
        self._streams: List[Dict[str, Any]] = streams
        self._format: Dict[str, Any] = self._probe.get("format") or {}

    def header(self) -> DecodedHeader:
        video = next((s for s in self._streams if s.get("codec_type") == "video"), None)
        if video is None:
            return DecodedHeader(width=0, height=0, is_animated=False)
        try:
            width = int(video.get("width") or 0)
            height = int(video.get("height") or 0)
        except (TypeError, ValueError) as exc:
            raise HeaderError(f"unreadable stream dimensions: {exc}") from exc
        return DecodedHeader(width=width, height=height, is_animated=False)

    def duration(self) -> float:
        raw = self._format.get("duration")
        try:
            return float(raw)
        except (TypeError, ValueError):
            # ffprobe reports "N/A" or nothing for streams without a known length
            return 0.0

    def description(self) -> str:
        return self._format.get("format_name") or "unknown"

    def close(self) -> None:
        self._streams = []

    def __enter__(self) -> "MediaDecoder":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


Decoder = Union[ImageDecoder, MediaDecoder]


def _run_ffprobe(buffer: bytes, ffprobe_bin: str, timeout: float) -> Dict[str, Any]:
    # ffprobe needs a seekable input for containers with a trailing index (mp4 moov at end)
    with tempfile.TemporaryDirectory(prefix="mediacheck-") as tmp:
        path = Path(tmp) / "probe.bin"
        path.write_bytes(buffer)
        cmd = [
            ffprobe_bin, "-v", "error",
            "-print_format", "json",
            "-show_format", "-show_streams",
            str(path),
        ]
        logger.debug("running %s", " ".join(cmd))
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
        except subprocess.TimeoutExpired as exc:
            raise DecodeError(f"ffprobe timed out after {timeout:g}s") from exc
        except OSError as exc:
            raise DecodeError(f"cannot run {ffprobe_bin}: {exc}") from exc

    if result.returncode != 0:
        message = result.stderr.strip() or f"exit code {result.returncode}"
        raise DecodeError(f"ffprobe rejected data: {message}")
    try:
        return json.loads(result.stdout or "{}")
    except json.JSONDecodeError as exc:
        raise DecodeError(f"unparseable ffprobe output: {exc}") from exc


class CodecService:
    def __init__(self, ffprobe_bin: str = DEFAULT_FFPROBE, probe_timeout: float = DEFAULT_PROBE_TIMEOUT_S) -> None:
        self._ffprobe_bin = ffprobe_bin
        self._probe_timeout = probe_timeout

    def open_decoder(self, buffer: bytes) -> Decoder:
        """Открывает подходящий декодер для сырых байтов файла.

        Сначала пробует Pillow, затем ffprobe.

        Raises:
            DecodeError: если ни один кодек не распознал данные.
        """
        if not buffer:
            raise DecodeError("empty input")
        try:
            return ImageDecoder(buffer)
        except DecodeError as exc:
            logger.debug("not an image (%s), probing with %s", exc, self._ffprobe_bin)
        return MediaDecoder(buffer, ffprobe_bin=self._ffprobe_bin, timeout=self._probe_timeout)


class EncoderService:
    """Масштабирование и перекодирование изображений средствами Pillow.

    `max_size` ограничивает каждую сторону результата, как буфер кадра
    фиксированного размера.
    """

    def __init__(self, max_size: int = MAX_TRANSFORM_SIZE) -> None:
        self._max_size = max_size
        self._closed = False

    def transform(self, decoder: Decoder, options: TransformOptions, capacity: int) -> bytes:
        """Масштабирует и перекодирует изображение, не превышая `capacity` байт.

        Raises:
            TransformError: при неподдерживаемом декодере или формате, повторном
                использовании декодера, недопустимом размере, превышении времени
                кодирования либо ёмкости буфера.
        """
        if self._closed:
            raise TransformError("encoder service is closed")
        if not isinstance(decoder, ImageDecoder):
            raise TransformError(f"{decoder.description()} data cannot be transformed")
        decoder.consume()

        encoder = _ENCODERS.get(options.file_type.lower())
        if encoder is None:
            raise TransformError(f"unsupported output type {options.file_type!r}")
        pil_format, supports_animation = encoder
        self._check_size(options)

        header = decoder.header()
        animate = header.is_animated and supports_animation and not options.disable_animated_output
        deadline = time.monotonic() + options.encode_timeout

        frames: List[Image.Image] = []
        durations: List[int] = []
        out = io.BytesIO()
        try:
            for frame in ImageSequence.Iterator(decoder.image):
                if time.monotonic() > deadline:
                    raise TransformError(f"encode exceeded {options.encode_timeout:g}s")
                frames.append(self._prepare_frame(frame, options, pil_format))
                durations.append(int(frame.info.get("duration") or _DEFAULT_FRAME_MS))
                if not animate:
                    break

            params = self._encode_params(pil_format, options)
            if animate and len(frames) > 1:
                params.update(
                    save_all=True,
                    append_images=frames[1:],
                    duration=durations,
                    loop=decoder.image.info.get("loop", 0),
                )
            frames[0].save(out, format=pil_format, **params)
        except (OSError, ValueError, EOFError) as exc:
            raise TransformError(f"encode failed: {exc}") from exc
        finally:
            for frame in frames:
                frame.close()

        if time.monotonic() > deadline:
            raise TransformError(f"encode exceeded {options.encode_timeout:g}s")
        data = out.getvalue()
        if len(data) > capacity:
            raise TransformError(f"encoded {len(data)} bytes, buffer holds {capacity}")
        return data

    def close(self) -> None:
        self._closed = True

    def __enter__(self) -> "EncoderService":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # ---- Helpers ----
    def _check_size(self, options: TransformOptions) -> None:
        if options.resize_method not in RESIZE_METHODS:
            raise TransformError(f"unknown resize method {options.resize_method!r}")
        if options.resize_method == RESIZE_NONE:
            return
        width, height = options.width, options.height
        if width <= 0 or height <= 0:
            raise TransformError(f"invalid target size {width}x{height}")
        if width > self._max_size or height > self._max_size:
            raise TransformError(f"target size {width}x{height} exceeds {self._max_size}px")

    def _prepare_frame(self, frame: Image.Image, options: TransformOptions, pil_format: str) -> Image.Image:
        image = frame.copy()
        if options.normalize_orientation:
            image = PilImageOps.exif_transpose(image)
        image = image.convert("RGB" if pil_format == "JPEG" else "RGBA")

        size = (options.width, options.height)
        if options.resize_method == RESIZE_FIT:
            return PilImageOps.fit(image, size, method=Image.Resampling.LANCZOS)
        if options.resize_method == RESIZE_EXACT:
            return image.resize(size, Image.Resampling.LANCZOS)
        return image

    def _encode_params(self, pil_format: str, options: TransformOptions) -> Dict[str, Any]:
        opts = options.encode_options
        if pil_format == "WEBP":
            return {"quality": opts.get(WEBP_QUALITY, 80)}
        if pil_format == "JPEG":
            return {"quality": opts.get(JPEG_QUALITY, 75)}
        return {"compress_level": opts.get(PNG_COMPRESSION, 6)}

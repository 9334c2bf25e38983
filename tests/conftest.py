from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pytest
from PIL import Image

from mediacheck.models.media_model import DecodedHeader
from mediacheck.services.codec_service import DecodeError, HeaderError


def gradient(width: int, height: int) -> Image.Image:
    xs = np.linspace(0, 255, width, dtype=np.float32)
    ys = np.linspace(0, 255, height, dtype=np.float32)
    red = np.tile(xs, (height, 1))
    green = np.tile(ys[:, None], (1, width))
    blue = np.full((height, width), 128, dtype=np.float32)
    return Image.fromarray(np.dstack([red, green, blue]).astype(np.uint8))


def solid(width: int, height: int, color: Tuple[int, int, int]) -> Image.Image:
    return Image.fromarray(np.full((height, width, 3), color, dtype=np.uint8))


def write_png(path: Path, width: int, height: int) -> Path:
    gradient(width, height).save(path, format="PNG")
    return path


def write_gif(
    path: Path,
    width: int,
    height: int,
    colors: Sequence[Tuple[int, int, int]] = ((255, 0, 0), (0, 255, 0), (0, 0, 255)),
    duration_ms: int = 100,
) -> Path:
    # distinct colors: Pillow merges identical consecutive GIF frames
    frames = [solid(width, height, c) for c in colors]
    frames[0].save(
        path,
        format="GIF",
        save_all=len(frames) > 1,
        append_images=frames[1:],
        duration=duration_ms,
        loop=0,
    )
    return path


class FakeDecoder:
    def __init__(
        self,
        width: int = 0,
        height: int = 0,
        duration: float = 1.0,
        description: str = "fake",
        is_animated: bool = False,
        header_error: bool = False,
    ) -> None:
        self._header = DecodedHeader(width=width, height=height, is_animated=is_animated)
        self._duration = duration
        self._description = description
        self._header_error = header_error
        self.closed = False

    def header(self) -> DecodedHeader:
        if self._header_error:
            raise HeaderError("truncated header")
        return self._header

    def duration(self) -> float:
        return self._duration

    def description(self) -> str:
        return self._description

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> "FakeDecoder":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class FakeCodec:
    """Stands in for `CodecService` and hands out a prepared decoder."""

    def __init__(self, decoder: Optional[FakeDecoder] = None) -> None:
        self.decoder = decoder
        self.opened: List[bytes] = []

    def open_decoder(self, buffer: bytes) -> FakeDecoder:
        self.opened.append(buffer)
        if self.decoder is None:
            raise DecodeError("unrecognised data")
        return self.decoder


@pytest.fixture(autouse=True)
def _reset_mediacheck_logger():
    yield
    logger = logging.getLogger("mediacheck")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def input_dir(tmp_path: Path) -> Path:
    d = tmp_path / "in"
    d.mkdir()
    return d


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    d = tmp_path / "out"
    d.mkdir()
    return d

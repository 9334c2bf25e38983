"""Модели данных прогона: цели проверки, заголовки, опции трансформации, итоги.

Принципы:
- SRP: только структуры данных и свёртка результатов, без ввода-вывода.
- Чистый код: неизменяемость (`frozen=True`) для предсказуемости.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, List, Mapping

GRAPHICAL_FORMATS = frozenset({".jpg", ".jpeg", ".png", ".gif", ".webp", ".tiff", ".bmp"})
VIDEO_FORMATS = frozenset({".mp4", ".webm"})
AUDIO_FORMATS = frozenset({".mp3", ".ogg", ".flac", ".wav"})

RESIZE_NONE = "none"
RESIZE_FIT = "fit"
RESIZE_EXACT = "resize"
RESIZE_METHODS = (RESIZE_NONE, RESIZE_FIT, RESIZE_EXACT)

# encode option keys
WEBP_QUALITY = "webp_quality"
JPEG_QUALITY = "jpeg_quality"
PNG_COMPRESSION = "png_compression"

OUTPUT_FILE_TYPE = ".webp"
OUTPUT_QUALITY = 90
ENCODE_TIMEOUT_S = 300.0
OUTPUT_CAPACITY = 50 * 1024 * 1024
MAX_TRANSFORM_SIZE = 8192

STATIC_SUFFIX = "_resized.webp"
ANIMATED_SUFFIX = "_resized_animated.webp"


@dataclass(frozen=True)
class TestTarget:
    """Файл, попавший в прогон.

    Fields:
        path: Путь к файлу во входном каталоге.
        extension: Расширение в нижнем регистре, с точкой (`.png`), либо "".
    """
    __test__ = False  # not a pytest class

    path: Path
    extension: str

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def is_graphical(self) -> bool:
        return self.extension in GRAPHICAL_FORMATS


FileGroups = Dict[str, List[TestTarget]]


@dataclass(frozen=True)
class DecodedHeader:
    """Минимальные метаданные, доступные без полного декодирования."""
    width: int
    height: int
    is_animated: bool


@dataclass(frozen=True)
class TransformOptions:
    """Неизменяемые параметры одного вызова трансформации.

    Fields:
        file_type: Целевой формат кодирования (`.webp`, `.jpeg`, `.png`).
        width: Целевая ширина, px.
        height: Целевая высота, px.
        resize_method: `fit` | `resize` | `none`.
        normalize_orientation: Применять ли EXIF-ориентацию до масштабирования.
        encode_options: Параметры кодировщика по ключам `*_QUALITY` / `PNG_COMPRESSION`.
        encode_timeout: Предел времени кодирования, с.
        disable_animated_output: Кодировать только первый кадр.
    """
    file_type: str
    width: int
    height: int
    resize_method: str = RESIZE_FIT
    normalize_orientation: bool = True
    encode_options: Mapping[str, int] = field(default_factory=dict)
    encode_timeout: float = ENCODE_TIMEOUT_S
    disable_animated_output: bool = True

    @classmethod
    def half_size(cls, header: DecodedHeader) -> "TransformOptions":
        """Статический вариант: половина исходных размеров, WebP q=90."""
        return cls(
            file_type=OUTPUT_FILE_TYPE,
            width=header.width // 2,
            height=header.height // 2,
            resize_method=RESIZE_FIT,
            normalize_orientation=True,
            encode_options={WEBP_QUALITY: OUTPUT_QUALITY},
            encode_timeout=ENCODE_TIMEOUT_S,
            disable_animated_output=True,
        )

    def animated(self) -> "TransformOptions":
        return replace(self, disable_animated_output=False)


@dataclass
class FileOutcome:
    """Итог обработки одного файла.

    `failures` копит причины отказа по мере проверки; файл, подпадающий под
    шаблон ожидаемых отказов, на итог прогона не влияет.
    """
    target: TestTarget
    expected_to_fail: bool = False
    failures: List[str] = field(default_factory=list)

    def fail(self, reason: str) -> None:
        self.failures.append(reason)

    @property
    def failed(self) -> bool:
        return bool(self.failures)

    @property
    def counts_as_failure(self) -> bool:
        return self.failed and not self.expected_to_fail


@dataclass
class RunOutcome:
    """Свёртка итогов по всем файлам в одно значение «прогон упал»."""
    outcomes: List[FileOutcome] = field(default_factory=list)

    def add(self, outcome: FileOutcome) -> None:
        self.outcomes.append(outcome)

    @property
    def unexpected_failures(self) -> List[FileOutcome]:
        return [o for o in self.outcomes if o.counts_as_failure]

    @property
    def failed(self) -> bool:
        return any(o.counts_as_failure for o in self.outcomes)

    @property
    def exit_code(self) -> int:
        return 1 if self.failed else 0

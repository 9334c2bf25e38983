from __future__ import annotations

from pathlib import Path

import pytest
from PIL import Image

from conftest import FakeDecoder, solid, write_gif, write_png
from mediacheck.models.media_model import FileOutcome, TestTarget
from mediacheck.services.codec_service import CodecService
from mediacheck.services.transform_service import TransformService


class CountingCodec(CodecService):
    def __init__(self) -> None:
        super().__init__(ffprobe_bin="mediacheck-no-such-ffprobe")
        self.opened = 0

    def open_decoder(self, buffer: bytes):
        self.opened += 1
        return super().open_decoder(buffer)


def _outcome(path: Path) -> FileOutcome:
    return FileOutcome(TestTarget(path=path, extension=path.suffix.lower()))


def test_static_image_produces_one_half_size_output(input_dir: Path, output_dir: Path) -> None:
    source = write_png(input_dir / "a.png", 64, 64)
    codec = CountingCodec()

    outcome = TransformService(codec, output_dir).test_file(_outcome(source))

    assert not outcome.failed
    assert sorted(p.name for p in output_dir.iterdir()) == ["a.png_resized.webp"]
    with Image.open(output_dir / "a.png_resized.webp") as out:
        assert out.size == (32, 32)
    # source decoder + verification of the produced bytes
    assert codec.opened == 2


def test_animated_image_produces_two_outputs(
    input_dir: Path, output_dir: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    source = write_gif(input_dir / "b.gif", 32, 32)
    codec = CountingCodec()

    outcome = TransformService(codec, output_dir).test_file(_outcome(source))

    assert not outcome.failed
    assert sorted(p.name for p in output_dir.iterdir()) == [
        "b.gif_resized.webp",
        "b.gif_resized_animated.webp",
    ]
    with Image.open(output_dir / "b.gif_resized.webp") as still:
        assert still.size == (16, 16)
        assert not getattr(still, "is_animated", False)
    with Image.open(output_dir / "b.gif_resized_animated.webp") as anim:
        assert anim.size == (16, 16)
        assert anim.is_animated
    # a fresh decoder is opened for the animated pass
    assert codec.opened == 4

    out = capsys.readouterr().out
    assert "Animated: True" in out
    assert out.count("Resized dimensions match: 16x16") == 2


def test_missing_output_directory_is_a_write_failure(input_dir: Path, tmp_path: Path) -> None:
    source = write_png(input_dir / "a.png", 16, 16)

    outcome = TransformService(CountingCodec(), tmp_path / "nowhere").test_file(_outcome(source))

    assert outcome.failures and outcome.failures[0].startswith("write error")


def test_one_pixel_image_cannot_be_halved(input_dir: Path, output_dir: Path) -> None:
    source = write_png(input_dir / "dot.png", 1, 1)

    outcome = TransformService(CountingCodec(), output_dir).test_file(_outcome(source))

    assert outcome.failures[0].startswith("transform error")
    assert list(output_dir.iterdir()) == []


def test_undecodable_image_fails_without_output(input_dir: Path, output_dir: Path) -> None:
    source = input_dir / "fake.jpg"
    source.write_bytes(b"not a jpeg at all")

    outcome = TransformService(CountingCodec(), output_dir).test_file(_outcome(source))

    assert outcome.failures[0].startswith("decode error")
    assert list(output_dir.iterdir()) == []


def test_missing_source_fails(input_dir: Path, output_dir: Path) -> None:
    outcome = TransformService(CountingCodec(), output_dir).test_file(_outcome(input_dir / "gone.png"))
    assert outcome.failures[0].startswith("read error")


def test_output_over_capacity_fails(input_dir: Path, output_dir: Path) -> None:
    source = write_png(input_dir / "a.png", 64, 64)

    outcome = TransformService(CountingCodec(), output_dir, capacity=16).test_file(_outcome(source))

    assert outcome.failures[0].startswith("transform error")
    assert list(output_dir.iterdir()) == []


def test_repeated_runs_write_identical_bytes(input_dir: Path, tmp_path: Path) -> None:
    source = write_gif(input_dir / "b.gif", 24, 24)
    results = []
    for run in ("first", "second"):
        out = tmp_path / run
        out.mkdir()
        TransformService(CountingCodec(), out).test_file(_outcome(source))
        results.append({p.name: p.read_bytes() for p in out.iterdir()})

    assert results[0] == results[1]
    assert len(results[0]) == 2


class MisreportingCodec(CountingCodec):
    """Decodes the source for real but reports a wrong size for the produced bytes."""

    def open_decoder(self, buffer: bytes):
        decoder = super().open_decoder(buffer)
        if self.opened == 1:
            return decoder
        decoder.close()
        return FakeDecoder(width=31, height=32, duration=-1.0)


def test_dimension_mismatch_fails_and_writes_nothing(input_dir: Path, output_dir: Path) -> None:
    source = write_png(input_dir / "a.png", 64, 64)

    outcome = TransformService(MisreportingCodec(), output_dir).test_file(_outcome(source))

    assert outcome.failures == ["resized dimensions do not match specified dimensions"]
    assert list(output_dir.iterdir()) == []


def test_multi_page_tiff_is_a_still_image(input_dir: Path, output_dir: Path) -> None:
    pages = [solid(32, 32, (255, 0, 0)), solid(32, 32, (0, 0, 255))]
    source = input_dir / "scan.tiff"
    pages[0].save(source, format="TIFF", save_all=True, append_images=pages[1:])

    outcome = TransformService(CountingCodec(), output_dir).test_file(_outcome(source))

    assert not outcome.failed
    assert sorted(p.name for p in output_dir.iterdir()) == ["scan.tiff_resized.webp"]
    with Image.open(output_dir / "scan.tiff_resized.webp") as out:
        assert out.size == (16, 16)

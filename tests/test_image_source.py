"""Unit tests for image source resolution."""

import io

import cv2
import numpy as np
import pytest
from PIL import Image
from PIL.TiffImagePlugin import IFDRational

from blursieve.errors import (
    EmptyImageError,
    ImageDecodeError,
    ImageNotFoundError,
    ImageReadError,
    ResolutionError,
)
from blursieve.image_source import (
    FilePath,
    ImageBuffer,
    StdinBytes,
    SyntheticCheckerboard,
    SyntheticNoise,
    SyntheticWhite,
    is_raw_file,
    load_source,
    resolve,
    synthetic_checkerboard,
)
from blursieve.metadata import extract_focal_length, format_focal_length


# ------------------------------------------------------------------ #
# ImageBuffer
# ------------------------------------------------------------------ #

def test_from_samples_row_major() -> None:
    image = ImageBuffer.from_samples(3, 2, [1, 2, 3, 4, 5, 6])

    assert (image.width, image.height) == (3, 2)
    assert image.pixels[1, 0] == 4
    assert image.samples() == bytes([1, 2, 3, 4, 5, 6])


def test_from_samples_accepts_bytes() -> None:
    image = ImageBuffer.from_samples(2, 2, b"\x00\xff\x10\x20")
    assert image.samples() == b"\x00\xff\x10\x20"


def test_from_samples_rejects_wrong_length() -> None:
    with pytest.raises(ValueError, match="Expected 6 samples"):
        ImageBuffer.from_samples(3, 2, [0] * 5)


def test_from_samples_rejects_out_of_range() -> None:
    with pytest.raises(ValueError, match=r"\[0, 255\]"):
        ImageBuffer.from_samples(2, 1, [0, 256])


@pytest.mark.parametrize("shape", [(0, 10), (10, 0)])
def test_zero_area_buffer_is_rejected(shape) -> None:
    with pytest.raises(EmptyImageError) as exc_info:
        ImageBuffer(np.zeros(shape, dtype=np.uint8))
    assert exc_info.value.code == "empty_image"


def test_buffer_requires_single_channel_uint8() -> None:
    with pytest.raises(ValueError):
        ImageBuffer(np.zeros((4, 4, 3), dtype=np.uint8))
    with pytest.raises(ValueError):
        ImageBuffer(np.zeros((4, 4), dtype=np.float32))


# ------------------------------------------------------------------ #
# Synthetic sources
# ------------------------------------------------------------------ #

def test_synthetic_white() -> None:
    image = resolve(SyntheticWhite(7, 3))

    assert (image.width, image.height) == (7, 3)
    assert np.all(image.pixels == 255)


def test_checkerboard_starts_black_and_alternates() -> None:
    image = resolve(SyntheticCheckerboard(4, 2, 1))

    assert image.pixels.tolist() == [
        [0, 255, 0, 255],
        [255, 0, 255, 0],
    ]


def test_checkerboard_partial_blocks_are_clipped() -> None:
    image = synthetic_checkerboard(7, 5, 3)

    assert image.pixels.shape == (5, 7)
    assert image.pixels[0, :].tolist() == [0, 0, 0, 255, 255, 255, 0]
    assert image.pixels[4, 6] == 255


def test_checkerboard_is_reproducible() -> None:
    first = resolve(SyntheticCheckerboard(64, 48, 5))
    second = resolve(SyntheticCheckerboard(64, 48, 5))

    assert first.samples() == second.samples()


def test_checkerboard_rejects_zero_block_size() -> None:
    with pytest.raises(ValueError):
        synthetic_checkerboard(10, 10, 0)


def test_synthetic_zero_dimension_is_empty_image() -> None:
    with pytest.raises(EmptyImageError):
        resolve(SyntheticWhite(0, 10))


def test_synthetic_noise_with_seed() -> None:
    image = resolve(SyntheticNoise(32, 16, seed=3))
    assert (image.width, image.height) == (32, 16)


def test_synthetic_sources_have_labels_and_no_size() -> None:
    source = load_source(SyntheticCheckerboard(10, 20, 2))

    assert source.label == "<synthetic-checkerboard 10x20 block=2>"
    assert source.size_bytes is None
    assert source.focal_length is None


def test_unknown_descriptor_is_type_error() -> None:
    with pytest.raises(TypeError):
        resolve("not a descriptor")


# ------------------------------------------------------------------ #
# Files and stdin
# ------------------------------------------------------------------ #

def test_resolve_png_file(white_png) -> None:
    source = load_source(FilePath(str(white_png)))

    assert source.label == str(white_png)
    assert source.size_bytes == white_png.stat().st_size
    assert (source.image.width, source.image.height) == (100, 100)
    assert np.all(source.image.pixels == 255)


def test_checkerboard_png_round_trips(checkerboard_png) -> None:
    image = resolve(FilePath(str(checkerboard_png)))
    assert image.samples() == synthetic_checkerboard(100, 100, 1).samples()


def test_colour_image_uses_luma_weights(write_png) -> None:
    blue = np.zeros((4, 4, 3), dtype=np.uint8)
    blue[:, :, 0] = 255  # BGR
    path = write_png("blue.png", blue)

    image = resolve(FilePath(str(path)))

    # 0.114 * 255
    assert int(image.pixels[0, 0]) == 29


def test_missing_file_is_not_found(tmp_path) -> None:
    missing = tmp_path / "missing.jpg"

    with pytest.raises(ImageNotFoundError) as exc_info:
        resolve(FilePath(str(missing)))

    assert exc_info.value.code == "not_found"
    assert isinstance(exc_info.value, FileNotFoundError)
    assert isinstance(exc_info.value, ResolutionError)


def test_text_file_is_decode_error(not_an_image) -> None:
    with pytest.raises(ImageDecodeError) as exc_info:
        resolve(FilePath(str(not_an_image)))
    assert exc_info.value.code == "decode_error"


def test_empty_file_is_decode_error(tmp_path) -> None:
    empty = tmp_path / "empty.png"
    empty.write_bytes(b"")

    with pytest.raises(ImageDecodeError):
        resolve(FilePath(str(empty)))


def test_directory_is_read_error(tmp_path) -> None:
    with pytest.raises(ImageReadError) as exc_info:
        resolve(FilePath(str(tmp_path)))
    assert exc_info.value.code == "io_error"


def test_stdin_bytes(checkerboard_png) -> None:
    data = checkerboard_png.read_bytes()
    source = load_source(StdinBytes(io.BytesIO(data)))

    assert source.label == "<stdin>"
    assert source.size_bytes == len(data)
    assert source.image.samples() == synthetic_checkerboard(100, 100, 1).samples()


def test_stdin_malformed_bytes() -> None:
    with pytest.raises(ImageDecodeError):
        resolve(StdinBytes(io.BytesIO(b"GIF? no, just noise")))


def test_stdin_read_failure_is_io_error() -> None:
    class BrokenStream:
        def read(self):
            raise OSError("device went away")

    with pytest.raises(ImageReadError):
        resolve(StdinBytes(BrokenStream()))


@pytest.mark.parametrize("path,expected", [
    ("shot.ARW", True),
    ("dir/shot.nef", True),
    ("shot.dng", True),
    ("shot.jpg", False),
    ("shot.png", False),
])
def test_is_raw_file(path, expected) -> None:
    assert is_raw_file(path) is expected


# ------------------------------------------------------------------ #
# Metadata
# ------------------------------------------------------------------ #

def _jpeg_with_focal_length(focal_length) -> bytes:
    exif = Image.Exif()
    exif[0x920A] = focal_length
    buffer = io.BytesIO()
    Image.new("RGB", (8, 8), "white").save(buffer, format="JPEG", exif=exif.tobytes())
    return buffer.getvalue()


def test_extract_focal_length_from_exif() -> None:
    data = _jpeg_with_focal_length(IFDRational(50, 1))
    assert extract_focal_length(data) == pytest.approx(50.0)


def test_extract_focal_length_without_exif(white_png) -> None:
    assert extract_focal_length(white_png.read_bytes()) is None


def test_extract_focal_length_from_garbage() -> None:
    assert extract_focal_length(b"definitely not an image") is None


def test_focal_length_reaches_loaded_source(tmp_path) -> None:
    path = tmp_path / "lens.jpg"
    path.write_bytes(_jpeg_with_focal_length(IFDRational(35, 1)))

    source = load_source(FilePath(str(path)))

    assert source.focal_length == pytest.approx(35.0)


def test_format_focal_length() -> None:
    assert format_focal_length(None) == "N/A"
    assert format_focal_length(50.0) == "50.0mm"


def test_imdecode_and_imwrite_agree(write_png) -> None:
    """Sanity check for the PNG fixtures themselves."""
    pixels = synthetic_checkerboard(9, 9, 2).pixels
    path = write_png("fixture.png", pixels)
    assert np.array_equal(cv2.imread(str(path), cv2.IMREAD_GRAYSCALE), pixels)


def test_from_samples_rejects_non_integral_values() -> None:
    with pytest.raises(ValueError, match="integers"):
        ImageBuffer.from_samples(2, 1, [1.7, 3.0])


def test_over_long_file_name_is_resolution_error() -> None:
    # A single path component longer than NAME_MAX (255 bytes)
    with pytest.raises(ResolutionError):
        resolve(FilePath("x" * 300 + ".jpg"))


def test_focal_length_ignores_pixel_count_limit(write_png, monkeypatch) -> None:
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 10_000)
    path = write_png("big.png", synthetic_checkerboard(300, 300, 4).pixels)

    assert extract_focal_length(path.read_bytes()) is None
    assert load_source(FilePath(str(path))).image.width == 300

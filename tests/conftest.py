"""
Shared pytest fixtures.

Strategy: images are generated in memory and written to tmp_path as PNG
(lossless), so every test file decodes back to exactly the samples it was
built from.
"""

import logging
from pathlib import Path
from typing import Callable

import cv2
import numpy as np
import pytest

from blursieve.config_loader import DetectorConfig
from blursieve.image_source import synthetic_checkerboard, synthetic_white
from blursieve.sharpness import build_detectors


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Undo setup_logging() so caplog sees records in every test."""
    yield
    logger = logging.getLogger('blursieve')
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


# ------------------------------------------------------------------ #
# Image files
# ------------------------------------------------------------------ #

@pytest.fixture
def write_png(tmp_path: Path) -> Callable[[str, np.ndarray], Path]:
    """Factory: write a uint8 array to tmp_path/<name> and return the path."""

    def _write(name: str, pixels: np.ndarray) -> Path:
        path = tmp_path / name
        assert cv2.imwrite(str(path), pixels)
        return path

    return _write


@pytest.fixture
def white_png(write_png) -> Path:
    """All-white 100x100 image."""
    return write_png("white.png", synthetic_white(100, 100).pixels)


@pytest.fixture
def checkerboard_png(write_png) -> Path:
    """1-pixel-block 100x100 checkerboard."""
    return write_png("checker.png", synthetic_checkerboard(100, 100, 1).pixels)


@pytest.fixture
def not_an_image(tmp_path: Path) -> Path:
    path = tmp_path / "not_an_image.txt"
    path.write_text("this is plain text, not a raster image\n")
    return path


# ------------------------------------------------------------------ #
# Detectors
# ------------------------------------------------------------------ #

@pytest.fixture
def default_detectors():
    return build_detectors(DetectorConfig())


@pytest.fixture
def all_detectors():
    return build_detectors(DetectorConfig(enabled=('laplacian', 'tenengrad', 'opencv_laplacian')))

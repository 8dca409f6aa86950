"""
Sharpness detectors.

Each detector reduces an intensity buffer to one metric and compares it to a
threshold fixed at construction:

- Laplacian: variance of the 4-neighbour Laplacian response
- Tenengrad: mean squared Sobel gradient magnitude
- OpenCVLaplacian: the Laplacian variance computed by OpenCV

Sharp images have strong edges and score high; blurry images lose those edges
and score low. A metric below the threshold means blurry.
"""

import logging
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Dict, List, Optional, Tuple, Type

import cv2
import numpy as np

from .image_source import ImageBuffer

logger = logging.getLogger('blursieve.Sharpness')


class BlurDetector(ABC):
    """Common contract for all blur detectors."""

    name: str = ""
    default_threshold: float = 0.0

    def __init__(self, threshold: Optional[float] = None):
        """
        Args:
            threshold: Metric value below which an image is blurry
                (default: the detector's built-in default)
        """
        self.threshold = float(self.default_threshold if threshold is None else threshold)

    @abstractmethod
    def measure(self, image: ImageBuffer) -> float:
        """Compute the sharpness metric for an image (higher = sharper)."""

    def detect(self, image: ImageBuffer) -> Tuple[float, bool]:
        """
        Measure an image and classify it.

        Args:
            image: Intensity buffer (not modified)

        Returns:
            Tuple of (metric, is_blurry)
        """
        metric = float(self.measure(image))
        return metric, metric < self.threshold

    def __repr__(self) -> str:
        return f"{type(self).__name__}(threshold={self.threshold})"


def _replicate_pad(image: ImageBuffer) -> np.ndarray:
    """Float copy of the image with a one-pixel clamped border."""
    return np.pad(image.pixels.astype(np.float64), 1, mode='edge')


def laplacian_response(image: ImageBuffer) -> np.ndarray:
    """
    Apply the [[0,1,0],[1,-4,1],[0,1,0]] kernel with replicated borders.

    Args:
        image: Intensity buffer

    Returns:
        float64 array with the same shape as the image
    """
    p = _replicate_pad(image)
    return (
        p[1:-1, 2:] + p[1:-1, :-2] + p[2:, 1:-1] + p[:-2, 1:-1]
        - 4.0 * p[1:-1, 1:-1]
    )


def sobel_gradients(image: ImageBuffer) -> Tuple[np.ndarray, np.ndarray]:
    """
    Horizontal and vertical 3x3 Sobel responses with replicated borders.

    gx uses [[-1,0,1],[-2,0,2],[-1,0,1]]; gy is its transpose.
    """
    p = _replicate_pad(image)
    # Column difference (right minus left) for the three rows of the window
    dx = p[:, 2:] - p[:, :-2]
    gx = dx[:-2, :] + 2.0 * dx[1:-1, :] + dx[2:, :]
    # Row difference (below minus above) for the three columns of the window
    dy = p[2:, :] - p[:-2, :]
    gy = dy[:, :-2] + 2.0 * dy[:, 1:-1] + dy[:, 2:]
    return gx, gy


class LaplacianVarianceDetector(BlurDetector):
    """
    Variance of the Laplacian.

    The Laplacian approximates the second derivative of the image. A flat
    image has a zero response everywhere and therefore zero variance.
    """

    name = "Laplacian"
    default_threshold = 100.0

    def measure(self, image: ImageBuffer) -> float:
        return float(laplacian_response(image).var())


class TenengradDetector(BlurDetector):
    """Mean of gx**2 + gy**2 over the whole image."""

    name = "Tenengrad"
    default_threshold = 1000.0

    def measure(self, image: ImageBuffer) -> float:
        gx, gy = sobel_gradients(image)
        return float(np.mean(gx * gx + gy * gy))


class OpenCVLaplacianDetector(BlurDetector):
    """
    Laplacian variance through cv2.Laplacian.

    ksize=1 selects the same 4-neighbour kernel as LaplacianVarianceDetector
    and BORDER_REPLICATE the same edge handling, so both agree to within
    floating point rounding.
    """

    name = "OpenCVLaplacian"
    default_threshold = 100.0

    def measure(self, image: ImageBuffer) -> float:
        # CV_64F = 64-bit float output, negative responses are kept
        laplacian = cv2.Laplacian(image.pixels, cv2.CV_64F, ksize=1,
                                  borderType=cv2.BORDER_REPLICATE)
        return float(laplacian.var())


# Registration order is the order verdicts are reported in.
DETECTOR_REGISTRY: Dict[str, Type[BlurDetector]] = OrderedDict([
    ('laplacian', LaplacianVarianceDetector),
    ('tenengrad', TenengradDetector),
    ('opencv_laplacian', OpenCVLaplacianDetector),
])


def build_detectors(config) -> List[BlurDetector]:
    """
    Instantiate the enabled detectors in registration order.

    Args:
        config: DetectorConfig with per-detector thresholds and the enabled set

    Returns:
        List of BlurDetector instances (empty if nothing is enabled)
    """
    enabled = set(config.enabled)
    unknown = enabled - set(DETECTOR_REGISTRY)
    if unknown:
        raise ValueError(f"Unknown detector(s): {', '.join(sorted(unknown))}")

    detectors = []
    for key, detector_cls in DETECTOR_REGISTRY.items():
        if key not in enabled:
            continue
        detector = detector_cls(config.threshold_for(key))
        logger.debug(f"Detector enabled: {detector}")
        detectors.append(detector)

    return detectors


def get_sharpness_category(metric: float, threshold: float) -> str:
    """
    Categorize a metric relative to its threshold.

    Returns:
        One of 'very_sharp', 'sharp', 'acceptable', 'soft', 'blurry',
        'very_blurry'
    """
    if metric >= threshold * 2:
        return 'very_sharp'
    elif metric >= threshold * 1.3:
        return 'sharp'
    elif metric >= threshold:
        return 'acceptable'
    elif metric >= threshold * 0.7:
        return 'soft'
    elif metric >= threshold * 0.4:
        return 'blurry'
    else:
        return 'very_blurry'

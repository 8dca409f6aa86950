"""
EXIF lookups for the per-image report.

Only the focal length is read. The value is informational and never feeds
into blur classification.
"""

import io
import logging
import warnings
from typing import Optional

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger('blursieve.Metadata')

EXIF_IFD_POINTER = 0x8769
TAG_FOCAL_LENGTH = 0x920A


def extract_focal_length(data: bytes) -> Optional[float]:
    """
    Read the EXIF FocalLength tag from encoded image bytes.

    Args:
        data: Encoded image file contents

    Returns:
        Focal length in millimetres, or None if the image has no EXIF block,
        no focal length, or a format Pillow cannot parse
    """
    try:
        # Pixel data is never decoded here
        with warnings.catch_warnings():
            warnings.simplefilter('ignore', Image.DecompressionBombWarning)
            with Image.open(io.BytesIO(data)) as img:
                exifdata = img.getexif()
                # Camera settings live in the Exif sub-IFD; a few writers put
                # them in IFD0.
                focal_length = exifdata.get_ifd(EXIF_IFD_POINTER).get(TAG_FOCAL_LENGTH)
                if focal_length is None:
                    focal_length = exifdata.get(TAG_FOCAL_LENGTH)
    except (UnidentifiedImageError, Image.DecompressionBombError,
            OSError, ValueError, SyntaxError) as e:
        logger.debug(f"No EXIF data available: {e}")
        return None

    if focal_length is None:
        return None

    try:
        if isinstance(focal_length, tuple):
            return float(focal_length[0]) / float(focal_length[1])
        return float(focal_length)
    except (TypeError, ValueError, ZeroDivisionError) as e:
        logger.debug(f"Unreadable focal length {focal_length!r}: {e}")
        return None


def format_focal_length(focal_length: Optional[float]) -> str:
    """Render a focal length for reports, e.g. '50.0mm' or 'N/A'."""
    if focal_length is None:
        return "N/A"
    return f"{focal_length:.1f}mm"

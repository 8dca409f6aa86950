"""
Detection orchestrator.

Runs every enabled detector over one image, merges the verdicts into an
overall classification and collects the per-image report.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .errors import NoDetectorsEnabledError, ResolutionError
from .image_source import FilePath, ImageBuffer, LoadedSource, load_source
from .sharpness import BlurDetector
from .utils import format_time

# How verdicts combine into one image-level verdict:
#   any     - blurry if any detector says blurry
#   all     - blurry only if every detector says blurry
#   primary - the first enabled detector decides alone
VALID_POLICIES = ('any', 'all', 'primary')


@dataclass(frozen=True)
class DetectorVerdict:
    """One detector's result for one image."""
    name: str
    metric: float
    threshold: float
    is_blurry: bool


@dataclass
class ImageReport:
    """Verdicts and descriptive data for a single resolved image."""
    label: str
    verdicts: List[DetectorVerdict]
    is_blurry: bool
    width: int
    height: int
    size_bytes: Optional[int] = None
    focal_length: Optional[float] = None


@dataclass
class ProcessingResult:
    """Outcome of processing one path from the stream."""
    image_path: str
    status: str  # 'blurry', 'sharp', 'error'
    report: Optional[ImageReport]
    error_message: Optional[str]
    processing_time: float


@dataclass
class ProcessingReport:
    """Running totals for a whole invocation."""
    blurry_count: int = 0
    sharp_count: int = 0
    error_count: int = 0
    emitted_count: int = 0
    total_time: float = 0.0
    errors: List[str] = field(default_factory=list)

    @property
    def total_images(self) -> int:
        return self.blurry_count + self.sharp_count + self.error_count

    def add(self, result: ProcessingResult) -> None:
        if result.status == 'blurry':
            self.blurry_count += 1
        elif result.status == 'sharp':
            self.sharp_count += 1
        else:
            self.error_count += 1
            self.errors.append(result.image_path)

    def format_summary(self) -> str:
        """Format summary as a single log-friendly line."""
        return (
            f"Processed {self.total_images} image(s): "
            f"blurry={self.blurry_count} sharp={self.sharp_count} "
            f"errors={self.error_count} emitted={self.emitted_count} "
            f"in {format_time(self.total_time)}"
        )


def run_detectors(image: ImageBuffer,
                  detectors: Sequence[BlurDetector]) -> List[DetectorVerdict]:
    """
    Run every detector over the same image, in the given order.

    All detectors always run, even after one reports blur, so verbose output
    has the complete picture.

    Args:
        image: Intensity buffer
        detectors: Enabled detectors in registration order

    Returns:
        List of DetectorVerdict, one per detector

    Raises:
        NoDetectorsEnabledError: If detectors is empty
    """
    if not detectors:
        raise NoDetectorsEnabledError()

    verdicts = []
    for detector in detectors:
        metric, is_blurry = detector.detect(image)
        verdicts.append(DetectorVerdict(
            name=detector.name,
            metric=metric,
            threshold=detector.threshold,
            is_blurry=is_blurry
        ))
    return verdicts


def classify(verdicts: Sequence[DetectorVerdict], policy: str = 'any') -> bool:
    """
    Combine verdicts into the image-level is_blurry flag.

    Args:
        verdicts: Ordered verdicts for one image
        policy: 'any', 'all' or 'primary'

    Returns:
        True if the image counts as blurry
    """
    if not verdicts:
        raise NoDetectorsEnabledError()

    if policy == 'any':
        return any(v.is_blurry for v in verdicts)
    elif policy == 'all':
        return all(v.is_blurry for v in verdicts)
    elif policy == 'primary':
        return verdicts[0].is_blurry
    else:
        raise ValueError(f"Unknown combining policy: {policy}")


def analyze_source(source: LoadedSource, detectors: Sequence[BlurDetector],
                   policy: str = 'any') -> ImageReport:
    """Run the detectors over an already resolved source."""
    verdicts = run_detectors(source.image, detectors)
    return ImageReport(
        label=source.label,
        verdicts=verdicts,
        is_blurry=classify(verdicts, policy),
        width=source.image.width,
        height=source.image.height,
        size_bytes=source.size_bytes,
        focal_length=source.focal_length
    )


class BlurDetectionProcessor:
    """Classifies image paths with a fixed detector set and policy."""

    def __init__(self, detectors: Sequence[BlurDetector], policy: str = 'any',
                 logger: Optional[logging.Logger] = None):
        """
        Initialize blur detection processor.

        Args:
            detectors: Enabled detectors in registration order
            policy: Combining policy ('any', 'all', 'primary')
            logger: Optional logger instance

        Raises:
            NoDetectorsEnabledError: If detectors is empty
            ValueError: If policy is unknown
        """
        if not detectors:
            raise NoDetectorsEnabledError()
        if policy not in VALID_POLICIES:
            raise ValueError(
                f"Combining policy must be one of: {', '.join(VALID_POLICIES)}"
            )

        self.detectors = list(detectors)
        self.policy = policy
        self.logger = logger or logging.getLogger('blursieve.Processor')

        self.logger.debug(
            f"Processor initialized - detectors: "
            f"{', '.join(d.name for d in self.detectors)}, policy: {policy}"
        )

    def process_path(self, image_path: str) -> ImageReport:
        """
        Resolve and classify one image file.

        Raises:
            ResolutionError: If the file cannot be turned into an image
        """
        source = load_source(FilePath(image_path))
        return analyze_source(source, self.detectors, self.policy)

    def process_single_image(self, image_path: str) -> ProcessingResult:
        """
        Process a single image, converting resolution failures to an
        'error' result.

        Args:
            image_path: Path to the image

        Returns:
            ProcessingResult object
        """
        start_time = time.time()

        try:
            # Decoders map their own failures to ResolutionError subclasses
            report = self.process_path(image_path)
        except ResolutionError as e:
            self.logger.error(f"Error processing {image_path}: [{e.code}] {e.message}")
            return ProcessingResult(
                image_path=image_path,
                status='error',
                report=None,
                error_message=str(e),
                processing_time=time.time() - start_time
            )

        status = 'blurry' if report.is_blurry else 'sharp'
        self.logger.debug(
            f"{status.upper()}: {image_path} - " +
            ", ".join(f"{v.name}={v.metric:.1f}" for v in report.verdicts)
        )

        return ProcessingResult(
            image_path=image_path,
            status=status,
            report=report,
            error_message=None,
            processing_time=time.time() - start_time
        )

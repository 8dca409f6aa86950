"""
Human-readable report formatting.

Three styles:
- plain:   one line per image, `path<TAB>BLURRY|SHARP`
- verbose: a block per image with size, dimensions and per-detector detail
- ascii:   TSV, one line per detector, for spreadsheets and awk
"""

from typing import List

from .metadata import format_focal_length
from .processor import ImageReport
from .sharpness import get_sharpness_category
from .utils import format_bytes

OUTPUT_STYLES = ('plain', 'verbose', 'ascii')


def verdict_label(is_blurry: bool) -> str:
    return "BLURRY" if is_blurry else "SHARP"


def format_report(report: ImageReport, style: str = 'plain') -> str:
    """
    Render one image report.

    Args:
        report: ImageReport to render
        style: 'plain', 'verbose' or 'ascii'

    Returns:
        Formatted text without a trailing newline
    """
    if style == 'ascii':
        return _format_ascii(report)
    elif style == 'verbose':
        return _format_verbose(report)
    elif style == 'plain':
        return f"{report.label}\t{verdict_label(report.is_blurry)}"
    else:
        raise ValueError(f"Unknown output style: {style}")


def _format_verbose(report: ImageReport) -> str:
    size = format_bytes(report.size_bytes) if report.size_bytes is not None else "N/A"
    lines: List[str] = [
        f"File: {report.label}",
        f"  Size: {size}",
        f"  Dimensions: {report.width}x{report.height}",
        f"  Focal Length: {format_focal_length(report.focal_length)}",
    ]
    for v in report.verdicts:
        lines.append(
            f"  {v.name}: value = {v.metric:.3f}, threshold = {v.threshold:.3f} "
            f"=> {verdict_label(v.is_blurry)} ({get_sharpness_category(v.metric, v.threshold)})"
        )
    lines.append(f"  Overall: {verdict_label(report.is_blurry)}")
    return "\n".join(lines)


def _format_ascii(report: ImageReport) -> str:
    size = report.size_bytes if report.size_bytes is not None else "-"
    return "\n".join(
        f"{report.label}\t{size}\t{report.width}\t{report.height}\t"
        f"{v.name}\t{v.metric:.6f}\t{v.threshold:.3f}\t{verdict_label(v.is_blurry)}"
        for v in report.verdicts
    )

"""
NUL-delimited record streaming.

Reads path records the way `find -print0` writes them and, in passthrough
mode, writes the surviving records back out in exactly the same framing so
the output can be fed to `xargs -0` or another NUL-aware consumer.

Only one record (plus one read chunk) is held in memory at a time.
"""

import logging
import os
import sys
from enum import Enum
from typing import BinaryIO, Iterable, Iterator, Optional, TextIO

from tqdm import tqdm

from .errors import StreamReadError
from .output import format_report
from .processor import BlurDetectionProcessor, ProcessingReport

logger = logging.getLogger('blursieve.Stream')

RECORD_SEPARATOR = b"\0"
DEFAULT_CHUNK_SIZE = 64 * 1024


class FilterMode(str, Enum):
    """Which classified records survive passthrough."""
    BLURRY = 'blurry'
    SHARP = 'sharp'
    ALL = 'all'

    def matches(self, is_blurry: bool) -> bool:
        if self is FilterMode.BLURRY:
            return is_blurry
        if self is FilterMode.SHARP:
            return not is_blurry
        return True


def iter_records(stream: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
    """
    Lazily split a binary stream into NUL-separated records.

    Empty records (two separators in a row) are skipped. A final record
    without a trailing separator is still yielded.

    Args:
        stream: Binary input stream
        chunk_size: Maximum bytes requested per read

    Yields:
        Raw record bytes, without the separator

    Raises:
        StreamReadError: If reading the stream fails
    """
    # read1 returns whatever is already available instead of blocking for a
    # full chunk, so records from a slow producer are handled as they arrive.
    read = getattr(stream, 'read1', stream.read)
    pending = bytearray()

    while True:
        try:
            chunk = read(chunk_size)
        except OSError as e:
            raise StreamReadError(f"Failed to read record stream: {e}") from e

        if not chunk:
            break

        pending.extend(chunk)
        *complete, pending = pending.split(RECORD_SEPARATOR)
        for record in complete:
            if record:
                yield bytes(record)

    if pending:
        yield bytes(pending)


def record_to_path(record: bytes) -> str:
    """Decode a record to a filesystem path, round-tripping undecodable bytes."""
    return os.fsdecode(record)


class NulRecordWriter:
    """Writes NUL-terminated records and flushes after each one."""

    def __init__(self, stream: BinaryIO):
        self.stream = stream
        self.count = 0

    def write(self, record: bytes) -> None:
        self.stream.write(record + RECORD_SEPARATOR)
        self.stream.flush()
        self.count += 1


def run_passthrough(records: Iterable[bytes],
                    processor: BlurDetectionProcessor,
                    writer: NulRecordWriter,
                    mode: FilterMode = FilterMode.BLURRY,
                    annotations: Optional[TextIO] = None,
                    show_progress: bool = False) -> ProcessingReport:
    """
    Re-emit the records whose classification matches `mode`.

    Records are emitted byte-for-byte, in input order. Records that fail to
    resolve are logged and dropped. In FilterMode.ALL every classified record
    is emitted and its verdict is written as a text line to `annotations`.

    Args:
        records: Raw path records
        processor: Configured BlurDetectionProcessor
        writer: Output record writer
        mode: Filter predicate
        annotations: Text stream for per-record verdicts in ALL mode
            (default: stderr)
        show_progress: Show a tqdm counter on stderr

    Returns:
        ProcessingReport with the run totals
    """
    report = ProcessingReport()
    if mode is FilterMode.ALL and annotations is None:
        annotations = sys.stderr

    for record in tqdm(records, desc="Filtering", unit="img",
                       file=sys.stderr, disable=not show_progress):
        result = processor.process_single_image(record_to_path(record))
        report.add(result)
        report.total_time += result.processing_time

        if result.report is None:
            continue

        if mode is FilterMode.ALL:
            annotations.write(f"{result.status.upper()}\t{result.image_path}\n")
            annotations.flush()

        if mode.matches(result.report.is_blurry):
            writer.write(record)
            report.emitted_count += 1

    return report


def run_path_list(records: Iterable[bytes],
                  processor: BlurDetectionProcessor,
                  out: TextIO,
                  style: str = 'plain',
                  show_progress: bool = False) -> ProcessingReport:
    """
    Classify every record and print a human-readable report for each.

    Args:
        records: Raw path records
        processor: Configured BlurDetectionProcessor
        out: Text output stream
        style: Output style ('plain', 'verbose', 'ascii')
        show_progress: Show a tqdm counter on stderr

    Returns:
        ProcessingReport with the run totals
    """
    report = ProcessingReport()

    for record in tqdm(records, desc="Processing", unit="img",
                       file=sys.stderr, disable=not show_progress):
        result = processor.process_single_image(record_to_path(record))
        report.add(result)
        report.total_time += result.processing_time

        if result.report is not None:
            out.write(format_report(result.report, style) + "\n")
            out.flush()
            report.emitted_count += 1

    return report

"""
Main entry point for the blur filter.

Usage:
    find photos/ -iname '*.jpg' -print0 | blursieve
    find photos/ -iname '*.jpg' -print0 | blursieve -p -s | xargs -0 cp -t keep/
    blursieve --file photo.jpg --verbose
    blursieve --synthetic-checkerboard --block-size 10
    blursieve -B < photo.jpg
"""

import argparse
import io
import logging
import sys
from typing import BinaryIO, List, Optional

from . import __version__
from .config_loader import (
    DEFAULT_DETECTORS,
    apply_overrides,
    detector_config_from,
    get_config_value,
    load_config,
    print_config_summary,
)
from .errors import (
    ConfigError,
    NoDetectorsEnabledError,
    ResolutionError,
    StreamReadError,
)
from .image_source import (
    FilePath,
    ImageSourceDescriptor,
    StdinBytes,
    SyntheticCheckerboard,
    SyntheticNoise,
    SyntheticWhite,
    load_source,
)
from .output import format_report
from .processor import BlurDetectionProcessor, analyze_source
from .sharpness import DETECTOR_REGISTRY, build_detectors
from .stream import FilterMode, NulRecordWriter, iter_records, run_passthrough, run_path_list
from .utils import setup_logging


def _detector_list(value: str) -> List[str]:
    names = [name.strip() for name in value.split(',') if name.strip()]
    if not names:
        raise argparse.ArgumentTypeError("expected a comma-separated list of detectors")
    return names


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog='blursieve',
        description="Classify images as blurry or sharp; filter NUL-delimited path streams",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  find . -iname '*.jpg' -print0 | %(prog)s
  find . -iname '*.jpg' -print0 | %(prog)s -p -b | xargs -0 rm --
  %(prog)s --file photo.jpg --verbose
  %(prog)s --synthetic-checkerboard --block-size 10
  %(prog)s -B < photo.png
        """
    )

    source = parser.add_mutually_exclusive_group()
    source.add_argument('-f', '--file', help='Analyze a single image file')
    source.add_argument('--synthetic-white', action='store_true',
                        help='Analyze a generated solid white image')
    source.add_argument('--synthetic-checkerboard', action='store_true',
                        help='Analyze a generated black/white checkerboard')
    source.add_argument('--synthetic-noise', action='store_true',
                        help='Analyze generated random static (debugging aid)')
    source.add_argument('-B', '--stdin-bytes', action='store_true',
                        help='Read one encoded image from stdin')
    source.add_argument('-p', '--passthrough', action='store_true',
                        help='Re-emit matching NUL-terminated paths from stdin to stdout')

    synthetic = parser.add_argument_group('synthetic images')
    synthetic.add_argument('--width', type=int, default=256, help='Width in pixels (default: 256)')
    synthetic.add_argument('--height', type=int, default=256, help='Height in pixels (default: 256)')
    synthetic.add_argument('--block-size', type=int, default=1,
                           help='Checkerboard block size in pixels (default: 1)')
    synthetic.add_argument('--seed', type=int, default=None, help='Seed for --synthetic-noise')

    detectors = parser.add_argument_group('detectors')
    detectors.add_argument('-t', '--threshold', type=float, default=None,
                           help='Laplacian variance threshold (default: 100)')
    detectors.add_argument('--tenengrad-threshold', type=float, default=None,
                           help='Tenengrad (Sobel) threshold (default: 1000)')
    detectors.add_argument('--opencv-laplacian-threshold', type=float, default=None,
                           help='OpenCV Laplacian variance threshold (default: 100)')
    detectors.add_argument('--detectors', type=_detector_list, default=None,
                           help=f"Comma-separated detectors to run, from: "
                                f"{', '.join(DETECTOR_REGISTRY)} "
                                f"(default: {','.join(DEFAULT_DETECTORS)})")
    detectors.add_argument('--policy', choices=['any', 'all', 'primary'], default=None,
                           help='How detector verdicts combine (default: any)')

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument('-b', '--blurry', dest='filter_mode', action='store_const',
                      const='blurry', help='Passthrough keeps blurry images (default)')
    mode.add_argument('-s', '--sharp', dest='filter_mode', action='store_const',
                      const='sharp', help='Passthrough keeps sharp images')
    mode.add_argument('--all', dest='filter_mode', action='store_const', const='all',
                      help='Passthrough keeps every image; verdicts go to stderr')

    style = parser.add_mutually_exclusive_group()
    style.add_argument('-v', '--verbose', dest='style', action='store_const', const='verbose',
                       help='Detailed per-detector report')
    style.add_argument('-a', '--ascii', dest='style', action='store_const', const='ascii',
                       help='Tab-separated report, one line per detector')

    parser.add_argument('--config', default=None, help='Optional YAML configuration file')
    parser.add_argument('--log-level', default=None,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        help='Console log level (default: WARNING)')
    parser.add_argument('--log-file', default=None, help='Also write the log to this file')
    parser.add_argument('--progress', action='store_const', const=True, default=None,
                        help='Show a progress counter on stderr')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')

    parser.set_defaults(filter_mode=None, style=None)
    return parser.parse_args(argv)


def select_image_source(args: argparse.Namespace,
                        stdin: BinaryIO) -> Optional[ImageSourceDescriptor]:
    """
    Map command-line flags to a single-image source.

    Returns:
        A descriptor, or None when stdin carries a stream of paths
    """
    if args.file is not None:
        return FilePath(args.file)
    if args.synthetic_white:
        return SyntheticWhite(args.width, args.height)
    if args.synthetic_checkerboard:
        return SyntheticCheckerboard(args.width, args.height, args.block_size)
    if args.synthetic_noise:
        return SyntheticNoise(args.width, args.height, args.seed)
    if args.stdin_bytes:
        return StdinBytes(stdin)
    return None


def _build_config(args: argparse.Namespace) -> dict:
    config = load_config(args.config)
    return apply_overrides(config, {
        'detectors.laplacian_threshold': args.threshold,
        'detectors.tenengrad_threshold': args.tenengrad_threshold,
        'detectors.opencv_laplacian_threshold': args.opencv_laplacian_threshold,
        'detectors.enabled': args.detectors,
        'detectors.policy': args.policy,
        'output.filter_mode': args.filter_mode,
        'output.style': args.style,
        'logging.level': args.log_level,
        'logging.log_file': args.log_file,
        'logging.show_progress': args.progress,
    })


def main(argv: Optional[List[str]] = None,
         stdin: Optional[BinaryIO] = None,
         stdout: Optional[BinaryIO] = None) -> int:
    """
    Main entry point.

    Args:
        argv: Command-line arguments (default: sys.argv[1:])
        stdin: Binary input stream (default: sys.stdin.buffer)
        stdout: Binary output stream (default: sys.stdout.buffer)

    Returns:
        Process exit status
    """
    args = parse_arguments(argv)
    stdin = stdin if stdin is not None else sys.stdin.buffer
    stdout = stdout if stdout is not None else sys.stdout.buffer

    try:
        config = _build_config(args)
    except (FileNotFoundError, ConfigError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    logger = setup_logging(config)
    print_config_summary(config, logger)

    descriptor = select_image_source(args, stdin)
    if descriptor is None and not args.passthrough and stdin.isatty():
        # No source flag and nothing piped in
        parse_arguments(['--help'])

    text_out = io.TextIOWrapper(stdout, encoding='utf-8', errors='surrogateescape',
                                write_through=True)
    try:
        detector_config = detector_config_from(config)
        processor = BlurDetectionProcessor(
            build_detectors(detector_config),
            policy=detector_config.policy,
            logger=logging.getLogger('blursieve.Processor')
        )
        style = config['output']['style']

        if descriptor is not None:
            return _process_single(descriptor, processor, text_out, style, logger)

        records = iter_records(stdin)
        show_progress = bool(get_config_value(config, 'logging.show_progress', False))
        if args.passthrough:
            report = run_passthrough(
                records, processor, NulRecordWriter(stdout),
                mode=FilterMode(config['output']['filter_mode']),
                show_progress=show_progress
            )
        else:
            report = run_path_list(records, processor, text_out, style=style,
                                   show_progress=show_progress)

        logger.info(report.format_summary())
        return 0

    except StreamReadError as e:
        logger.critical(f"{e.message}")
        return 1

    except NoDetectorsEnabledError as e:
        logger.critical(f"{e.message}")
        return 1

    except BrokenPipeError:
        logger.warning("Output closed by downstream consumer")
        return 1

    except KeyboardInterrupt:
        logger.warning("Processing interrupted by user")
        return 130

    finally:
        # Leave the caller's binary stream open
        text_out.detach()


def _process_single(descriptor: ImageSourceDescriptor,
                    processor: BlurDetectionProcessor,
                    out: io.TextIOBase, style: str,
                    logger: logging.Logger) -> int:
    """Analyze one image from a file, stdin bytes or a synthetic pattern."""
    try:
        source = load_source(descriptor)
    except ResolutionError as e:
        logger.error(f"Error processing {descriptor}: [{e.code}] {e.message}")
        return 1
    except ValueError as e:
        logger.error(f"Invalid synthetic image parameters: {e}")
        return 1

    report = analyze_source(source, processor.detectors, processor.policy)
    out.write(format_report(report, style) + "\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())

import argparse
import logging
import os
import sys
import time

from simple_diff.formats import DEFAULT_CONTEXT, OutputMode, format_diff
from simple_diff.lcsdiff import DiffSession, ResourceExceeded
from simple_diff.reader import FileInputError, file_timestamp, read_lines


logger = logging.getLogger(__name__)

HELP_HINT = "Use --help option for more information."


def setup_logging() -> None:
    """Configures logging from SDIFF_LOG_LEVEL unless the application already did."""
    if logging.root.handlers:
        return
    level = os.environ.get("SDIFF_LOG_LEVEL", "WARNING").upper()
    if not isinstance(logging.getLevelName(level), int):
        level = "WARNING"
    logging.basicConfig(level=level, format='%(levelname)s: %(message)s')


def context_value(value: str) -> int:
    """argparse type for the number of unified context lines."""
    if not (value.isascii() and value.isdigit()):
        raise argparse.ArgumentTypeError(f"invalid context length '{value}' (expected a non-negative integer)")
    if len(value) > 9:
        raise argparse.ArgumentTypeError(f"context length {value} is too big")
    return int(value)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sdiff",
        usage="%(prog)s [OPTION] FILE1 FILE2",
        description="Compare two text files line by line.",
        add_help=False,
    )
    parser.add_argument("file1", metavar="FILE1", help="Original file")
    parser.add_argument("file2", metavar="FILE2", help="Changed file")

    modes = parser.add_mutually_exclusive_group()
    modes.add_argument(
        "-u", "--unified", dest="context", nargs='?', const=DEFAULT_CONTEXT, type=context_value,
        metavar="CONTEXT_LINES",
        help=f"Unified output format with CONTEXT_LINES context lines (default {DEFAULT_CONTEXT})",
    )
    modes.add_argument("-n", "--normal", action="store_true", help="Normal output format (default)")
    modes.add_argument("-p", "--plain", action="store_true", help="Plain output format (print both files)")
    parser.add_argument("--help", action="help", help="Show this message and exit")
    return parser


def separate_paths(argv: list[str]) -> list[str]:
    """
    Puts `--` in front of the two trailing paths.

    `-u` takes an optional value, so without the separator `-u FILE1 FILE2`
    would read FILE1 as the context length.
    """
    if '--' in argv or len(argv) < 2:
        return argv
    if any(arg.startswith('-') and arg != '-' for arg in argv[-2:]):
        return argv
    return argv[:-2] + ['--'] + argv[-2:]


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    if argv is None:
        argv = sys.argv[1:]
    args = build_parser().parse_args(separate_paths(list(argv)))

    if args.context is not None:
        args.mode = OutputMode.UNIFIED
    elif args.plain:
        args.mode = OutputMode.PLAIN
    else:
        args.mode = OutputMode.NORMAL
    return args


def main(argv: list[str] | None = None) -> int:
    setup_logging()
    args = parse_args(argv)
    file1, file2 = args.file1, args.file2

    try:
        lines_a = read_lines(file1)
        lines_b = read_lines(file2)
    except ValueError as e:
        print(e, file=sys.stderr)
        print(HELP_HINT, file=sys.stderr)
        return 1

    start_time = time.perf_counter()
    session = DiffSession(lines_a, lines_b)
    try:
        session.compare()
    except (ResourceExceeded, ValueError) as e:
        print(e, file=sys.stderr)
        return 1

    header = {}
    if args.mode is OutputMode.UNIFIED:
        header = {
            'fromfile': file1,
            'tofile': file2,
            'fromdate': file_timestamp(file1),
            'todate': file_timestamp(file2),
        }
    output = format_diff(session, args.mode, args.context if args.context is not None else DEFAULT_CONTEXT, **header)
    logger.debug(f"Compared {file1} and {file2} in {time.perf_counter() - start_time:.4f}s")

    if output:
        sys.stdout.write("\n".join(output) + "\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())

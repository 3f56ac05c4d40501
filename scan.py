#!/usr/bin/env python3
"""
scan.py — 掃描資料夾，輸出每張圖片的感知指紋

Usage:
    python scan.py [options] [<dir> ...]
    python scan.py /path/to/photos
    python scan.py -L --max-depth 3 /path/a /path/b
    python scan.py -x -n 16 /mnt/photos

輸出 (stdout)：每張圖一行 "<指紋 base64>\\t<絕對路徑>"
錯誤 (stderr)：每個失敗項目一行 "ERROR: <描述>"
"""

import argparse
import logging
import sys

from photo_hash import __version__
from photo_hash.config import ScanConfig
from photo_hash.exceptions import InvalidParameterError, PhotoHashError
from photo_hash.scanner import scan
from photo_hash.walker import DEFAULT_MAX_OPEN


def _configure_logging(verbose: bool = False, debug: bool = False):
    """Set up root logging on stderr; stdout is reserved for results."""
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )
    # Pillow 等函式庫的 warning 也走同樣的格式
    logging.captureWarnings(True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Print a perceptual fingerprint for every image under the given directories",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scan.py /path/to/photos
  python scan.py -L --max-depth 3 /path/a /path/b
  python scan.py -x -n 16 /mnt/photos > fingerprints.tsv
        """,
    )
    parser.add_argument(
        "dirs",
        nargs="*",
        metavar="dir",
        help="Directories to scan (default: current directory) / 要掃描的資料夾",
    )
    parser.add_argument(
        "-L", "--follow-links",
        action="store_true",
        help="Follow symlinks / 跟隨符號連結",
    )
    parser.add_argument(
        "--min-depth",
        type=int,
        default=0,
        metavar="NUM",
        help="Minimum depth (default: 0) / 最小深度",
    )
    parser.add_argument(
        "--max-depth",
        type=int,
        default=None,
        metavar="NUM",
        help="Maximum depth (default: unlimited) / 最大深度",
    )
    parser.add_argument(
        "-n", "--fd-max",
        type=int,
        default=DEFAULT_MAX_OPEN,
        metavar="NUM",
        help=f"Maximum open directory handles (default: {DEFAULT_MAX_OPEN})",
    )
    parser.add_argument(
        "-x", "--same-file-system",
        action="store_true",
        help="Stay on the same file system / 不跨越檔案系統",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log progress and a summary to stderr",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Log traversal decisions to stderr",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(verbose=args.verbose, debug=args.debug)

    config = ScanConfig(
        roots=tuple(args.dirs),
        follow_links=args.follow_links,
        min_depth=args.min_depth,
        max_depth=args.max_depth,
        max_open=args.fd_max,
        same_file_system=args.same_file_system,
    )

    try:
        config.validate()
    except InvalidParameterError as e:
        parser.print_usage(sys.stderr)
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        scan(config)
    except PhotoHashError as e:
        sys.stdout.flush()
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()

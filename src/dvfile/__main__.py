"""Print the header of one or more DV files.

Usage:
    python -m dvfile <path_to_file> [<path_to_file> ...] [options]

Examples:
    python -m dvfile image.dv
    python -m dvfile image.dv --titles
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from dvfile import DVFile, DVFileError


def main(argv: list[str] | None = None) -> int:
    """Print a human-readable header summary for each file."""
    parser = argparse.ArgumentParser(
        prog="dvfile",
        description="Show the header of DeltaVision (DV) files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("file_paths", type=Path, nargs="+", help="Files to inspect")
    parser.add_argument(
        "-t",
        "--titles",
        action="store_true",
        help="Also print the stored titles",
    )
    args = parser.parse_args(argv)

    status = 0
    for path in args.file_paths:
        try:
            with DVFile(path) as dv:
                print(f"{path}:")
                print(dv.summary())
                print(f"  Axis sizes: {dv.sizes}")
                if args.titles:
                    for title in dv.header.titles:
                        print(f"  Title: {title}")
        except DVFileError as e:
            print(f"Error: {e}", file=sys.stderr)
            status = 1
    return status


if __name__ == "__main__":
    raise SystemExit(main())

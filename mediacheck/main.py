"""Точка входа в приложение."""
import argparse
import sys
from typing import List, Optional

from mediacheck.app import HarnessApp, __version__, configure_logging
from mediacheck.config import HarnessConfig


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mediacheck",
        description="Decode, inspect and resize every media file in a directory.",
    )
    parser.add_argument("input_dir", help="directory with the files to test")
    parser.add_argument("output_dir", help="directory for resized outputs")
    parser.add_argument(
        "expected_failures",
        nargs="?",
        default="",
        help="glob of file names whose failures do not fail the run",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Разбирает аргументы, настраивает логирование и запускает прогон."""
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = HarnessConfig.from_args(args)
    except ValueError as exc:
        parser.error(str(exc))

    configure_logging(config.log_level)
    return HarnessApp(config).run()


if __name__ == "__main__":
    sys.exit(main())

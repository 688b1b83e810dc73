#!/usr/bin/env python3
# Copyright (c) Meta Platforms, Inc. and affiliates.
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

# pyre-strict

import argparse
import logging
import sys
import typing

from pyhprof import logger
from pyhprof.errors import HprofError
from pyhprof.handler import RecordPrinter
from pyhprof.parser import parse_filename


def _init_logging(level_str: str) -> None:
    levels = {
        "critical": logging.CRITICAL,
        "error": logging.ERROR,
        "warn": logging.WARNING,
        "warning": logging.WARNING,
        "info": logging.INFO,
        "debug": logging.DEBUG,
    }
    level = levels[level_str]
    logging.basicConfig(
        level=level,
        format="[%(levelname)-8s] %(message)s",
    )


def arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Print every record of an hprof heap dump, one per line.",
    )
    parser.add_argument("hprof", help="heap dump to print")
    parser.add_argument(
        "--skip-heap",
        help="Only print top-level records, not the contents of heap dumps",
        action="store_true",
    )
    parser.add_argument(
        "--log-level",
        default="warning",
        choices=["critical", "error", "warn", "warning", "info", "debug"],
        help="Log level for progress messages (TRACE=HPROF:N traces decoding)",
    )
    return parser


def main(argv: typing.Optional[typing.List[str]] = None) -> int:
    args = arg_parser().parse_args(argv)
    _init_logging(args.log_level)

    logging.info("Parsing %s...", args.hprof)
    try:
        parse_filename(args.hprof, RecordPrinter(skip_heap=args.skip_heap))
    except HprofError as e:
        logging.error("Failed to parse %s: %s", args.hprof, e)
        return 1
    finally:
        logger.flush()
    logging.info("Done.")
    return 0


if __name__ == "__main__":
    sys.exit(main())

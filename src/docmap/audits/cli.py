"""
Command line entry point: ``docmap-audit``.

    docmap-audit --docs docs/source/reference/operator/aggregation \
                 --fixtures tests/fixtures/aggregation --includes docs/source --emit
"""

import argparse
import logging
import sys
from typing import List, Optional

from docmap.audits.auditor import RstAuditor
from docmap.errors import AuditError

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="docmap-audit",
        description="Audit aggregation operator docs against the test fixtures",
    )
    p.add_argument("--docs", required=True, help="Folder with the operator reference pages")
    p.add_argument("--fixtures", required=True, help="Root of the fixture folders")
    p.add_argument("--includes", default=None, help="Root for '.. include::' paths")
    p.add_argument(
        "--emit", action="store_true", help="Write fixtures from the documented examples"
    )
    p.add_argument("--strict", action="store_true", help="Exit with 1 when operators are missing")
    p.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    auditor = RstAuditor(args.docs, args.fixtures, args.includes)
    try:
        report = auditor.audit(emit=args.emit)
    except AuditError as e:
        logger.error("%s", e)
        return 2

    print(report.summary())
    if args.strict and not report.is_complete:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

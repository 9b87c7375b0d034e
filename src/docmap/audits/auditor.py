"""
Audit of the documented aggregation operators against the test fixtures.

Every operator page under the documentation root is checked for a fixture
folder:

    docs_root/abs.txt        ->  fixtures_root/expressions/abs/     implemented
    docs_root/dateAdd.txt    ->  fixtures_root/expressions/dateAdd/ missing
    docs_root/bucket.txt     ->  fixtures_root/stages/bucket/       implemented
                                 fixtures_root/stages/out/ignored   ignored

With ``emit`` set, fixture folders are generated from the pages' examples for
every operator that is not ignored. The report always describes the folders
as they were before emission, so missing operators stay listed.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Union

from docmap.audits.operator import Operator, OperatorType
from docmap.errors import AuditError

logger = logging.getLogger(__name__)

PAGE_SUFFIXES = (".txt", ".rst")


@dataclass
class AuditReport:
    """Operator names per type, by fixture status."""

    implemented: Dict[OperatorType, List[str]] = field(default_factory=dict)
    missing: Dict[OperatorType, List[str]] = field(default_factory=dict)
    ignored: Dict[OperatorType, List[str]] = field(default_factory=dict)

    def add(self, operator: Operator) -> None:
        if operator.ignored():
            bucket = self.ignored
        elif operator.implemented:
            bucket = self.implemented
        else:
            bucket = self.missing
        bucket.setdefault(operator.type, []).append(operator.operator)

    @property
    def missing_count(self) -> int:
        return sum(len(names) for names in self.missing.values())

    @property
    def is_complete(self) -> bool:
        return self.missing_count == 0

    def summary(self) -> str:
        lines = []
        for op_type in OperatorType:
            implemented = self.implemented.get(op_type, [])
            missing = self.missing.get(op_type, [])
            ignored = self.ignored.get(op_type, [])
            lines.append(
                f"{op_type.value}: {len(implemented)} implemented, "
                f"{len(missing)} missing, {len(ignored)} ignored"
            )
            if missing:
                lines.append("  missing: " + ", ".join(sorted(missing)))
        return "\n".join(lines)


class RstAuditor:
    """
    Args:
        docs_root: folder holding the aggregation operator pages
        fixtures_root: root of the fixture folders
        includes_root: root ``.. include::`` directives are resolved against
    """

    def __init__(
        self,
        docs_root: Union[str, Path],
        fixtures_root: Union[str, Path],
        includes_root: Union[str, Path, None] = None,
    ):
        self.docs_root = Path(docs_root)
        self.fixtures_root = Path(fixtures_root)
        self.includes_root = Path(includes_root) if includes_root is not None else None

    def operators(self) -> List[Operator]:
        if not self.docs_root.is_dir():
            raise AuditError(f"Documentation folder not found: {self.docs_root}")
        pages = sorted(
            p
            for p in self.docs_root.iterdir()
            if p.is_file() and p.suffix in PAGE_SUFFIXES and not p.name.startswith(("_", "."))
        )
        return [Operator(p, self.fixtures_root, self.includes_root) for p in pages]

    def audit(self, emit: bool = False) -> AuditReport:
        """
        Build the report from the fixture folders as they are found. With
        ``emit``, fixtures are then written for the documented examples; the
        report still lists the operators that were missing beforehand.
        """
        operators = self.operators()
        report = AuditReport()
        for operator in operators:
            report.add(operator)
        if emit:
            for operator in operators:
                operator.output()
        logger.info(
            "Audited %d operators under %s: %d missing",
            len(operators),
            self.docs_root,
            report.missing_count,
        )
        return report

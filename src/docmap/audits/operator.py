"""
Aggregation operators documented by one reference page each.
"""

import logging
from enum import Enum
from functools import cached_property
from pathlib import Path
from typing import List, Optional, Union

from docmap.audits.example import OperatorExample
from docmap.audits.rst import RstDocument
from docmap.constants import OPERATOR_DOCS_URL

logger = logging.getLogger(__name__)

PIPELINE_MARKER = ".. pipeline:: $"
VERSION_ADDED_MARKER = ".. versionadded:: "
IGNORED_MARKER = "ignored"


class OperatorType(Enum):
    STAGE = "stages"
    EXPRESSION = "expressions"


class Operator:
    """
    An operator page and the fixture folder its examples belong in.

    Args:
        source: the operator's reference page, e.g. ``.../aggregation/abs.txt``
        fixtures_root: root of the fixture folders; examples go to
            ``<fixtures_root>/<expressions|stages>/<name>/exampleN``
        includes_root: root ``.. include::`` paths are resolved against

    Example:
        >>> op = Operator(Path("docs/aggregation/dateAdd.txt"), Path("tests/fixtures"))
        >>> op.operator, op.type
        ('$dateAdd', <OperatorType.EXPRESSION: 'expressions'>)
    """

    def __init__(
        self,
        source: Union[str, Path],
        fixtures_root: Union[str, Path],
        includes_root: Union[str, Path, None] = None,
    ):
        self.source = Path(source)
        self.fixtures_root = Path(fixtures_root)
        self.includes_root = includes_root
        self.name = self.source.stem
        self.operator = "$" + self.name.split("-")[0]
        self.url = OPERATOR_DOCS_URL.format(name=self.name)

        text = self.source.read_text(encoding="utf-8")
        self.type = OperatorType.STAGE if PIPELINE_MARKER in text else OperatorType.EXPRESSION
        self.version_added = _version_added(text)
        # fixture status as found before any examples are written
        self.implemented = self.resource_folder.exists()

    @property
    def resource_folder(self) -> Path:
        return self.fixtures_root / self.type.value / self.name.split("-")[0]

    def ignored(self) -> bool:
        return (self.resource_folder / IGNORED_MARKER).exists()

    @cached_property
    def examples(self) -> List[OperatorExample]:
        return RstDocument.read(self.operator, self.source, self.includes_root).examples

    def pipeline_examples(self) -> List[OperatorExample]:
        return [
            e for e in self.examples if e.action_block is not None and e.action_block.is_pipeline()
        ]

    def output(self) -> List[Path]:
        """
        Write the pipeline examples to ``example1``, ``example2``... under the
        resource folder. Ignored operators are skipped.
        """
        if self.ignored():
            logger.info("Skipping ignored operator %s", self.operator)
            return []
        written: List[Path] = []
        for index, example in enumerate(self.pipeline_examples(), start=1):
            written.extend(example.output(self.resource_folder / f"example{index}"))
        logger.debug("Wrote %d fixture files for %s", len(written), self.operator)
        return written

    def __repr__(self) -> str:
        return f"Operator({self.name} -> {self.source})"


def _version_added(text: str) -> Optional[str]:
    for line in text.splitlines():
        if VERSION_ADDED_MARKER.strip() in line:
            return line.rsplit(":", 1)[1].strip() or None
    return None

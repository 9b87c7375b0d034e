"""
Code blocks and examples scraped from operator pages.

An example is made of shell code blocks, recognized by what they call:

    kind       recognized by                      fixture file
    --------   --------------------------------   -------------
    data       insertMany( / insertOne(           data.json
    action     aggregate( (or another db call)    pipeline.json
    index      createIndex(                       index.json
    expected   first other block after action     expected.json
"""

import logging
import textwrap
from pathlib import Path
from typing import List, Optional, TextIO

logger = logging.getLogger(__name__)

CODE_BLOCK_START = ".. code-block::"
DATA_MARKERS = ("insertMany(", "insertOne(")
ACTION_MARKERS = ("aggregate(",)
INDEX_MARKERS = ("createIndex(",)
CALL_MARKER = "db."
DIRECTIVE_START = ".. "


def sanitize(title: str) -> str:
    """
    Heading text as an example name:

        ``{ $meta: "textScore" }``  ->  $meta: "textScore"
    """
    name = title.replace("``", "").strip()
    if name.startswith("{") and name.endswith("}"):
        name = name[1:-1]
    return name.strip()


def _is_control(line: str) -> bool:
    """Directive options such as ``:copyable: true``."""
    return line.strip().startswith(":")


def _dedent_fragment(text: str) -> str:
    """
    Dedent a fragment whose first line was cut out of a longer line (and so
    lost its indentation).
    """
    lines = text.strip().split("\n")
    if len(lines) == 1:
        return lines[0].strip()
    rest = textwrap.dedent("\n".join(lines[1:]))
    return "\n".join([lines[0].strip(), rest]).strip()


def _unwrap(text: str, marker: str) -> str:
    start = text.index(marker) + len(marker)
    end = text.rfind(")")
    if end < start:
        end = len(text)
    return text[start:end]


class CodeBlock:
    """Lines of one ``.. code-block::`` directive, dedented."""

    def __init__(self, lines: Optional[List[str]] = None):
        self.lines: List[str] = []
        self.indent = 0
        for line in lines or []:
            self.add(line)

    def add(self, line: str) -> None:
        self.lines.append(line)

    @property
    def text(self) -> str:
        return textwrap.dedent("\n".join(self.lines)).strip("\n")

    @property
    def kind(self) -> Optional[str]:
        text = self.text
        if any(m in text for m in DATA_MARKERS):
            return "data"
        if any(m in text for m in INDEX_MARKERS):
            return "index"
        if any(m in text for m in ACTION_MARKERS) or text.lstrip().startswith(CALL_MARKER):
            return "action"
        return None

    def is_pipeline(self) -> bool:
        return any(m in self.text for m in ACTION_MARKERS)

    def content(self) -> str:
        """
        The block without its shell call wrapper. Inserted documents lose
        their enclosing array; pipelines keep theirs.
        """
        text = self.text
        for marker in DATA_MARKERS:
            if marker in text:
                inner = _unwrap(text, marker).strip()
                if inner.startswith("[") and inner.endswith("]"):
                    inner = inner[1:-1]
                return _dedent_fragment(inner)
        for marker in ACTION_MARKERS + INDEX_MARKERS:
            if marker in text:
                return _dedent_fragment(_unwrap(text, marker))
        return text.strip()

    def write(self, out: TextIO) -> None:
        out.write(self.content())

    def __repr__(self) -> str:
        return f"CodeBlock({self.kind}, {len(self.lines)} lines)"


def read_block(lines: List[str]) -> CodeBlock:
    """Consume the body of a code block from the front of ``lines``."""
    while lines and (_is_control(lines[0]) or not lines[0].strip()):
        lines.pop(0)
    block = CodeBlock()
    if not lines:
        return block
    block.indent = len(lines[0]) - len(lines[0].lstrip())
    while lines and (not lines[0].strip() or len(lines[0]) - len(lines[0].lstrip()) >= block.indent):
        if lines[0].strip().startswith(DIRECTIVE_START):
            # tab bodies follow the shared text at a deeper indent
            break
        block.add(lines.pop(0))
    while block.lines and not block.lines[-1].strip():
        block.lines.pop()
    return block


def code_blocks(lines: List[str]) -> List[CodeBlock]:
    remaining = list(lines)
    blocks = []
    while remaining:
        line = remaining.pop(0)
        if line.strip().startswith(CODE_BLOCK_START):
            block = read_block(remaining)
            if block.lines:
                blocks.append(block)
    return blocks


class OperatorExample:
    """
    One example of an operator page.

    Args:
        operator: operator name, e.g. ``"$abs"``
        name: example name (``"main"``, a subsection title, or
            ``"<subsection> :: <tab> tab"``)
        lines: lines of the example
    """

    def __init__(self, operator: str, name: str, lines: List[str]):
        self.operator = operator
        self.name = name
        self.data_block: Optional[CodeBlock] = None
        self.action_block: Optional[CodeBlock] = None
        self.expected_block: Optional[CodeBlock] = None
        self.index_block: Optional[CodeBlock] = None

        for block in code_blocks(lines):
            kind = block.kind
            if kind == "data" and self.data_block is None:
                self.data_block = block
            elif kind == "index" and self.index_block is None:
                self.index_block = block
            elif kind == "action" and self.action_block is None:
                self.action_block = block
            elif kind is None and self.action_block is not None and self.expected_block is None:
                self.expected_block = block

    def output(self, folder: Path) -> List[Path]:
        """
        Write the fixture files of this example into ``folder``.

        Existing files are left untouched. Returns the files written.
        """
        folder = Path(folder)
        folder.mkdir(parents=True, exist_ok=True)
        written = []
        outputs = [
            ("name", self.name),
            ("data.json", self.data_block),
            ("pipeline.json", self.action_block),
            ("expected.json", self.expected_block),
            ("index.json", self.index_block),
        ]
        for file_name, source in outputs:
            if source is None:
                continue
            target = folder / file_name
            if target.exists():
                logger.debug("Keeping existing %s", target)
                continue
            with open(target, "w", encoding="utf-8") as f:
                if isinstance(source, str):
                    f.write(source)
                else:
                    source.write(f)
                f.write("\n")
            written.append(target)
        return written

    def __repr__(self) -> str:
        return f"OperatorExample({self.operator}, {self.name!r})"

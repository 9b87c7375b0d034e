"""
reStructuredText scraping for operator reference pages.

An operator page ends with an examples section. Its examples are split into
subsections (``~`` headings), and a subsection may show the same example in
several tabs (one per shell or driver):

    Examples                                  <- last "-" section
    --------
    (intro text)                              -> "main"

    ``{ $meta: "textScore" }``                <- "~" subsection
    ~~~~~~~~~~~~~~~~~~~~~~~~~~
    .. tabs::

       .. tab:: Aggregation                   -> '$meta: "textScore" :: Aggregation tab'
          ...
       .. tab:: Find and Project              -> '$meta: "textScore" :: Find and Project tab'
          ...

Every variant gets the subsection text before the tabs, its own tab body,
and the text following the tabs block.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from docmap.audits.example import OperatorExample, sanitize

logger = logging.getLogger(__name__)

TABS_SECTION_START = ".. tabs::"
SIMPLE_TAB_SECTION_START = "tabs:"
FANCY_TAB_START = ".. tab::"
SIMPLE_TAB_START = "- id:"
SIMPLE_TAB_NAME = "name: "
INCLUDE_START = ".. include::"
MAIN = "main"


def find_indent(line: str) -> int:
    """Number of leading whitespace characters."""
    return len(line) - len(line.lstrip())


def at_least_indent(line: str, indent: int) -> bool:
    return not line.strip() or find_indent(line) >= indent


def remove_while(lines: List[str], predicate: Callable[[str], bool]) -> List[str]:
    """Pop lines off the front of ``lines`` while ``predicate`` holds; return them."""
    removed = []
    while lines and predicate(lines[0]):
        removed.append(lines.pop(0))
    return removed


class DedupeMap(dict):
    """
    Ordered map that renames duplicate keys instead of replacing values:
    ``key``, ``key [1]``, ``key [2]``...
    """

    def __setitem__(self, key: str, value) -> None:
        new_key = key
        count = 1
        while new_key in self:
            new_key = f"{key} [{count}]"
            count += 1
        super().__setitem__(new_key, value)


class Separator(Enum):
    """Heading underline characters, by nesting level."""

    DASH = "-"
    TILDE = "~"
    EQUALS = "="
    CARET = "^"

    def is_underline(self, line: str, title: str) -> bool:
        stripped = line.strip()
        return (
            bool(title.strip())
            and len(stripped) >= 3
            and set(stripped) == {self.value}
            and len(stripped) >= len(title.strip())
        )

    def partition(self, lines: List[str]) -> Dict[str, List[str]]:
        """
        Split ``lines`` into sections headed by this separator.

        Returns:
            Ordered ``{title: lines}``; lines before the first heading are
            keyed ``"main"`` (omitted when there are none)
        """
        sections: Dict[str, List[str]] = {}
        title = MAIN
        current: List[str] = []
        i = 0
        while i < len(lines):
            line = lines[i]
            if i + 1 < len(lines) and self.is_underline(lines[i + 1], line):
                if title != MAIN or any(l.strip() for l in current):
                    sections[title] = current
                title = line.strip()
                current = []
                i += 2
                continue
            current.append(line)
            i += 1
        if title != MAIN or any(l.strip() for l in current):
            sections[title] = current
        return sections


def _extract_fancy_tabs(lines: List[str], tabs: Dict[str, List[str]]) -> None:
    while lines and lines[0].strip().startswith(FANCY_TAB_START):
        first = lines.pop(0)
        indent = find_indent(first)
        name = first.split(FANCY_TAB_START, 1)[1].strip()
        tabs[name] = remove_while(
            lines,
            lambda l: not l.strip().startswith(FANCY_TAB_START) and at_least_indent(l, indent),
        )


def _extract_simple_tabs(lines: List[str], tabs: Dict[str, List[str]]) -> None:
    if not lines or not lines[0].strip().startswith(SIMPLE_TAB_SECTION_START):
        return
    lines.pop(0)
    remove_while(lines, lambda l: not l.strip())
    while lines and lines[0].strip().startswith(SIMPLE_TAB_START):
        first = lines.pop(0)
        indent = find_indent(first)
        name = first.split(SIMPLE_TAB_START, 1)[1].strip()
        if lines and lines[0].strip().startswith(SIMPLE_TAB_NAME):
            name = lines[0].split(SIMPLE_TAB_NAME, 1)[1].strip()
        body = remove_while(
            lines,
            lambda l: not l.strip().startswith(SIMPLE_TAB_START) and at_least_indent(l, indent),
        )
        tabs[name] = [first] + body


def extract_tabs(name: str, lines: List[str]) -> Dict[str, List[str]]:
    """
    Split a subsection into its tab variants.

    Returns ``{name: lines}`` unchanged when there are no tabs.
    """
    lines = list(lines)
    main = remove_while(lines, lambda l: not l.startswith(TABS_SECTION_START))
    tabs: Dict[str, List[str]] = DedupeMap()
    while lines and lines[0].startswith(TABS_SECTION_START):
        local: Dict[str, List[str]] = {}
        lines.pop(0)
        remove_while(lines, lambda l: not l.strip())
        _extract_fancy_tabs(lines, local)
        _extract_simple_tabs(lines, local)
        appendix = remove_while(lines, lambda l: not l.startswith(TABS_SECTION_START))
        for tab, body in local.items():
            tabs[f"{name} :: {tab} tab"] = main + body + appendix
    if not tabs:
        return {name: main}
    return tabs


def expand_includes(lines: List[str], includes_root: Optional[Path]) -> List[str]:
    """Replace ``.. include::`` lines with the included file, when it exists."""
    if includes_root is None:
        return list(lines)
    expanded: List[str] = []
    for line in lines:
        if line.strip().startswith(INCLUDE_START):
            target = line.split("::", 1)[1].strip().lstrip("/")
            include = Path(includes_root) / target
            if include.is_file():
                expanded.extend(include.read_text(encoding="utf-8").splitlines())
                continue
            logger.debug("Include %s not found under %s", target, includes_root)
        expanded.append(line)
    return expanded


class RstDocument:
    """
    The examples of one operator page.

    Args:
        operator: operator name, e.g. ``"$abs"``
        lines: page lines
    """

    def __init__(self, operator: str, lines: List[str]):
        self.operator = operator
        self.examples: List[OperatorExample] = []

        sections = Separator.DASH.partition(list(lines))
        if not sections:
            return
        examples_section = list(sections.values())[-1]
        for title, body in Separator.TILDE.partition(examples_section).items():
            for name, variant in extract_tabs(sanitize(title), body).items():
                self.examples.append(OperatorExample(operator, name, variant))

    @classmethod
    def read(
        cls,
        operator: str,
        path: Union[str, Path],
        includes_root: Union[str, Path, None] = None,
    ) -> "RstDocument":
        lines = Path(path).read_text(encoding="utf-8").splitlines()
        root = Path(includes_root) if includes_root is not None else None
        return cls(operator, expand_includes(lines, root))

    def __repr__(self) -> str:
        return f"RstDocument({self.operator}, {len(self.examples)} examples)"

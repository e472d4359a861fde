"""
routelint/suppressions.py
═════════════════════════

Diagnostic suppressions.

Sources:
  1. Inline comments
       x = app.map_get("/", lambda: hello())  # routelint: disable=RL0001
       # routelint: disable-next-line
       # routelint: disable-file=RL0001,RL9000
     No ``=`` list means every rule.
  2. File-level suppressions (passed programmatically, fnmatch patterns)
  3. Global suppressions (``--suppress``)

Inline directives are parsed with a small PEG grammar.  A comment that
starts like a directive but does not parse is logged and ignored.

A diagnostic is matched on the first line of its location, which for
lambda findings is the line the lambda starts on.
"""

from __future__ import annotations

import enum
import io
import logging
import re
import tokenize
from collections import defaultdict
from dataclasses import dataclass
from fnmatch import fnmatch
from typing import Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from parsimonious.exceptions import ParseError
from parsimonious.grammar import Grammar
from parsimonious.nodes import NodeVisitor

from routelint.diagnostics import Diagnostic

logger = logging.getLogger(__name__)

ALL_RULES = "*"


# ═════════════════════════════════════════════════════════════════════════
#  PART 1 — DIRECTIVE GRAMMAR
# ═════════════════════════════════════════════════════════════════════════

DIRECTIVE_GRAMMAR = Grammar(r'''
    directive   = "#" _ "routelint" _ ":" _ action rule_list? trailer?
    action      = "disable-next-line" / "disable-file" / "disable"
    rule_list   = _ "=" _ rule_id more_rules*
    more_rules  = _ "," _ rule_id
    rule_id     = ~"[A-Za-z]+[0-9]+"
    trailer     = ~"[ \t]+" ~".*"
    _           = ~"[ \t]*"
''')

# Comments that look like they are meant as directives.
_DIRECTIVE_PREFIX = re.compile(r"#\s*routelint\s*:")


class SuppressionScope(enum.Enum):
    LINE = "disable"
    NEXT_LINE = "disable-next-line"
    FILE = "disable-file"


@dataclass(frozen=True)
class SuppressionDirective:
    scope: SuppressionScope
    rule_ids: FrozenSet[str]

    @property
    def applies_to_all(self) -> bool:
        return not self.rule_ids


class DirectiveVisitor(NodeVisitor):
    """Parse tree → ``SuppressionDirective``."""

    grammar = DIRECTIVE_GRAMMAR

    def generic_visit(self, node, visited_children):
        out = []
        for child in visited_children:
            if isinstance(child, list):
                out.extend(child)
            elif child is not None:
                out.append(child)
        return out

    def visit_directive(self, node, visited_children):
        values = self.generic_visit(node, visited_children)
        scope = next(v for v in values if isinstance(v, SuppressionScope))
        rules = frozenset(v for v in values if isinstance(v, str))
        return SuppressionDirective(scope=scope, rule_ids=rules)

    def visit_action(self, node, visited_children):
        return SuppressionScope(node.text)

    def visit_rule_id(self, node, visited_children):
        return node.text.upper()


def parse_directive(comment: str) -> Optional[SuppressionDirective]:
    """
    Parse one comment token.

    Returns ``None`` for ordinary comments.  Raises ``ParseError`` for a
    comment that starts like a directive but is malformed.
    """
    text = comment.strip()
    if not _DIRECTIVE_PREFIX.match(text):
        return None
    return DirectiveVisitor().parse(text)


def iter_comments(source: str) -> Iterable[Tuple[int, str]]:
    """(line, text) for every comment token in ``source``."""
    readline = io.StringIO(source).readline
    for tok in tokenize.generate_tokens(readline):
        if tok.type == tokenize.COMMENT:
            yield tok.start[0], tok.string


# ═════════════════════════════════════════════════════════════════════════
#  PART 2 — SUPPRESSION MANAGER
# ═════════════════════════════════════════════════════════════════════════

class SuppressionManager:
    """
    Collects suppressions and filters diagnostics against them.

    Usage
    -----
    >>> sm = SuppressionManager()
    >>> sm.load_source("app.py", source_text)
    >>> sm.add_global_suppression("RL9000")
    >>> kept = sm.filter_diagnostics(diagnostics)
    """

    def __init__(self) -> None:
        # (file, line) → rule ids suppressed on that line
        self._inline: Dict[Tuple[str, int], Set[str]] = defaultdict(set)
        # file → rule ids suppressed in the whole file
        self._whole_file: Dict[str, Set[str]] = defaultdict(set)
        # file pattern → rule ids
        self._file_level: Dict[str, Set[str]] = defaultdict(set)
        self._global: Set[str] = set()

    def load_source(self, file: str, source: str) -> int:
        """Read inline directives from ``source``; returns how many were found."""
        count = 0
        try:
            comments = list(iter_comments(source))
        except (tokenize.TokenError, SyntaxError) as exc:
            logger.warning("%s: cannot scan comments for suppressions: %s", file, exc)
            return 0

        for line, comment in comments:
            try:
                directive = parse_directive(comment)
            except ParseError:
                logger.warning("%s:%d: malformed suppression comment ignored: %s", file, line, comment.strip())
                continue
            if directive is None:
                continue
            ids = set(directive.rule_ids) or {ALL_RULES}
            if directive.scope is SuppressionScope.LINE:
                self._inline[(file, line)].update(ids)
            elif directive.scope is SuppressionScope.NEXT_LINE:
                self._inline[(file, line + 1)].update(ids)
            else:
                self._whole_file[file].update(ids)
            count += 1

        if count:
            logger.debug("%s: %d suppression directives", file, count)
        return count

    def add_file_suppression(self, rule_id: str, file_pattern: str) -> None:
        """Suppress ``rule_id`` in files matching ``file_pattern``."""
        self._file_level[file_pattern].add(rule_id.upper())

    def add_global_suppression(self, rule_id: str) -> None:
        self._global.add(rule_id.upper())

    def is_suppressed(self, diag: Diagnostic) -> bool:
        rule_id = diag.id
        if _matches(rule_id, self._global):
            return True

        loc = diag.location
        if _matches(rule_id, self._inline.get((loc.file, loc.line), ())):
            return True
        if _matches(rule_id, self._whole_file.get(loc.file, ())):
            return True

        for pattern, ids in self._file_level.items():
            if _matches(rule_id, ids) and (pattern == loc.file or fnmatch(loc.file, pattern)):
                return True
        return False

    def filter_diagnostics(self, diagnostics: Iterable[Diagnostic]) -> List[Diagnostic]:
        """Return only non-suppressed diagnostics."""
        return [d for d in diagnostics if not self.is_suppressed(d)]


def _matches(rule_id: str, ids: Iterable[str]) -> bool:
    ids = set(ids)
    return rule_id in ids or ALL_RULES in ids


__all__ = [
    "DIRECTIVE_GRAMMAR",
    "SuppressionScope",
    "SuppressionDirective",
    "DirectiveVisitor",
    "parse_directive",
    "iter_comments",
    "SuppressionManager",
]

#!/usr/bin/env python3
"""
unsafe_count.py — Tree-sitter based census of unsafe statements in Rust sources.

Counts every statement in each Rust file and how many of those sit inside an
`unsafe { ... }` block or the body of an `unsafe fn`. Prints one line per file
and a grand total:

    src/ffi.rs: 12/40
    src/lib.rs: 0/95
    total: 12/135

Usage:
    python3 unsafe_count.py src/lib.rs src/ffi.rs
    python3 unsafe_count.py --color never $(git ls-files '*.rs')

Files that fail to parse are reported on stderr with a source excerpt and left
out of the totals. A file that cannot be read aborts the whole run.
"""

import argparse
import logging
import sys
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import NamedTuple

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
log = logging.getLogger(__name__)

try:
    import tree_sitter_rust
    from termcolor import colored
    from tree_sitter import Language, Parser
except ImportError as e:
    print(f"ERROR: {e.name} is required. Install with: pip install tree-sitter tree-sitter-rust termcolor",
          file=sys.stderr)
    sys.exit(1)

RUST_LANGUAGE = Language(tree_sitter_rust.language())

# Named children of a `block` that are not statements of their own
NON_STATEMENT_TYPES = {
    "line_comment", "block_comment",
    "attribute_item", "inner_attribute_item",
    "label", "empty_statement",
}

DEFAULT_FILENAME = "main.rs"
ERROR_HEADER = ": unable to parse file"


# --- Syntax tree provider ---

@dataclass(frozen=True)
class Position:
    line: int  # 1-based
    column: int  # 0-based, in characters


@dataclass(frozen=True)
class Span:
    start: Position
    end: Position


class ParseError(Exception):
    """Rust source that tree-sitter could not parse cleanly."""

    def __init__(self, message, span):
        super().__init__(message)
        self.message = message
        self.span = span

    def __str__(self):
        return self.message


def parse_source(source):
    """Parse Rust source text. Returns a tree_sitter.Tree or raises ParseError."""
    parser = Parser(RUST_LANGUAGE)
    source_bytes = source.encode("utf-8")
    tree = parser.parse(source_bytes)
    if tree.root_node.has_error:
        raise _error_from_tree(tree.root_node, source_bytes)
    return tree


def _find_error_node(node):
    """First ERROR or MISSING node in document order."""
    if node.type == "ERROR" or node.is_missing:
        return node
    for child in node.children:
        if child.has_error:
            found = _find_error_node(child)
            if found is not None:
                return found
    return None


def _first_token(node):
    if not node.children:
        return node if node.end_byte > node.start_byte else None
    for child in node.children:
        token = _first_token(child)
        if token is not None:
            return token
    return None


def _position(byte_lines, point):
    # tree-sitter columns are byte offsets; diagnostics count characters
    row, column = point[0], point[1]
    line = byte_lines[row] if row < len(byte_lines) else b""
    return Position(row + 1, len(line[:column].decode("utf-8", errors="replace")))


def _error_from_tree(root, source_bytes):
    byte_lines = source_bytes.split(b"\n")
    node = _find_error_node(root) or root

    if node.is_missing:
        kind = node.type.replace("_", " ") if node.is_named else f"`{node.type}`"
        message = f"expected {kind}"
    else:
        token = _first_token(node)
        if token is None:
            message = "unexpected input"
        else:
            message = f"unexpected token `{token.text.decode('utf-8', errors='replace')}`"

    span = Span(_position(byte_lines, node.start_point), _position(byte_lines, node.end_point))
    return ParseError(message, span)


# --- Statement walker ---

class StatementCounts(NamedTuple):
    total: int = 0
    unsafe: int = 0

    def __add__(self, other):
        return StatementCounts(self.total + other.total, self.unsafe + other.unsafe)


def is_statement(node):
    """Whether a direct child of a `block` node is a statement."""
    return node.is_named and node.type not in NON_STATEMENT_TYPES


def is_unsafe_fn(node):
    """Check if a function_item carries the `unsafe` qualifier."""
    for child in node.children:
        if child.type == "function_modifiers":
            return any(m.type == "unsafe" for m in child.children)
    return False


class StatementCounter:
    """Depth-first fold over a Rust syntax tree.

    `depth` is the number of unsafe regions open around the cursor. It is a
    counter, not a flag: leaving an `unsafe` block nested in an `unsafe fn`
    must leave the function's region active.
    """

    def __init__(self):
        self.total = 0
        self.unsafe = 0
        self.depth = 0

    @property
    def counts(self):
        return StatementCounts(self.total, self.unsafe)

    @contextmanager
    def unsafe_region(self):
        self.depth += 1
        try:
            yield
        finally:
            self.depth -= 1

    def visit(self, node):
        method = getattr(self, "visit_" + node.type, self.generic_visit)
        method(node)

    def generic_visit(self, node):
        for child in node.children:
            self.visit(child)

    def count_statement(self, node):
        # Attributed to the current depth, before any region the statement opens
        self.total += 1
        if self.depth > 0:
            self.unsafe += 1
        self.visit(node)

    def visit_block(self, node):
        for child in node.children:
            if is_statement(child):
                self.count_statement(child)
            else:
                self.visit(child)

    def visit_unsafe_block(self, node):
        with self.unsafe_region():
            self.generic_visit(node)

    def visit_function_item(self, node):
        if not is_unsafe_fn(node):
            self.generic_visit(node)
            return
        with self.unsafe_region():
            self.generic_visit(node)


def count_statements(tree):
    """Walk a tree (or a single node) and return its StatementCounts."""
    counter = StatementCounter()
    counter.visit(getattr(tree, "root_node", tree))
    return counter.counts


# --- Diagnostics ---

class PlainStyle:
    def paint(self, text, color=None, bold=False):
        return text


class ColorStyle:
    def paint(self, text, color=None, bold=False):
        return colored(text, color, attrs=["bold"] if bold else None, force_color=True)


PLAIN = PlainStyle()
COLOR = ColorStyle()


def select_style(mode, stream=None):
    """Pick the diagnostic style once at startup: 'always', 'never' or 'auto'."""
    if mode == "always":
        return COLOR
    if mode == "never":
        return PLAIN
    stream = stream if stream is not None else sys.stderr
    try:
        is_tty = hasattr(stream, "isatty") and stream.isatty()
    except ValueError:
        is_tty = False
    return COLOR if is_tty else PLAIN


@dataclass(frozen=True)
class ParseFailure:
    error: ParseError
    path: str
    source: str

    def render(self, style=None):
        return render_failure(self, style or PLAIN)


def _source_lines(source):
    lines = source.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def _display_name(path):
    name = Path(path).name if path else ""
    if not name or name == "..":
        return DEFAULT_FILENAME
    return name


def render_fallback(error):
    return f"Unable to parse file: {error}"


def render_failure(failure, style=PLAIN):
    """Render a ParseFailure as a compiler-style excerpt.

    Degenerate input (a zero-width span, a line that is not in the source)
    falls back to the one-line form instead of raising.
    """
    error = failure.error
    start = error.span.start
    end = error.span.end

    if start == end:
        return render_fallback(error)

    lines = _source_lines(failure.source)
    if not 1 <= start.line <= len(lines):
        return render_fallback(error)
    code_line = lines[start.line - 1]

    # Underline within the start line only
    if end.line != start.line:
        end = Position(start.line, len(code_line))

    label = str(start.line)
    indent = " " * len(label)
    pipe = style.paint("|", "blue", bold=True)
    underline = "^" * max(1, end.column - start.column)

    return (
        "\n"
        f"{style.paint('error', 'red', bold=True)}{style.paint(ERROR_HEADER, bold=True)}\n"
        f"{indent}{style.paint('-->', 'blue', bold=True)} {_display_name(failure.path)}:{start.line}:{start.column}\n"
        f"{indent} {pipe}\n"
        f"{style.paint(label, 'blue', bold=True)} {pipe} {code_line.rstrip()}\n"
        f"{indent} {pipe} {' ' * max(0, start.column)}{style.paint(underline, 'red', bold=True)} "
        f"{style.paint(str(error), 'red')}\n"
    )


# --- CLI ---

def read_source(path):
    """Read a source file as UTF-8. Any failure is fatal for the run."""
    try:
        return Path(path).read_bytes().decode("utf-8")
    except (OSError, UnicodeDecodeError) as e:
        log.error(f"Unable to read source file {path}: {e}")
        sys.exit(1)


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Count statements inside unsafe blocks and unsafe functions in Rust sources.")
    parser.add_argument("files", nargs="*", metavar="FILE", help="Rust source files to analyze")
    parser.add_argument("--color", choices=("auto", "always", "never"), default="auto",
                        help="Colorize parse diagnostics (default: auto, when stderr is a terminal)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log per-file progress")

    args = parser.parse_args(argv)

    log.setLevel(logging.DEBUG if args.verbose else logging.INFO)

    if not args.files:
        print("no input provided")
        return 0

    style = select_style(args.color)
    totals = StatementCounts()
    files_failed = 0

    for path in args.files:
        source = read_source(path)
        try:
            tree = parse_source(source)
        except ParseError as e:
            print(ParseFailure(e, path, source).render(style), file=sys.stderr)
            files_failed += 1
            continue

        counts = count_statements(tree)
        log.debug(f"{path}: {counts.total} statements, {counts.unsafe} in unsafe regions")
        print(f"{path}: {counts.unsafe}/{counts.total}")
        totals += counts

    print(f"total: {totals.unsafe}/{totals.total}")
    if files_failed:
        log.debug(f"{files_failed} file(s) skipped after parse errors")
    return 0


if __name__ == "__main__":
    sys.exit(main())

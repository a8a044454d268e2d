# This is free and unencumbered software released into the public domain.
#
# Anyone is free to copy, modify, publish, use, compile, sell, or
# distribute this software, either in source code form or as a compiled
# binary, for any purpose, commercial or non-commercial, and by any
# means.
#
# In jurisdictions that recognize copyright laws, the author or authors
# of this software dedicate any and all copyright interest in the
# software to the public domain. We make this dedication for the benefit
# of the public at large and to the detriment of our heirs and
# successors. We intend this dedication to be an overt act of
# relinquishment in perpetuity of all present and future rights to this
# software under copyright law.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND,
# EXPRESS OR IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF
# MERCHANTABILITY, FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT.
# IN NO EVENT SHALL THE AUTHORS BE LIABLE FOR ANY CLAIM, DAMAGES OR
# OTHER LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE,
# ARISING FROM, OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR
# OTHER DEALINGS IN THE SOFTWARE.
#
# For more information, please refer to <http://unlicense.org/>
#
# This implementation is based on the classic dynamic-programming LCS table.
# Lines are interned into integer tokens and lines that exist in only one
# file are resolved up front, so the O(N*M) table covers the rest only.

import logging
import os
from collections import namedtuple
from collections.abc import Iterator, Sequence
from enum import Enum

from simple_diff.reader import LINE_LIMIT


logger = logging.getLogger(__name__)

# Default ceiling for the DP table: two files at the reader line limit.
DEFAULT_MAX_CELLS = LINE_LIMIT * LINE_LIMIT

# Backpointers stored in the reconstruction table (one byte per cell)
DIAG = 1
LEFT = 2
UP = 3

Match = namedtuple('Match', 'a b size')


class Status(Enum):
    """Role of a line in the edit script."""
    UNRESOLVED = 0
    COMMON = 1
    DELETED = 2
    ADDED = 3


class AnnotatedLine:
    """A line of one input file: its dictionary token and its status."""

    __slots__ = ('token', 'status')

    def __init__(self, token: int, status: Status = Status.UNRESOLVED) -> None:
        self.token = token
        self.status = status

    def __repr__(self) -> str:
        return f"AnnotatedLine({self.token}, {self.status.name})"


class FilePair:
    """Owns the annotated lines of both files for one comparison."""

    def __init__(self, left: list[AnnotatedLine], right: list[AnnotatedLine]) -> None:
        self.left = left
        self.right = right


class ResourceExceeded(MemoryError):
    """The LCS table for the unresolved lines would exceed the cell ceiling."""

    def __init__(self, rows: int, cols: int, limit: int) -> None:
        super().__init__(
            f"LCS table of {rows}x{cols} cells exceeds the limit of {limit} cells. "
            f"Raise SDIFF_MAX_CELLS or compare smaller files.",
        )
        self.rows = rows
        self.cols = cols
        self.limit = limit


def get_max_cells() -> int:
    """Reads the DP table ceiling from SDIFF_MAX_CELLS, or returns the default."""
    value = os.environ.get("SDIFF_MAX_CELLS")
    if not value:
        return DEFAULT_MAX_CELLS
    try:
        limit = int(value)
    except ValueError as e:
        raise ValueError(f"SDIFF_MAX_CELLS must be an integer, got '{value}'.") from e
    if limit < 0:
        raise ValueError(f"SDIFF_MAX_CELLS must not be negative, got {limit}.")
    return limit


def intern_lines(lines_a: Sequence[str], lines_b: Sequence[str]) -> tuple[list[str], FilePair]:
    """
    Builds the shared dictionary of unique lines and the token sequences.

    Tokens are handed out in order of first occurrence, scanning the first
    file before the second. Lines are equal only if their text is identical.
    """
    dictionary: list[str] = []
    tokens: dict[str, int] = {}

    def annotate(lines: Sequence[str]) -> list[AnnotatedLine]:
        result = []
        for line in lines:
            token = tokens.get(line)
            if token is None:
                token = len(dictionary)
                tokens[line] = token
                dictionary.append(line)
            result.append(AnnotatedLine(token))
        return result

    left = annotate(lines_a)
    right = annotate(lines_b)
    logger.debug(f"Interned {len(left)} + {len(right)} lines into {len(dictionary)} unique lines")
    return dictionary, FilePair(left, right)


def mark_exclusive(pair: FilePair, dictionary_size: int | None = None) -> None:
    """
    Marks lines whose token never occurs in the other file.

    Such lines can not be part of any common subsequence, so they are
    resolved as deleted (left) or added (right) before the LCS table is built.
    Tokens present on both sides stay unresolved, whatever their counts.
    """
    if dictionary_size is None:
        tokens = [line.token for line in pair.left] + [line.token for line in pair.right]
        dictionary_size = max(tokens) + 1 if tokens else 0

    count_a = [0] * dictionary_size
    count_b = [0] * dictionary_size
    for line in pair.left:
        count_a[line.token] += 1
    for line in pair.right:
        count_b[line.token] += 1

    pruned = 0
    for line in pair.left:
        if count_b[line.token] == 0:
            line.status = Status.DELETED
            pruned += 1
    for line in pair.right:
        if count_a[line.token] == 0:
            line.status = Status.ADDED
            pruned += 1
    logger.debug(f"Fast path resolved {pruned} lines without a counterpart")


def resolve(pair: FilePair, max_cells: int | None = None) -> None:
    """
    Resolves all remaining lines with the longest common subsequence.

    The table is filled with a fixed tie-break: on equal tokens the cell
    points diagonally; otherwise LEFT (drop the last line of the first file)
    only when that strictly keeps a longer LCS, else UP (drop the last line
    of the second file). This picks one particular LCS when several exist.

    Unresolved lines whose token is missing from the other side never enter
    the table, so the outcome is the same whether or not `mark_exclusive`
    ran first.

    Raises:
        ResourceExceeded: if the table would have more than `max_cells` cells.
    """
    pending_a = [line for line in pair.left if line.status is Status.UNRESOLVED]
    pending_b = [line for line in pair.right if line.status is Status.UNRESOLVED]
    tokens_a = {line.token for line in pending_a}
    tokens_b = {line.token for line in pending_b}
    u1 = [line for line in pending_a if line.token in tokens_b]
    u2 = [line for line in pending_b if line.token in tokens_a]
    n = len(u1)
    m = len(u2)

    if n and m:
        if max_cells is None:
            max_cells = get_max_cells()
        if n * m > max_cells:
            logger.error(f"LCS table {n}x{m} exceeds limit of {max_cells} cells")
            raise ResourceExceeded(n, m, max_cells)

    # Assume an empty LCS, then promote the matched lines
    for line in pending_a:
        line.status = Status.DELETED
    for line in pending_b:
        line.status = Status.ADDED

    if n == 0 or m == 0:
        return

    logger.debug(f"Building LCS table of {n + 1}x{m + 1} cells")

    a = [line.token for line in u1]
    b = [line.token for line in u2]

    # Only the previous row of lengths is needed; backpointers are kept whole.
    prev = [0] * (m + 1)
    trace = [bytearray(m + 1)]
    for i in range(1, n + 1):
        curr = [0] * (m + 1)
        row = bytearray(m + 1)
        token = a[i - 1]
        for j in range(1, m + 1):
            if token == b[j - 1]:
                curr[j] = prev[j - 1] + 1
                row[j] = DIAG
            elif prev[j] > curr[j - 1]:
                curr[j] = prev[j]
                row[j] = LEFT
            else:
                curr[j] = curr[j - 1]
                row[j] = UP
        trace.append(row)
        prev = curr

    i = n
    j = m
    while i != 0 and j != 0:
        step = trace[i][j]
        if step == DIAG:
            u1[i - 1].status = Status.COMMON
            u2[j - 1].status = Status.COMMON
            i -= 1
            j -= 1
        elif step == LEFT:
            i -= 1
        else:
            j -= 1

    logger.debug(f"LCS length: {prev[m]}")


def merge(pair: FilePair) -> list[AnnotatedLine]:
    """
    Interleaves both files into presentation order.

    Common lines keep their relative order and are emitted once. At a change
    point every deleted line of the run comes before every added line.
    """
    left = pair.left
    right = pair.right
    n = len(left)
    m = len(right)
    merged = []
    i = 0
    j = 0
    while i < n or j < m:
        if j >= m or (i < n and left[i].status is not Status.COMMON):
            merged.append(left[i])
            i += 1
        elif i >= n or right[j].status is not Status.COMMON:
            merged.append(right[j])
            j += 1
        else:
            merged.append(left[i])
            i += 1
            j += 1
    return merged


def count_statuses(lines: Sequence[AnnotatedLine]) -> dict[Status, int]:
    counts = dict.fromkeys(Status, 0)
    for line in lines:
        counts[line.status] += 1
    return counts


class DiffSession:
    """
    One comparison of two line sequences.

    The session owns the dictionary and the annotated file pair for its whole
    lifetime. `compare()` resolves every line exactly once; `merged` is
    derived afterwards and shared read-only by the renderers.
    """

    def __init__(self,
        lines_a: Sequence[str],
        lines_b: Sequence[str],
        fast_path: bool = True,
        max_cells: int | None = None,
    ) -> None:
        self.fast_path = fast_path
        self.max_cells = max_cells
        self.dictionary, self.pair = intern_lines(lines_a, lines_b)
        self._compared = False
        self._merged: list[AnnotatedLine] | None = None

    def compare(self) -> "DiffSession":
        if self._compared:
            return self
        if self.fast_path:
            mark_exclusive(self.pair, len(self.dictionary))
        resolve(self.pair, self.max_cells)
        self._compared = True
        return self

    @property
    def merged(self) -> list[AnnotatedLine]:
        if self._merged is None:
            self.compare()
            self._merged = merge(self.pair)
        return self._merged

    @property
    def common_count(self) -> int:
        self.compare()
        return sum(1 for line in self.pair.left if line.status is Status.COMMON)

    @property
    def has_differences(self) -> bool:
        return any(line.status is not Status.COMMON for line in self.merged)

    def text(self, line: AnnotatedLine) -> str:
        return self.dictionary[line.token]


class LCSSequenceMatcher:
    """
    A difflib-compatible SequenceMatcher backed by the LCS diff engine.

    Elements of `a` and `b` must be hashable. `isjunk` and `autojunk` are
    ignored but kept for API compatibility.
    """

    def __init__(self, isjunk=None, a=None, b=None, autojunk=True) -> None:
        self.isjunk = isjunk
        self.autojunk = autojunk
        self.a = self.b = None
        self.opcodes = None
        self.set_seqs(a or [], b or [])

    def set_seqs(self, a, b) -> None:
        self.set_seq1(a)
        self.set_seq2(b)

    def set_seq1(self, a) -> None:
        if a is self.a:
            return
        self.a = a
        self.opcodes = None

    def set_seq2(self, b) -> None:
        if b is self.b:
            return
        self.b = b
        self.opcodes = None

    def get_opcodes(self) -> Iterator[tuple[str, int, int, int, int]]:
        """
        Yields (tag, i1, i2, j1, j2) edit operations from the resolved line statuses.
        They are computed once per pair of sequences and replayed from a list.
        """
        if self.opcodes is None:
            self.opcodes = list(self._calculate_opcodes())
        yield from self.opcodes

    def get_matching_blocks(self) -> list[Match]:
        blocks = [Match(i1, j1, i2 - i1) for tag, i1, i2, j1, _ in self.get_opcodes() if tag == 'equal']
        blocks.append(Match(len(self.a), len(self.b), 0))
        return blocks

    def _calculate_opcodes(self) -> Iterator[tuple[str, int, int, int, int]]:
        session = DiffSession(self.a, self.b).compare()
        left = session.pair.left
        right = session.pair.right
        n = len(left)
        m = len(right)

        i = j = 0
        while i < n or j < m:
            # Collect the changed run up to the next common pair
            start_i, start_j = i, j
            while i < n and left[i].status is not Status.COMMON:
                i += 1
            while j < m and right[j].status is not Status.COMMON:
                j += 1
            if start_i < i and start_j < j:
                yield ('replace', start_i, i, start_j, j)
            elif start_i < i:
                yield ('delete', start_i, i, start_j, j)
            elif start_j < j:
                yield ('insert', start_i, i, start_j, j)

            # Common lines pair up one to one in order
            start_i, start_j = i, j
            while i < n and j < m and left[i].status is Status.COMMON and right[j].status is Status.COMMON:
                i += 1
                j += 1
            if i > start_i:
                yield ('equal', start_i, i, start_j, j)

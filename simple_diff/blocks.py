from collections import namedtuple
from collections.abc import Sequence
from enum import Enum

from simple_diff.lcsdiff import AnnotatedLine, Status


class BlockKind(Enum):
    DELETE = 'd'
    ADD = 'a'
    # Context-window hunks mix common, deleted and added lines
    CONTEXT = 'u'


# merged_start: index of the first line in the merged sequence.
# file1_start / file2_start: lines of that file before the block (0-based);
# -1 marks a context hunk that starts before line 1 of that file.
Block = namedtuple('Block', 'merged_start file1_start file2_start length kind')


def normal_blocks(merged: Sequence[AnnotatedLine]) -> list[Block]:
    """
    Splits the merged sequence into runs of deleted or added lines.

    A deletion run directly followed by an addition run stays two blocks;
    pairing them into a change is left to the renderer (see is_change_pair).
    """
    blocks: list[Block] = []
    common = deleted = added = 0
    prev_status = None

    for i, line in enumerate(merged):
        status = line.status
        if status is Status.COMMON:
            common += 1
            prev_status = status
            continue

        if status is not prev_status:
            kind = BlockKind.DELETE if status is Status.DELETED else BlockKind.ADD
            blocks.append(Block(i, common + deleted, common + added, 0, kind))

        last = blocks[-1]
        blocks[-1] = last._replace(length=last.length + 1)
        if status is Status.DELETED:
            deleted += 1
        else:
            added += 1
        prev_status = status

    return blocks


def is_change_pair(block: Block, following: Block | None) -> bool:
    """True if a deletion block is immediately followed by an addition block."""
    return (
        following is not None
        and block.kind is BlockKind.DELETE
        and following.kind is BlockKind.ADD
        and block.merged_start + block.length == following.merged_start
    )


def _window_bounds(merged: Sequence[AnnotatedLine], context_lines: int) -> list[tuple[int, int]]:
    """Expands every changed run by the context and joins windows that touch."""
    last_index = len(merged) - 1
    bounds = []
    for i, line in enumerate(merged):
        changed = line.status is not Status.COMMON
        prev_changed = i > 0 and merged[i - 1].status is not Status.COMMON
        if changed and not prev_changed:
            bounds.append(max(0, i - context_lines))
        elif prev_changed and not changed:
            bounds.append(min(last_index, i - 1 + context_lines))
    if merged and merged[-1].status is not Status.COMMON:
        bounds.append(last_index)

    if not bounds:
        return []

    windows = []
    lo = bounds[0]
    # bounds alternates start, end; a gap of at most one line joins two windows
    for k in range(1, len(bounds) - 1, 2):
        if bounds[k + 1] - bounds[k] > 1:
            windows.append((lo, bounds[k]))
            lo = bounds[k + 1]
    windows.append((lo, bounds[-1]))
    return windows


def unified_blocks(merged: Sequence[AnnotatedLine], context_lines: int = 3) -> list[Block]:
    """
    Groups changes into hunks with up to `context_lines` common lines around them.

    Overlapping or touching hunks are merged. A hunk that starts at the very
    first merged line with a line missing from one file records that file's
    start as -1 until a line of that file shows up in the hunk.
    """
    if context_lines < 0:
        raise ValueError(f"context_lines must not be negative, got {context_lines}")

    windows = _window_bounds(merged, context_lines)
    blocks: list[Block] = []
    common = deleted = added = 0
    pointer = 0

    for i, line in enumerate(merged):
        status = line.status
        if pointer < len(windows) and windows[pointer][0] <= i <= windows[pointer][1]:
            if i == windows[pointer][0]:
                file1_start = -1 if i == 0 and status is Status.ADDED else common + deleted
                file2_start = -1 if i == 0 and status is Status.DELETED else common + added
                blocks.append(Block(i, file1_start, file2_start, 0, BlockKind.CONTEXT))

            block = blocks[-1]
            block = block._replace(length=block.length + 1)
            if block.file1_start == -1 and status is not Status.ADDED:
                block = block._replace(file1_start=0)
            if block.file2_start == -1 and status is not Status.DELETED:
                block = block._replace(file2_start=0)
            blocks[-1] = block

            if i == windows[pointer][1]:
                pointer += 1

        if status is Status.COMMON:
            common += 1
        elif status is Status.DELETED:
            deleted += 1
        else:
            added += 1

    return blocks


def side_length(block: Block, merged: Sequence[AnnotatedLine], side: int) -> int:
    """Number of lines of the block that belong to file 1 (side=1) or file 2 (side=2)."""
    if side not in (1, 2):
        raise ValueError(f"side must be 1 or 2, got {side}")
    ignored = Status.ADDED if side == 1 else Status.DELETED
    lines = merged[block.merged_start:block.merged_start + block.length]
    return sum(1 for line in lines if line.status is not ignored)

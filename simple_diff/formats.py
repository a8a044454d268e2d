import logging
from collections import namedtuple
from enum import Enum

from simple_diff.blocks import BlockKind, is_change_pair, normal_blocks, side_length, unified_blocks
from simple_diff.lcsdiff import DiffSession, Status


logger = logging.getLogger(__name__)

DEFAULT_CONTEXT = 3

# Prefixes for common, deleted and added lines
OutputStyle = namedtuple('OutputStyle', 'common deleted added')

PLAIN_STYLE = OutputStyle("  ", "- ", "+ ")
UNIFIED_STYLE = OutputStyle(" ", "-", "+")
NORMAL_STYLE = OutputStyle("  ", "< ", "> ")


class OutputMode(Enum):
    PLAIN = 'plain'
    NORMAL = 'normal'
    UNIFIED = 'unified'


def _render_lines(session: DiffSession, start: int, length: int, style: OutputStyle) -> list[str]:
    out = []
    for line in session.merged[start:start + length]:
        if line.status is Status.COMMON:
            prefix = style.common
        elif line.status is Status.DELETED:
            prefix = style.deleted
        else:
            prefix = style.added
        out.append(prefix + session.text(line))
    return out


def plain_diff(session: DiffSession) -> list[str]:
    """Both files merged into one listing, every line marked with its role."""
    if not session.has_differences:
        return []
    return _render_lines(session, 0, len(session.merged), PLAIN_STYLE)


def _normal_range(start: int, length: int) -> str:
    # start is the number of lines before the range; output is 1-based
    if length == 1:
        return f"{start + 1}"
    return f"{start + 1},{start + length}"


def normal_diff(session: DiffSession) -> list[str]:
    """
    Classic diff output: `NaN`, `NdN` and `NcN` hunks without context.

    A range of a file that receives nothing is shown as the line after which
    the change happens, so an insertion at the top reads `0aN`.
    """
    if not session.has_differences:
        return []

    blocks = normal_blocks(session.merged)
    out = []
    idx = 0
    while idx < len(blocks):
        block = blocks[idx]
        following = blocks[idx + 1] if idx + 1 < len(blocks) else None

        if is_change_pair(block, following):
            out.append(
                f"{_normal_range(block.file1_start, block.length)}"
                f"c{_normal_range(following.file2_start, following.length)}",
            )
            out.extend(_render_lines(session, block.merged_start, block.length, NORMAL_STYLE))
            out.append("---")
            out.extend(_render_lines(session, following.merged_start, following.length, NORMAL_STYLE))
            idx += 2
            continue

        if block.kind is BlockKind.DELETE:
            out.append(f"{_normal_range(block.file1_start, block.length)}d{block.file2_start}")
        else:
            out.append(f"{block.file1_start}a{_normal_range(block.file2_start, block.length)}")
        out.extend(_render_lines(session, block.merged_start, block.length, NORMAL_STYLE))
        idx += 1

    return out


def _unified_range(start: int, length: int) -> str:
    if length == 1:
        return f"{start + 1}"
    return f"{start + 1},{length}"


def unified_diff(
    session: DiffSession,
    context_lines: int = DEFAULT_CONTEXT,
    fromfile: str | None = None,
    tofile: str | None = None,
    fromdate: str | None = None,
    todate: str | None = None,
) -> list[str]:
    """
    Unified diff with `context_lines` lines of context around each hunk.

    The `---`/`+++` header is emitted only when file names are given.
    """
    if not session.has_differences:
        return []

    merged = session.merged
    out = []
    if fromfile is not None or tofile is not None:
        out.append(f"--- {fromfile}\t{fromdate}" if fromdate else f"--- {fromfile}")
        out.append(f"+++ {tofile}\t{todate}" if todate else f"+++ {tofile}")

    blocks = unified_blocks(merged, context_lines)
    logger.debug(f"Unified output: {len(blocks)} hunks with {context_lines} context lines")
    for block in blocks:
        len_a = side_length(block, merged, 1)
        len_b = side_length(block, merged, 2)
        out.append(
            f"@@ -{_unified_range(block.file1_start, len_a)} "
            f"+{_unified_range(block.file2_start, len_b)} @@",
        )
        out.extend(_render_lines(session, block.merged_start, block.length, UNIFIED_STYLE))
    return out


def format_diff(
    session: DiffSession,
    mode: OutputMode | str = OutputMode.NORMAL,
    context_lines: int = DEFAULT_CONTEXT,
    **header,
) -> list[str]:
    """Renders the session in the given output mode."""
    try:
        mode = OutputMode(mode)
    except ValueError as e:
        raise ValueError(f"Unknown output mode '{mode}'. Expected plain, normal or unified.") from e

    if mode is OutputMode.PLAIN:
        return plain_diff(session)
    if mode is OutputMode.NORMAL:
        return normal_diff(session)
    return unified_diff(session, context_lines, **header)

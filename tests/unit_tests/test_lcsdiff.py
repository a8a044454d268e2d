import difflib
import random

import pytest

from simple_diff.lcsdiff import (
    DEFAULT_MAX_CELLS,
    AnnotatedLine,
    DiffSession,
    FilePair,
    LCSSequenceMatcher,
    ResourceExceeded,
    Status,
    count_statuses,
    get_max_cells,
    intern_lines,
    mark_exclusive,
    merge,
    resolve,
)
from simple_diff.reader import LINE_LIMIT


CODE_A = [
    "#include <iostream>", "using namespace std;", "", "int main() {", "    int a, b;",
    "    cin >> a >> b;", "    cout << a + b << endl;", "    return 0;", "}",
]
CODE_B = [
    "#include <iostream>", "using namespace std;", "", "int main() {", "    int a, b, c;",
    "    cin >> a >> b >> c;", "    cout << a + b + c << endl;", "    return 0;", "}",
]

CASES = [
    (list("abcdefgh"), list("bcegh")),
    (list("abcd"), list("efg")),
    ([], list("ab")),
    (list("bdpqvyz"), list("aqvbydz")),
    (CODE_A, CODE_B),
]


def naive_lcs_length(a, b) -> int:
    """Independent full-table LCS length."""
    table = [[0] * (len(b) + 1) for _ in range(len(a) + 1)]
    for i in range(len(a) - 1, -1, -1):
        for j in range(len(b) - 1, -1, -1):
            if a[i] == b[j]:
                table[i][j] = table[i + 1][j + 1] + 1
            else:
                table[i][j] = max(table[i + 1][j], table[i][j + 1])
    return table[0][0]


def random_lines(rng, alphabet, max_len):
    return [rng.choice(alphabet) for _ in range(rng.randint(0, max_len))]


def tokens(lines):
    return [line.token for line in lines]


def statuses(lines):
    return [line.status for line in lines]


# --- Line Interner ---

@pytest.mark.parametrize("lines_a, lines_b, dictionary, left, right", [
    (list("abcdefgh"), list("bcegh"), list("abcdefgh"), [0, 1, 2, 3, 4, 5, 6, 7], [1, 2, 4, 6, 7]),
    (list("abcd"), list("efg"), list("abcdefg"), [0, 1, 2, 3], [4, 5, 6]),
    ([], list("ab"), list("ab"), [], [0, 1]),
    (list("bdpqvyz"), list("aqvbydz"), list("bdpqvyza"), [0, 1, 2, 3, 4, 5, 6], [7, 3, 4, 0, 5, 1, 6]),
    (CODE_A, CODE_B, CODE_A + CODE_B[4:7], [0, 1, 2, 3, 4, 5, 6, 7, 8], [0, 1, 2, 3, 9, 10, 11, 7, 8]),
])
def test_intern_lines(lines_a, lines_b, dictionary, left, right):
    result_dictionary, pair = intern_lines(lines_a, lines_b)
    assert result_dictionary == dictionary
    assert tokens(pair.left) == left
    assert tokens(pair.right) == right
    assert all(line.status is Status.UNRESOLVED for line in pair.left + pair.right)


def test_intern_lines_exact_equality():
    # No trimming or case folding: these are four different lines
    dictionary, pair = intern_lines(["a", "a ", ""], ["A", "a", ""])
    assert dictionary == ["a", "a ", "", "A"]
    assert tokens(pair.right) == [3, 0, 2]


def test_intern_lines_keeps_duplicates():
    dictionary, pair = intern_lines(["x", "x", "x"], ["x"])
    assert dictionary == ["x"]
    assert len(pair.left) == 3
    assert len(pair.right) == 1


# --- Fast-Path Marker ---

def test_mark_exclusive():
    pair = FilePair(
        [AnnotatedLine(t) for t in [0, 1, 2, 3, 4, 5, 6]],
        [AnnotatedLine(t) for t in [1, 2, 3, 7]],
    )
    mark_exclusive(pair)

    U, D, A = Status.UNRESOLVED, Status.DELETED, Status.ADDED
    assert statuses(pair.left) == [D, U, U, U, D, D, D]
    assert statuses(pair.right) == [U, U, U, A]


def test_mark_exclusive_leaves_shared_tokens_with_different_counts():
    dictionary, pair = intern_lines(list("abc"), list("caab"))
    mark_exclusive(pair, len(dictionary))
    assert all(line.status is Status.UNRESOLVED for line in pair.left + pair.right)


def test_mark_exclusive_against_empty_file():
    dictionary, pair = intern_lines(list("adcb"), [])
    mark_exclusive(pair, len(dictionary))
    assert statuses(pair.left) == [Status.DELETED] * 4
    assert pair.right == []


# --- LCS Engine ---

@pytest.mark.parametrize("case, expected", zip(CASES, [5, 0, 0, 4, 6]))
def test_common_count(case, expected):
    session = DiffSession(*case).compare()
    assert session.common_count == expected


def test_resolve_without_unresolved_lines():
    dictionary, pair = intern_lines(list("ab"), list("cd"))
    mark_exclusive(pair, len(dictionary))
    resolve(pair)
    assert statuses(pair.left) == [Status.DELETED, Status.DELETED]
    assert statuses(pair.right) == [Status.ADDED, Status.ADDED]


def test_resolve_tie_break_duplicates():
    # The table prefers dropping lines of the second file on ties, so the
    # second "a" of file 2 is matched.
    session = DiffSession(list("abc"), list("caab")).compare()
    C, D, A = Status.COMMON, Status.DELETED, Status.ADDED
    assert statuses(session.pair.left) == [C, C, D]
    assert statuses(session.pair.right) == [A, A, C, C]


def test_resolve_tie_break_swap():
    session = DiffSession(list("ab"), list("ba")).compare()
    assert statuses(session.pair.left) == [Status.DELETED, Status.COMMON]
    assert statuses(session.pair.right) == [Status.COMMON, Status.ADDED]


def test_resolve_resource_exceeded():
    dictionary, pair = intern_lines(list("abab"), list("baba"))
    with pytest.raises(ResourceExceeded) as excinfo:
        resolve(pair, max_cells=15)
    assert excinfo.value.rows == 4
    assert excinfo.value.cols == 4
    assert excinfo.value.limit == 15
    assert isinstance(excinfo.value, MemoryError)
    # Nothing was touched
    assert all(line.status is Status.UNRESOLVED for line in pair.left + pair.right)


def test_resolve_ceiling_is_inclusive():
    dictionary, pair = intern_lines(list("abab"), list("baba"))
    resolve(pair, max_cells=16)
    assert count_statuses(pair.left)[Status.COMMON] == 3


def test_resolve_ceiling_from_environment(monkeypatch):
    monkeypatch.setenv("SDIFF_MAX_CELLS", "3")
    with pytest.raises(ResourceExceeded):
        DiffSession(list("ab"), list("ba")).compare()


def test_resolve_rejects_bad_ceiling(monkeypatch):
    monkeypatch.setenv("SDIFF_MAX_CELLS", "lots")
    with pytest.raises(ValueError, match="SDIFF_MAX_CELLS"):
        DiffSession(list("ab"), list("ba")).compare()


def test_fast_path_excludes_pruned_lines_from_table():
    # 3 unresolved lines on each side fit, the 5x5 raw table would not
    session = DiffSession(list("abcxy"), list("cbazw"), max_cells=9)
    session.compare()
    assert session.common_count == 1


# --- Invariants ---

def test_random_pairs_against_naive_lcs():
    rng = random.Random(1234)
    for _ in range(300):
        lines_a = random_lines(rng, "abcde", 12)
        lines_b = random_lines(rng, "abcdef", 12)
        session = DiffSession(lines_a, lines_b).compare()
        left, right = session.pair.left, session.pair.right

        counts_a = count_statuses(left)
        counts_b = count_statuses(right)
        common = counts_a[Status.COMMON]

        assert counts_a[Status.UNRESOLVED] == counts_b[Status.UNRESOLVED] == 0
        assert counts_a[Status.ADDED] == counts_b[Status.DELETED] == 0
        assert common + counts_a[Status.DELETED] == len(lines_a)
        assert common + counts_b[Status.ADDED] == len(lines_b)

        common_a = [line.token for line in left if line.status is Status.COMMON]
        common_b = [line.token for line in right if line.status is Status.COMMON]
        assert common_a == common_b
        assert common == naive_lcs_length(lines_a, lines_b)

        assert len(session.merged) == len(lines_a) + len(lines_b) - common


def test_fast_path_gives_identical_statuses():
    rng = random.Random(99)
    for _ in range(200):
        lines_a = random_lines(rng, "abcdxy", 10)
        lines_b = random_lines(rng, "abcdzw", 10)
        with_fast_path = DiffSession(lines_a, lines_b).compare()
        without_fast_path = DiffSession(lines_a, lines_b, fast_path=False).compare()
        assert statuses(with_fast_path.pair.left) == statuses(without_fast_path.pair.left)
        assert statuses(with_fast_path.pair.right) == statuses(without_fast_path.pair.right)


def test_fast_path_same_choice_among_equal_lcs():
    # The unmatched "x" must not shift which "a" of file 2 is picked
    for fast_path in (True, False):
        session = DiffSession(["a", "x"], ["a", "a"], fast_path=fast_path).compare()
        assert statuses(session.pair.left) == [Status.COMMON, Status.DELETED]
        assert statuses(session.pair.right) == [Status.ADDED, Status.COMMON]


def test_table_skips_lines_without_counterpart():
    # Without the fast path the 5x5 table still shrinks to 3x3
    session = DiffSession(list("abcxy"), list("cbazw"), fast_path=False, max_cells=9)
    assert session.compare().common_count == 1


def test_compare_against_itself():
    lines = ["x", "y", "x", "", "z"]
    session = DiffSession(lines, list(lines)).compare()
    assert session.common_count == len(lines)
    assert not session.has_differences
    assert count_statuses(session.pair.left)[Status.DELETED] == 0
    assert count_statuses(session.pair.right)[Status.ADDED] == 0


def test_compare_is_idempotent():
    session = DiffSession(list("abc"), list("abd"))
    session.compare()
    before = statuses(session.pair.left)
    session.compare()
    assert statuses(session.pair.left) == before


# --- Output-Order Merge ---

@pytest.mark.parametrize("lines_a, lines_b, expected", [
    (list("abcdefgh"), list("bcegh"), [0, 1, 2, 3, 4, 5, 6, 7]),
    (list("abcd"), list("efg"), [0, 1, 2, 3, 4, 5, 6]),
    (list("abcdefg"), list("abpqrfg"), [0, 1, 2, 3, 4, 7, 8, 9, 5, 6]),
])
def test_merge_order(lines_a, lines_b, expected):
    session = DiffSession(lines_a, lines_b)
    assert tokens(session.merged) == expected


def test_merge_deletions_before_insertions():
    session = DiffSession(list("axyb"), list("apqb"))
    C, D, A = Status.COMMON, Status.DELETED, Status.ADDED
    assert statuses(session.merged) == [C, D, D, A, A, C]


def test_merge_shares_line_objects():
    session = DiffSession(list("abc"), list("bcd"))
    merged = session.merged
    assert merged[0] is session.pair.left[0]
    assert merged[1] is session.pair.left[1]
    assert merged[-1] is session.pair.right[-1]


def test_merge_empty():
    dictionary, pair = intern_lines([], [])
    resolve(pair)
    assert merge(pair) == []


# --- difflib-compatible matcher ---

def test_matcher_opcodes_match_difflib():
    lines_a = ["Apple\n", "Banana\n", "Cherry\n", "Date\n"]
    lines_b = ["Apple\n", "Berry\n", "Cherry\n", "Date\n", "Elderberry\n"]

    matcher = LCSSequenceMatcher(None, lines_a, lines_b)
    expected = [
        ('equal', 0, 1, 0, 1),
        ('replace', 1, 2, 1, 2),
        ('equal', 2, 4, 2, 4),
        ('insert', 4, 4, 4, 5),
    ]
    assert list(matcher.get_opcodes()) == expected

    std_opcodes = difflib.SequenceMatcher(None, lines_a, lines_b, autojunk=False).get_opcodes()
    assert list(matcher.get_opcodes()) == std_opcodes
    assert matcher.get_matching_blocks() == [(0, 0, 1), (2, 2, 2), (4, 5, 0)]


def test_matcher_opcodes_rebuild_second_sequence():
    rng = random.Random(7)
    for _ in range(100):
        a = random_lines(rng, "abcd", 10)
        b = random_lines(rng, "abce", 10)
        rebuilt = []
        for tag, i1, i2, j1, j2 in LCSSequenceMatcher(None, a, b).get_opcodes():
            if tag == 'equal':
                assert a[i1:i2] == b[j1:j2]
                rebuilt.extend(a[i1:i2])
            else:
                rebuilt.extend(b[j1:j2])
        assert rebuilt == b


def test_matcher_resets_cache_on_new_sequence():
    matcher = LCSSequenceMatcher(None, list("abc"), list("abc"))
    assert list(matcher.get_opcodes()) == [('equal', 0, 3, 0, 3)]
    matcher.set_seq2(list("abd"))
    assert list(matcher.get_opcodes()) == [('equal', 0, 2, 0, 2), ('replace', 2, 3, 2, 3)]


def test_matcher_empty_sequences():
    assert list(LCSSequenceMatcher().get_opcodes()) == []
    assert list(LCSSequenceMatcher(None, [], ["x"]).get_opcodes()) == [('insert', 0, 0, 0, 1)]


def test_default_ceiling_follows_line_limit(monkeypatch):
    monkeypatch.delenv("SDIFF_MAX_CELLS", raising=False)
    assert DEFAULT_MAX_CELLS == LINE_LIMIT * LINE_LIMIT
    # Two files at the line limit always fit in the default table
    dictionary, pair = intern_lines(["a"] * LINE_LIMIT, ["b"] * LINE_LIMIT)
    assert get_max_cells() >= len(pair.left) * len(pair.right)


def test_matcher_replays_cached_opcodes():
    matcher = LCSSequenceMatcher(None, list("abxd"), list("abyd"))
    first = list(matcher.get_opcodes())
    cached = matcher.opcodes
    assert list(matcher.get_opcodes()) == first
    assert matcher.opcodes is cached

"""
Contig-name canonicalization by ignore level, plus the substring skip filter.

Levels:
    0  keep every name unchanged
    1  keep names containing "chr" (any case)
    2  as 1, and the text after the last "chr" must start with a digit run or X/Y/M
    3  as 2, and nothing may follow that token ("chr12_random" is dropped)
    4  keep chr1..chr22, chrX, chrY, chrM only, rewritten to that canonical form
    5  as 4, without the "chr" prefix
"""

import re
from typing import Iterable, Optional, Tuple

MIN_LEVEL = 0
MAX_LEVEL = 5
DEFAULT_LEVEL = 4

CANONICAL_TOKENS = frozenset([str(n) for n in range(1, 23)] + ['X', 'Y', 'M'])
CANONICAL_NAMES = frozenset(f"chr{token}" for token in CANONICAL_TOKENS)

_CHR = re.compile(r'chr', re.IGNORECASE)
_TOKEN = re.compile(r'[0-9XYMxym]+')


def extract_chr_token(name: str) -> Tuple[bool, Optional[str], bool]:
    """
    Split a name around its last "chr".

    Returns:
        ``(found_chr, token, has_suffix)`` where token is the upper-cased run of
        ``[0-9XYM]`` right after the last "chr" (None if there is none).
    """
    matches = list(_CHR.finditer(name))
    if not matches:
        return False, None, False
    rest = name[matches[-1].end():]
    token_match = _TOKEN.match(rest)
    if not token_match:
        return True, None, bool(rest)
    token = token_match.group(0).upper()
    return True, token, token_match.end() < len(rest)


def _simple_token(token: str) -> bool:
    return token.isdigit() or token in ('X', 'Y', 'M')


def canonical_token(token: Optional[str]) -> Optional[str]:
    """Return the standard human token (1..22, X, Y, M) or None."""
    if token is None:
        return None
    if token in ('X', 'Y', 'M'):
        return token
    if token.isdigit() and 1 <= int(token) <= 22:
        return str(int(token))
    return None


class ChromNormalizer:
    """Applies one ignore level and a set of skip substrings to CHROM values."""

    def __init__(self, level: int = DEFAULT_LEVEL, skip: Iterable[str] = ()):
        if not isinstance(level, int) or not MIN_LEVEL <= level <= MAX_LEVEL:
            raise ValueError(f"Ignore level must be between {MIN_LEVEL} and {MAX_LEVEL}, got {level!r}")
        self.level = level
        self.skip = tuple(sorted({s for s in skip if s}))

    def should_skip(self, chrom: str) -> bool:
        """True when ``chrom`` contains any skip substring (case-sensitive)."""
        return any(token in chrom for token in self.skip)

    def normalize(self, name: str) -> Optional[str]:
        """Return the name to emit at this level, or None when the record must be dropped."""
        level = self.level
        if level == 0:
            return name

        found_chr, token, has_suffix = extract_chr_token(name)
        if not found_chr:
            return None
        if level == 1:
            return name
        if level in (2, 3):
            if token is None or not _simple_token(token):
                return None
            if level == 3 and has_suffix:
                return None
            return name

        token = canonical_token(token)
        if token is None:
            return None
        return f"chr{token}" if level == 4 else token

    def __repr__(self):
        return f"ChromNormalizer(level={self.level}, skip={list(self.skip)})"

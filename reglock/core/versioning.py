"""
Version marker comparison.
"""

import re
from typing import Any, Tuple

_SEPARATORS = re.compile(r"[.\-+_]")


def _parts(version: Any) -> Tuple:
    if version is None or str(version).strip() == "":
        return ((-1, 0),)

    parts = []
    for piece in _SEPARATORS.split(str(version).strip()):
        if piece.isdigit():
            parts.append((1, int(piece)))
        elif piece:
            # Pre-release tags sort below numeric components
            parts.append((0, piece))
    return tuple(parts)


def version_compare(a: Any, b: Any) -> int:
    """
    Compare two version strings component by component.

    Missing or empty versions compare lower than any real version, so an
    installation without markers is always considered out of date.

    Returns:
        -1 if a < b, 0 if equal, 1 if a > b.
    """
    left, right = list(_parts(a)), list(_parts(b))
    width = max(len(left), len(right))
    left += [(1, 0)] * (width - len(left))
    right += [(1, 0)] * (width - len(right))

    if left == right:
        return 0
    return -1 if left < right else 1

"""
REFLEX — Decay
Bounded Fibonacci decay of an atom's activation score over unused turns.

The table is built once at import. Indices past FIB_CAP are clamped to
fib(FIB_CAP), so the table stays bounded however old an atom gets.
"""

from .models import ACTIVATION_FLOOR


FIB_CAP    = 40
FIB_OFFSET = 2      # decay starts slow: one idle turn divides by fib(3), not fib(1)


def _build_table(size: int) -> tuple:
    table = [1, 1]
    while len(table) < size:
        table.append(table[-1] + table[-2])
    return tuple(table[:size])


_FIB_TABLE = _build_table(FIB_CAP + 1)


def fibonacci(n: int) -> int:
    """fib(0) = fib(1) = 1; clamped to fib(40) for n > 40."""
    if n <= 1:
        return 1
    return _FIB_TABLE[min(n, FIB_CAP)]


def decay(score: float, turns_old: int) -> float:
    """
    Decayed activation after turns_old idle turns.
    Never increases the score and never goes below the floor.
    """
    if turns_old <= 0:
        return score
    factor = 1.0 / fibonacci(turns_old + FIB_OFFSET)
    return max(ACTIVATION_FLOOR, score * (1.0 - factor))

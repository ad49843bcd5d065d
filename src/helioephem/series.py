"""
Periodic series evaluation shared by the ELP2000, VSOP87 and Series96 theories.

Sums are accumulated strictly in table order so results do not depend
on numpy's pairwise summation strategy.
"""

import numpy as np

from .constants import TWO_PI


def select_terms(amplitudes: np.ndarray, threshold: float) -> np.ndarray:
    """Mask of the terms kept at a truncation threshold.

    A term is kept when ``|amplitude| > threshold``. Raising the threshold
    never adds terms; a threshold of 0 only drops exact zeros.
    """
    return np.abs(np.asarray(amplitudes, dtype=float)) > threshold


def term_count(amplitudes: np.ndarray, threshold: float) -> int:
    """Number of terms kept at ``threshold``."""
    return int(np.count_nonzero(select_terms(amplitudes, threshold)))


def ordered_sum(values) -> float:
    """Sum ``values`` left to right."""
    values = np.asarray(values, dtype=float).reshape(-1)
    if values.size == 0:
        return 0.0
    return float(np.cumsum(values)[-1])


def reduce_angle(phase):
    """Reduce an angle (or array of angles) to [0, 2pi)."""
    return np.mod(phase, TWO_PI)


def sine_series(amplitudes: np.ndarray, phases: np.ndarray, threshold: float = 0.0) -> float:
    """Evaluate sum(A * sin(phase)) over the terms kept at ``threshold``.

    Args:
        amplitudes: Term amplitudes, used both for selection and scaling.
        phases: Unreduced phases in radians, same length as ``amplitudes``.
        threshold: Truncation threshold in the units of ``amplitudes``.
    """
    amplitudes = np.asarray(amplitudes, dtype=float)
    phases = np.asarray(phases, dtype=float)
    keep = select_terms(amplitudes, threshold)
    return ordered_sum(amplitudes[keep] * np.sin(reduce_angle(phases[keep])))


def block_sums(table, amplitudes: np.ndarray, phases: np.ndarray,
               threshold: float = 0.0, selectors: np.ndarray | None = None) -> list[float]:
    """Per-block subtotals of a sine series over a TermTable's blocks.

    Args:
        table: TermTable whose ``segments()`` define the blocks.
        amplitudes: Effective amplitude of each row (after any corrections).
        phases: Phase of each row.
        threshold: Truncation threshold.
        selectors: Values compared against ``threshold`` instead of
            ``amplitudes`` (e.g. the uncorrected amplitudes).

    Returns:
        One subtotal per block, in block order.
    """
    amplitudes = np.asarray(amplitudes, dtype=float)
    phases = np.asarray(phases, dtype=float)
    selectors = amplitudes if selectors is None else np.asarray(selectors, dtype=float)
    keep = select_terms(selectors, threshold)
    sums = []
    for start, stop in table.segments():
        k = keep[start:stop]
        sums.append(ordered_sum(amplitudes[start:stop][k] * np.sin(reduce_angle(phases[start:stop][k]))))
    return sums


def poisson_series(a: np.ndarray, b: np.ndarray, c: np.ndarray, tau: float,
                   power) -> tuple[float, float]:
    """Evaluate sum(a * cos(b + c*tau) * tau**power) and its derivative in tau.

    Args:
        a: Amplitudes.
        b: Phases (radians).
        c: Frequencies (radians per unit of tau).
        tau: Time argument.
        power: Power of tau, scalar or per term.

    Returns:
        (value, d value / d tau).
    """
    a = np.asarray(a, dtype=float)
    if a.size == 0:
        return 0.0, 0.0
    power = np.broadcast_to(np.asarray(power, dtype=int), a.shape)
    u = np.asarray(b, dtype=float) + np.asarray(c, dtype=float) * tau
    tp = np.power(float(tau), power)
    cos_u = np.cos(u)
    value = a * cos_u * tp
    # p * tau**(p-1), zero where p == 0
    tp1 = np.where(power > 0, power * np.power(float(tau), np.maximum(power - 1, 0)), 0.0)
    rate = tp1 * a * cos_u - tp * a * np.asarray(c, dtype=float) * np.sin(u)
    return ordered_sum(value), ordered_sum(rate)

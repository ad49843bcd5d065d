"""
Term tables for the series theories, and the provider that serves them.

TermTable holds an already-parsed coefficient table as read-only numpy
arrays. TermTableProvider is a thread-safe registry of tables keyed by
(theory, quantity):
- Registering parsed tables from any source
- Loading missing tables on first use through an optional loader callable
- Serving the same read-only objects to every caller

The provider is constructed once and passed to the engine explicitly.
Registration and first-use loading are serialized via an RLock; reads of
the tables themselves need no locking because they are immutable.
"""

import logging
import threading
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field

import numpy as np

logger = logging.getLogger("helioephem")


# ---------------------------------------------------------------------------
# Periodic term tables
# ---------------------------------------------------------------------------

def _readonly(values, dtype, width: int | None = None) -> np.ndarray:
    arr = np.array(values, dtype=dtype)
    if arr.ndim != 2:
        if arr.size == 0:
            arr = arr.reshape(0, width or 0)
        else:
            arr = arr.reshape(-1, width) if width else arr.reshape(1, -1)
    arr.setflags(write=False)
    return arr


def _per_axis(values) -> np.ndarray:
    arr = np.array(values, dtype=np.float64).reshape(3, -1)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, eq=False)
class TermTable:
    """An ordered table of periodic terms.

    Attributes:
        theory: Theory key (e.g. "ELP2000", "VSOP87D").
        quantity: Quantity key within the theory (e.g. "4", "JUPITER").
        multipliers: Integer array (n, k) of argument multipliers.
        coefficients: Float array (n, m) of amplitudes and phases.
        blocks: Start offsets of the ordered sub-ranges of the table. Each
            block is summed on its own and the subtotals are accumulated
            in block order.
    """

    theory: str
    quantity: str
    multipliers: np.ndarray
    coefficients: np.ndarray
    blocks: tuple[int, ...] = (0,)

    def __post_init__(self):
        mult = _readonly(self.multipliers, np.int64)
        coef = _readonly(self.coefficients, np.float64)
        if mult.shape[0] != coef.shape[0]:
            raise ValueError(
                f"Table {self.theory}/{self.quantity}: {mult.shape[0]} multiplier rows "
                f"but {coef.shape[0]} coefficient rows"
            )
        blocks = tuple(int(b) for b in self.blocks) or (0,)
        if blocks[0] != 0 or any(b2 < b1 for b1, b2 in zip(blocks, blocks[1:])) \
                or blocks[-1] > mult.shape[0]:
            raise ValueError(
                f"Table {self.theory}/{self.quantity}: invalid block offsets {blocks}"
            )
        object.__setattr__(self, "multipliers", mult)
        object.__setattr__(self, "coefficients", coef)
        object.__setattr__(self, "blocks", blocks)

    def __len__(self) -> int:
        return self.multipliers.shape[0]

    @property
    def key(self) -> tuple[str, str]:
        return self.theory, self.quantity

    def segments(self) -> list[tuple[int, int]]:
        """Return the (start, stop) row ranges of each block, in order."""
        bounds = list(self.blocks) + [len(self)]
        return list(zip(bounds[:-1], bounds[1:]))

    @classmethod
    def from_terms(
        cls,
        theory: str,
        quantity: str,
        terms: Iterable[tuple[Sequence[int], Sequence[float]]],
        n_multipliers: int | None = None,
        n_coefficients: int | None = None,
    ) -> "TermTable":
        """Build a single-block table from (multipliers, coefficients) rows.

        Widths are only needed when ``terms`` may be empty.
        """
        rows = list(terms)
        mult = _readonly([r[0] for r in rows], np.int64, n_multipliers)
        coef = _readonly([r[1] for r in rows], np.float64, n_coefficients)
        return cls(theory, quantity, mult, coef)

    @classmethod
    def concatenate(cls, theory: str, quantity: str, tables: Sequence["TermTable"]) -> "TermTable":
        """Join tables end to end, each becoming one block of the result."""
        if not tables:
            raise ValueError("concatenate() needs at least one table")
        offsets, start = [], 0
        for t in tables:
            offsets.append(start)
            start += len(t)
        mult = np.concatenate([t.multipliers for t in tables], axis=0)
        coef = np.concatenate([t.coefficients for t in tables], axis=0)
        return cls(theory, quantity, mult, coef, tuple(offsets))


# ---------------------------------------------------------------------------
# Series96 fitted tables
# ---------------------------------------------------------------------------

@dataclass(frozen=True, eq=False)
class Series96Block:
    """Coefficients of one time block of a Series96 fit.

    Attributes:
        secular: (3, n_secular) power-series coefficients per axis.
        cosine: One (3, n_freq[m]) array of cosine amplitudes per power m.
        sine: One (3, n_freq[m]) array of sine amplitudes per power m.
    """

    secular: np.ndarray
    cosine: tuple[np.ndarray, ...]
    sine: tuple[np.ndarray, ...]

    def __post_init__(self):
        object.__setattr__(self, "secular", _readonly(self.secular, np.float64))
        object.__setattr__(self, "cosine", tuple(_per_axis(c) for c in self.cosine))
        object.__setattr__(self, "sine", tuple(_per_axis(s) for s in self.sine))
        if self.secular.shape[0] != 3:
            raise ValueError(f"Series96 secular block must have 3 rows, got {self.secular.shape}")
        if len(self.cosine) != len(self.sine):
            raise ValueError("Series96 block needs as many sine as cosine powers")


@dataclass(frozen=True, eq=False)
class Series96Body:
    """A parsed Series96 fit for one body.

    Attributes:
        body: Canonical body key (EARTH fits are stored under "EMB").
        start: Julian day of the first block start.
        spacing: Block length in days.
        frequencies: Frequencies (rad/day) per Poisson power m.
        blocks: Coefficient blocks in time order.
    """

    body: str
    start: float
    spacing: float
    frequencies: tuple[np.ndarray, ...]
    blocks: tuple[Series96Block, ...] = field(default=())

    def __post_init__(self):
        freqs = []
        for f in self.frequencies:
            arr = np.array(f, dtype=np.float64).reshape(-1)
            arr.setflags(write=False)
            freqs.append(arr)
        object.__setattr__(self, "frequencies", tuple(freqs))
        object.__setattr__(self, "blocks", tuple(self.blocks))
        if self.spacing <= 0:
            raise ValueError(f"Series96 block spacing must be positive, got {self.spacing}")
        for b in self.blocks:
            if len(b.cosine) != len(self.frequencies):
                raise ValueError(
                    f"Series96 {self.body}: block has {len(b.cosine)} powers, "
                    f"expected {len(self.frequencies)}"
                )
            for m, f in enumerate(self.frequencies):
                if b.cosine[m].shape != (3, f.size) or b.sine[m].shape != (3, f.size):
                    raise ValueError(
                        f"Series96 {self.body}: power {m} amplitudes do not match "
                        f"{f.size} frequencies"
                    )

    @property
    def end(self) -> float:
        return self.start + self.spacing * len(self.blocks)


# ---------------------------------------------------------------------------
# Provider
# ---------------------------------------------------------------------------

Loader = Callable[[str, str], object]


class TermTableProvider:
    """Thread-safe registry of parsed theory tables.

    Tables are stored under (theory, quantity). Theories used by the
    engine: "ELP2000" with quantities "1".."36", "VSOP87<variant>" with
    body keys, and "SERIES96" with body keys.

    Args:
        loader: Optional callable ``loader(theory, quantity)`` returning
            the table for a key not yet registered. It runs at most once
            per key, under the provider lock.
    """

    def __init__(self, loader: Loader | None = None):
        self._lock = threading.RLock()
        self._tables: dict[tuple[str, str], object] = {}
        self._loader = loader

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def register(self, table, theory: str | None = None, quantity: str | None = None) -> None:
        """Register a table, replacing any table under the same key.

        Args:
            table: TermTable, Series96Body or other parsed table.
            theory: Theory key; defaults to ``table.theory`` or "SERIES96".
            quantity: Quantity key; defaults to ``table.quantity`` or ``table.body``.
        """
        if theory is None:
            theory = getattr(table, "theory", None) or (
                "SERIES96" if isinstance(table, Series96Body) else None)
        if quantity is None:
            quantity = getattr(table, "quantity", None) or getattr(table, "body", None)
        if theory is None or quantity is None:
            raise ValueError("theory and quantity are required for this table type")
        key = (theory.upper(), str(quantity).upper())
        with self._lock:
            self._tables[key] = table
        logger.debug("Registered table %s/%s", *key)

    def register_many(self, tables: Iterable) -> None:
        with self._lock:
            for t in tables:
                self.register(t)
        logger.info("Registered %d tables", len(self._tables))

    def has_table(self, theory: str, quantity: str) -> bool:
        with self._lock:
            return (theory.upper(), str(quantity).upper()) in self._tables

    def get_table(self, theory: str, quantity: str):
        """Return the table registered under (theory, quantity).

        Raises:
            KeyError: If the table is missing and no loader provides it.
        """
        key = (theory.upper(), str(quantity).upper())
        table = self._tables.get(key)
        if table is not None:
            return table
        with self._lock:
            if key in self._tables:
                return self._tables[key]
            if self._loader is not None:
                table = self._loader(*key)
                if table is not None:
                    self._tables[key] = table
                    logger.info("Loaded table %s/%s", *key)
                    return table
            available = sorted(f"{t}/{q}" for t, q in self._tables if t == key[0])
            raise KeyError(
                f"No table '{key[0]}/{key[1]}' registered. "
                f"Available for {key[0]}: {', '.join(available) or 'none'}"
            )

    def list_tables(self, theory: str | None = None) -> list[tuple[str, str]]:
        with self._lock:
            keys = sorted(self._tables)
        if theory is not None:
            keys = [k for k in keys if k[0] == theory.upper()]
        return keys

    def clear(self) -> None:
        """Forget all registered tables."""
        with self._lock:
            self._tables.clear()
            logger.info("Cleared all term tables")

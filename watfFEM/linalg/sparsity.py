"""
Sparsity pattern and pattern-locked sparse matrix.

The sparsity pattern is the set of (row, column) pairs that may be
nonzero in the system matrix. It is built once from the cell-to-DOF
map and the constraints, compressed to CSR index arrays, and then
frozen. A SparseMatrix allocates exactly one value per pattern entry.

Numeric assembly adds into existing entries only. Writing to a pair
that is not part of the pattern raises StructuralError: it means the
pattern was built from different connectivity or constraints than
the assembly, which is a programming error. The matrix is never
reallocated silently.
"""

import numpy as np
from scipy import sparse
from typing import List, Optional, Tuple

from ..errors import StructuralError, DimensionMismatchError


class SparsityPattern:
    """
    Set of matrix positions allowed to be nonzero.

    Usage:
        pattern = SparsityPattern(n)
        pattern.add_entries(dofs, dofs)   # all pairs
        pattern.compress()
        pattern.exists(i, j)
    """

    def __init__(self, n_rows: int, n_cols: Optional[int] = None):
        self.n_rows = n_rows
        self.n_cols = n_rows if n_cols is None else n_cols

        self._pending_rows: List[np.ndarray] = []
        self._pending_cols: List[np.ndarray] = []
        self._indptr: Optional[np.ndarray] = None
        self._indices: Optional[np.ndarray] = None

    @property
    def is_compressed(self) -> bool:
        return self._indptr is not None

    def add(self, row: int, col: int) -> None:
        """Add a single position."""
        self.add_entries([row], [col])

    def add_entries(self, rows, cols) -> None:
        """Add all pairs (r, c) for r in rows, c in cols."""
        if self.is_compressed:
            raise StructuralError("Cannot add entries to a compressed sparsity pattern")
        rows = np.asarray(rows, dtype=np.int64)
        cols = np.asarray(cols, dtype=np.int64)
        if rows.size == 0 or cols.size == 0:
            return
        if rows.min() < 0 or rows.max() >= self.n_rows or cols.min() < 0 or cols.max() >= self.n_cols:
            raise StructuralError("Sparsity entry index out of range")
        r, c = np.meshgrid(rows, cols, indexing="ij")
        self._pending_rows.append(r.ravel())
        self._pending_cols.append(c.ravel())

    def add_diagonal(self, indices) -> None:
        """Add the pairs (i, i) for i in indices."""
        if self.is_compressed:
            raise StructuralError("Cannot add entries to a compressed sparsity pattern")
        indices = np.asarray(indices, dtype=np.int64)
        if indices.size and (indices.min() < 0 or indices.max() >= min(self.n_rows, self.n_cols)):
            raise StructuralError("Sparsity entry index out of range")
        self._pending_rows.append(indices)
        self._pending_cols.append(indices)

    def compress(self) -> None:
        """Sort and deduplicate entries into CSR index arrays."""
        if self.is_compressed:
            return
        if self._pending_rows:
            rows = np.concatenate(self._pending_rows)
            cols = np.concatenate(self._pending_cols)
        else:
            rows = np.zeros(0, dtype=np.int64)
            cols = np.zeros(0, dtype=np.int64)

        keys = np.unique(rows * self.n_cols + cols)
        rows = keys // self.n_cols
        self._indices = (keys % self.n_cols).astype(np.int64)
        self._indptr = np.zeros(self.n_rows + 1, dtype=np.int64)
        np.cumsum(np.bincount(rows, minlength=self.n_rows), out=self._indptr[1:])

        self._pending_rows = []
        self._pending_cols = []

    def _check_compressed(self) -> None:
        if not self.is_compressed:
            raise StructuralError("Sparsity pattern is not compressed. Call compress() first.")

    @property
    def indptr(self) -> np.ndarray:
        self._check_compressed()
        return self._indptr

    @property
    def indices(self) -> np.ndarray:
        self._check_compressed()
        return self._indices

    @property
    def n_nonzero_elements(self) -> int:
        self._check_compressed()
        return len(self._indices)

    def row_length(self, row: int) -> int:
        self._check_compressed()
        return int(self._indptr[row + 1] - self._indptr[row])

    def row(self, row: int) -> np.ndarray:
        """Sorted column indices of a row."""
        self._check_compressed()
        return self._indices[self._indptr[row]:self._indptr[row + 1]]

    def exists(self, row: int, col: int) -> bool:
        cols = self.row(row)
        pos = np.searchsorted(cols, col)
        return bool(pos < len(cols) and cols[pos] == col)

    def bandwidth(self) -> int:
        """Maximum |row - col| over all entries."""
        self._check_compressed()
        if len(self._indices) == 0:
            return 0
        rows = np.repeat(np.arange(self.n_rows), np.diff(self._indptr))
        return int(np.max(np.abs(rows - self._indices)))

    def locate(self, rows: np.ndarray, cols: np.ndarray) -> np.ndarray:
        """
        Positions of the block rows x cols in the value array.

        Raises:
            StructuralError: if any pair is not part of the pattern

        Returns:
            Integer array of shape (len(rows), len(cols))
        """
        self._check_compressed()
        cols = np.asarray(cols, dtype=np.int64)
        positions = np.empty((len(rows), len(cols)), dtype=np.int64)
        for k, r in enumerate(rows):
            start, end = self._indptr[r], self._indptr[r + 1]
            row_cols = self._indices[start:end]
            pos = np.searchsorted(row_cols, cols)
            found = pos < len(row_cols)
            found[found] = row_cols[pos[found]] == cols[found]
            if not np.all(found):
                missing = cols[~found][0]
                raise StructuralError(
                    f"Entry ({r}, {missing}) is not part of the sparsity pattern")
            positions[k] = start + pos
        return positions


class SparseMatrix:
    """
    Sparse matrix whose structure is fixed by a SparsityPattern.

    Attributes:
        pattern: The compressed sparsity pattern
    """

    def __init__(self, pattern: SparsityPattern):
        pattern.compress()
        self.pattern = pattern
        self._data = np.zeros(pattern.n_nonzero_elements)

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.pattern.n_rows, self.pattern.n_cols)

    @property
    def nnz(self) -> int:
        return len(self._data)

    @property
    def data(self) -> np.ndarray:
        return self._data

    def set_zero(self) -> None:
        """Reset all values, keeping the structure."""
        self._data[:] = 0.0

    def add(self, rows, cols, values: np.ndarray) -> None:
        """
        Add a dense block to the entries rows x cols.

        Parameters:
            rows: Row indices, shape (m,)
            cols: Column indices, shape (k,)
            values: Block of shape (m, k)
        """
        rows = np.asarray(rows, dtype=np.int64)
        cols = np.asarray(cols, dtype=np.int64)
        values = np.asarray(values, dtype=float)
        if values.shape != (len(rows), len(cols)):
            raise DimensionMismatchError(len(rows) * len(cols), values.size, "matrix block")
        positions = self.pattern.locate(rows, cols)
        np.add.at(self._data, positions.ravel(), values.ravel())

    def add_entry(self, row: int, col: int, value: float) -> None:
        self.add([row], [col], np.array([[value]]))

    def el(self, row: int, col: int) -> float:
        """Value at (row, col); zero for positions outside the pattern."""
        cols = self.pattern.row(row)
        pos = np.searchsorted(cols, col)
        if pos < len(cols) and cols[pos] == col:
            return float(self._data[self.pattern.indptr[row] + pos])
        return 0.0

    def diagonal(self) -> np.ndarray:
        return self.to_csr().diagonal()

    def to_csr(self) -> sparse.csr_matrix:
        """Copy into a scipy CSR matrix (explicit zeros are kept)."""
        return sparse.csr_matrix(
            (self._data.copy(), self.pattern.indices.copy(), self.pattern.indptr.copy()),
            shape=self.shape)

    def __matmul__(self, x: np.ndarray) -> np.ndarray:
        return self.to_csr() @ x

    def is_symmetric(self, rtol: float = 1e-12) -> bool:
        A = self.to_csr()
        diff = abs(A - A.T)
        scale = max(abs(A).max(), 1e-300) if A.nnz else 1.0
        return diff.max() <= rtol * scale if diff.nnz else True

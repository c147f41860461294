# structengine/kernel/sparse.py
"""
SPARSE STORAGE: Dictionary-of-Keys Matrices and Vectors
=======================================================

PURPOSE:
--------
Global matrices of a frame model are huge and almost empty. A 3D frame
with n nodes has 6n DOFs, so a dense K needs (6n)² floats, but each row
only couples a node to its direct neighbours.

This module stores only the nonzero entries:

    SparseMatrix:  {(row, col): value}
    SparseVector:  {index: value}

Memory is proportional to the number of nonzeros, and access is O(1)
amortized (hash lookup).

CONTRACT:
---------
- get() never fails: absent keys and out-of-range reads return 0.0
- set()/add() outside the declared dimensions is a programming error
  (assert, so it is fatal unless Python runs with -O)
- storing an exact zero removes the key

For the heavy lifting (factorisation, eigenvalues) the matrix is handed
to scipy via to_csr(). Assembly, boundary conditions and bookkeeping stay
in the dict form.
"""

import sys
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, Tuple, Union

import numpy as np
import scipy.sparse


@dataclass(frozen=True)
class MemoryUsage:
    """Estimated storage cost of a sparse matrix versus its dense equivalent."""
    bytes: int
    dense_bytes: int
    compression_ratio: float


class SparseVector:
    """
    Sparse vector keyed by integer index.

    >>> v = SparseVector(6)
    >>> v.add(2, 1.5)
    >>> v.add(2, 0.5)
    >>> v.get(2)
    2.0
    >>> v.get(99)
    0.0
    """

    __slots__ = ("size", "_data")

    def __init__(self, size: int):
        self.size = int(size)
        self._data: Dict[int, float] = {}

    # ------------------------------------------------------------------
    # element access
    # ------------------------------------------------------------------
    def get(self, index: int) -> float:
        return self._data.get(index, 0.0)

    def set(self, index: int, value: float) -> None:
        assert 0 <= index < self.size, \
            f"Index {index} outside vector of size {self.size}"
        value = float(value)
        if value == 0.0:
            self._data.pop(index, None)
        else:
            self._data[index] = value

    def add(self, index: int, value: float) -> None:
        self.set(index, self.get(index) + value)

    def __getitem__(self, index: int) -> float:
        return self.get(index)

    def __setitem__(self, index: int, value: float) -> None:
        self.set(index, value)

    def __len__(self) -> int:
        return self.size

    @property
    def nnz(self) -> int:
        return len(self._data)

    def items(self) -> Iterator[Tuple[int, float]]:
        return iter(self._data.items())

    def clear(self) -> None:
        self._data.clear()

    def copy(self) -> "SparseVector":
        out = SparseVector(self.size)
        out._data = dict(self._data)
        return out

    # ------------------------------------------------------------------
    # arithmetic
    # ------------------------------------------------------------------
    def scale(self, factor: float) -> "SparseVector":
        out = SparseVector(self.size)
        if factor != 0.0:
            out._data = {i: v * factor for i, v in self._data.items()}
        return out

    def __add__(self, other: "SparseVector") -> "SparseVector":
        out = SparseVector(max(self.size, other.size))
        out._data = dict(self._data)
        for i, v in other._data.items():
            out.add(i, v)
        return out

    def __sub__(self, other: "SparseVector") -> "SparseVector":
        return self + other.scale(-1.0)

    def __mul__(self, factor: float) -> "SparseVector":
        return self.scale(factor)

    __rmul__ = __mul__

    def dot(self, other: "SparseVector") -> float:
        # iterate the shorter of the two
        small, large = (self, other) if self.nnz <= other.nnz else (other, self)
        return float(sum(v * large.get(i) for i, v in small._data.items()))

    def norm(self) -> float:
        return float(np.sqrt(sum(v * v for v in self._data.values())))

    # ------------------------------------------------------------------
    # conversion
    # ------------------------------------------------------------------
    def to_dense(self) -> np.ndarray:
        out = np.zeros(self.size, dtype=float)
        for i, v in self._data.items():
            out[i] = v
        return out

    @classmethod
    def from_dense(cls, values: Iterable[float]) -> "SparseVector":
        arr = np.asarray(values, dtype=float).ravel()
        out = cls(arr.size)
        for i in np.flatnonzero(arr):
            out._data[int(i)] = float(arr[i])
        return out

    def __repr__(self) -> str:
        return f"SparseVector(size={self.size}, nnz={self.nnz})"


class SparseMatrix:
    """
    Sparse matrix keyed by (row, col).

    Used for the global stiffness, mass, damping and geometric stiffness
    matrices. Accumulation with add() is what makes scatter-assembly work:
    entries shared by several elements sum instead of overwriting.

    >>> K = SparseMatrix(12, 12)
    >>> K.add(0, 0, 5.0)
    >>> K.add(0, 0, 5.0)
    >>> K.get(0, 0)
    10.0
    >>> K.nnz
    1
    """

    __slots__ = ("rows", "cols", "_data")

    def __init__(self, rows: int, cols: int = None):
        self.rows = int(rows)
        self.cols = int(rows if cols is None else cols)
        self._data: Dict[Tuple[int, int], float] = {}

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.rows, self.cols)

    @property
    def nnz(self) -> int:
        return len(self._data)

    # ------------------------------------------------------------------
    # element access
    # ------------------------------------------------------------------
    def get(self, row: int, col: int) -> float:
        return self._data.get((row, col), 0.0)

    def set(self, row: int, col: int, value: float) -> None:
        assert 0 <= row < self.rows and 0 <= col < self.cols, \
            f"Entry ({row}, {col}) outside matrix of shape {self.shape}"
        value = float(value)
        if value == 0.0:
            self._data.pop((row, col), None)
        else:
            self._data[(row, col)] = value

    def add(self, row: int, col: int, value: float) -> None:
        self.set(row, col, self.get(row, col) + value)

    def __getitem__(self, key: Tuple[int, int]) -> float:
        return self.get(*key)

    def __setitem__(self, key: Tuple[int, int], value: float) -> None:
        self.set(key[0], key[1], value)

    def items(self) -> Iterator[Tuple[Tuple[int, int], float]]:
        return iter(self._data.items())

    def clear(self) -> None:
        self._data.clear()

    def copy(self) -> "SparseMatrix":
        out = SparseMatrix(self.rows, self.cols)
        out._data = dict(self._data)
        return out

    def diagonal(self) -> np.ndarray:
        n = min(self.rows, self.cols)
        out = np.zeros(n, dtype=float)
        for (r, c), v in self._data.items():
            if r == c:
                out[r] = v
        return out

    def clear_rows_and_columns(self, indices: Iterable[int]) -> None:
        """Drop every entry whose row or column is in `indices` (one pass)."""
        idx = set(indices)
        if not idx:
            return
        self._data = {
            (r, c): v for (r, c), v in self._data.items()
            if r not in idx and c not in idx
        }

    # ------------------------------------------------------------------
    # arithmetic
    # ------------------------------------------------------------------
    def scale(self, factor: float) -> "SparseMatrix":
        out = SparseMatrix(self.rows, self.cols)
        if factor != 0.0:
            out._data = {k: v * factor for k, v in self._data.items()}
        return out

    def add_matrix(self, other: "SparseMatrix", factor: float = 1.0) -> "SparseMatrix":
        """Return self + factor * other as a new matrix."""
        assert self.shape == other.shape, \
            f"Shape mismatch: {self.shape} vs {other.shape}"
        out = self.copy()
        for (r, c), v in other._data.items():
            out.add(r, c, factor * v)
        return out

    def __add__(self, other: "SparseMatrix") -> "SparseMatrix":
        return self.add_matrix(other)

    def __sub__(self, other: "SparseMatrix") -> "SparseMatrix":
        return self.add_matrix(other, -1.0)

    def __mul__(self, factor: float) -> "SparseMatrix":
        return self.scale(factor)

    __rmul__ = __mul__

    def matvec(self, x: Union[np.ndarray, SparseVector]) -> Union[np.ndarray, SparseVector]:
        """
        Matrix-vector product.

        Returns the same kind of vector it was given: a numpy array for a
        numpy operand, a SparseVector for a SparseVector operand.
        """
        if isinstance(x, SparseVector):
            out = SparseVector(self.rows)
            for (r, c), v in self._data.items():
                xc = x.get(c)
                if xc != 0.0:
                    out.add(r, v * xc)
            return out

        x = np.asarray(x, dtype=float)
        assert x.shape == (self.cols,), \
            f"Vector of shape {x.shape} doesn't match matrix shape {self.shape}"
        out = np.zeros(self.rows, dtype=float)
        for (r, c), v in self._data.items():
            out[r] += v * x[c]
        return out

    def __matmul__(self, x):
        return self.matvec(x)

    def transpose(self) -> "SparseMatrix":
        out = SparseMatrix(self.cols, self.rows)
        out._data = {(c, r): v for (r, c), v in self._data.items()}
        return out

    @property
    def T(self) -> "SparseMatrix":
        return self.transpose()

    def is_symmetric(self, rtol: float = 1e-10, atol: float = 1e-12) -> bool:
        if self.rows != self.cols:
            return False
        for (r, c), v in self._data.items():
            w = self.get(c, r)
            if abs(v - w) > atol + rtol * max(abs(v), abs(w)):
                return False
        return True

    # ------------------------------------------------------------------
    # conversion
    # ------------------------------------------------------------------
    def to_dense(self) -> np.ndarray:
        out = np.zeros(self.shape, dtype=float)
        for (r, c), v in self._data.items():
            out[r, c] = v
        return out

    @classmethod
    def from_dense(cls, values: np.ndarray) -> "SparseMatrix":
        arr = np.asarray(values, dtype=float)
        assert arr.ndim == 2, "from_dense expects a 2D array"
        out = cls(arr.shape[0], arr.shape[1])
        rows, cols = np.nonzero(arr)
        for r, c in zip(rows, cols):
            out._data[(int(r), int(c))] = float(arr[r, c])
        return out

    def to_csr(self) -> scipy.sparse.csr_matrix:
        if not self._data:
            return scipy.sparse.csr_matrix(self.shape, dtype=float)
        keys = np.array(list(self._data.keys()), dtype=int)
        vals = np.fromiter(self._data.values(), dtype=float, count=len(self._data))
        return scipy.sparse.coo_matrix(
            (vals, (keys[:, 0], keys[:, 1])), shape=self.shape
        ).tocsr()

    @classmethod
    def from_scipy(cls, matrix) -> "SparseMatrix":
        coo = scipy.sparse.coo_matrix(matrix)
        out = cls(coo.shape[0], coo.shape[1])
        for r, c, v in zip(coo.row, coo.col, coo.data):
            if v != 0.0:
                out.add(int(r), int(c), float(v))
        return out

    def memory_usage(self) -> MemoryUsage:
        """
        Estimate the memory held by this matrix.

        Counts the dict itself plus one (row, col) key tuple and one float
        per stored entry, and compares it to a dense float64 array.
        """
        entry_bytes = sys.getsizeof((0, 0)) + 2 * sys.getsizeof(0) + sys.getsizeof(0.0)
        used = sys.getsizeof(self._data) + self.nnz * entry_bytes
        dense = self.rows * self.cols * 8
        ratio = dense / used if used > 0 else 0.0
        return MemoryUsage(bytes=int(used), dense_bytes=int(dense), compression_ratio=float(ratio))

    def __repr__(self) -> str:
        return f"SparseMatrix(shape={self.shape}, nnz={self.nnz})"


def as_csr(A) -> scipy.sparse.csr_matrix:
    """Coerce a SparseMatrix, scipy sparse matrix or ndarray to CSR."""
    if isinstance(A, SparseMatrix):
        return A.to_csr()
    if scipy.sparse.issparse(A):
        return scipy.sparse.csr_matrix(A, dtype=float)
    return scipy.sparse.csr_matrix(np.asarray(A, dtype=float))


def as_array(b) -> np.ndarray:
    """Coerce a SparseVector or array-like to a dense float vector."""
    if isinstance(b, SparseVector):
        return b.to_dense()
    return np.asarray(b, dtype=float).ravel()

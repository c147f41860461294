# structengine/kernel/pool.py
"""Free-list pool of sparse matrices and vectors, keyed by size class."""

from collections import defaultdict
from typing import Dict, List, Tuple, Union

from .sparse import SparseMatrix, SparseVector


class MatrixPool:
    """
    Reuse SparseMatrix/SparseVector buffers between computations.

    Size classes are (rows, cols) for matrices and size for vectors, so a
    12x12 element buffer is never handed out as a 600x600 global matrix.

    Objects are cleared when they come back (release) AND when they go
    out again (acquire), so nothing computed in one analysis can leak
    into the next one.

    The pool belongs to whoever creates it (typically one
    AdvancedAnalysisEngine); there is no module-level instance.
    """

    def __init__(self, max_per_class: int = 10):
        if max_per_class < 0:
            raise ValueError(f"max_per_class must be >= 0, got {max_per_class}")
        self.max_per_class = max_per_class
        self._matrices: Dict[Tuple[int, int], List[SparseMatrix]] = defaultdict(list)
        self._vectors: Dict[int, List[SparseVector]] = defaultdict(list)
        self.hits = 0
        self.misses = 0

    def acquire_matrix(self, rows: int, cols: int = None) -> SparseMatrix:
        cols = rows if cols is None else cols
        bucket = self._matrices.get((rows, cols))
        if bucket:
            self.hits += 1
            matrix = bucket.pop()
            matrix.clear()
            return matrix
        self.misses += 1
        return SparseMatrix(rows, cols)

    def acquire_vector(self, size: int) -> SparseVector:
        bucket = self._vectors.get(size)
        if bucket:
            self.hits += 1
            vector = bucket.pop()
            vector.clear()
            return vector
        self.misses += 1
        return SparseVector(size)

    def release(self, obj: Union[SparseMatrix, SparseVector]) -> None:
        """
        Return a buffer to the pool. The caller must not use it afterwards.

        Releasing the same object twice is ignored.
        """
        if isinstance(obj, SparseMatrix):
            bucket = self._matrices[(obj.rows, obj.cols)]
        elif isinstance(obj, SparseVector):
            bucket = self._vectors[obj.size]
        else:
            raise TypeError(f"Cannot pool object of type {type(obj).__name__}")
        obj.clear()

        if any(existing is obj for existing in bucket):
            return
        if len(bucket) < self.max_per_class:
            bucket.append(obj)

    def clear(self) -> None:
        self._matrices.clear()
        self._vectors.clear()

    def stats(self) -> Dict[str, int]:
        return {
            'pooled_matrices': sum(len(b) for b in self._matrices.values()),
            'pooled_vectors': sum(len(b) for b in self._vectors.values()),
            'hits': self.hits,
            'misses': self.misses,
        }

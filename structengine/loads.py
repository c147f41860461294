# structengine/loads.py
"""
LOAD VECTORS: Point Loads, Nodal Loads and Load Histories
=========================================================

Static loads come from two places in a Structure3D:

    PointLoad(node_id, direction, magnitude)  -> magnitude × direction
                                                 at offsets ux, uy, uz
    Node.load = NodalLoad(fx, ..., mz)        -> all six components

Advanced analyses describe loads as DirectionalLoad lists, a single global
axis per entry:

    DirectionalLoad("N2", "x", 1000.0)         -> 1 kN along +X at N2

A time history is a sequence of LoadHistoryEntry(time, loads) samples.
Between samples the load vector is interpolated linearly; outside the
sampled range the nearest sample is held.

Loads on unknown nodes are skipped and reported as warnings.
"""

from dataclasses import dataclass
from typing import Hashable, Iterable, List, Sequence, Tuple

import numpy as np

from .kernel.assemble import add_nodal_load
from .kernel.dof import DIRECTION_OFFSET, DOFManager
from .kernel.sparse import SparseVector


@dataclass(frozen=True)
class DirectionalLoad:
    """A force of `magnitude` (N) along global axis `direction` ('x', 'y' or 'z')."""
    node_id: Hashable
    direction: str
    magnitude: float

    def __post_init__(self):
        if self.direction not in DIRECTION_OFFSET:
            raise ValueError(
                f"Load direction must be 'x', 'y' or 'z', got {self.direction!r}"
            )


@dataclass(frozen=True)
class LoadHistoryEntry:
    """Loads acting at `time` (s)."""
    time: float
    loads: Tuple[DirectionalLoad, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "loads", tuple(self.loads))


def build_load_vector(structure, dof: DOFManager) -> Tuple[SparseVector, List[str]]:
    """
    Global load vector from the structure's point loads and nodal loads.

    Loads on the same DOF accumulate.

    Returns:
        (F, warnings)
    """
    F = SparseVector(dof.ndof)
    warnings: List[str] = []

    for load in structure.loads:
        if not dof.has_node(load.node_id):
            warnings.append(f"Point load on missing node {load.node_id!r}; skipped")
            continue
        components = np.asarray(load.direction, dtype=float) * load.magnitude
        add_nodal_load(F, dof, load.node_id, components[:3])

    for position in dof.node_index.values():
        node = structure.nodes[position]
        if node.load is not None:
            add_nodal_load(F, dof, node.id, node.load.as_tuple())

    return F, warnings


def directional_load_vector(
    loads: Iterable[DirectionalLoad],
    dof: DOFManager,
) -> Tuple[SparseVector, List[str]]:
    """
    Global load vector from DirectionalLoad entries.

    Returns:
        (F, warnings)
    """
    F = SparseVector(dof.ndof)
    warnings: List[str] = []
    for load in loads:
        if not dof.has_node(load.node_id):
            warnings.append(f"Load on missing node {load.node_id!r}; skipped")
            continue
        F.add(dof.idx(load.node_id, DIRECTION_OFFSET[load.direction]), load.magnitude)
    return F, warnings


class LoadHistoryInterpolator:
    """
    Load vector as a function of time, from sampled LoadHistoryEntry data.

    Sample vectors are built once; each call interpolates linearly between
    the two bracketing samples. An empty history yields zero vectors.

    Usage:
        interp = LoadHistoryInterpolator(config.load_history, dof)
        F_t = interp(0.35)
    """

    def __init__(self, history: Sequence[LoadHistoryEntry], dof: DOFManager):
        self.ndof = dof.ndof
        self.warnings: List[str] = []

        entries = sorted(history, key=lambda e: e.time)
        self.times = np.array([e.time for e in entries], dtype=float)
        self.vectors = np.zeros((len(entries), self.ndof))
        for k, entry in enumerate(entries):
            F, w = directional_load_vector(entry.loads, dof)
            self.vectors[k] = F.to_dense()
            self.warnings.extend(f"t={entry.time}: {msg}" for msg in w)

    @property
    def is_empty(self) -> bool:
        return self.times.size == 0

    def __call__(self, t: float) -> np.ndarray:
        if self.is_empty:
            return np.zeros(self.ndof)
        if t <= self.times[0]:
            return self.vectors[0].copy()
        if t >= self.times[-1]:
            return self.vectors[-1].copy()

        k = int(np.searchsorted(self.times, t, side="right"))
        t0, t1 = self.times[k - 1], self.times[k]
        if t1 == t0:
            return self.vectors[k].copy()
        w = (t - t0) / (t1 - t0)
        return (1.0 - w) * self.vectors[k - 1] + w * self.vectors[k]


def interpolate_load_history(
    t: float,
    history: Sequence[LoadHistoryEntry],
    dof: DOFManager,
) -> np.ndarray:
    """Load vector at time t (one-off; use LoadHistoryInterpolator in loops)."""
    return LoadHistoryInterpolator(history, dof)(t)

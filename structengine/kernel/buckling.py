# structengine/kernel/buckling.py
"""Buckling analysis: frame geometric stiffness and the linear eigenvalue problem."""

import logging
from typing import Dict, Hashable, Iterable, Sequence, Tuple

import numpy as np
import scipy.linalg

from .sparse import SparseMatrix, as_csr

logger = logging.getLogger(__name__)


def frame3d_geometric_stiffness(N: float, A: float, Ip: float, L: float) -> np.ndarray:
    """
    12×12 geometric stiffness of a 3D frame element in LOCAL axes.

    Consistent with cubic transverse displacement fields, so a pinned
    column meshed with a few elements reproduces π²EI/L² closely.

    Args:
        N: axial force (positive = tension, negative = compression)
        A: area (m²), Ip: polar moment Iy + Iz (m⁴)
        L: length (m)

    Returns:
        kg such that the tangent stiffness is k + kg. Compression softens
        the element (kg negative definite in the transverse DOFs).
    """
    kg = np.zeros((12, 12))
    if N == 0.0:
        return kg

    c = N / L
    block = c * np.array([
        [6.0 / 5.0,  L / 10.0,           -6.0 / 5.0, L / 10.0],
        [L / 10.0,   2.0 * L**2 / 15.0,  -L / 10.0,  -L**2 / 30.0],
        [-6.0 / 5.0, -L / 10.0,          6.0 / 5.0,  -L / 10.0],
        [L / 10.0,   -L**2 / 30.0,       -L / 10.0,  2.0 * L**2 / 15.0],
    ])
    # x-y plane (v, θz)
    idx = [1, 5, 7, 11]
    kg[np.ix_(idx, idx)] = block
    # x-z plane (w, θy)
    flip = np.diag([1.0, -1.0, 1.0, -1.0])
    idx = [2, 4, 8, 10]
    kg[np.ix_(idx, idx)] = flip @ block @ flip

    # torsion (Wagner term of a doubly symmetric section)
    t = N * Ip / (A * L)
    kg[3, 3] = kg[9, 9] = t
    kg[3, 9] = kg[9, 3] = -t
    return kg


def assemble_geometric_stiffness(
    ndof: int,
    contributions: Iterable,
    axial_forces: Dict[Hashable, float],
) -> SparseMatrix:
    """
    Global geometric stiffness from element contributions and axial forces.

    Args:
        ndof: total DOFs
        contributions: ElementContribution objects (empty ones are skipped)
        axial_forces: {element_id: N}, tension positive

    Returns:
        Kg (SparseMatrix, ndof × ndof)
    """
    Kg = SparseMatrix(ndof, ndof)
    for c in contributions:
        if c.is_empty:
            continue
        N = axial_forces.get(c.element_id, 0.0)
        if abs(N) < 1e-10:
            continue

        kg = frame3d_geometric_stiffness(N, c.props.area, c.props.polar_moment, c.length)
        kg = c.transform.T @ kg @ c.transform

        dof_map = c.dof_map
        for a in range(12):
            for b in range(12):
                if kg[a, b] != 0.0:
                    Kg.add(dof_map[a], dof_map[b], kg[a, b])
    return Kg


def buckling_eigenproblem(
    K,
    Kg,
    free_dofs: Sequence[int],
    n_modes: int = 1,
    shift: float = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Solve (K + λ·Kg)·φ = 0 on the free DOFs.

    Rewritten as the symmetric-definite problem -Kg·φ = μ·K·φ with μ = 1/λ,
    so scipy.linalg.eigh can be used (K is positive definite on the free
    DOFs). The modes with the largest |μ| are the ones with the smallest
    |λ|.

    Args:
        K, Kg: global elastic and geometric stiffness
        free_dofs: unconstrained DOF indices
        n_modes: number of modes requested
        shift: if given, only load factors λ > shift are returned

    Returns:
        (load_factors, modes) ordered by increasing |λ|; modes has shape
        (n_free, n_found), each column scaled to max |φ| = 1. Fewer than
        n_modes columns are returned when the structure has fewer
        buckling modes.

    Raises:
        ValueError: no free DOFs
        numpy.linalg.LinAlgError: K not positive definite on the free DOFs
    """
    free = np.asarray(free_dofs, dtype=int)
    if len(free) == 0:
        raise ValueError("No free DOFs - cannot compute buckling modes")

    Kff = as_csr(K)[free][:, free].toarray()
    Kgff = as_csr(Kg)[free][:, free].toarray()

    scale = np.abs(Kgff).max() if Kgff.size else 0.0
    if scale == 0.0:
        return np.zeros(0), np.zeros((len(free), 0))

    mu, phi = scipy.linalg.eigh(-Kgff, Kff)

    # |μ| below this is λ → ∞ (no buckling in that mode)
    mu_tol = 1e-12 * np.abs(mu).max()
    keep = np.flatnonzero(np.abs(mu) > mu_tol)
    load_factors = 1.0 / mu[keep]
    phi = phi[:, keep]

    if shift is not None:
        above = load_factors > shift
        load_factors, phi = load_factors[above], phi[:, above]

    order = np.argsort(np.abs(load_factors))[:n_modes]
    load_factors = load_factors[order]
    phi = phi[:, order]
    logger.debug("Buckling eigenproblem: %d free DOFs, %d modes kept", len(free), len(order))

    for j in range(phi.shape[1]):
        peak = phi[np.argmax(np.abs(phi[:, j])), j]
        if peak != 0.0:
            phi[:, j] /= peak

    return load_factors, phi

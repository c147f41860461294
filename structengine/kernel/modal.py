# structengine/kernel/modal.py
"""
Mass matrices, Rayleigh damping, natural frequencies and modal
combination (SRSS, CQC) for response spectrum analysis.
"""

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np
from scipy.linalg import eigh

from ..elements import element_geometry, frame3d_transform, rotation_matrix
from ..section import resolve_material, section_properties
from .dof import DOFManager
from .pool import MatrixPool
from .sparse import SparseMatrix, as_csr

logger = logging.getLogger(__name__)

LUMPED = "lumped"
CONSISTENT = "consistent"


def element_mass_matrix(
    density: float,
    A: float,
    Ip: float,
    L: float,
    mass_type: str = LUMPED,
) -> np.ndarray:
    """
    12×12 element mass matrix in LOCAL axes.

    Lumped: half of m = ρAL on each end's translations, rotary inertia
    m·L²/24 per end for the bending rotations (a half-member rotating about
    its end) and ρ·Ip·L/2 for torsion.

    Consistent: cubic Hermitian shape functions (Przemieniecki), linear
    shape functions for the axial and torsion blocks.

    Args:
        density: ρ (kg/m³)
        A: cross-section area (m²)
        Ip: polar moment Iy + Iz (m⁴)
        L: member length (m)
        mass_type: 'lumped' or 'consistent'
    """
    m = density * A * L
    me = np.zeros((12, 12))

    if mass_type == LUMPED:
        for end in (0, 6):
            for d in range(3):
                me[end + d, end + d] = m / 2.0
            me[end + 3, end + 3] = density * Ip * L / 2.0
            me[end + 4, end + 4] = m * L**2 / 24.0
            me[end + 5, end + 5] = m * L**2 / 24.0
        return me

    if mass_type != CONSISTENT:
        raise ValueError(f"Unknown mass type {mass_type!r}")

    # axial and torsion
    ax = m / 6.0
    me[0, 0] = me[6, 6] = 2.0 * ax
    me[0, 6] = me[6, 0] = ax
    tor = density * Ip * L / 6.0
    me[3, 3] = me[9, 9] = 2.0 * tor
    me[3, 9] = me[9, 3] = tor

    c = m / 420.0
    bending = c * np.array([
        [156.0,      22.0 * L,    54.0,      -13.0 * L],
        [22.0 * L,   4.0 * L**2,  13.0 * L,  -3.0 * L**2],
        [54.0,       13.0 * L,    156.0,     -22.0 * L],
        [-13.0 * L,  -3.0 * L**2, -22.0 * L, 4.0 * L**2],
    ])
    # x-y plane (v, θz)
    idx = [1, 5, 7, 11]
    me[np.ix_(idx, idx)] = bending
    # x-z plane (w, θy): rotation coupling changes sign
    flip = np.diag([1.0, -1.0, 1.0, -1.0])
    idx = [2, 4, 8, 10]
    me[np.ix_(idx, idx)] = flip @ bending @ flip
    return me


def assemble_mass_matrix(
    structure,
    dof: DOFManager,
    mass_type: str = LUMPED,
    pool: Optional[MatrixPool] = None,
) -> Tuple[SparseMatrix, List[str]]:
    """
    Global mass matrix in global axes.

    Elements with a missing node or zero length contribute nothing.

    Returns:
        (M, warnings)
    """
    ndof = dof.ndof
    M = pool.acquire_matrix(ndof, ndof) if pool is not None else SparseMatrix(ndof, ndof)
    warnings: List[str] = []

    for element in structure.elements:
        ni_pos = dof.position(element.node_i)
        nj_pos = dof.position(element.node_j)
        if ni_pos is None or nj_pos is None:
            continue
        ni, nj = structure.nodes[ni_pos], structure.nodes[nj_pos]
        L = element_geometry(ni, nj)[0]
        if L == 0.0:
            continue

        props, w = section_properties(element.section)
        warnings.extend(f"Element {element.id!r}: {msg}" for msg in w)
        mat, w = resolve_material(element.material)
        warnings.extend(f"Element {element.id!r}: {msg}" for msg in w)

        me = element_mass_matrix(mat.density, props.area, props.polar_moment, L, mass_type)
        T = frame3d_transform(rotation_matrix(ni, nj, element.orientation))
        me = T.T @ me @ T

        dof_map = dof.element_dof_map([element.node_i, element.node_j])
        for a, ga in enumerate(dof_map):
            for b, gb in enumerate(dof_map):
                if me[a, b] != 0.0:
                    M.add(ga, gb, me[a, b])

    return M, warnings


def rayleigh_coefficients(damping_ratio: float, omega1: float, omega2: float) -> Tuple[float, float]:
    """
    Rayleigh coefficients giving damping_ratio at both omega1 and omega2.

    ζ(ω) = α/(2ω) + βω/2, so

        α = 2ζ·ω1·ω2 / (ω1 + ω2)
        β = 2ζ / (ω1 + ω2)
    """
    if omega1 + omega2 <= 0.0:
        raise ValueError("Reference frequencies must be positive")
    alpha = 2.0 * damping_ratio * omega1 * omega2 / (omega1 + omega2)
    beta = 2.0 * damping_ratio / (omega1 + omega2)
    return alpha, beta


def rayleigh_damping(K: SparseMatrix, M: SparseMatrix, alpha: float, beta: float) -> SparseMatrix:
    """C = α·M + β·K"""
    return M.scale(alpha).add_matrix(K, beta)


def natural_frequencies(
    K,
    M,
    free_dofs: Sequence[int],
    n_modes: int = 5,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Natural frequencies and mode shapes on the free DOFs.

    Solves K·φ = ω²·M·φ with scipy's symmetric generalized eigensolver.

    Args:
        K, M: global stiffness and mass (SparseMatrix, scipy sparse or ndarray)
        free_dofs: unconstrained DOF indices
        n_modes: modes requested (clipped to the number of free DOFs)

    Returns:
        omega: angular frequencies (rad/s), ascending
        phi: mode shapes on the free DOFs, shape (n_free, n_modes),
             mass-normalised (φᵀMφ = 1)

    Raises:
        ValueError: no free DOFs, or massless free DOFs
    """
    free = np.asarray(free_dofs, dtype=int)
    if len(free) == 0:
        raise ValueError("No free DOFs - cannot compute modes")

    Kff = as_csr(K)[free][:, free].toarray()
    Mff = as_csr(M)[free][:, free].toarray()

    if np.any(np.diag(Mff) <= 0):
        raise ValueError("Mass matrix has non-positive diagonal entries on free DOFs")

    n_actual = min(n_modes, len(free))
    eigenvalues, eigenvectors = eigh(Kff, Mff, subset_by_index=[0, n_actual - 1])

    omega = np.sqrt(np.maximum(eigenvalues, 0.0))
    logger.debug("Modal eigenproblem: %d free DOFs, %d modes", len(free), n_actual)
    return omega, eigenvectors


def modal_participation(
    phi: np.ndarray,
    M,
    free_dofs: Sequence[int],
    direction: int,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Participation factors and effective modal masses for one direction.

        Γ_n = φ_nᵀ·M·r / φ_nᵀ·M·φ_n
        M_eff,n = (φ_nᵀ·M·r)² / φ_nᵀ·M·φ_n

    where r is 1 at the free translational DOFs along `direction`
    (0 = x, 1 = y, 2 = z).

    Returns:
        (gamma, effective_mass), one entry per mode
    """
    free = np.asarray(free_dofs, dtype=int)
    Mff = as_csr(M)[free][:, free]
    r = (free % 6 == direction).astype(float)

    Mr = Mff @ r
    gamma = np.zeros(phi.shape[1])
    m_eff = np.zeros(phi.shape[1])
    for n in range(phi.shape[1]):
        mode = phi[:, n]
        gen_mass = float(mode @ (Mff @ mode))
        if gen_mass <= 0.0:
            continue
        L_n = float(mode @ Mr)
        gamma[n] = L_n / gen_mass
        m_eff[n] = L_n**2 / gen_mass
    return gamma, m_eff


def spectral_acceleration(spectrum: Sequence[Tuple[float, float]], periods) -> np.ndarray:
    """
    Sa at each period, linear between samples and held at the end values.

    spectrum is a sequence of (period, Sa) pairs sorted by period.
    """
    T = np.array([p for p, _ in spectrum], dtype=float)
    Sa = np.array([a for _, a in spectrum], dtype=float)
    return np.interp(np.asarray(periods, dtype=float), T, Sa)


def cqc_correlation(omega: np.ndarray, damping_ratio: float) -> np.ndarray:
    """
    Modal correlation coefficients for CQC (equal modal damping ζ):

        ρ_ij = 8ζ²(1 + r)·r^1.5 / ((1 - r²)² + 4ζ²·r·(1 + r)²),   r = ω_j/ω_i

    ρ_ii = 1; coefficients fall off quickly once the frequencies separate.
    Coincident frequencies without damping are taken as fully correlated.
    """
    omega = np.asarray(omega, dtype=float)
    zeta2 = damping_ratio**2
    r = omega[None, :] / omega[:, None]
    num = 8.0 * zeta2 * (1.0 + r) * r**1.5
    den = (1.0 - r**2)**2 + 4.0 * zeta2 * r * (1.0 + r)**2
    with np.errstate(divide="ignore", invalid="ignore"):
        rho = np.where(den > 0.0, num / den, 1.0)
    np.fill_diagonal(rho, 1.0)
    return rho


def combine_modal_responses(
    responses: np.ndarray,
    omega: np.ndarray,
    method: str = "cqc",
    damping_ratio: float = 0.05,
) -> np.ndarray:
    """
    Peak of a response quantity from its modal peaks.

        srss:  R = √(Σ R_i²)
        cqc:   R = √(Σ_i Σ_j ρ_ij·R_i·R_j)

    Args:
        responses: modal peaks, last axis over modes (shape (..., n_modes))
        omega: angular frequency of each mode (rad/s)
        method: 'srss' or 'cqc'
        damping_ratio: modal damping ζ for the CQC coefficients

    Returns:
        combined peaks, shape (...); always >= 0
    """
    R = np.asarray(responses, dtype=float)
    if method == "srss":
        return np.sqrt(np.sum(R**2, axis=-1))
    if method != "cqc":
        raise ValueError(f"Unknown modal combination {method!r}")
    rho = cqc_correlation(omega, damping_ratio)
    total = np.einsum("...i,ij,...j->...", R, rho, R)
    return np.sqrt(np.maximum(total, 0.0))

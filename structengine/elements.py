# structengine/elements.py
"""
3D FRAME ELEMENT: 12×12 Stiffness Matrix with End Releases
==========================================================

PURPOSE:
--------
Computes the element stiffness matrix of a two-node 3D frame member and
everything needed to scatter it into the global matrices.

Each node carries 6 DOFs, so the element vector is

    [u1, v1, w1, θx1, θy1, θz1,  u2, v2, w2, θx2, θy2, θz2]

in LOCAL axes (x along the member, y and z the section axes).

ENGINEERING DERIVATION:
-----------------------
Euler-Bernoulli beam theory gives four uncoupled blocks:

    axial     (u1, u2):          EA/L  × [ 1 -1; -1  1]
    torsion   (θx1, θx2):        GJ/L  × [ 1 -1; -1  1]
    bending in x-y (v, θz), Iz:  12EI/L³, 6EI/L², 4EI/L, 2EI/L
    bending in x-z (w, θy), Iy:  same magnitudes, sign of the 6EI/L²
                                 coupling flipped (θy = -dw/dx)

The local matrix is rotated to global axes with

    k_global = Tᵀ · k_local · T,   T = diag(R, R, R, R)

where the rows of the 3×3 R are the local x, y, z unit vectors.

END RELEASES:
-------------
A released DOF transfers no force. It is removed by static condensation:

    k* = k_cc - k_cr · k_rr⁺ · k_rc

The released rows and columns of k* are zero, the retained block is the
condensed stiffness. A pinned end (ry, rz released) gives the classical
propped-cantilever stiffness 3EI/L³.
"""

from dataclasses import dataclass, field
from typing import Hashable, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from .kernel.dof import DOFManager
from .model import Element, ElementType, Node, Structure3D
from .section import ResolvedMaterial, SectionProperties, resolve_material, section_properties

# local offsets of the bending rotations within one node
_BENDING_ROTATIONS = (4, 5)

_PARALLEL_TOL = 1e-6


@dataclass
class ElementContribution:
    """
    One element's share of the global system.

    An empty contribution (dof_map == []) is returned for degenerate or
    dangling elements and is skipped by the assembler.
    """
    element_id: Hashable
    dof_map: List[int]
    k_local: np.ndarray
    transform: np.ndarray
    k_global: np.ndarray
    length: float
    props: Optional[SectionProperties] = None
    material: Optional[ResolvedMaterial] = None
    released: Tuple[int, ...] = ()
    warnings: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.dof_map

    @classmethod
    def empty(cls, element_id, warnings: List[str]) -> "ElementContribution":
        zeros = np.zeros((12, 12))
        return cls(
            element_id=element_id, dof_map=[], k_local=zeros, transform=zeros.copy(),
            k_global=zeros.copy(), length=0.0, warnings=list(warnings),
        )


def element_geometry(ni: Node, nj: Node) -> Tuple[float, float, float, float]:
    """
    Length and direction cosines of the member from ni to nj.

    Returns:
        (L, cx, cy, cz). A zero-length member returns (0, 0, 0, 0); the
        caller decides how to report it.
    """
    dx = nj.x - ni.x
    dy = nj.y - ni.y
    dz = nj.z - ni.z
    L = float(np.sqrt(dx * dx + dy * dy + dz * dz))
    if L <= 0.0:
        return 0.0, 0.0, 0.0, 0.0
    return L, dx / L, dy / L, dz / L


def rotation_matrix(
    ni: Node,
    nj: Node,
    orientation: Optional[Sequence[float]] = None,
) -> np.ndarray:
    """
    3×3 direction-cosine matrix; rows are the local x, y, z axes.

    Local x runs from ni to nj. Local y lies in the plane of x and the
    reference vector (global Y by default, global X when the member is
    parallel to Y or to the given orientation).
    """
    L, cx, cy, cz = element_geometry(ni, nj)
    if L == 0.0:
        raise ValueError(f"Zero-length member between nodes {ni.id!r} and {nj.id!r}")
    x = np.array([cx, cy, cz])

    ref = np.array(orientation if orientation is not None else (0.0, 1.0, 0.0), dtype=float)
    if np.linalg.norm(ref) == 0.0 or np.linalg.norm(np.cross(x, ref)) < _PARALLEL_TOL * np.linalg.norm(ref):
        ref = np.array([1.0, 0.0, 0.0])
        if np.linalg.norm(np.cross(x, ref)) < _PARALLEL_TOL:
            ref = np.array([0.0, 1.0, 0.0])

    z = np.cross(x, ref)
    z /= np.linalg.norm(z)
    y = np.cross(z, x)
    return np.vstack([x, y, z])


def frame3d_transform(R: np.ndarray) -> np.ndarray:
    """12×12 block-diagonal transformation diag(R, R, R, R)."""
    T = np.zeros((12, 12))
    for b in range(4):
        T[3 * b:3 * b + 3, 3 * b:3 * b + 3] = R
    return T


def frame3d_local_stiffness(
    E: float, G: float, A: float, Iy: float, Iz: float, J: float, L: float
) -> np.ndarray:
    """
    Classical 12×12 Euler-Bernoulli frame stiffness in local axes.

    Symmetric, positive semi-definite with six rigid-body modes.
    """
    k = np.zeros((12, 12))

    ea = E * A / L
    gj = G * J / L
    k[0, 0] = k[6, 6] = ea
    k[0, 6] = k[6, 0] = -ea
    k[3, 3] = k[9, 9] = gj
    k[3, 9] = k[9, 3] = -gj

    # bending in x-y plane: v (1, 7), θz (5, 11)
    a = 12.0 * E * Iz / L**3
    b = 6.0 * E * Iz / L**2
    c = 4.0 * E * Iz / L
    d = 2.0 * E * Iz / L
    k[1, 1] = k[7, 7] = a
    k[1, 7] = k[7, 1] = -a
    k[1, 5] = k[5, 1] = k[1, 11] = k[11, 1] = b
    k[5, 7] = k[7, 5] = k[7, 11] = k[11, 7] = -b
    k[5, 5] = k[11, 11] = c
    k[5, 11] = k[11, 5] = d

    # bending in x-z plane: w (2, 8), θy (4, 10)
    a = 12.0 * E * Iy / L**3
    b = 6.0 * E * Iy / L**2
    c = 4.0 * E * Iy / L
    d = 2.0 * E * Iy / L
    k[2, 2] = k[8, 8] = a
    k[2, 8] = k[8, 2] = -a
    k[2, 4] = k[4, 2] = k[2, 10] = k[10, 2] = -b
    k[4, 8] = k[8, 4] = k[8, 10] = k[10, 8] = b
    k[4, 4] = k[10, 10] = c
    k[4, 10] = k[10, 4] = d

    return k


def condense_releases(k: np.ndarray, released: Iterable[int]) -> np.ndarray:
    """
    Statically condense released local DOFs out of k.

    Returns a matrix of the same size whose released rows and columns are
    zero. The pseudo-inverse keeps this well defined when the released
    block is itself singular (e.g. torsion released at both ends).
    """
    r = sorted(set(released))
    if not r:
        return k.copy()
    c = [i for i in range(k.shape[0]) if i not in r]

    k_rr = k[np.ix_(r, r)]
    k_rc = k[np.ix_(r, c)]
    k_cr = k[np.ix_(c, r)]
    k_cc = k[np.ix_(c, c)]

    out = np.zeros_like(k)
    condensed = k_cc - k_cr @ np.linalg.pinv(k_rr) @ k_rc
    out[np.ix_(c, c)] = 0.5 * (condensed + condensed.T)
    return out


def element_releases(element: Element, hinges: Iterable[int] = ()) -> Tuple[int, ...]:
    """
    Local 12-DOF indices released for this element.

    Combines the element's end releases, the implicit releases of TRUSS
    elements and any extra (plastic hinge) releases.
    """
    released = set(element.release_i.released_offsets())
    released.update(6 + o for o in element.release_j.released_offsets())
    if element.element_type is ElementType.TRUSS:
        released.update(_BENDING_ROTATIONS)
        released.update(6 + o for o in _BENDING_ROTATIONS)
        released.add(9)  # torsion
    released.update(hinges)
    return tuple(sorted(released))


def element_contribution(
    structure: Structure3D,
    element: Element,
    dof: DOFManager,
    hinges: Iterable[int] = (),
) -> ElementContribution:
    """
    Build the stiffness contribution of one element.

    Parameters:
    -----------
    structure : Structure3D
    element : Element
    dof : DOFManager
        Built from the same structure
    hinges : iterable of int
        Additional released local DOF indices (0..11), used by pushover
        to insert plastic hinges

    Returns:
    --------
    ElementContribution
        Empty (with a warning) when a node is missing or L == 0.
    """
    ni_pos = dof.position(element.node_i)
    nj_pos = dof.position(element.node_j)
    if ni_pos is None or nj_pos is None:
        missing = element.node_i if ni_pos is None else element.node_j
        return ElementContribution.empty(
            element.id, [f"Element {element.id!r} references missing node {missing!r}; skipped"]
        )

    ni = structure.nodes[ni_pos]
    nj = structure.nodes[nj_pos]
    L = element_geometry(ni, nj)[0]
    if L == 0.0:
        return ElementContribution.empty(
            element.id, [f"Element {element.id!r} has zero length; skipped"]
        )

    warnings: List[str] = []
    props, w = section_properties(element.section)
    warnings.extend(f"Element {element.id!r}: {msg}" for msg in w)
    mat, w = resolve_material(element.material)
    warnings.extend(f"Element {element.id!r}: {msg}" for msg in w)

    released = element_releases(element, hinges)
    k_local = frame3d_local_stiffness(mat.E, mat.G, props.area, props.iy, props.iz, props.j, L)
    k_local = condense_releases(k_local, released)

    T = frame3d_transform(rotation_matrix(ni, nj, element.orientation))
    k_global = T.T @ k_local @ T

    return ElementContribution(
        element_id=element.id,
        dof_map=dof.element_dof_map([element.node_i, element.node_j]),
        k_local=k_local,
        transform=T,
        k_global=k_global,
        length=L,
        props=props,
        material=mat,
        released=released,
        warnings=warnings,
    )

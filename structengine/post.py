# structengine/post.py
"""
Post-processing: nodal displacements, reactions, member end forces and stresses.

Sign convention for member forces (local axes):
    f = k_local · T · u_e  are the forces the nodes exert ON the element.
    Internal force at end i = -f_i, at end j = +f_j, so a member in
    tension has positive axial force at both ends.
"""

from typing import Dict, Hashable, List, Sequence

import numpy as np

from .elements import ElementContribution
from .kernel.dof import DOFManager
from .results import ElementForces, ElementStress, NodeDisplacement, Reaction


def element_end_forces(contribution: ElementContribution, u: np.ndarray) -> np.ndarray:
    """12 local end forces of one element for the global displacement vector u."""
    u_e = u[contribution.dof_map]
    return contribution.k_local @ (contribution.transform @ u_e)


def element_local_displacements(contribution: ElementContribution, u: np.ndarray) -> np.ndarray:
    return contribution.transform @ u[contribution.dof_map]


def internal_forces(contribution: ElementContribution, u: np.ndarray) -> List[ElementForces]:
    """Internal forces at position 0.0 (node i) and 1.0 (node j)."""
    f = element_end_forces(contribution, u)
    out = []
    for position, sign, base in ((0.0, -1.0, 0), (1.0, 1.0, 6)):
        fe = sign * f[base:base + 6]
        out.append(ElementForces(
            element_id=contribution.element_id,
            position=position,
            axial=float(fe[0]),
            shear_y=float(fe[1]),
            shear_z=float(fe[2]),
            torsion=float(fe[3]),
            moment_y=float(fe[4]),
            moment_z=float(fe[5]),
        ))
    return out


def element_stress(contribution: ElementContribution, forces: ElementForces) -> ElementStress:
    """
    Extreme-fibre stresses from internal forces.

        σ = |N|/A + |My|·cz/Iy + |Mz|·cy/Iz
        τ = √(Vy² + Vz²)/A + |T|·c/J
        σ_vm = √(σ² + 3τ²)
    """
    p = contribution.props
    axial = forces.axial / p.area
    bending_y = abs(forces.moment_y) * p.cz / p.iy
    bending_z = abs(forces.moment_z) * p.cy / p.iz
    shear = float(np.hypot(forces.shear_y, forces.shear_z)) / p.area
    torsion = abs(forces.torsion) * max(p.cy, p.cz) / p.j

    sigma = abs(axial) + bending_y + bending_z
    tau = shear + torsion
    return ElementStress(
        element_id=contribution.element_id,
        position=forces.position,
        axial=float(axial),
        bending_y=float(bending_y),
        bending_z=float(bending_z),
        shear=float(shear),
        torsion=float(torsion),
        von_mises=float(np.sqrt(sigma**2 + 3.0 * tau**2)),
    )


def axial_forces(contributions: Sequence[ElementContribution], u: np.ndarray) -> Dict[Hashable, float]:
    """Axial force per element (tension positive), from the j-end force."""
    return {
        c.element_id: float(element_end_forces(c, u)[6])
        for c in contributions if not c.is_empty
    }


def node_displacements(structure, dof: DOFManager, u: np.ndarray) -> List[NodeDisplacement]:
    out = []
    for node_id, position in dof.node_index.items():
        d = u[6 * position:6 * position + 6]
        out.append(NodeDisplacement(node_id, *(float(v) for v in d)))
    return out


def support_reactions(structure, dof: DOFManager, R: np.ndarray) -> List[Reaction]:
    """Reactions at supported nodes; unrestrained components are zeroed."""
    out = []
    for node_id, position in dof.node_index.items():
        supports = structure.nodes[position].supports
        if not supports.is_supported:
            continue
        values = [
            float(R[6 * position + k]) if restrained else 0.0
            for k, restrained in enumerate(supports.as_tuple())
        ]
        out.append(Reaction(node_id, *values))
    return out

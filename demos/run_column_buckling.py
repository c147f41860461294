#!/usr/bin/env python3
"""
RUN_COLUMN_BUCKLING: Euler Column Validation
============================================

A pinned-pinned steel column under an axial reference load. The
critical load from the buckling eigenproblem is compared with Euler's
formula

    P_cr = π²·E·I_min / L²

for an increasing number of elements.

Run with:
    python demos/run_column_buckling.py
"""

import sys
from pathlib import Path

import numpy as np

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from structengine import (
    BucklingConfig,
    Element,
    Material,
    Node,
    PointLoad,
    Section,
    Structure3D,
    Supports,
    create_advanced_analysis_engine,
)
from structengine.section import section_properties

E = 210e9
L = 5.0
P_REF = 100e3
STEEL = Material(elastic_modulus=E, poissons_ratio=0.3, density=7850.0)
SECTION = Section(width=0.1, height=0.15)


def make_column(n_elements: int) -> Structure3D:
    nodes = []
    for k in range(n_elements + 1):
        y = L * k / n_elements
        if k == 0:
            supports = Supports(ux=True, uy=True, uz=True, ry=True)
        elif k == n_elements:
            supports = Supports(ux=True, uz=True)
        else:
            supports = Supports()
        nodes.append(Node(k, 0.0, y, 0.0, supports=supports))
    elements = [Element(k, k, k + 1, STEEL, SECTION) for k in range(n_elements)]
    loads = [PointLoad(n_elements, (0.0, -1.0, 0.0), P_REF)]
    return Structure3D(nodes, elements, loads)


def main():
    props, _ = section_properties(SECTION)
    I_min = min(props.iy, props.iz)
    P_euler = np.pi**2 * E * I_min / L**2

    print("=" * 60)
    print("  EULER COLUMN BUCKLING")
    print("=" * 60)
    print(f"\nL = {L} m, I_min = {I_min:.4e} m^4, P_ref = {P_REF / 1e3:.0f} kN")
    print(f"Euler load: {P_euler / 1e3:.2f} kN\n")
    print(f"{'elements':>9} {'λ_cr':>10} {'P_cr [kN]':>12} {'error':>9}")

    for n in (1, 2, 4, 8, 16):
        engine = create_advanced_analysis_engine(make_column(n))
        result = engine.perform_buckling_analysis(BucklingConfig(number_of_modes=2))
        b = result.buckling_results
        if b.critical_buckling_load is None:
            print(f"{n:>9}  no buckling mode ({'; '.join(result.errors or result.warnings)})")
            continue
        error = (b.critical_buckling_load - P_euler) / P_euler
        print(f"{n:>9} {b.critical_load_factor:>10.4f} {b.critical_buckling_load / 1e3:>12.2f} {error:>9.2%}")


if __name__ == "__main__":
    main()

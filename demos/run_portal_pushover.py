#!/usr/bin/env python3
"""
RUN_PORTAL_PUSHOVER: Capacity Curve of a Steel Portal Frame
===========================================================

A single-bay portal frame with fixed column bases is pushed sideways at
the top of the left column until max_displacement is reached or the
frame forms a collapse mechanism.

Outputs:
    artifacts/pushover_curve.csv   control displacement vs base shear
    artifacts/pushover_curve.png   capacity curve with the bilinear fit

Run with:
    python demos/run_portal_pushover.py
    python demos/run_portal_pushover.py --span 8 --height 4 --steps 60
"""

import argparse
import os
import sys
from pathlib import Path

import matplotlib.pyplot as plt
import pandas as pd

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from structengine import (
    Element,
    ElementType,
    Material,
    Node,
    PushoverConfig,
    Section,
    Structure3D,
    Supports,
    create_advanced_analysis_engine,
)

STEEL = Material(elastic_modulus=210e9, poissons_ratio=0.3, density=7850.0, yield_strength=355e6)


def make_portal(span: float, height: float, size: float) -> Structure3D:
    section = Section(width=size, height=size)
    nodes = [
        Node("A", 0.0, 0.0, 0.0, supports=Supports.fixed()),
        Node("B", 0.0, height, 0.0),
        Node("C", span, height, 0.0),
        Node("D", span, 0.0, 0.0, supports=Supports.fixed()),
    ]
    elements = [
        Element("col-left", "A", "B", STEEL, section, ElementType.COLUMN),
        Element("beam", "B", "C", STEEL, section, ElementType.BEAM),
        Element("col-right", "D", "C", STEEL, section, ElementType.COLUMN),
    ]
    return Structure3D(nodes, elements)


def print_header(text: str):
    print("\n" + "=" * 60)
    print(f"  {text}")
    print("=" * 60)


def main():
    parser = argparse.ArgumentParser(description="Pushover analysis of a portal frame")
    parser.add_argument('--span', type=float, default=6.0, help='Beam span in m (default: 6)')
    parser.add_argument('--height', type=float, default=3.0, help='Column height in m (default: 3)')
    parser.add_argument('--size', type=float, default=0.3, help='Square section size in m (default: 0.3)')
    parser.add_argument('--target', type=float, default=0.1, help='Target roof drift in m (default: 0.1)')
    parser.add_argument('--steps', type=int, default=40, help='Number of increments (default: 40)')
    args = parser.parse_args()

    print_header("PORTAL FRAME PUSHOVER")
    structure = make_portal(args.span, args.height, args.size)
    print(f"\nSpan {args.span} m, height {args.height} m, section {args.size} m square")

    engine = create_advanced_analysis_engine(structure)
    config = PushoverConfig(
        control_node="B",
        control_direction="x",
        max_displacement=args.target,
        increment_steps=args.steps,
    )
    result = engine.perform_pushover_analysis(config, show_progress=True)
    po = result.pushover_results

    print_header("RESULTS")
    print(f"\nState:            {po.state.value}")
    print(f"Increments:       {po.steps_completed} / {args.steps}")
    print(f"Plastic hinges:   {len(po.plastic_hinges)}")
    for hinge in po.plastic_hinges:
        print(f"  {hinge.element_id:>10} end {hinge.end}  at Δ = {hinge.control_displacement * 1e3:7.2f} mm"
              f"  M = {hinge.moment / 1e3:9.1f} kN·m  ({hinge.criterion.value})")

    pp = po.performance_point
    if pp is not None:
        print(f"\nYield:     Δy = {pp.yield_displacement * 1e3:.2f} mm, Vy = {pp.yield_base_shear / 1e3:.1f} kN")
        print(f"Ultimate:  Δu = {pp.ultimate_displacement * 1e3:.2f} mm, Vu = {pp.ultimate_base_shear / 1e3:.1f} kN")
        print(f"Ductility: μ = {pp.ductility:.2f}")

    for msg in result.warnings:
        print(f"  warning: {msg}")
    for msg in result.errors:
        print(f"  error: {msg}")

    os.makedirs('artifacts', exist_ok=True)
    df = pd.DataFrame({
        'displacement_m': po.displacements,
        'base_shear_N': po.base_shears,
    })
    csv_path = 'artifacts/pushover_curve.csv'
    df.to_csv(csv_path, index=False)

    fig, ax = plt.subplots(figsize=(7, 5))
    ax.plot(df['displacement_m'] * 1e3, df['base_shear_N'] / 1e3, 'o-', ms=3, label='capacity curve')
    if pp is not None:
        ax.plot(
            [0.0, pp.yield_displacement * 1e3, pp.ultimate_displacement * 1e3],
            [0.0, pp.yield_base_shear / 1e3, pp.yield_base_shear / 1e3],
            'r--', label='bilinear (equal energy)',
        )
    ax.set_xlabel('Control displacement [mm]')
    ax.set_ylabel('Base shear [kN]')
    ax.set_title('Portal frame pushover')
    ax.grid(True, alpha=0.3)
    ax.legend()
    plot_path = 'artifacts/pushover_curve.png'
    plt.savefig(plot_path, dpi=150, bbox_inches='tight')

    print(f"\nSaved {csv_path} and {plot_path}")


if __name__ == "__main__":
    main()

# tests/conftest.py
"""
Shared structures for the tests.

Units are SI throughout: m, N, Pa, kg. Steel with E = 210 GPa and a
0.1 m (local z) × 0.2 m (local y) rectangular section unless a test says
otherwise.
"""

import pytest

from structengine.model import (
    Element,
    Material,
    Node,
    PointLoad,
    Section,
    Structure3D,
    Supports,
)

E = 210e9
NU = 0.3
RHO = 7850.0

STEEL = Material(elastic_modulus=E, poissons_ratio=NU, density=RHO, yield_strength=355e6)
RECT = Section(width=0.1, height=0.2)


def cantilever(n_elements=4, length=3.0, tip_load=None, section=RECT):
    """Cantilever along +x, fixed at node 0. tip_load is (fx, fy, fz)."""
    nodes = [
        Node(k, length * k / n_elements, 0.0, 0.0,
             supports=Supports.fixed() if k == 0 else Supports())
        for k in range(n_elements + 1)
    ]
    elements = [Element(k, k, k + 1, STEEL, section) for k in range(n_elements)]
    loads = []
    if tip_load is not None:
        loads.append(PointLoad(n_elements, tuple(tip_load), 1.0))
    return Structure3D(nodes, elements, loads)


def simply_supported(n_elements=2, span=6.0, load=10e3):
    """
    Beam along +x, pinned at x=0 (torsion also held), roller at x=span,
    point load -load (global y) at midspan. n_elements must be even.
    """
    nodes = []
    for k in range(n_elements + 1):
        if k == 0:
            supports = Supports(ux=True, uy=True, uz=True, rx=True)
        elif k == n_elements:
            supports = Supports(uy=True, uz=True)
        else:
            supports = Supports()
        nodes.append(Node(k, span * k / n_elements, 0.0, 0.0, supports=supports))
    elements = [Element(k, k, k + 1, STEEL, RECT) for k in range(n_elements)]
    loads = [PointLoad(n_elements // 2, (0.0, -1.0, 0.0), load)]
    return Structure3D(nodes, elements, loads)


def pinned_column(n_elements=4, length=4.0, load=1e3):
    """
    Vertical column along +y: pinned at the base (torsion held), top
    guided laterally, axial load -load (global y) at the top.
    """
    nodes = []
    for k in range(n_elements + 1):
        if k == 0:
            supports = Supports(ux=True, uy=True, uz=True, ry=True)
        elif k == n_elements:
            supports = Supports(ux=True, uz=True)
        else:
            supports = Supports()
        nodes.append(Node(k, 0.0, length * k / n_elements, 0.0, supports=supports))
    elements = [Element(k, k, k + 1, STEEL, RECT) for k in range(n_elements)]
    loads = [PointLoad(n_elements, (0.0, -1.0, 0.0), load)] if load else []
    return Structure3D(nodes, elements, loads)


def portal_frame(span=6.0, height=3.0, lateral_load=None):
    """
    Fixed-base portal frame in the x-y plane with 0.3 m square members.
    Nodes: A (base left), B (top left), C (top right), D (base right).
    """
    square = Section(width=0.3, height=0.3)
    nodes = [
        Node("A", 0.0, 0.0, 0.0, supports=Supports.fixed()),
        Node("B", 0.0, height, 0.0),
        Node("C", span, height, 0.0),
        Node("D", span, 0.0, 0.0, supports=Supports.fixed()),
    ]
    elements = [
        Element("col-left", "A", "B", STEEL, square),
        Element("beam", "B", "C", STEEL, square),
        Element("col-right", "D", "C", STEEL, square),
    ]
    loads = []
    if lateral_load is not None:
        loads.append(PointLoad("B", (1.0, 0.0, 0.0), lateral_load))
    return Structure3D(nodes, elements, loads)


@pytest.fixture
def make_cantilever():
    return cantilever


@pytest.fixture
def make_simply_supported():
    return simply_supported


@pytest.fixture
def make_pinned_column():
    return pinned_column


@pytest.fixture
def make_portal_frame():
    return portal_frame


@pytest.fixture
def empty_structure():
    return Structure3D()

# structengine/model.py
"""
3D FRAME MODEL DEFINITIONS
==========================

PURPOSE:
--------
Immutable data structures describing a 3D frame structure:

- Node:      a point in space with supports and an optional nodal load
- Material:  elastic and strength properties (any field may be missing)
- Section:   cross-section shape and/or explicit section properties
- Element:   a two-node frame member with optional end releases
- PointLoad: a concentrated force along an arbitrary direction
- Structure3D: the ordered collection of all of the above

ENGINEERING CONTEXT:
--------------------
Each node of a 3D frame has 6 DOFs (ux, uy, uz, rx, ry, rz) and each
element connects two nodes, so its stiffness matrix is 12×12. Global Y is
"up" (gravity acts in -Y).

Missing data is NOT an error here. A material without E, or a section
without dimensions, is resolved to a default during analysis and a warning
is reported; see section.py.

All classes are frozen dataclasses: the engine never mutates the model.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Hashable, List, Optional, Tuple

NodeId = Hashable


@dataclass(frozen=True)
class Supports:
    """
    Restrained DOFs at a node (True = restrained).

    Examples:
    ---------
    >>> Supports.fixed().fixed_offsets()
    [0, 1, 2, 3, 4, 5]
    >>> Supports.pinned().fixed_offsets()
    [0, 1, 2]
    """
    ux: bool = False
    uy: bool = False
    uz: bool = False
    rx: bool = False
    ry: bool = False
    rz: bool = False

    @classmethod
    def fixed(cls) -> "Supports":
        return cls(True, True, True, True, True, True)

    @classmethod
    def pinned(cls) -> "Supports":
        return cls(True, True, True, False, False, False)

    @classmethod
    def roller(cls, direction: str = "y") -> "Supports":
        """Translation restrained along a single global axis."""
        return cls(**{f"u{direction}": True})

    @classmethod
    def free(cls) -> "Supports":
        return cls()

    def as_tuple(self) -> Tuple[bool, ...]:
        return (self.ux, self.uy, self.uz, self.rx, self.ry, self.rz)

    def fixed_offsets(self) -> List[int]:
        return [i for i, flag in enumerate(self.as_tuple()) if flag]

    @property
    def is_supported(self) -> bool:
        return any(self.as_tuple())


@dataclass(frozen=True)
class NodalLoad:
    """Forces (N) and moments (N·m) applied directly at a node, global axes."""
    fx: float = 0.0
    fy: float = 0.0
    fz: float = 0.0
    mx: float = 0.0
    my: float = 0.0
    mz: float = 0.0

    def as_tuple(self) -> Tuple[float, ...]:
        return (self.fx, self.fy, self.fz, self.mx, self.my, self.mz)


@dataclass(frozen=True)
class Node:
    """
    A joint in 3D space.

    Parameters:
    -----------
    id : int or str
        Unique identifier. DOF indices use the node's position in
        Structure3D.nodes, not this id.
    x, y, z : float
        Global coordinates (m). Y is vertical.
    supports : Supports
        Restrained DOFs (default: free)
    load : NodalLoad, optional
        Load applied directly at this node
    """
    id: NodeId
    x: float
    y: float
    z: float
    supports: Supports = field(default_factory=Supports)
    load: Optional[NodalLoad] = None

    @property
    def coords(self) -> Tuple[float, float, float]:
        return (self.x, self.y, self.z)


@dataclass(frozen=True)
class Material:
    """
    Material properties. Any field may be None, meaning "not supplied".

    Parameters:
    -----------
    elastic_modulus : float
        Young's modulus E (Pa). Steel ≈ 200e9.
    poissons_ratio : float
        ν, used for G = E / (2(1+ν)) when shear_modulus is not given.
    density : float
        Mass density (kg/m³), steel 7850.
    yield_strength : float
        fy (Pa), informational.
    ultimate_strength : float
        fu (Pa), informational.
    shear_modulus : float
        G (Pa), overrides the value derived from E and ν.
    """
    elastic_modulus: Optional[float] = None
    poissons_ratio: Optional[float] = None
    density: Optional[float] = None
    yield_strength: Optional[float] = None
    ultimate_strength: Optional[float] = None
    shear_modulus: Optional[float] = None


class SectionShape(Enum):
    RECTANGULAR = "rectangular"
    CIRCULAR = "circular"
    GENERIC = "generic"


@dataclass(frozen=True)
class Section:
    """
    Cross-section description.

    For RECTANGULAR, width is along local z and height along local y, so
    the strong axis is local z (Iz = b·h³/12). For CIRCULAR, width is the
    diameter. Explicit area/iy/iz/torsional_constant always win over the
    values derived from the dimensions.
    """
    shape: SectionShape = SectionShape.RECTANGULAR
    width: Optional[float] = None
    height: Optional[float] = None
    area: Optional[float] = None
    iy: Optional[float] = None
    iz: Optional[float] = None
    torsional_constant: Optional[float] = None


@dataclass(frozen=True)
class EndRelease:
    """
    Released local DOFs at one element end (True = released, no force
    transferred). Order: ux, uy, uz, rx, ry, rz in element local axes.
    """
    ux: bool = False
    uy: bool = False
    uz: bool = False
    rx: bool = False
    ry: bool = False
    rz: bool = False

    @classmethod
    def pinned(cls) -> "EndRelease":
        """Moment release: both bending rotations free."""
        return cls(ry=True, rz=True)

    def as_tuple(self) -> Tuple[bool, ...]:
        return (self.ux, self.uy, self.uz, self.rx, self.ry, self.rz)

    def released_offsets(self) -> List[int]:
        return [i for i, flag in enumerate(self.as_tuple()) if flag]

    @property
    def any(self) -> bool:
        return any(self.as_tuple())


class ElementType(Enum):
    BEAM = "beam"
    COLUMN = "column"
    BRACE = "brace"
    TRUSS = "truss"
    OTHER = "other"


@dataclass(frozen=True)
class Element:
    """
    A two-node 3D frame element.

    Parameters:
    -----------
    id : int or str
        Element identifier
    node_i, node_j : int or str
        Ids of the start and end nodes
    material : Material
    section : Section
    element_type : ElementType
        TRUSS elements are axial-only (both ends moment-released and
        torsion released at the j end)
    release_i, release_j : EndRelease
        End releases in local axes
    orientation : (float, float, float), optional
        Reference vector in the local x-y plane. Default: global Y, or
        global X for members parallel to Y.
    """
    id: Hashable
    node_i: NodeId
    node_j: NodeId
    material: Material = field(default_factory=Material)
    section: Section = field(default_factory=Section)
    element_type: ElementType = ElementType.BEAM
    release_i: EndRelease = field(default_factory=EndRelease)
    release_j: EndRelease = field(default_factory=EndRelease)
    orientation: Optional[Tuple[float, float, float]] = None


@dataclass(frozen=True)
class PointLoad:
    """
    A concentrated force at a node: magnitude × direction (global axes).

    The direction is used as given (not normalised), so
    PointLoad("N2", (0, -1, 0), 1000.0) is 1 kN downward.
    """
    node_id: NodeId
    direction: Tuple[float, float, float]
    magnitude: float


@dataclass(frozen=True)
class Structure3D:
    """
    A complete 3D frame model.

    Nodes, elements and loads are tuples so the structure is hashable and
    cannot be modified once built. Lists are accepted and converted.
    """
    nodes: Tuple[Node, ...] = ()
    elements: Tuple[Element, ...] = ()
    loads: Tuple[PointLoad, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "nodes", tuple(self.nodes))
        object.__setattr__(self, "elements", tuple(self.elements))
        object.__setattr__(self, "loads", tuple(self.loads))

    @property
    def is_empty(self) -> bool:
        return not self.nodes

    @property
    def ndof(self) -> int:
        return 6 * len(self.nodes)

    def node_index(self) -> Dict[NodeId, int]:
        """Node id -> position. The first occurrence of a duplicated id wins."""
        index: Dict[NodeId, int] = {}
        for i, node in enumerate(self.nodes):
            index.setdefault(node.id, i)
        return index

    def find_node(self, node_id: NodeId) -> Optional[Node]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def validate(self) -> List[str]:
        """
        Report model defects as warnings. Never raises.

        Checks duplicate node/element ids, elements referencing missing
        nodes, zero-length elements and loads on missing nodes.
        """
        warnings: List[str] = []
        seen = set()
        for node in self.nodes:
            if node.id in seen:
                warnings.append(f"Duplicate node id {node.id!r}; first definition is used")
            seen.add(node.id)

        seen_elements = set()
        for element in self.elements:
            if element.id in seen_elements:
                warnings.append(f"Duplicate element id {element.id!r}")
            seen_elements.add(element.id)

            ni = self.find_node(element.node_i)
            nj = self.find_node(element.node_j)
            if ni is None or nj is None:
                missing = element.node_i if ni is None else element.node_j
                warnings.append(
                    f"Element {element.id!r} references missing node {missing!r}"
                )
                continue
            if ni.coords == nj.coords:
                warnings.append(f"Element {element.id!r} has zero length")

        for load in self.loads:
            if load.node_id not in seen:
                warnings.append(f"Load references missing node {load.node_id!r}")
        return warnings

# structengine/kernel/dof.py
"""
DOF MANAGER: Global Degree of Freedom Indexing for 3D Frames
============================================================

PURPOSE:
--------
Every node of a 3D frame carries six degrees of freedom:

    offset 0..2:  ux, uy, uz   (translations)
    offset 3..5:  rx, ry, rz   (rotations)

The global index of a DOF is

    global = node_index * 6 + offset

where node_index is the node's POSITION in Structure3D.nodes, not its id.
Node ids may be arbitrary ints or strings; positions are always 0..n-1.

USAGE:
------
    dof = DOFManager.for_structure(structure)
    global_idx = dof.idx(node_id="N2", local_dof=UY)
    dof.element_dof_map(["N1", "N2"])   # 12 indices for a frame element
"""

from dataclasses import dataclass, field
from typing import Dict, Hashable, List, Optional, Sequence

DOF_PER_NODE = 6

# local offsets
UX, UY, UZ, RX, RY, RZ = range(DOF_PER_NODE)
DOF_NAMES = ("ux", "uy", "uz", "rx", "ry", "rz")
DIRECTION_OFFSET = {"x": UX, "y": UY, "z": UZ}


@dataclass
class DOFManager:
    """
    Maps (node id, local DOF) to global DOF indices.

    Attributes:
    -----------
    node_index : Dict[Hashable, int]
        Node id -> position in the structure's node list
    dof_per_node : int
        Always 6 for a 3D frame (ux, uy, uz, rx, ry, rz)

    Examples:
    ---------
    >>> dof = DOFManager({"A": 0, "B": 1})
    >>> dof.idx("B", UY)
    7
    >>> dof.ndof
    12
    >>> dof.element_dof_map(["A", "B"])
    [0, 1, 2, 3, 4, 5, 6, 7, 8, 9, 10, 11]
    """
    node_index: Dict[Hashable, int] = field(default_factory=dict)
    dof_per_node: int = DOF_PER_NODE

    @classmethod
    def for_structure(cls, structure) -> "DOFManager":
        return cls(node_index=structure.node_index())

    @property
    def n_nodes(self) -> int:
        return len(self.node_index)

    @property
    def ndof(self) -> int:
        """DOFs up to the last indexed position (duplicated ids keep their slots)."""
        if not self.node_index:
            return 0
        return self.dof_per_node * (max(self.node_index.values()) + 1)

    def has_node(self, node_id: Hashable) -> bool:
        return node_id in self.node_index

    def position(self, node_id: Hashable) -> Optional[int]:
        return self.node_index.get(node_id)

    def idx(self, node_id: Hashable, local_dof: int) -> int:
        """
        Global DOF index for a node's local DOF.

        Raises KeyError for an unknown node id; callers that must tolerate
        dangling references check has_node() first.
        """
        return self.dof_per_node * self.node_index[node_id] + local_dof

    def node_dofs(self, node_id: Hashable) -> List[int]:
        base = self.dof_per_node * self.node_index[node_id]
        return list(range(base, base + self.dof_per_node))

    def element_dof_map(self, node_ids: Sequence[Hashable]) -> List[int]:
        """
        Flattened DOF indices used to scatter element matrices into the
        global matrices (12 entries for a two-node frame element).
        """
        result = []
        for node_id in node_ids:
            result.extend(self.node_dofs(node_id))
        return result

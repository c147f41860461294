# tests/test_boundary_and_loads.py
"""
Restraint application, load vectors and load-history interpolation.
"""

import numpy as np
import pytest

from structengine.analysis import build_linear_system
from structengine.kernel.boundary import apply_boundary_conditions, fixed_dofs, free_dofs
from structengine.kernel.dof import DOFManager
from structengine.loads import (
    DirectionalLoad,
    LoadHistoryEntry,
    LoadHistoryInterpolator,
    build_load_vector,
    directional_load_vector,
    interpolate_load_history,
)
from structengine.model import NodalLoad, Node, PointLoad, Structure3D, Supports

from conftest import cantilever, simply_supported


class TestBoundaryConditions:
    def setup_method(self):
        self.system = build_linear_system(simply_supported(4, 6.0, 10e3))
        self.fixed = self.system.restrained

    def test_fixed_rows_and_columns_are_identity(self):
        K_bc, F_bc = apply_boundary_conditions(self.system.K, self.system.F, self.fixed)
        D = K_bc.to_dense()
        for i in self.fixed:
            row = D[i].copy()
            col = D[:, i].copy()
            assert row[i] == 1.0 and col[i] == 1.0
            row[i] = col[i] = 0.0
            assert not row.any() and not col.any()
            assert F_bc.get(i) == 0.0

    def test_free_block_untouched(self):
        K_bc, _ = apply_boundary_conditions(self.system.K, self.system.F, self.fixed)
        free = free_dofs(self.system.dof.ndof, self.fixed)
        np.testing.assert_array_equal(
            K_bc.to_dense()[np.ix_(free, free)],
            self.system.K.to_dense()[np.ix_(free, free)],
        )

    def test_idempotent(self):
        K1, F1 = apply_boundary_conditions(self.system.K, self.system.F, self.fixed)
        K2, F2 = apply_boundary_conditions(K1, F1, self.fixed)
        np.testing.assert_array_equal(K1.to_dense(), K2.to_dense())
        np.testing.assert_array_equal(F1.to_dense(), F2.to_dense())

    def test_inputs_not_modified(self):
        before = self.system.K.to_dense()
        apply_boundary_conditions(self.system.K, self.system.F, self.fixed)
        np.testing.assert_array_equal(self.system.K.to_dense(), before)

    def test_fixed_dofs_from_supports(self):
        structure = simply_supported(2)
        dof = DOFManager.for_structure(structure)
        # node 0: ux uy uz rx, node 2: uy uz
        assert fixed_dofs(structure, dof) == [0, 1, 2, 3, 13, 14]

    def test_duplicate_node_ids_use_first(self):
        nodes = (
            Node("a", 0.0, 0.0, 0.0, supports=Supports.fixed()),
            Node("a", 1.0, 0.0, 0.0, supports=Supports.pinned()),
        )
        structure = Structure3D(nodes)
        assert fixed_dofs(structure, DOFManager.for_structure(structure)) == [0, 1, 2, 3, 4, 5]
        assert any("Duplicate node id" in w for w in structure.validate())


class TestLoadVector:
    def test_point_and_nodal_loads_combine(self):
        base = cantilever(2, 2.0)
        nodes = base.nodes[:-1] + (
            Node(2, 2.0, 0.0, 0.0, load=NodalLoad(fx=3.0, mz=7.0)),
        )
        loads = [PointLoad(2, (0.0, -1.0, 0.5), 100.0), PointLoad(1, (1.0, 0.0, 0.0), 4.0)]
        structure = Structure3D(nodes, base.elements, loads)
        F, warnings = build_load_vector(structure, DOFManager.for_structure(structure))
        expected = np.zeros(18)
        expected[6] = 4.0
        expected[12:18] = [3.0, -100.0, 50.0, 0.0, 0.0, 7.0]
        np.testing.assert_allclose(F.to_dense(), expected)
        assert warnings == []

    def test_load_on_missing_node_is_skipped(self):
        structure = cantilever(1, 1.0)
        structure = Structure3D(structure.nodes, structure.elements, [PointLoad("x", (0, 1, 0), 1.0)])
        F, warnings = build_load_vector(structure, DOFManager.for_structure(structure))
        assert F.nnz == 0
        assert len(warnings) == 1 and "'x'" in warnings[0]

    def test_directional_loads(self):
        dof = DOFManager.for_structure(cantilever(2, 2.0))
        F, warnings = directional_load_vector(
            [DirectionalLoad(1, "z", 2.0), DirectionalLoad(1, "z", 3.0), DirectionalLoad(9, "x", 1.0)],
            dof,
        )
        assert F.get(dof.idx(1, 2)) == 5.0
        assert F.nnz == 1
        assert len(warnings) == 1

    def test_bad_direction_rejected(self):
        with pytest.raises(ValueError):
            DirectionalLoad(1, "w", 1.0)


class TestLoadHistory:
    def setup_method(self):
        self.dof = DOFManager.for_structure(cantilever(2, 2.0))
        self.history = [
            LoadHistoryEntry(1.0, [DirectionalLoad(2, "y", -10.0)]),
            LoadHistoryEntry(0.0, [DirectionalLoad(2, "y", 0.0)]),
            LoadHistoryEntry(2.0, [DirectionalLoad(2, "y", -10.0), DirectionalLoad(1, "x", 4.0)]),
        ]

    def test_linear_between_samples(self):
        interp = LoadHistoryInterpolator(self.history, self.dof)
        F = interp(0.25)
        assert np.isclose(F[self.dof.idx(2, 1)], -2.5)
        F = interp(1.5)
        assert np.isclose(F[self.dof.idx(2, 1)], -10.0)
        assert np.isclose(F[self.dof.idx(1, 0)], 2.0)

    def test_holds_end_values(self):
        interp = LoadHistoryInterpolator(self.history, self.dof)
        np.testing.assert_allclose(interp(-1.0), interp(0.0))
        np.testing.assert_allclose(interp(5.0), interp(2.0))

    def test_empty_history_is_zero(self):
        interp = LoadHistoryInterpolator([], self.dof)
        assert interp.is_empty
        np.testing.assert_array_equal(interp(0.3), np.zeros(self.dof.ndof))

    def test_one_off_helper(self):
        F = interpolate_load_history(0.5, self.history, self.dof)
        assert np.isclose(F[self.dof.idx(2, 1)], -5.0)

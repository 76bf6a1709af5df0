"""
Tests for nodal fields, error norms and VTK export.
"""

import pytest
import numpy as np
from numpy.testing import assert_almost_equal, assert_array_almost_equal

from watfFEM.postprocess.fields import nodal_field, compute_l2_error
from watfFEM.postprocess.vtk import (build_patches, export_vtk_displacement,
                                     export_vtu_displacement, export_displacement,
                                     VTK_QUAD)
from watfFEM.errors import DimensionMismatchError

NAMES = ["x_displacement", "y_displacement"]


def linear_field(dof_handler):
    """DOF vector of u = (x, 2y)."""
    pts = dof_handler.support_points
    comps = dof_handler.dof_components
    return np.where(comps == 0, pts[:, 0], 2.0 * pts[:, 1])


class TestNodalField:
    """Tests for nodal_field."""

    def test_shapes_and_values(self, q2_dof_handler):
        q2_dof_handler.renumber_cuthill_mckee()
        field = nodal_field(q2_dof_handler, linear_field(q2_dof_handler), NAMES)
        assert field.points.shape == (81, 2)
        assert field.values.shape == (81, 2)
        assert field.names == NAMES
        assert_array_almost_equal(field.values[:, 0], field.points[:, 0])
        assert_array_almost_equal(field.values[:, 1], 2.0 * field.points[:, 1])

    def test_default_names(self, q2_dof_handler):
        field = nodal_field(q2_dof_handler, np.zeros(q2_dof_handler.n_dofs))
        assert field.names == ["u_0", "u_1"]

    def test_wrong_length(self, q2_dof_handler):
        with pytest.raises(DimensionMismatchError):
            nodal_field(q2_dof_handler, np.zeros(5))
        with pytest.raises(DimensionMismatchError):
            nodal_field(q2_dof_handler, np.zeros(q2_dof_handler.n_dofs), ["only_one"])


class TestErrorNorms:
    """Tests for compute_l2_error."""

    def test_interpolated_quadratic_is_exact(self, q2_dof_handler):
        def exact(p):
            return np.column_stack([p[:, 0] ** 2, p[:, 0] * p[:, 1]])

        pts = q2_dof_handler.support_points
        u = exact(pts)[np.arange(q2_dof_handler.n_dofs), q2_dof_handler.dof_components]
        assert compute_l2_error(q2_dof_handler, u, exact) < 1e-13

    def test_constant_offset(self, q2_dof_handler):
        """||u_h - (u_h + c)|| = |c| sqrt(area) per component."""
        u = linear_field(q2_dof_handler)
        error = compute_l2_error(q2_dof_handler, u,
                                 lambda p: np.column_stack([p[:, 0] + 1.0, 2.0 * p[:, 1]]))
        assert_almost_equal(error, 2.0, decimal=12)


class TestVTKExport:
    """Tests for the VTK output sink."""

    def test_patches(self, q2_dof_handler):
        connectivity, cell_types = build_patches(q2_dof_handler)
        # 16 cells, each split into 2 x 2 linear quads
        assert connectivity.shape == (64, 4)
        assert np.all(cell_types == VTK_QUAD)
        assert connectivity.max() == q2_dof_handler.n_nodes - 1

    def test_legacy_file(self, q2_dof_handler, tmp_path):
        u = linear_field(q2_dof_handler)
        path = export_vtk_displacement(str(tmp_path / "solution"), q2_dof_handler, u, NAMES)
        assert path.suffix == ".vtk"
        text = path.read_text()
        assert text.startswith("# vtk DataFile Version 3.0")
        assert "DATASET UNSTRUCTURED_GRID" in text
        assert "POINTS 81 double" in text
        assert "CELLS 64 320" in text
        assert "SCALARS x_displacement double 1" in text
        assert "SCALARS y_displacement double 1" in text
        assert "VECTORS displacement double" in text

    def test_xml_file(self, q2_dof_handler, tmp_path):
        u = linear_field(q2_dof_handler)
        path = export_displacement(str(tmp_path / "solution.vtu"), q2_dof_handler, u, NAMES)
        assert path.suffix == ".vtu"
        text = path.read_text()
        assert 'NumberOfPoints="81" NumberOfCells="64"' in text
        assert 'Name="y_displacement"' in text
        assert text.rstrip().endswith("</VTKFile>")

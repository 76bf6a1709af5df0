"""
VTK export for visualization.

This module is the output sink of the solver: it writes a vector
field, given as a nodal solution plus per-component names, to VTK
for viewing in ParaView, VisIt, or other VTK-compatible viewers.

Supported formats:
- VTK Legacy (.vtk) - ASCII UnstructuredGrid, widely compatible
- VTK XML UnstructuredGrid (.vtu)

Each cell of degree p is written as p^dim linear sub-cells ("patches")
connecting its support points, so the output resolves the quadratic
field at every node.
"""

import logging
import numpy as np
from pathlib import Path
from typing import List, Optional, Tuple

from .fields import nodal_field, NodalField
from ..discretization.dof_handler import DoFHandler

logger = logging.getLogger(__name__)

VTK_QUAD = 9
VTK_HEXAHEDRON = 12


def build_patches(dof_handler: DoFHandler) -> Tuple[np.ndarray, np.ndarray]:
    """
    Split every active cell into linear sub-cells.

    Returns:
        (connectivity, cell_types): connectivity has shape
        (n_sub_cells, 2^dim) with node indices in VTK vertex order
    """
    fe = dof_handler.fe
    p = fe.degree
    dim = dof_handler.mesh.dim
    n1 = p + 1

    def local(i, j, k=0):
        return i + n1 * j + n1 * n1 * k

    if dim == 2:
        corners = [(0, 0), (1, 0), (1, 1), (0, 1)]
        starts = [(i, j) for j in range(p) for i in range(p)]
        cell_type = VTK_QUAD
    else:
        corners = [(0, 0, 0), (1, 0, 0), (1, 1, 0), (0, 1, 0),
                   (0, 0, 1), (1, 0, 1), (1, 1, 1), (0, 1, 1)]
        starts = [(i, j, k) for k in range(p) for j in range(p) for i in range(p)]
        cell_type = VTK_HEXAHEDRON

    sub_cells = np.array([[local(*np.add(s, c)) for c in corners] for s in starts])

    # Local DOFs 0..n_base-1 belong to component 0, base functions in order
    n_base = fe.base.n_basis
    connectivity = []
    for _, dofs in dof_handler.active_cells():
        nodes = dof_handler.dof_nodes[dofs[:n_base]]
        connectivity.append(nodes[sub_cells])
    connectivity = np.concatenate(connectivity)
    cell_types = np.full(len(connectivity), cell_type, dtype=int)
    return connectivity, cell_types


def _points_3d(points: np.ndarray) -> np.ndarray:
    out = np.zeros((len(points), 3))
    out[:, :points.shape[1]] = points
    return out


def _vectors_3d(values: np.ndarray) -> np.ndarray:
    out = np.zeros((len(values), 3))
    out[:, :values.shape[1]] = values
    return out


def export_vtk_displacement(filename: str,
                            dof_handler: DoFHandler,
                            u: np.ndarray,
                            names: Optional[List[str]] = None,
                            vector_name: str = "displacement") -> Path:
    """
    Export a vector solution to VTK legacy UnstructuredGrid format.

    Parameters:
        filename: Output filename (will add .vtk extension if missing)
        dof_handler: DOF numbering of the solution
        u: Solution vector, length n_dofs
        names: Per-component scalar names, e.g. ["x_displacement", "y_displacement"]
        vector_name: Name of the combined vector field

    Returns:
        Path of the written file
    """
    path = Path(filename)
    if path.suffix != '.vtk':
        path = path.with_suffix('.vtk')

    field = nodal_field(dof_handler, u, names)
    connectivity, cell_types = build_patches(dof_handler)
    points = _points_3d(field.points)
    n_points = len(points)
    n_cells = len(connectivity)
    n_per_cell = connectivity.shape[1]

    with open(path, 'w') as f:
        # Header
        f.write("# vtk DataFile Version 3.0\n")
        f.write("watfFEM Solution\n")
        f.write("ASCII\n")
        f.write("DATASET UNSTRUCTURED_GRID\n")

        f.write(f"POINTS {n_points} double\n")
        for pt in points:
            f.write(f"{pt[0]} {pt[1]} {pt[2]}\n")

        f.write(f"\nCELLS {n_cells} {n_cells * (n_per_cell + 1)}\n")
        for conn in connectivity:
            f.write(f"{n_per_cell} " + " ".join(str(v) for v in conn) + "\n")

        f.write(f"\nCELL_TYPES {n_cells}\n")
        for t in cell_types:
            f.write(f"{t}\n")

        # Point data
        f.write(f"\nPOINT_DATA {n_points}\n")
        for c, name in enumerate(field.names):
            f.write(f"SCALARS {name} double 1\n")
            f.write("LOOKUP_TABLE default\n")
            for v in field.values[:, c]:
                f.write(f"{v}\n")

        f.write(f"VECTORS {vector_name} double\n")
        for v in _vectors_3d(field.values):
            f.write(f"{v[0]} {v[1]} {v[2]}\n")

    logger.info("Exported VTK file: %s", path)
    return path


def export_vtu_displacement(filename: str,
                            dof_handler: DoFHandler,
                            u: np.ndarray,
                            names: Optional[List[str]] = None,
                            vector_name: str = "displacement") -> Path:
    """
    Export a vector solution to VTK XML UnstructuredGrid format (.vtu).

    Parameters:
        filename: Output filename (will add .vtu extension)
        dof_handler: DOF numbering of the solution
        u: Solution vector
        names: Per-component scalar names
        vector_name: Name of the combined vector field
    """
    path = Path(filename)
    if path.suffix != '.vtu':
        path = path.with_suffix('.vtu')

    field = nodal_field(dof_handler, u, names)
    connectivity, cell_types = build_patches(dof_handler)
    points = _points_3d(field.points)
    n_per_cell = connectivity.shape[1]
    offsets = n_per_cell * np.arange(1, len(connectivity) + 1)

    with open(path, 'w') as f:
        f.write('<?xml version="1.0"?>\n')
        f.write('<VTKFile type="UnstructuredGrid" version="0.1" byte_order="LittleEndian">\n')
        f.write('  <UnstructuredGrid>\n')
        f.write(f'    <Piece NumberOfPoints="{len(points)}" NumberOfCells="{len(connectivity)}">\n')

        f.write(f'      <PointData Vectors="{vector_name}">\n')
        for c, name in enumerate(field.names):
            f.write(f'        <DataArray type="Float64" Name="{name}" format="ascii">\n')
            f.write('          ' + " ".join(str(v) for v in field.values[:, c]) + '\n')
            f.write('        </DataArray>\n')
        f.write(f'        <DataArray type="Float64" Name="{vector_name}" '
                f'NumberOfComponents="3" format="ascii">\n')
        for v in _vectors_3d(field.values):
            f.write(f'          {v[0]} {v[1]} {v[2]}\n')
        f.write('        </DataArray>\n')
        f.write('      </PointData>\n')

        f.write('      <Points>\n')
        f.write('        <DataArray type="Float64" NumberOfComponents="3" format="ascii">\n')
        for pt in points:
            f.write(f'          {pt[0]} {pt[1]} {pt[2]}\n')
        f.write('        </DataArray>\n')
        f.write('      </Points>\n')

        f.write('      <Cells>\n')
        f.write('        <DataArray type="Int64" Name="connectivity" format="ascii">\n')
        for conn in connectivity:
            f.write('          ' + " ".join(str(v) for v in conn) + '\n')
        f.write('        </DataArray>\n')
        f.write('        <DataArray type="Int64" Name="offsets" format="ascii">\n')
        f.write('          ' + " ".join(str(o) for o in offsets) + '\n')
        f.write('        </DataArray>\n')
        f.write('        <DataArray type="UInt8" Name="types" format="ascii">\n')
        f.write('          ' + " ".join(str(t) for t in cell_types) + '\n')
        f.write('        </DataArray>\n')
        f.write('      </Cells>\n')

        f.write('    </Piece>\n')
        f.write('  </UnstructuredGrid>\n')
        f.write('</VTKFile>\n')

    logger.info("Exported VTK XML file: %s", path)
    return path


def export_displacement(filename: str, dof_handler: DoFHandler, u: np.ndarray,
                        names: Optional[List[str]] = None) -> Path:
    """Pick the writer from the file extension (.vtu or legacy .vtk)."""
    if Path(filename).suffix == '.vtu':
        return export_vtu_displacement(filename, dof_handler, u, names)
    return export_vtk_displacement(filename, dof_handler, u, names)

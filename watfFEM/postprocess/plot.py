"""
Matplotlib plots of a 2D displacement field.

plot_displacement draws the displacement magnitude as filled
contours over the support points, overlays the displacement
vectors, and optionally the deformed mesh nodes.
"""

import numpy as np
from typing import List, Optional

from .fields import nodal_field
from ..discretization.dof_handler import DoFHandler
from ..errors import NotImplementedDimensionError


def plot_displacement(dof_handler: DoFHandler,
                      u: np.ndarray,
                      names: Optional[List[str]] = None,
                      quiver_stride: int = 3,
                      save_path: Optional[str] = None,
                      show: bool = False):
    """
    Plot a 2D displacement field.

    Parameters:
        dof_handler: DOF numbering of the solution
        u: Solution vector
        names: Component names used in the title
        quiver_stride: Plot every n-th displacement arrow
        save_path: If provided, save figure to this path
        show: Whether to call plt.show()

    Returns:
        matplotlib Figure object
    """
    import matplotlib.pyplot as plt
    import matplotlib.tri as mtri

    if dof_handler.mesh.dim != 2:
        raise NotImplementedDimensionError(dof_handler.mesh.dim)

    field = nodal_field(dof_handler, u, names)
    x, y = field.points[:, 0], field.points[:, 1]
    magnitude = field.magnitude

    fig, ax = plt.subplots(figsize=(7, 6))
    triangulation = mtri.Triangulation(x, y)
    contour = ax.tricontourf(triangulation, magnitude, levels=30, cmap="viridis")
    fig.colorbar(contour, ax=ax, label="|u|")

    sel = slice(None, None, max(quiver_stride, 1))
    ax.quiver(x[sel], y[sel], field.values[sel, 0], field.values[sel, 1],
              color="white", alpha=0.8)

    ax.set_aspect("equal")
    ax.set_xlabel("x")
    ax.set_ylabel("y")
    ax.set_title(f"{', '.join(field.names)} (max |u| = {magnitude.max():.3e})")
    fig.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=150)
    if show:
        plt.show()

    return fig

"""Structured uniform quadrilateral mesh built in memory.

Generates nx × ny quads on [x0, x0 + lx] × [y0, y0 + ly] with the boundary
segments tagged like the Gmsh generators (bottom, right, top, left).
"""

import numpy as np

from segflow.exceptions import ConfigurationError
from segflow.mesh.mesh_loader import build_mesh_data

PATCH_NAMES = {1: "bottom", 2: "right", 3: "top", 4: "left"}


def generate_rectangle(nx=50, ny=10, lx=5.0, ly=1.0, origin=(0.0, 0.0)):
    """Generate a structured rectangle mesh.

    Cells are numbered row by row, ``cell = j * nx + i``.

    Parameters
    ----------
    nx, ny : int
        Number of cells in x and y directions.
    lx, ly : float
        Domain extent.
    origin : tuple of float
        Lower-left corner.

    Returns
    -------
    mesh : MeshData
    patch_names : dict
        Boundary tag -> name.
    """
    if nx < 1 or ny < 1:
        raise ConfigurationError(f"rectangle needs at least one cell per direction, got {nx}x{ny}")
    if lx <= 0.0 or ly <= 0.0:
        raise ConfigurationError(f"rectangle extents must be positive, got {lx}x{ly}")

    xs = origin[0] + np.linspace(0.0, lx, nx + 1)
    ys = origin[1] + np.linspace(0.0, ly, ny + 1)
    X, Y = np.meshgrid(xs, ys)
    points = np.column_stack([X.ravel(), Y.ravel()])

    def vid(i, j):
        return j * (nx + 1) + i

    cells = np.array(
        [[vid(i, j), vid(i + 1, j), vid(i + 1, j + 1), vid(i, j + 1)]
         for j in range(ny) for i in range(nx)],
        dtype=np.int64,
    )

    lines, tags = [], []
    for i in range(nx):
        lines.append((vid(i, 0), vid(i + 1, 0)))
        tags.append(1)
        lines.append((vid(i + 1, ny), vid(i, ny)))
        tags.append(3)
    for j in range(ny):
        lines.append((vid(nx, j), vid(nx, j + 1)))
        tags.append(2)
        lines.append((vid(0, j + 1), vid(0, j)))
        tags.append(4)

    mesh = build_mesh_data(
        points,
        cells,
        np.array(lines, dtype=np.int64),
        np.array(tags, dtype=np.int64),
    )
    return mesh, dict(PATCH_NAMES)

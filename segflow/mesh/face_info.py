"""Immutable face records and the Python-side mesh view used by the kernels.

The numba ``MeshData`` keeps flat arrays for the compiled kernels. The residual
kernels walk faces one at a time in Python, so the per-face quantities are
unpacked once into :class:`FaceInfo` records.
"""

from dataclasses import dataclass

import numpy as np

from segflow.exceptions import ConfigurationError

COORD_SYSTEMS = ("XYZ", "RZ")


def coord_transform_factor(coord_system, point):
    """Volume/area scale factor of the coordinate system at ``point``."""
    if coord_system == "XYZ":
        return 1.0
    if coord_system == "RZ":
        return 2.0 * np.pi * point[0]
    raise ConfigurationError(f"unknown coordinate system '{coord_system}', expected one of {COORD_SYSTEMS}")


@dataclass(frozen=True, eq=False)
class FaceInfo:
    """Geometry of one face, seen from its owner element (``elem``).

    ``normal`` points from ``elem`` to ``neighbor``. On boundary faces
    ``neighbor`` is -1 and the neighbor centroid/volume are None.
    """

    index: int
    elem: int
    neighbor: int
    normal: np.ndarray
    area: float
    centroid: np.ndarray
    elem_centroid: np.ndarray
    neighbor_centroid: np.ndarray
    elem_volume: float
    neighbor_volume: float
    e: np.ndarray
    distance: float
    g_elem: float
    boundary_id: int
    coord: float

    @property
    def on_boundary(self):
        return self.neighbor < 0

    @property
    def g_neighbor(self):
        return 1.0 - self.g_elem

    def elem_has_info(self, cell):
        return cell == self.elem


class FVMesh:
    """Face records, element-to-face lists and boundary names of a MeshData.

    Parameters
    ----------
    mesh : MeshData
    patch_names : dict, optional
        Boundary tag -> name. Unnamed tags are reported as ``patch_<tag>``.
    coord_system : str
        ``"XYZ"`` or ``"RZ"`` (axisymmetric about the y axis, r = x).
    """

    def __init__(self, mesh, patch_names=None, coord_system="XYZ"):
        self.data = mesh
        self.patch_names = dict(patch_names or {})
        self.coord_system = coord_system

        self.cell_volumes = np.array(mesh.cell_volumes)
        self.cell_centers = np.array(mesh.cell_centers)
        self.cell_subdomains = np.array(mesh.cell_subdomains)
        self.n_cells = len(self.cell_volumes)
        self.dim = self.cell_centers.shape[1]
        self.cell_coords = np.array(
            [coord_transform_factor(coord_system, x) for x in self.cell_centers]
        )

        owner = np.array(mesh.owner_cells)
        neighbor = np.array(mesh.neighbor_cells)
        areas = np.array(mesh.face_areas)
        centers = np.array(mesh.face_centers)
        normals = np.array(mesh.unit_vector_n)
        e = np.array(mesh.unit_vector_e)
        d_CE = np.array(mesh.vector_d_CE)
        g = np.array(mesh.face_interp_factors)
        patches = np.array(mesh.boundary_patches)
        on_boundary = np.array(mesh.face_boundary_mask)
        d_Cb = np.array(mesh.d_Cb)

        self.faces = []
        for f in range(len(areas)):
            P, N = int(owner[f]), int(neighbor[f])
            interior = on_boundary[f] == 0
            self.faces.append(
                FaceInfo(
                    index=f,
                    elem=P,
                    neighbor=N,
                    normal=normals[f],
                    area=float(areas[f]),
                    centroid=centers[f],
                    elem_centroid=self.cell_centers[P],
                    neighbor_centroid=self.cell_centers[N] if interior else None,
                    elem_volume=float(self.cell_volumes[P]),
                    neighbor_volume=float(self.cell_volumes[N]) if interior else None,
                    e=e[f],
                    distance=float(np.linalg.norm(d_CE[f])) if interior else float(d_Cb[f]),
                    # boundary faces interpolate against a mirrored ghost element
                    g_elem=float(1.0 - g[f]) if interior else 0.5,
                    boundary_id=-1 if interior else int(patches[f]),
                    coord=coord_transform_factor(coord_system, centers[f]),
                )
            )
        self.n_faces = len(self.faces)

        # cell_faces rows are padded with -1
        self.elem_faces = [
            [self.faces[f] for f in row if f >= 0] for row in np.array(mesh.cell_faces)
        ]

        self.boundary_ids = sorted({f.boundary_id for f in self.faces if f.on_boundary})

    def boundary_name(self, boundary_id):
        return self.patch_names.get(boundary_id, f"patch_{boundary_id}")

    def boundary_id(self, name):
        for tag, patch in self.patch_names.items():
            if patch == name:
                return tag
        raise KeyError(name)

    def faces_of(self, cell):
        return self.elem_faces[cell]

    def boundary_faces(self, boundary_id=None):
        return [
            f for f in self.faces
            if f.on_boundary and (boundary_id is None or f.boundary_id == boundary_id)
        ]

    def interior_faces(self):
        return [f for f in self.faces if not f.on_boundary]

    def adjacency(self):
        """Cell-to-cell adjacency through interior faces, as (rows, cols) pairs."""
        rows = [f.elem for f in self.faces if not f.on_boundary]
        cols = [f.neighbor for f in self.faces if not f.on_boundary]
        return np.array(rows + cols, dtype=np.int64), np.array(cols + rows, dtype=np.int64)

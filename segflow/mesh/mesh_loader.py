import logging

import meshio
import numpy as np
from numba import njit

from segflow.exceptions import ConfigurationError
from segflow.mesh.mesh_data import MeshData
from .helpers.mesh_loader_helpers import (
    parse_physical_names,
    _calculate_cell_volumes,
    _compute_face_geometry_kernel,
    _compute_d_Cb_kernel,
    _count_faces_per_cell_kernel,
    _populate_cell_faces_kernel,
)

log = logging.getLogger(__name__)


def ensure_contiguous(*arrays):
    return [np.ascontiguousarray(a) for a in arrays]


# --- JIT-compatible face map construction ---
@njit
def _compute_face_map_jit(cells):
    n_faces_est = cells.shape[0] * cells.shape[1]
    face_pairs = np.empty((n_faces_est, 2), dtype=np.int64)
    face_owners = np.empty(n_faces_est, dtype=np.int64)
    count = 0
    for cid in range(cells.shape[0]):
        for i in range(cells.shape[1]):
            a = cells[cid, i]
            b = cells[cid, (i + 1) % cells.shape[1]]
            face_pairs[count, 0] = min(a, b)
            face_pairs[count, 1] = max(a, b)
            face_owners[count] = cid
            count += 1
    return face_pairs[:count], face_owners[:count]


@njit
def _compute_face_map_kernel(face_pairs, face_owners):
    # Edges shared by two cells appear twice; merge them into one face
    keys = face_pairs[:, 0] * 10000000 + face_pairs[:, 1]
    order = np.argsort(keys, kind="mergesort")
    sorted_faces = face_pairs[order]
    sorted_owners = face_owners[order]

    n = sorted_faces.shape[0]
    unique_count = 1
    for i in range(1, n):
        if sorted_faces[i, 0] != sorted_faces[i - 1, 0] or sorted_faces[i, 1] != sorted_faces[i - 1, 1]:
            unique_count += 1

    face_keys = np.empty((unique_count, 2), dtype=np.int64)
    face_values = np.full((unique_count, 2), -1, dtype=np.int64)

    k = 0
    face_keys[0, 0] = sorted_faces[0, 0]
    face_keys[0, 1] = sorted_faces[0, 1]
    face_values[0, 0] = sorted_owners[0]
    for i in range(1, n):
        if sorted_faces[i, 0] == face_keys[k, 0] and sorted_faces[i, 1] == face_keys[k, 1]:
            face_values[k, 1] = sorted_owners[i]
        else:
            k += 1
            face_keys[k, 0] = sorted_faces[i, 0]
            face_keys[k, 1] = sorted_faces[i, 1]
            face_values[k, 0] = sorted_owners[i]

    return face_keys, face_values


@njit
def _construct_faces_kernel(face_keys, face_values, points, cell_centers,
                            face_centers_array, face_normals_array, edge_lengths_array,
                            face_vertices_array, owner_cells_array, neighbor_cells_array):
    for i in range(face_keys.shape[0]):
        v0_idx = face_keys[i, 0]
        v1_idx = face_keys[i, 1]
        center_x = 0.5 * (points[v0_idx, 0] + points[v1_idx, 0])
        center_y = 0.5 * (points[v0_idx, 1] + points[v1_idx, 1])
        edge_x = points[v1_idx, 0] - points[v0_idx, 0]
        edge_y = points[v1_idx, 1] - points[v0_idx, 1]
        edge_len = np.hypot(edge_x, edge_y)

        n_hat_0, n_hat_1 = 0.0, 0.0
        if edge_len > 1e-12:
            n_hat_0 = edge_y / edge_len
            n_hat_1 = -edge_x / edge_len

        owner = face_values[i, 0]
        neighbor = face_values[i, 1]
        # Orient the normal owner -> neighbor (owner -> face on boundaries)
        if neighbor >= 0:
            d_x = cell_centers[neighbor, 0] - cell_centers[owner, 0]
            d_y = cell_centers[neighbor, 1] - cell_centers[owner, 1]
        else:
            d_x = center_x - cell_centers[owner, 0]
            d_y = center_y - cell_centers[owner, 1]
        if n_hat_0 * d_x + n_hat_1 * d_y < 0:
            n_hat_0 *= -1
            n_hat_1 *= -1

        face_vertices_array[i, 0] = v0_idx
        face_vertices_array[i, 1] = v1_idx
        owner_cells_array[i] = owner
        neighbor_cells_array[i] = neighbor
        face_centers_array[i, 0] = center_x
        face_centers_array[i, 1] = center_y
        face_normals_array[i, 0] = n_hat_0 * edge_len
        face_normals_array[i, 1] = n_hat_1 * edge_len
        edge_lengths_array[i] = edge_len


def _construct_faces(face_keys, face_values, points, cell_centers):
    n_faces = len(face_keys)
    face_centers_array = np.empty((n_faces, 2), dtype=np.float64)
    face_normals_array = np.empty((n_faces, 2), dtype=np.float64)
    edge_lengths_array = np.empty(n_faces, dtype=np.float64)
    face_vertices_array = np.empty((n_faces, 2), dtype=np.int64)
    owner_cells_array = np.empty(n_faces, dtype=np.int64)
    neighbor_cells_array = np.empty(n_faces, dtype=np.int64)

    _construct_faces_kernel(
        face_keys, face_values, points, cell_centers,
        face_centers_array, face_normals_array, edge_lengths_array,
        face_vertices_array, owner_cells_array, neighbor_cells_array
    )

    return (
        face_centers_array,
        face_normals_array,
        edge_lengths_array,
        face_vertices_array,
        owner_cells_array,
        neighbor_cells_array,
    )


def load_mesh(filename):
    """
    Load a 2D mesh (triangles or quads) from a Gmsh .msh file.

    Returns
    -------
    mesh : MeshData
    patch_names : dict
        Physical tag -> boundary name, as written in ``$PhysicalNames``.
    """
    physical_names = parse_physical_names(filename)
    msh = meshio.read(filename)
    points = np.asarray(msh.points[:, :2], dtype=np.float64)

    if "triangle" in msh.cells_dict:
        cell_type = "triangle"
    elif "quad" in msh.cells_dict:
        cell_type = "quad"
    else:
        raise ConfigurationError(f"{filename}: mesh must contain triangle or quad cells")

    cells = np.asarray(msh.cells_dict[cell_type], dtype=np.int64)
    physical = msh.cell_data_dict.get("gmsh:physical", {})
    boundary_lines = np.asarray(msh.cells_dict.get("line", np.empty((0, 2))), dtype=np.int64)
    boundary_tags = np.asarray(physical.get("line", np.full(len(boundary_lines), -1)), dtype=np.int64)
    cell_tags = physical.get(cell_type)

    log.info(f"Loaded {filename}: {len(cells)} {cell_type} cells, {len(physical_names)} physical names")
    mesh = build_mesh_data(points, cells, boundary_lines, boundary_tags, cell_tags)
    return mesh, physical_names


def build_mesh_data(points, cells, boundary_lines, boundary_tags, cell_tags=None):
    """Build a :class:`MeshData` from vertex coordinates and cell connectivity.

    Parameters
    ----------
    points : ndarray of shape (n_vertices, 2)
    cells : ndarray of shape (n_cells, 3) or (n_cells, 4)
        Vertex indices of triangles or quads.
    boundary_lines : ndarray of shape (n_lines, 2)
        Vertex pairs of tagged boundary edges.
    boundary_tags : ndarray of shape (n_lines,)
        Physical tag of every boundary edge.
    cell_tags : ndarray of shape (n_cells,), optional
        Subdomain id of every cell; zero when omitted.
    """
    points = np.ascontiguousarray(points, dtype=np.float64)
    cells = np.ascontiguousarray(cells, dtype=np.int64)
    n_cells = len(cells)
    if cells.shape[1] not in (3, 4):
        raise ConfigurationError("cells must be triangles or quads")

    cell_centers = np.mean(points[cells], axis=1)
    cell_volumes = _calculate_cell_volumes(points, cells)
    if cell_tags is None:
        cell_subdomains = np.zeros(n_cells, dtype=np.int64)
    else:
        cell_subdomains = np.asarray(cell_tags, dtype=np.int64)

    face_pairs, face_owners = _compute_face_map_jit(cells)
    face_keys, face_values = _compute_face_map_kernel(face_pairs, face_owners)
    (
        face_centers,
        vector_S_f,
        edge_lengths,
        face_vertices,
        owner_cells,
        neighbor_cells,
    ) = _construct_faces(face_keys, face_values, points, cell_centers)

    face_areas = np.linalg.norm(vector_S_f, axis=1)
    n_faces = len(face_areas)
    unit_vector_n = vector_S_f / face_areas[:, None]

    internal_faces = np.where(neighbor_cells >= 0)[0].astype(np.int64)
    boundary_faces = np.where(neighbor_cells < 0)[0].astype(np.int64)

    # --- derived geometry ---
    vector_d_CE = np.zeros((n_faces, 2))
    unit_vector_e = np.zeros((n_faces, 2))
    face_interp_factors = np.zeros(n_faces)
    _compute_face_geometry_kernel(
        n_faces, owner_cells, neighbor_cells, cell_centers, face_centers,
        unit_vector_n, vector_d_CE, unit_vector_e, face_interp_factors,
    )

    # --- boundary tagging ---
    edge_to_face = {tuple(edge): i for i, edge in enumerate(face_vertices)}
    boundary_patches = np.full(n_faces, -1, dtype=np.int64)
    for line, tag in zip(boundary_lines, boundary_tags):
        face_id = edge_to_face.get((min(line), max(line)))
        if face_id is None or neighbor_cells[face_id] >= 0:
            continue
        boundary_patches[face_id] = tag

    untagged = int(np.sum(boundary_patches[boundary_faces] < 0))
    if untagged:
        log.warning(f"{untagged} boundary faces carry no physical tag")

    face_boundary_mask = np.zeros(n_faces, dtype=np.int64)
    face_boundary_mask[boundary_faces] = 1

    d_Cb = np.zeros(n_faces, dtype=np.float64)
    if len(boundary_faces) > 0:
        _compute_d_Cb_kernel(d_Cb, boundary_faces, owner_cells, face_centers, cell_centers)

    num_faces_for_cell = _count_faces_per_cell_kernel(n_cells, owner_cells, neighbor_cells, n_faces)
    cell_faces = -np.ones((n_cells, int(np.max(num_faces_for_cell))), dtype=np.int64)
    current_idx_for_cell = np.zeros(n_cells, dtype=np.int64)
    _populate_cell_faces_kernel(cell_faces, owner_cells, neighbor_cells, current_idx_for_cell, n_faces)

    return MeshData(*ensure_contiguous(
        cell_volumes, cell_centers, cell_subdomains,
        face_areas, face_centers,
        owner_cells, neighbor_cells, cell_faces,
        vector_S_f, vector_d_CE, unit_vector_n, unit_vector_e,
        face_interp_factors,
        internal_faces, boundary_faces, boundary_patches,
        d_Cb, face_boundary_mask,
    ))

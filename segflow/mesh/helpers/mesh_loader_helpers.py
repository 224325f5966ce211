import numpy as np
from numba import njit


def parse_physical_names(msh_filename):
    """Return ``{tag: name}`` from the ``$PhysicalNames`` section of a Gmsh file."""
    with open(msh_filename, "r") as f:
        lines = f.readlines()

    phys_names = {}
    inside = False
    for line in lines:
        if line.strip() == "$PhysicalNames":
            inside = True
            continue
        if line.strip() == "$EndPhysicalNames":
            break
        if inside:
            parts = line.strip().split()
            if len(parts) >= 3:
                dim, tag, *name_parts = parts
                name = " ".join(name_parts).strip('"')
                phys_names[int(tag)] = name
    return phys_names


@njit(fastmath=True)
def _calculate_cell_volumes(points, cells):
    # cells.shape[1] is 3 or 4, checked by the caller.
    if cells.shape[1] == 3:  # triangles
        a = points[cells[:, 0]]
        b = points[cells[:, 1]]
        c = points[cells[:, 2]]
        return 0.5 * np.abs(
            a[:, 0] * (b[:, 1] - c[:, 1])
            + b[:, 0] * (c[:, 1] - a[:, 1])
            + c[:, 0] * (a[:, 1] - b[:, 1])
        )
    # quads: shoelace on the two triangles ABD and BCD
    a = points[cells[:, 0]]
    b = points[cells[:, 1]]
    c = points[cells[:, 2]]
    d = points[cells[:, 3]]
    area_abd = 0.5 * np.abs(
        a[:, 0] * (b[:, 1] - d[:, 1])
        + b[:, 0] * (d[:, 1] - a[:, 1])
        + d[:, 0] * (a[:, 1] - b[:, 1])
    )
    area_bcd = 0.5 * np.abs(
        b[:, 0] * (c[:, 1] - d[:, 1])
        + c[:, 0] * (d[:, 1] - b[:, 1])
        + d[:, 0] * (b[:, 1] - c[:, 1])
    )
    return area_abd + area_bcd


@njit(fastmath=True)
def _compute_face_geometry_kernel(
    n_faces, owner_cells, neighbor_cells, cell_centers, face_centers,
    unit_vector_n,
    # Output arrays (modified in-place):
    vector_d_CE, unit_vector_e, face_interp_factors,
):
    for f in range(n_faces):
        P = owner_cells[f]
        N = neighbor_cells[f]
        vec_Pf_x = face_centers[f, 0] - cell_centers[P, 0]
        vec_Pf_y = face_centers[f, 1] - cell_centers[P, 1]

        if N >= 0:  # Internal face
            vec_PN_x = cell_centers[N, 0] - cell_centers[P, 0]
            vec_PN_y = cell_centers[N, 1] - cell_centers[P, 1]

            # alpha_f measured along the normal, Moukalled (6.27)
            denom_alpha = unit_vector_n[f, 0] * vec_PN_x + unit_vector_n[f, 1] * vec_PN_y
            alpha_f = 0.5
            if abs(denom_alpha) > 1e-12:
                alpha_f = (
                    unit_vector_n[f, 0] * vec_Pf_x + unit_vector_n[f, 1] * vec_Pf_y
                ) / denom_alpha
            face_interp_factors[f] = min(max(alpha_f, 0.0), 1.0)
        else:  # Boundary face
            vec_PN_x = vec_Pf_x
            vec_PN_y = vec_Pf_y
            face_interp_factors[f] = 1.0

        vector_d_CE[f, 0] = vec_PN_x
        vector_d_CE[f, 1] = vec_PN_y
        delta = (vec_PN_x**2 + vec_PN_y**2) ** 0.5
        if delta > 1e-12:
            unit_vector_e[f, 0] = vec_PN_x / delta
            unit_vector_e[f, 1] = vec_PN_y / delta


@njit(fastmath=True)
def _compute_d_Cb_kernel(d_Cb, boundary_faces, owner_cells, face_centers, cell_centers):
    for i in range(boundary_faces.shape[0]):
        f = boundary_faces[i]
        P = owner_cells[f]
        d_Cb[f] = (
            (face_centers[f, 0] - cell_centers[P, 0]) ** 2
            + (face_centers[f, 1] - cell_centers[P, 1]) ** 2
        ) ** 0.5


@njit(fastmath=True)
def _count_faces_per_cell_kernel(n_cells, owner_cells, neighbor_cells, n_faces):
    num_faces_for_cell = np.zeros(n_cells, dtype=np.int64)
    for f in range(n_faces):
        num_faces_for_cell[owner_cells[f]] += 1
        neigh = neighbor_cells[f]
        if neigh >= 0:
            num_faces_for_cell[neigh] += 1
    return num_faces_for_cell


@njit(fastmath=True)
def _populate_cell_faces_kernel(cell_faces, owner_cells, neighbor_cells, current_idx_for_cell, n_faces):
    # current_idx_for_cell arrives zero-filled
    for f in range(n_faces):
        own = owner_cells[f]
        cell_faces[own, current_idx_for_cell[own]] = f
        current_idx_for_cell[own] += 1

        neigh = neighbor_cells[f]
        if neigh >= 0:
            cell_faces[neigh, current_idx_for_cell[neigh]] = f
            current_idx_for_cell[neigh] += 1

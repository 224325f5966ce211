"""
MeshData: core data layout for the collocated finite-volume discretisation.

This class holds static geometry, connectivity and boundary tagging, following
Moukalled's finite volume formulation. Arrays are shaped (n, dim) where they
carry vectors, so kernels read the spatial dimension from ``cell_centers``.

Indexing Conventions:
- All face-based arrays (e.g., unit_vector_n, owner_cells) use face indexing (0 to n_faces-1).
- All cell-based arrays (e.g., cell_volumes, cell_centers) use cell indexing (0 to n_cells-1).
- Boundary-related arrays (boundary_patches, d_Cb) have full-face length (n_faces).
    * Internal faces use sentinel defaults: boundary_patches = -1, d_Cb = 0.0

Orientation:
- vector_S_f[f] and unit_vector_n[f] point from owner_cells[f] to neighbor_cells[f]
  (outwards from the owner on boundary faces).
- face_interp_factors[f] = g_f is the weight of the neighbor value,
  phi_f = g_f * phi_N + (1 - g_f) * phi_P. Boundary faces carry g_f = 1.
"""

from numba import types
from numba.experimental import jitclass

mesh_data_spec = [
    # --- Cell Geometry ---
    ("cell_volumes", types.float64[:]),          # Cell volumes V_C
    ("cell_centers", types.float64[:, :]),       # Cell centroids x_C [n_cells, dim]
    ("cell_subdomains", types.int64[:]),         # Subdomain (block) id per cell

    # --- Face Geometry ---
    ("face_areas", types.float64[:]),            # Face area magnitudes |S_f| (lengths in 2D)
    ("face_centers", types.float64[:, :]),       # Face centroids x_f [n_faces, dim]

    # --- Connectivity ---
    ("owner_cells", types.int64[:]),             # Owner cell index for each face
    ("neighbor_cells", types.int64[:]),          # Neighbor cell index (-1 for boundary faces)
    ("cell_faces", types.int64[:, :]),           # Padded list of face indices for each cell (-1 padding)

    # --- Vector Geometry ---
    ("vector_S_f", types.float64[:, :]),         # surface vectors S_f, unit normal scaled by the face area
    ("vector_d_CE", types.float64[:, :]),        # owner->neighbor centroid vector (owner->face on boundaries)
    ("unit_vector_n", types.float64[:, :]),      # unit vector normal to the face
    ("unit_vector_e", types.float64[:, :]),      # unit vector along vector_d_CE

    # --- Interpolation Factors ---
    ("face_interp_factors", types.float64[:]),   # g_f, neighbor weight of linear interpolation

    # --- Topological Masks ---
    ("internal_faces", types.int64[:]),          # Indices of faces with valid neighbor (N >= 0)
    ("boundary_faces", types.int64[:]),          # Indices of faces with N = -1
    ("boundary_patches", types.int64[:]),        # Patch id per face (-1 for internal or untagged)

    ("d_Cb", types.float64[:]),                  # Distance from cell center to boundary face center (Moukalled 8.6.8)
    ("face_boundary_mask", types.int64[:]),      # 1 if face is a boundary, 0 otherwise
]


@jitclass(mesh_data_spec)
class MeshData:
    def __init__(
        self,
        cell_volumes,
        cell_centers,
        cell_subdomains,
        face_areas,
        face_centers,
        owner_cells,
        neighbor_cells,
        cell_faces,
        vector_S_f,
        vector_d_CE,
        unit_vector_n,
        unit_vector_e,
        face_interp_factors,
        internal_faces,
        boundary_faces,
        boundary_patches,
        d_Cb,
        face_boundary_mask,
    ):
        # --- Geometry ---
        self.cell_volumes = cell_volumes
        self.cell_centers = cell_centers
        self.cell_subdomains = cell_subdomains
        self.face_areas = face_areas
        self.face_centers = face_centers

        # --- Connectivity ---
        self.owner_cells = owner_cells
        self.neighbor_cells = neighbor_cells
        self.cell_faces = cell_faces

        # --- Vector Geometry ---
        self.vector_S_f = vector_S_f
        self.vector_d_CE = vector_d_CE
        self.unit_vector_n = unit_vector_n
        self.unit_vector_e = unit_vector_e

        self.face_interp_factors = face_interp_factors

        # --- Topological Info ---
        self.internal_faces = internal_faces
        self.boundary_faces = boundary_faces
        self.boundary_patches = boundary_patches

        self.d_Cb = d_Cb
        self.face_boundary_mask = face_boundary_mask

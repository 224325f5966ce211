"""
Mesh module for the segflow collocated finite-volume solver.

Provides mesh loading, in-memory structured generation and the face records
used by the residual kernels.
"""

from .mesh_data import MeshData
from .mesh_loader import build_mesh_data, load_mesh
from .structured import generate_rectangle
from .face_info import FaceInfo, FVMesh, coord_transform_factor

__all__ = [
    "MeshData",
    "FaceInfo",
    "FVMesh",
    "build_mesh_data",
    "load_mesh",
    "generate_rectangle",
    "coord_transform_factor",
]

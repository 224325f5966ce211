"""Kernel base classes and the threaded residual assembly loop.

Flux kernels return a flux density for a face, seen from the face owner. The
assembler scales it by the face area and coordinate factor, adds it to the
owner's residual and subtracts it from the neighbor's. Elemental kernels
return the integrated residual of one element.
"""

import logging
from concurrent.futures import ThreadPoolExecutor

import numpy as np

log = logging.getLogger(__name__)


class FVFluxKernel:
    def residual_setup(self):
        """Called once before every residual evaluation."""

    def skip_for_boundary(self, face):
        return True

    def face_residual(self, face, tid=0):
        raise NotImplementedError


class FVElementalKernel:
    def residual_setup(self):
        """Called once before every residual evaluation."""

    def elem_residual(self, cell):
        raise NotImplementedError


def _assemble_range(mesh, flux_kernels, elem_kernels, cells, tid):
    residual = np.zeros(mesh.n_cells)
    for cell in cells:
        for kernel in elem_kernels:
            residual[cell] += kernel.elem_residual(cell)
        for face in mesh.faces_of(cell):
            # each face is assembled by the thread owning its owner element
            if face.elem != cell:
                continue
            for kernel in flux_kernels:
                if face.on_boundary and kernel.skip_for_boundary(face):
                    continue
                r = kernel.face_residual(face, tid) * face.area * face.coord
                residual[face.elem] += r
                if not face.on_boundary:
                    residual[face.neighbor] -= r
    return residual


def assemble_residual(mesh, kernels, n_threads=1):
    """
    Sum the residual of ``kernels`` over the mesh.

    Elements are split into ``n_threads`` contiguous ranges; worker ``tid``
    evaluates the faces owned by its range with thread index ``tid`` and
    writes into its own residual vector.
    """
    flux_kernels = [k for k in kernels if isinstance(k, FVFluxKernel)]
    elem_kernels = [k for k in kernels if isinstance(k, FVElementalKernel)]
    for kernel in kernels:
        kernel.residual_setup()

    ranges = np.array_split(np.arange(mesh.n_cells), n_threads)
    if n_threads == 1:
        return _assemble_range(mesh, flux_kernels, elem_kernels, ranges[0], 0)

    with ThreadPoolExecutor(max_workers=n_threads) as pool:
        partials = list(
            pool.map(
                lambda args: _assemble_range(mesh, flux_kernels, elem_kernels, *args),
                [(cells, tid) for tid, cells in enumerate(ranges)],
            )
        )
    return np.sum(partials, axis=0)

"""SciPy linear solvers for the Newton updates of the sub-problems."""

import logging

import numpy as np
import pyamg
from scipy.sparse import csr_matrix, issparse
from scipy.sparse.linalg import bicgstab, spsolve

from segflow.exceptions import ConfigurationError

log = logging.getLogger(__name__)

DIRECT = "direct"
BICGSTAB = "bicgstab"
LINEAR_SOLVERS = (DIRECT, BICGSTAB)


def _as_csr(A_matrix, b_vector, name):
    if not issparse(A_matrix):
        raise ValueError(f"{name}: matrix must be a scipy sparse matrix, got {type(A_matrix).__name__}")
    A_matrix = csr_matrix(A_matrix)
    if A_matrix.shape[0] != A_matrix.shape[1]:
        raise ValueError(f"{name}: matrix is not square ({A_matrix.shape})")
    if A_matrix.shape[0] != b_vector.shape[0]:
        raise ValueError(
            f"{name}: matrix rows ({A_matrix.shape[0]}) and RHS length ({b_vector.shape[0]}) do not match"
        )
    return A_matrix


class ScipyDirectSolver:
    """Sparse LU solve with ``scipy.sparse.linalg.spsolve``."""

    name = DIRECT

    def solve(self, A_matrix, b_vector):
        """
        Solve A x = b.

        Raises
        ------
        ValueError
            Shape mismatch or a dense matrix.
        RuntimeError
            spsolve failed or returned a non-finite solution.
        """
        A_matrix = _as_csr(A_matrix, b_vector, "ScipyDirectSolver")
        if A_matrix.shape[0] == 0:
            return np.array([])
        try:
            solution = spsolve(A_matrix, b_vector)
        except Exception as e:
            raise RuntimeError(f"ScipyDirectSolver: spsolve failed: {e}") from e
        if not np.all(np.isfinite(solution)):
            raise RuntimeError("ScipyDirectSolver: singular matrix, solution is not finite")
        return solution


class ScipyBicgstabSolver:
    """
    BiCGSTAB with a PyAMG smoothed-aggregation preconditioner.

    Parameters
    ----------
    tolerance : float
        Relative residual tolerance.
    max_iterations : int
    """

    name = BICGSTAB

    def __init__(self, tolerance=1e-8, max_iterations=1000):
        self.tolerance = tolerance
        self.max_iterations = max_iterations

    def solve(self, A_matrix, b_vector):
        A_matrix = _as_csr(A_matrix, b_vector, "ScipyBicgstabSolver")
        ml = pyamg.smoothed_aggregation_solver(A_matrix, max_coarse=10)
        M = ml.aspreconditioner()
        x, info = bicgstab(
            A_matrix, b_vector, M=M, rtol=self.tolerance, atol=0, maxiter=self.max_iterations
        )
        if info < 0:
            raise RuntimeError(f"BiCGSTAB failed (info={info})")
        if info > 0:
            log.warning(f"BiCGSTAB did not reach rtol={self.tolerance} in {info} iterations")
        return x


def make_linear_solver(name=DIRECT, tolerance=1e-8, max_iterations=1000):
    if name == DIRECT:
        return ScipyDirectSolver()
    if name == BICGSTAB:
        return ScipyBicgstabSolver(tolerance, max_iterations)
    raise ConfigurationError(f"unknown linear solver '{name}', expected one of {LINEAR_SOLVERS}")

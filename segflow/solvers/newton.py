"""
Newton iteration with a coloured finite-difference Jacobian.

Once the advecting velocity and the momentum coefficients are frozen, the
sub-problem residuals are affine in their unknown, so the Jacobian is built
once per solve and reused by every Newton update.
"""

import logging
from dataclasses import dataclass

import numpy as np
from scipy.sparse import coo_matrix, csr_matrix, identity

log = logging.getLogger(__name__)

FD_STEP = 1.0e-7


def jacobian_sparsity(mesh, depth=1):
    """
    Structural non-zeros of a residual whose stencil reaches ``depth`` face
    neighbours of every cell.

    Returns
    -------
    csr_matrix of bool, shape (n_cells, n_cells)
    """
    rows, cols = mesh.adjacency()
    n = mesh.n_cells
    A = coo_matrix((np.ones(len(rows)), (rows, cols)), shape=(n, n)).tocsr()
    A = (A + identity(n, format="csr")).astype(bool).astype(np.float64)
    S = A
    for _ in range(depth - 1):
        S = (S @ A).astype(bool).astype(np.float64)
    S = csr_matrix(S.astype(bool))
    S.eliminate_zeros()
    return S


def column_groups(sparsity):
    """
    Greedy colouring of structurally orthogonal columns.

    Two columns may share a colour only if no row has a non-zero in both.
    """
    S = csr_matrix(sparsity, dtype=np.float64)
    conflicts = csr_matrix((S.T @ S).astype(bool))
    n = S.shape[1]
    colours = np.full(n, -1, dtype=np.int64)
    for j in range(n):
        nbrs = conflicts.indices[conflicts.indptr[j]:conflicts.indptr[j + 1]]
        taken = set(colours[nbrs][colours[nbrs] >= 0])
        c = 0
        while c in taken:
            c += 1
        colours[j] = c
    return [np.flatnonzero(colours == c) for c in range(colours.max() + 1)]


def finite_difference_jacobian(residual, x, sparsity, groups=None, r0=None):
    """
    Forward-difference Jacobian of ``residual`` at ``x``.

    Parameters
    ----------
    residual : callable
        ``residual(x) -> ndarray``.
    x : ndarray
    sparsity : csr_matrix
        Structural pattern from :func:`jacobian_sparsity`.
    groups : list of ndarray, optional
        Column groups; computed from ``sparsity`` when omitted.
    r0 : ndarray, optional
        ``residual(x)`` if already known.
    """
    if groups is None:
        groups = column_groups(sparsity)
    if r0 is None:
        r0 = residual(x)
    h = FD_STEP * max(1.0, np.max(np.abs(x)))
    pattern = sparsity.tocsc()

    rows, cols, vals = [], [], []
    for group in groups:
        xp = x.copy()
        xp[group] += h
        dr = (residual(xp) - r0) / h
        for j in group:
            col_rows = pattern.indices[pattern.indptr[j]:pattern.indptr[j + 1]]
            rows.append(col_rows)
            cols.append(np.full(len(col_rows), j))
            vals.append(dr[col_rows])

    n = len(x)
    return coo_matrix(
        (np.concatenate(vals), (np.concatenate(rows), np.concatenate(cols))), shape=(n, n)
    ).tocsr()


@dataclass
class NewtonResult:
    x: np.ndarray
    iterations: int
    converged: bool
    residual_norm: float
    initial_norm: float
    jacobian: csr_matrix


def newton_solve(
    residual,
    x0,
    sparsity,
    linear_solver,
    abs_tol=1e-8,
    rel_tol=1e-8,
    max_its=10,
    groups=None,
    name="system",
):
    """
    Newton iterations on ``residual(x) = 0``.

    Stops when ||R||_2 <= max(abs_tol, rel_tol * ||R_0||_2) or after
    ``max_its`` updates. A solve that stops without converging is logged as a
    warning and reported through ``NewtonResult.converged``.
    """
    x = np.array(x0, dtype=np.float64)
    r = residual(x)
    r0_norm = np.linalg.norm(r)
    jacobian = finite_difference_jacobian(residual, x, sparsity, groups, r0=r)
    tol = max(abs_tol, rel_tol * r0_norm)
    log.debug(f"{name}: ||R_0|| = {r0_norm:.3e}, target {tol:.3e}")

    r_norm = r0_norm
    its = 0
    while r_norm > tol and its < max_its:
        dx = linear_solver.solve(jacobian, -r)
        x = x + dx
        r = residual(x)
        r_norm = np.linalg.norm(r)
        its += 1
        log.debug(f"{name}: Newton it {its}, ||R|| = {r_norm:.3e}")

    converged = bool(r_norm <= tol)
    if not converged:
        log.warning(f"{name}: Newton stopped after {its} iterations with ||R|| = {r_norm:.3e} > {tol:.3e}")
    return NewtonResult(x, its, converged, float(r_norm), float(r0_norm), jacobian)

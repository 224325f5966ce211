import logging

import numpy as np
from numba import njit, prange

from segflow.discretization.gradient.gauss import compute_cell_gradients
from segflow.exceptions import ConfigurationError

log = logging.getLogger(__name__)


@njit(parallel=True)
def correct_cell_velocities(velocity_star, ainv, grad_p_new, grad_p_old, relaxation):
    """
    Corrects cell-centered velocities with the change of the pressure gradient.

    u_i = u*_i - relaxation * Ainv_i * (dp_new/dx_i - dp_old/dx_i)

    Parameters
    ----------
    velocity_star : ndarray of shape (n_cells, dim)
        Momentum-predictor velocity.
    ainv : ndarray of shape (n_cells, dim)
        Inverse momentum coefficients V / a per component.
    grad_p_new, grad_p_old : ndarray of shape (n_cells, dim)
        Cell gradients of the predicted and the previous pressure.
    relaxation : float

    Returns
    -------
    velocity : ndarray of shape (n_cells, dim)
    correction : ndarray of shape (n_cells, dim)
        The applied correction ``velocity - velocity_star``.
    """
    n_cells, dim = velocity_star.shape
    velocity = np.empty_like(velocity_star)
    correction = np.empty_like(velocity_star)
    for i in prange(n_cells):
        for d in range(dim):
            correction[i, d] = -relaxation * ainv[i, d] * (grad_p_new[i, d] - grad_p_old[i, d])
            velocity[i, d] = velocity_star[i, d] + correction[i, d]
    return velocity, correction


class VelocityCorrector:
    """Direct per-element velocity update after the pressure predictor.

    Parameters
    ----------
    mesh : FVMesh
    boundary_values : BoundaryFaceValues
        Supplies the boundary pressures for the Green–Gauss gradients.
    relaxation : float
        Under-relaxation factor in (0, 1].
    """

    def __init__(self, mesh, boundary_values, relaxation=1.0):
        if not 0.0 < relaxation <= 1.0:
            raise ConfigurationError(f"velocity relaxation must be in (0, 1], got {relaxation}")
        self.mesh = mesh
        self.boundary_values = boundary_values
        self.relaxation = float(relaxation)

    def pressure_gradients(self, p):
        p = np.ascontiguousarray(p, dtype=np.float64)
        return compute_cell_gradients(self.mesh.data, p, self.boundary_values.pressure_face_array(p))

    def correct(self, velocity_star, ainv, pressure, pressure_old):
        """
        Parameters
        ----------
        velocity_star, ainv : sequence of ndarray
            One array of length n_cells per velocity component.
        pressure, pressure_old : ndarray

        Returns
        -------
        velocity : list of ndarray
            Corrected (advected) velocity components.
        correction : ndarray of shape (n_cells, dim)
        """
        velocity_star = np.column_stack(velocity_star).astype(np.float64)
        ainv = np.column_stack(ainv).astype(np.float64)
        velocity, correction = correct_cell_velocities(
            velocity_star,
            ainv,
            self.pressure_gradients(pressure),
            self.pressure_gradients(pressure_old),
            self.relaxation,
        )
        log.debug(f"velocity correction: max |du| = {np.abs(correction).max():.3e}")
        return [velocity[:, d].copy() for d in range(velocity.shape[1])], correction

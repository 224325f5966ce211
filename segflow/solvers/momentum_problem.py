"""Momentum sub-problem: one Newton solve per velocity component with frozen pressure."""

import logging

import numpy as np
from scipy.sparse import diags

from segflow.assembly.kernels import assemble_residual
from segflow.assembly.momentum_predictor import (
    MomentumPredictor,
    MomentumPressureGradient,
    MomentumTimeDerivative,
)
from segflow.assembly.rhie_chow import VELOCITY_ROLES, RhieChowInterpolator
from segflow.core.fields import PRESSURE, VELOCITY, FieldStore
from segflow.solvers.exchange import PRESSURE_FIELD, MomentumToPressure, advected_names
from segflow.solvers.newton import column_groups, jacobian_sparsity, newton_solve

log = logging.getLogger(__name__)


class MomentumProblem:
    """
    Holds the momentum fields and produces the quantities the pressure
    predictor needs.

    Fields: the unknowns ``u``, ``v`` [, ``w``], the advecting velocity
    ``u_adv``, ... and the coupling pressure; ``u_old``, ... when the time
    derivative is enabled.

    Parameters
    ----------
    mesh : FVMesh
    classifier : BoundaryClassifier
    boundary_values : BoundaryFaceValues
    session : SolverSession
    fluid : FluidProperties
    numerics : NumericsConfig
    linear_solver : object with ``solve(A, b)``
    initial_velocity : sequence of float
    initial_pressure : float
    """

    def __init__(
        self,
        mesh,
        classifier,
        boundary_values,
        session,
        fluid,
        numerics,
        linear_solver,
        initial_velocity=(0.0, 0.0),
        initial_pressure=0.0,
    ):
        self.mesh = mesh
        self.session = session
        self.numerics = numerics
        self.linear_solver = linear_solver
        self.dim = mesh.dim
        self.variables = VELOCITY_ROLES[: self.dim]

        initial_velocity = list(initial_velocity) + [0.0] * self.dim
        self.fields = FieldStore(mesh.n_cells)
        for d, (var, adv) in enumerate(zip(self.variables, advected_names(self.dim))):
            self.fields.add(var, VELOCITY).set_value(initial_velocity[d])
            self.fields.add(adv, VELOCITY).set_value(initial_velocity[d])
            if numerics.include_time_derivative:
                self.fields.add(f"{var}_old", VELOCITY).set_value(initial_velocity[d])
        self.fields.add(PRESSURE_FIELD, PRESSURE).set_value(initial_pressure)

        self.rc = RhieChowInterpolator(
            session,
            mesh,
            classifier,
            boundary_values,
            self.fields,
            velocity=advected_names(self.dim),
            pressure=PRESSURE_FIELD,
            mu=fluid.mu,
            rho=fluid.rho,
            velocity_interp_method=numerics.velocity_interp_method,
            advected_interp_method=numerics.advected_interp_method,
        )

        self.kernels = []
        self.pressure_kernels = []
        for d, var in enumerate(self.variables):
            kernels = [MomentumPredictor(self.rc, self.fields, var, d)]
            if numerics.include_pressure_gradient:
                pressure_kernel = MomentumPressureGradient(
                    mesh, boundary_values, self.fields, PRESSURE_FIELD, d
                )
                kernels.append(pressure_kernel)
                self.pressure_kernels.append(pressure_kernel)
            if numerics.include_time_derivative:
                kernels.append(
                    MomentumTimeDerivative(mesh, self.fields, var, f"{var}_old", self.rc.rho, numerics.dt)
                )
            self.kernels.append(kernels)

        self.sparsity = jacobian_sparsity(mesh, depth=1)
        self.groups = column_groups(self.sparsity)
        log.debug(f"momentum Jacobian: {len(self.groups)} colours for {mesh.n_cells} cells")

    def residual(self, component, x):
        self.fields[self.variables[component]].values[:] = x
        return assemble_residual(self.mesh, self.kernels[component], self.session.n_threads)

    def solve(self):
        """
        Solve every component and build the message for the pressure predictor.

        Returns
        -------
        message : MomentumToPressure
        results : list of NewtonResult
        """
        self.session.cache.clear()
        if self.numerics.include_time_derivative:
            for var in self.variables:
                self.fields[f"{var}_old"].values[:] = self.fields[var].values

        results = []
        for d, var in enumerate(self.variables):
            result = newton_solve(
                lambda x, d=d: self.residual(d, x),
                self.fields[var].values.copy(),
                self.sparsity,
                self.linear_solver,
                abs_tol=self.numerics.nl_abs_tol,
                rel_tol=self.numerics.nl_rel_tol,
                max_its=self.numerics.nl_max_its,
                groups=self.groups,
                name=f"momentum {var}",
            )
            self.fields[var].values[:] = result.x
            results.append(result)

        velocity_star, ainv, hu, rhs = [], [], [], []
        a_cells = np.array([self.rc.coefficient(c) for c in range(self.mesh.n_cells)])
        d_cells = np.array([self.rc.d_coefficient(c) for c in range(self.mesh.n_cells)])
        for d, (var, result) in enumerate(zip(self.variables, results)):
            u_star = result.x
            J = result.jacobian
            b = J @ u_star - self.residual(d, u_star)
            offdiag = J - diags(J.diagonal())
            source = b - offdiag @ u_star
            if self.pressure_kernels:
                source = source + assemble_residual(self.mesh, [self.pressure_kernels[d]])
            velocity_star.append(u_star.copy())
            ainv.append(d_cells[:, d].copy())
            hu.append(-source / a_cells[:, d])
            rhs.append(b)

        message = MomentumToPressure(
            velocity_star=tuple(velocity_star),
            ainv=tuple(ainv),
            hu=tuple(hu),
            rhs=tuple(rhs),
            pressure_old=self.fields[PRESSURE_FIELD].values.copy(),
        )
        return message, results

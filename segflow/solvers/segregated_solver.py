"""
Two-level segregated pressure–velocity coupling.

Each outer iteration runs the momentum predictor with frozen pressure, hands
the star velocity, inverse coefficients and momentum sources to the pressure
predictor, then corrects the velocity with the change of the pressure
gradient and hands the corrected velocity and the new pressure back.
"""

import logging
import time
from dataclasses import asdict, dataclass, field
from typing import List

import numpy as np
import pandas as pd

from segflow.boundary.classifier import BoundaryClassifier
from segflow.boundary.conditions import BoundaryFaceValues
from segflow.core.velocity_correction import VelocityCorrector
from segflow.linear_solvers.scipy_solver import make_linear_solver
from segflow.session import SolverSession
from segflow.solvers.exchange import (
    PRESSURE_FIELD,
    PRESSURE_OLD_FIELD,
    PressureToMomentum,
    advected_names,
    check_exchange,
    component_names,
    star_names,
)
from segflow.solvers.momentum_problem import MomentumProblem
from segflow.solvers.pressure_problem import PressureProblem

log = logging.getLogger(__name__)


# ========================================================
# Results
# ========================================================


@dataclass
class OuterIteration:
    """Summary of one outer iteration."""

    iteration: int
    momentum_residuals: List[float]
    momentum_newton_its: List[int]
    pressure_residual: float
    pressure_newton_its: int
    max_velocity_correction: float
    converged: bool
    wall_time_seconds: float = 0.0

    def to_row(self):
        row = asdict(self)
        for d, (r, its) in enumerate(zip(row.pop("momentum_residuals"), row.pop("momentum_newton_its"))):
            row[f"momentum_residual_{d}"] = r
            row[f"momentum_newton_its_{d}"] = its
        return row


@dataclass
class SolverResult:
    velocity: List[np.ndarray]
    velocity_star: List[np.ndarray]
    pressure: np.ndarray
    history: List[OuterIteration] = field(default_factory=list)

    @property
    def iterations(self):
        return len(self.history)

    def to_dataframe(self):
        """Convergence history, one row per outer iteration."""
        return pd.DataFrame([it.to_row() for it in self.history])


# ========================================================
# Solver
# ========================================================


class SegregatedSolver:
    """
    Parameters
    ----------
    mesh : FVMesh
    registry : BoundaryConditionRegistry
    config : SolverConfig
    session : SolverSession, optional
        Created from ``config.numerics.n_threads`` when omitted.
    """

    def __init__(self, mesh, registry, config, session=None):
        numerics = config.numerics
        self.mesh = mesh
        self.config = config
        self.session = session or SolverSession(numerics.n_threads)

        self.classifier = BoundaryClassifier(mesh, registry)
        self.boundary_values = BoundaryFaceValues(mesh, registry)
        self.linear_solver = make_linear_solver(numerics.linear_solver, numerics.linear_tol)

        ic = config.initial_conditions
        self.momentum = MomentumProblem(
            mesh,
            self.classifier,
            self.boundary_values,
            self.session,
            config.fluid,
            numerics,
            self.linear_solver,
            initial_velocity=ic.velocity,
            initial_pressure=ic.pressure,
        )
        self.pressure = PressureProblem(
            mesh, self.classifier, self.boundary_values, self.session, numerics, self.linear_solver
        )
        check_exchange(self.momentum.fields, self.pressure.fields, mesh.dim)
        self.corrector = VelocityCorrector(mesh, self.boundary_values, numerics.relaxation)
        self.history = []

        log.info(
            f"Segregated solver: {mesh.n_cells} cells, dim={mesh.dim}, "
            f"velocity interp '{numerics.velocity_interp_method}', "
            f"advection '{numerics.advected_interp_method}', "
            f"pressure gradient {'on' if numerics.include_pressure_gradient else 'off'}, "
            f"time derivative {'on' if numerics.include_time_derivative else 'off'}"
        )

    # --- field views ---
    @property
    def velocity(self):
        return [self.momentum.fields[name].values for name in advected_names(self.mesh.dim)]

    @property
    def velocity_star(self):
        return [self.pressure.fields[name].values for name in star_names(self.mesh.dim)]

    @property
    def pressure_field(self):
        return self.momentum.fields[PRESSURE_FIELD].values

    # --- iteration ---
    def step(self):
        """Run one outer iteration and return its :class:`OuterIteration` record."""
        start = time.perf_counter()
        dim = self.mesh.dim
        iteration = len(self.history) + 1

        # 1. momentum predictor with frozen pressure
        to_pressure, momentum_results = self.momentum.solve()
        # 2. exchange
        to_pressure.deliver(self.pressure.fields)
        # 3. pressure predictor
        pressure_result = self.pressure.solve()
        # 4./5. corrector, then hand velocity and pressure back
        fields = self.pressure.fields
        velocity, correction = self.corrector.correct(
            [fields[n].values for n in star_names(dim)],
            [fields[n].values for n in component_names("Ainv", dim)],
            fields[PRESSURE_FIELD].values,
            fields[PRESSURE_OLD_FIELD].values,
        )
        to_momentum = PressureToMomentum(tuple(velocity), fields[PRESSURE_FIELD].values.copy())
        to_momentum.deliver(self.pressure.fields)
        to_momentum.deliver(self.momentum.fields)

        record = OuterIteration(
            iteration=iteration,
            momentum_residuals=[r.residual_norm for r in momentum_results],
            momentum_newton_its=[r.iterations for r in momentum_results],
            pressure_residual=pressure_result.residual_norm,
            pressure_newton_its=pressure_result.iterations,
            max_velocity_correction=float(np.abs(correction).max()),
            converged=all(r.converged for r in momentum_results) and pressure_result.converged,
            wall_time_seconds=time.perf_counter() - start,
        )
        self.history.append(record)
        log.info(
            f"outer {iteration}: |R_mom| = "
            + ", ".join(f"{r:.3e}" for r in record.momentum_residuals)
            + f", |R_p| = {record.pressure_residual:.3e}, max |du| = {record.max_velocity_correction:.3e}"
        )
        return record

    def run(self, outer_iterations=None):
        n = self.config.numerics.outer_iterations if outer_iterations is None else outer_iterations
        for _ in range(n):
            self.step()
        return SolverResult(
            velocity=[v.copy() for v in self.velocity],
            velocity_star=[v.copy() for v in self.velocity_star],
            pressure=self.pressure_field.copy(),
            history=list(self.history),
        )

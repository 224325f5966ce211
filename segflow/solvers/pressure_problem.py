import logging

from segflow.assembly.kernels import assemble_residual
from segflow.assembly.pressure_predictor import PressurePredictor
from segflow.core.fields import AUXILIARY, PRESSURE, VELOCITY, FieldStore
from segflow.solvers.exchange import (
    PRESSURE_FIELD,
    PRESSURE_OLD_FIELD,
    advected_names,
    component_names,
    star_names,
)
from segflow.solvers.newton import column_groups, jacobian_sparsity, newton_solve

log = logging.getLogger(__name__)


class PressureProblem:
    """
    Pressure predictor sub-problem.

    Declares every exchanged field, so that a :class:`MomentumToPressure`
    message can be delivered into :attr:`fields`, and solves the pressure
    predictor residual for ``pressure``.
    """

    def __init__(self, mesh, classifier, boundary_values, session, numerics, linear_solver):
        self.mesh = mesh
        self.session = session
        self.numerics = numerics
        self.linear_solver = linear_solver
        dim = mesh.dim

        self.fields = FieldStore(mesh.n_cells)
        for name in star_names(dim) + advected_names(dim):
            self.fields.add(name, VELOCITY)
        for prefix in ("Ainv", "Hu", "RHS"):
            for name in component_names(prefix, dim):
                self.fields.add(name, AUXILIARY)
        self.fields.add(PRESSURE_OLD_FIELD, PRESSURE)
        self.fields.add(PRESSURE_FIELD, PRESSURE)

        self.kernel = PressurePredictor(
            mesh,
            classifier,
            boundary_values,
            self.fields,
            pressure=PRESSURE_FIELD,
            ainv=component_names("Ainv", dim),
            hu=component_names("Hu", dim),
        )

        if not boundary_values.pressure_dirichlet.any():
            log.warning("no boundary fixes the pressure; the pressure level is undetermined")

        self.sparsity = jacobian_sparsity(mesh, depth=2)
        self.groups = column_groups(self.sparsity)
        log.debug(f"pressure Jacobian: {len(self.groups)} colours for {mesh.n_cells} cells")

    def residual(self, x):
        self.fields[PRESSURE_FIELD].values[:] = x
        return assemble_residual(self.mesh, [self.kernel], self.session.n_threads)

    def solve(self):
        result = newton_solve(
            self.residual,
            self.fields[PRESSURE_FIELD].values.copy(),
            self.sparsity,
            self.linear_solver,
            abs_tol=self.numerics.nl_abs_tol,
            rel_tol=self.numerics.nl_rel_tol,
            max_its=self.numerics.nl_max_its,
            groups=self.groups,
            name="pressure",
        )
        self.fields[PRESSURE_FIELD].values[:] = result.x
        return result

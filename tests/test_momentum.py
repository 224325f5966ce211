import numpy as np
import pytest
from numpy.testing import assert_allclose

from segflow.assembly.kernels import assemble_residual
from segflow.assembly.momentum_predictor import (
    MomentumPredictor,
    MomentumPressureGradient,
    MomentumTimeDerivative,
)
from segflow.boundary import BoundaryConditionRegistry, BoundaryClassifier, BoundaryFaceValues
from segflow.config import FluidProperties, NumericsConfig
from segflow.core.fields import VELOCITY, FieldStore
from segflow.core.functors import ConstantFunctor
from segflow.exceptions import ConfigurationError
from segflow.linear_solvers import ScipyDirectSolver
from segflow.session import SolverSession
from segflow.solvers.momentum_problem import MomentumProblem


@pytest.fixture
def slip_channel():
    return {
        "left": {"type": "flow", "velocity": [1.0, 0.0]},
        "right": {"type": "flow", "pressure": 0.0},
        "top": {"type": "slip-wall"},
        "bottom": {"type": "slip-wall"},
    }


def _momentum_setup(make_interpolator, mesh, boundaries, mu=0.1, velocity=(1.0, 0.0)):
    setup = make_interpolator(mesh, boundaries, mu=mu, rho=1.0, velocity=velocity)
    setup.fields.add("u", VELOCITY)
    setup.fields.add("v", VELOCITY)
    return setup


def test_uniform_flow_is_a_solution(rectangle, slip_channel, make_interpolator):
    mesh = rectangle(3, 1, 3.0, 1.0)
    setup = _momentum_setup(make_interpolator, mesh, slip_channel)
    setup.fields["u"].set_value(1.0)
    kernel = MomentumPredictor(setup.rc, setup.fields, "u", 0)

    assert_allclose(assemble_residual(mesh, [kernel]), 0.0, atol=1e-14)


def test_face_residual_terms(rectangle, slip_channel, make_interpolator):
    mu = 0.1
    mesh = rectangle(3, 1, 3.0, 1.0)
    setup = _momentum_setup(make_interpolator, mesh, slip_channel, mu=mu)
    setup.fields["u"].values[:] = [0.5, 1.0, 2.0]
    kernel = MomentumPredictor(setup.rc, setup.fields, "u", 0)
    kernel.residual_setup()

    inlet = mesh.boundary_faces(mesh.boundary_id("left"))[0]
    # inflow convects the boundary value; diffusion sees the jump over d_Cb
    assert_allclose(kernel.face_residual(inlet), -1.0 - mu * (1.0 - 0.5) / 0.5)

    outlet = mesh.boundary_faces(mesh.boundary_id("right"))[0]
    assert_allclose(kernel.face_residual(outlet), 2.0)

    top = mesh.boundary_faces(mesh.boundary_id("top"))[0]
    assert kernel.skip_for_boundary(top)
    assert not kernel.skip_for_boundary(inlet)


def test_wall_faces_are_not_skipped(rectangle, channel_boundaries, make_interpolator):
    mu = 0.2
    mesh = rectangle(2, 1, 2.0, 1.0)
    setup = _momentum_setup(make_interpolator, mesh, channel_boundaries, mu=mu)
    setup.fields["u"].set_value(3.0)
    kernel = MomentumPredictor(setup.rc, setup.fields, "u", 0)
    kernel.residual_setup()

    wall = mesh.boundary_faces(mesh.boundary_id("bottom"))[0]
    assert not kernel.skip_for_boundary(wall)
    assert_allclose(kernel.face_velocity(wall), [0.0, 0.0])
    assert_allclose(kernel.face_residual(wall), -mu * (0.0 - 3.0) / 0.5)


def test_predictor_validation(rectangle, slip_channel, make_interpolator):
    mesh = rectangle(2, 1, 2.0, 1.0)
    setup = _momentum_setup(make_interpolator, mesh, slip_channel)

    with pytest.raises(ConfigurationError, match="outside a 2-D mesh"):
        MomentumPredictor(setup.rc, setup.fields, "u", 2)
    with pytest.raises(ConfigurationError, match="must be a velocity field"):
        MomentumPredictor(setup.rc, setup.fields, "pressure", 0)


def test_pressure_gradient_kernel(rectangle, slip_channel, make_interpolator):
    mesh = rectangle(3, 1, 3.0, 1.0)
    setup = _momentum_setup(make_interpolator, mesh, slip_channel)
    setup.fields["pressure"].values[:] = mesh.cell_centers[:, 0]

    px = MomentumPressureGradient(mesh, setup.boundary_values, setup.fields, "pressure", 0)
    py = MomentumPressureGradient(mesh, setup.boundary_values, setup.fields, "pressure", 1)

    # interior cell: V dp/dx with V = 1
    assert_allclose(assemble_residual(mesh, [px])[1], 1.0)
    assert_allclose(assemble_residual(mesh, [py]), 0.0, atol=1e-14)
    assert not px.skip_for_boundary(mesh.boundary_faces()[0])


def test_time_derivative_kernel(rectangle):
    mesh = rectangle(2, 1, 4.0, 1.0)
    fields = FieldStore(mesh.n_cells)
    fields.add("u", VELOCITY, values=[1.0, 3.0])
    fields.add("u_old", VELOCITY, values=[0.5, 3.0])

    kernel = MomentumTimeDerivative(mesh, fields, "u", "u_old", ConstantFunctor(2.0), dt=0.1)
    assert_allclose(assemble_residual(mesh, [kernel]), [2.0 * 2.0 * 0.5 / 0.1, 0.0])

    for dt in (None, 0.0, -1.0):
        with pytest.raises(ConfigurationError, match="positive time step"):
            MomentumTimeDerivative(mesh, fields, "u", "u_old", ConstantFunctor(1.0), dt=dt)


def test_threaded_assembly_matches_serial(rectangle, channel_boundaries, make_interpolator):
    mesh = rectangle(6, 4, 3.0, 1.0)
    residuals = []
    for n_threads in (1, 3):
        setup = make_interpolator(mesh, channel_boundaries, mu=0.05, velocity=(0.7, 0.1), n_threads=n_threads)
        setup.fields.add("u", VELOCITY, values=np.linspace(0.0, 1.0, mesh.n_cells))
        setup.fields["pressure"].values[:] = np.cos(mesh.cell_centers[:, 0])
        kernel = MomentumPredictor(setup.rc, setup.fields, "u", 0)
        residuals.append(assemble_residual(mesh, [kernel], n_threads=n_threads))
        if n_threads == 3:
            assert setup.session.cache.n_computations >= mesh.n_cells

    assert_allclose(residuals[1], residuals[0], rtol=1e-12, atol=1e-14)


def _problem(rectangle, boundaries, **numerics):
    mesh = rectangle(5, 2, 5.0, 1.0)
    registry = BoundaryConditionRegistry.from_dict(boundaries)
    classifier = BoundaryClassifier(mesh, registry)
    boundary_values = BoundaryFaceValues(mesh, registry)
    session = SolverSession()
    problem = MomentumProblem(
        mesh,
        classifier,
        boundary_values,
        session,
        FluidProperties(rho=1.0, mu=0.1),
        NumericsConfig(**numerics),
        ScipyDirectSolver(),
        initial_velocity=(1.0, 0.0),
    )
    return mesh, problem


def test_canonical_configuration_has_no_pressure_or_time_terms(rectangle, slip_channel):
    _, problem = _problem(rectangle, slip_channel)
    for kernels in problem.kernels:
        assert [type(k) for k in kernels] == [MomentumPredictor]
    assert "u_old" not in problem.fields

    _, problem = _problem(
        rectangle, slip_channel, include_pressure_gradient=True, include_time_derivative=True, dt=0.5
    )
    assert [type(k) for k in problem.kernels[0]] == [
        MomentumPredictor,
        MomentumPressureGradient,
        MomentumTimeDerivative,
    ]
    assert "u_old" in problem.fields and "v_old" in problem.fields


def test_momentum_problem_solve(rectangle, slip_channel):
    mesh, problem = _problem(rectangle, slip_channel)
    problem.fields["u"].set_value(0.0)
    message, results = problem.solve()

    assert all(r.converged for r in results)
    assert_allclose(message.velocity_star[0], 1.0, atol=1e-6)
    assert_allclose(message.velocity_star[1], 0.0, atol=1e-6)

    # inlet cells: inlet viscous term, east outflow and viscous term, viscous term to the other row
    inlet_cells = [f.elem for f in mesh.boundary_faces(mesh.boundary_id("left"))]
    volume = mesh.cell_volumes[0]
    for cell in inlet_cells:
        a = 0.1 * 0.5 / 0.5 + 1.0 * 0.5 + 0.1 * 0.5 / 1.0 + 0.1 * 1.0 / 0.5
        assert_allclose(message.ainv[0][cell], volume / a)

    # b = J u* - R(u*)
    for d, result in enumerate(results):
        rhs = result.jacobian @ result.x - problem.residual(d, result.x)
        assert_allclose(message.rhs[d], rhs, atol=1e-10)
    assert_allclose(message.pressure_old, 0.0)
    assert problem.session.cache.n_computations > 0

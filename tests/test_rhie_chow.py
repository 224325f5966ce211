import numpy as np
import pytest
from numpy.testing import assert_allclose

from segflow.assembly.rhie_chow import RhieChowInterpolator
from segflow.core.fields import AUXILIARY, PRESSURE, VELOCITY, FieldStore
from segflow.exceptions import ConfigurationError, InternalInvariantViolation
from segflow.mesh import FVMesh, generate_rectangle


def test_two_cell_diffusion_coefficient(rectangle, slip_boundaries, make_interpolator):
    """Zero velocity: each cell's coefficient is mu * A / h in every direction."""
    h, area, mu = 0.4, 1.5, 0.3
    mesh = rectangle(2, 1, 2 * h, area)
    setup = make_interpolator(mesh, slip_boundaries, mu=mu, rho=7.0)

    for cell in range(2):
        assert_allclose(setup.rc.coefficient(cell), [mu * area / h, mu * area / h], rtol=1e-14)


def test_no_slip_wall_coefficient(rectangle, slip_boundaries, make_interpolator):
    """A no-slip wall adds mu * A / d * (1 - n_i^2); nothing along the wall normal."""
    dx, dy, mu = 2.0, 1.0, 0.05
    mesh = rectangle(1, 1, dx, dy)
    boundaries = dict(slip_boundaries, bottom={"type": "no-slip-wall"})
    setup = make_interpolator(mesh, boundaries, mu=mu)

    wall_distance = dy / 2
    assert_allclose(setup.rc.coefficient(0), [mu * dx / wall_distance, 0.0], atol=1e-14)

    wall = mesh.boundary_faces(mesh.boundary_id("bottom"))[0]
    assert_allclose(setup.rc._face_coefficient(0, wall), [mu * dx / wall_distance, 0.0], atol=1e-14)


def test_symmetry_and_flow_coefficients(rectangle, slip_boundaries, make_interpolator):
    mu = 0.1
    mesh = rectangle(1, 1, 1.0, 1.0)
    boundaries = dict(
        slip_boundaries,
        top={"type": "symmetry"},
        left={"type": "flow", "velocity": [1.0, 0.0]},
        right={"type": "fully-developed-flow"},
    )
    setup = make_interpolator(mesh, boundaries, mu=mu, rho=1.0, velocity=(1.0, 0.0))
    rc = setup.rc

    top = mesh.boundary_faces(mesh.boundary_id("top"))[0]
    assert_allclose(rc._face_coefficient(0, top), [0.0, 2.0 * mu / 0.5])

    # inflow: upwind takes the boundary value, only the viscous term remains
    left = mesh.boundary_faces(mesh.boundary_id("left"))[0]
    assert_allclose(rc._face_coefficient(0, left), [mu / 0.5, mu / 0.5])

    # fully-developed outflow: advection only
    right = mesh.boundary_faces(mesh.boundary_id("right"))[0]
    assert_allclose(rc._face_coefficient(0, right), [1.0, 1.0])


def test_advective_coefficient_sign(rectangle, slip_boundaries, make_interpolator):
    """Advective contributions follow the flow direction and may be negative."""
    mesh = rectangle(2, 1, 2.0, 1.0)
    setup = make_interpolator(mesh, slip_boundaries, mu=0.0, rho=1.0, velocity=(1.0, 0.0))
    face = mesh.interior_faces()[0]
    upstream = face.elem if mesh.cell_centers[face.elem, 0] < mesh.cell_centers[face.neighbor, 0] else face.neighbor
    downstream = face.neighbor if upstream == face.elem else face.elem

    assert_allclose(setup.rc.coefficient(upstream), [1.0, 1.0])
    assert_allclose(setup.rc.coefficient(downstream), [0.0, 0.0])

    setup = make_interpolator(
        mesh, slip_boundaries, mu=0.0, rho=1.0, velocity=(1.0, 0.0), advected_interp_method="average"
    )
    assert_allclose(setup.rc.coefficient(downstream), [-0.5, -0.5])


def test_coefficient_uses_cache(rectangle, slip_boundaries, make_interpolator):
    mesh = rectangle(3, 2, 3.0, 2.0)
    setup = make_interpolator(mesh, slip_boundaries)
    cache = setup.session.cache

    first = setup.rc.coefficient(4)
    second = setup.rc.coefficient(4)
    assert first is second
    assert cache.n_computations == 1

    cache.clear()
    third = setup.rc.coefficient(4)
    assert cache.n_computations == 2
    assert third is not first
    assert_allclose(third, first)


def test_face_coefficient_rejects_foreign_face(rectangle, slip_boundaries, make_interpolator):
    mesh = rectangle(3, 1, 3.0, 1.0)
    setup = make_interpolator(mesh, slip_boundaries)
    foreign = next(f for f in mesh.faces_of(2) if 0 not in (f.elem, f.neighbor))
    with pytest.raises(InternalInvariantViolation, match="not incident to element 0"):
        setup.rc._face_coefficient(0, foreign)


def test_divide_by_zero_guard(rectangle, slip_boundaries, make_interpolator):
    mesh = rectangle(2, 1, 2.0, 1.0)
    setup = make_interpolator(mesh, slip_boundaries, mu=0.0, rho=0.0)

    assert_allclose(setup.rc.coefficient(0), [0.0, 0.0])
    with pytest.raises(InternalInvariantViolation, match="zero Rhie-Chow coefficient"):
        setup.rc.d_coefficient(0)
    with pytest.raises(InternalInvariantViolation):
        setup.rc.interpolate(mesh.interior_faces()[0])


def test_rhie_chow_reduces_divergence(rectangle, slip_boundaries, make_interpolator, face_between):
    """
    A pressure step between cells 5 and 6 of a row; the cell velocity carries
    the collocated pressure-gradient imprint u = U - D dp/dx. The corrected face
    velocities conserve mass in cell 4, the plain average does not.
    """
    mesh = rectangle(10, 1, 10.0, 1.0)
    pressure = np.where(np.arange(10) <= 5, 0.0, 1.0)
    setup = make_interpolator(mesh, slip_boundaries, mu=1.0, rho=0.0, pressure=0.0)
    setup.fields["pressure"].values[:] = pressure
    rc = setup.rc
    rc.refresh()

    d = np.array([rc.d_coefficient(c)[0] for c in range(mesh.n_cells)])
    assert_allclose(d[1:-1], 0.5)
    grad = rc.pressure_gradients
    setup.fields["u_adv"].values[:] = 1.0 - d * grad[:, 0]
    assert_allclose(setup.fields["u_adv"].values[4:8], [1.0, 0.75, 0.75, 1.0])

    def divergence(cell, method):
        total = 0.0
        for face in mesh.faces_of(cell):
            if face.on_boundary:
                continue
            sign = 1.0 if face.elem == cell else -1.0
            total += sign * np.dot(rc.interpolate(face, method=method), face.normal) * face.area
        return total

    assert_allclose(divergence(4, "average"), -0.125)
    assert_allclose(divergence(4, "rc"), 0.0, atol=1e-14)
    assert abs(divergence(4, "rc")) < abs(divergence(4, "average"))

    face = face_between(mesh, 4, 5)
    assert_allclose(rc.interpolate(face, method="rc"), [1.0, 0.0])


def test_interpolate_on_boundaries(rectangle, channel_boundaries, make_interpolator):
    mesh = rectangle(3, 2, 3.0, 1.0)
    setup = make_interpolator(mesh, channel_boundaries, velocity=(0.5, 0.0))
    inlet = mesh.boundary_faces(mesh.boundary_id("left"))[0]
    outlet = mesh.boundary_faces(mesh.boundary_id("right"))[0]
    wall = mesh.boundary_faces(mesh.boundary_id("top"))[0]

    assert_allclose(setup.rc.interpolate(inlet), [1.0, 0.0])
    assert_allclose(setup.rc.interpolate(outlet), [0.5, 0.0])
    with pytest.raises(InternalInvariantViolation, match="not a flow boundary"):
        setup.rc.interpolate(wall)


def test_interpolator_configuration_errors(rectangle, slip_boundaries, make_interpolator):
    mesh = rectangle(2, 1, 2.0, 1.0)
    setup = make_interpolator(mesh, slip_boundaries)
    args = (setup.session, mesh, setup.classifier, setup.boundary_values)

    with pytest.raises(ConfigurationError, match="velocity component 'v' is required"):
        RhieChowInterpolator(*args, setup.fields, velocity=("u_adv",))

    fields = FieldStore(mesh.n_cells)
    fields.add("u", VELOCITY)
    fields.add("v", VELOCITY)
    fields.add("p", AUXILIARY)
    with pytest.raises(ConfigurationError, match="must be a pressure field"):
        RhieChowInterpolator(*args, fields, velocity=("u", "v"), pressure="p")

    fields.add("pressure", PRESSURE)
    with pytest.raises(ConfigurationError, match="unknown velocity interpolation method"):
        RhieChowInterpolator(*args, fields, velocity=("u", "v"), velocity_interp_method="linear")


def test_axisymmetric_coefficients_and_correction(slip_boundaries, make_interpolator):
    """
    RZ row of two unit cells at r = 1.5 and 2.5, zero-velocity inflow on the
    left. Areas scale with 2 pi r_f and volumes with 2 pi r_c, so
    a = (8 pi, 4 pi), D = (0.375, 1.25) and the pressure step p = (0, 1)
    gives the face correction -0.8125 * (1.0 - 0.5).
    """
    mesh = FVMesh(*generate_rectangle(2, 1, 2.0, 1.0, origin=(1.0, 0.0)), "RZ")
    boundaries = dict(slip_boundaries, left={"type": "flow", "velocity": [0.0, 0.0]})
    setup = make_interpolator(mesh, boundaries, mu=1.0, rho=1.0)
    setup.fields["pressure"].values[:] = [0.0, 1.0]
    rc = setup.rc

    assert_allclose(rc.coefficient(0), [8.0 * np.pi, 8.0 * np.pi])
    assert_allclose(rc.coefficient(1), [4.0 * np.pi, 4.0 * np.pi])
    for cell in range(mesh.n_cells):
        expected = mesh.cell_volumes[cell] * 2.0 * np.pi * mesh.cell_centers[cell, 0] / rc.coefficient(cell)
        assert_allclose(rc.d_coefficient(cell), expected)
    assert_allclose(rc.d_coefficient(0), [0.375, 0.375])
    assert_allclose(rc.d_coefficient(1), [1.25, 1.25])

    face = mesh.interior_faces()[0]
    assert_allclose(rc.interpolate(face, method="average"), [0.0, 0.0])
    assert_allclose(rc.interpolate(face, method="rc"), [-0.40625, 0.0], atol=1e-14)

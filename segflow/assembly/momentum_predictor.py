"""
Momentum predictor residual for one velocity component.

The predictor itself is convection + diffusion. The pressure gradient and the
time derivative are separate kernels a sub-problem adds only when they are
enabled, so the plain predictor is the canonical configuration.
"""

from segflow.assembly.kernels import FVElementalKernel, FVFluxKernel
from segflow.core.fields import PRESSURE, VELOCITY
from segflow.discretization.interpolation import interpolate, linear_interpolate
from segflow.exceptions import ConfigurationError


def _check_component(component, dim):
    if not 0 <= component < dim:
        raise ConfigurationError(f"momentum component {component} is outside a {dim}-D mesh")
    return component


class MomentumPredictor(FVFluxKernel):
    """
    Convection and diffusion of ``rho * u_i``.

    Parameters
    ----------
    interpolator : RhieChowInterpolator
        Supplies the advecting face velocity, material properties and
        boundary classification.
    fields : FieldStore
    variable : str
        Name of the transported velocity component (the unknown).
    component : int
        0, 1 or 2 for x, y or z.
    """

    def __init__(self, interpolator, fields, variable, component):
        self.rc = interpolator
        self.mesh = interpolator.mesh
        self.classifier = interpolator.classifier
        self.boundary_values = interpolator.boundary_values
        self.component = _check_component(component, self.mesh.dim)
        self._var = fields.require(variable, VELOCITY)

    def residual_setup(self):
        self.rc.refresh()

    def skip_for_boundary(self, face):
        if self.classifier.is_flow(face.boundary_id):
            return False
        return not self.boundary_values.velocity_dirichlet[face.index]

    def face_velocity(self, face, tid=0):
        # walls carry their own velocity, with no flow through them
        if face.on_boundary and not self.classifier.is_flow(face.boundary_id):
            return self.rc.boundary_velocity(face)
        return self.rc.interpolate(face, tid)

    def face_residual(self, face, tid=0):
        u = self._var.values
        rho = self.rc.rho
        v_face = self.face_velocity(face, tid)

        elem_value = rho.elem(face.elem) * u[face.elem]
        if face.on_boundary:
            u_b = self.boundary_values.velocity(face, self.component, u)
            neighbor_value = rho.face(face) * u_b
        else:
            neighbor_value = rho.elem(face.neighbor) * u[face.neighbor]
        advected = interpolate(
            self.rc.advected_interp_method, elem_value, neighbor_value, face, True, v_face
        )
        convection = face.normal.dot(v_face) * advected

        mu_face = self.rc.mu.face(face)
        if not face.on_boundary:
            normal_gradient = (u[face.neighbor] - u[face.elem]) / face.distance
        elif self.boundary_values.velocity_dirichlet[face.index]:
            normal_gradient = (u_b - u[face.elem]) / face.distance
        else:
            normal_gradient = 0.0
        diffusion = -mu_face * normal_gradient

        return convection + diffusion


class MomentumPressureGradient(FVFluxKernel):
    """Pressure force ``p_f n_i`` on every face of the element."""

    def __init__(self, mesh, boundary_values, fields, pressure, component):
        self.mesh = mesh
        self.boundary_values = boundary_values
        self.component = _check_component(component, mesh.dim)
        self._pressure = fields.require(pressure, PRESSURE)

    def skip_for_boundary(self, face):
        return False

    def face_residual(self, face, tid=0):
        p = self._pressure.values
        if face.on_boundary:
            p_face = self.boundary_values.pressure(face, p)
        else:
            p_face = linear_interpolate(face, p[face.elem], p[face.neighbor])
        return p_face * face.normal[self.component]


class MomentumTimeDerivative(FVElementalKernel):
    """Backward-Euler inertia ``rho V (u - u_old) / dt``."""

    def __init__(self, mesh, fields, variable, variable_old, rho, dt):
        if dt is None or dt <= 0.0:
            raise ConfigurationError(f"time derivative needs a positive time step, got {dt}")
        self.mesh = mesh
        self.dt = dt
        self.rho = rho
        self._var = fields.require(variable, VELOCITY)
        self._old = fields.require(variable_old, VELOCITY)

    def elem_residual(self, cell):
        volume = self.mesh.cell_volumes[cell] * self.mesh.cell_coords[cell]
        return self.rho.elem(cell) * volume * (self._var.values[cell] - self._old.values[cell]) / self.dt

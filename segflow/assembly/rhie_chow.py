"""
Rhie–Chow momentum coefficients and corrected face velocities.

The coefficient of an element is the diagonal of its discrete momentum
equation, summed face by face (advection + diffusion) with one formula per
boundary category. Coefficients are memoised in the session's
:class:`CoefficientCache`; the interpolator turns them into
D = V / a and applies the Rhie–Chow pressure-gradient correction

    v_f = v_bar_f - D_f (grad p_f - grad p_bar_f)

on interior faces.
"""

import logging
from functools import reduce

import numpy as np

from segflow.core.fields import PRESSURE, VELOCITY
from segflow.core.functors import as_functor
from segflow.discretization.gradient.gauss import (
    compute_cell_gradients,
    corrected_face_gradient,
    uncorrected_face_gradient,
)
from segflow.discretization.interpolation import (
    ADVECTED_INTERP_METHODS,
    AVERAGE,
    RHIE_CHOW,
    UPWIND,
    VELOCITY_INTERP_METHODS,
    check_method,
    interp_coeffs,
    linear_interpolate,
)
from segflow.exceptions import ConfigurationError, InternalInvariantViolation

log = logging.getLogger(__name__)

VELOCITY_ROLES = ("u", "v", "w")


def resolve_velocity(fields, velocity, dim):
    """Look up the velocity component fields a ``dim``-D mesh needs."""
    velocity = tuple(velocity or ())
    for d, role in enumerate(VELOCITY_ROLES[:dim]):
        if d >= len(velocity) or velocity[d] is None:
            raise ConfigurationError(f"velocity component '{role}' is required on a {dim}-D mesh")
    return [fields.require(name, VELOCITY) for name in velocity[:dim]]


class RhieChowInterpolator:
    """
    Coefficient calculator and corrected face-velocity interpolator.

    Parameters
    ----------
    session : SolverSession
        Owner of the coefficient cache.
    mesh : FVMesh
    classifier : BoundaryClassifier
    boundary_values : BoundaryFaceValues
    fields : FieldStore
        Storage holding the advecting velocity and the pressure.
    velocity : sequence of str
        Names of the advecting velocity components (u, v[, w]).
    pressure : str
        Name of the pressure field; must be a pressure-kind field.
    mu, rho : float, array or functor
        Dynamic viscosity and density.
    velocity_interp_method : {"rc", "average"}
    advected_interp_method : {"upwind", "average"}
    """

    def __init__(
        self,
        session,
        mesh,
        classifier,
        boundary_values,
        fields,
        velocity=("u", "v"),
        pressure="pressure",
        mu=1.0,
        rho=1.0,
        velocity_interp_method=RHIE_CHOW,
        advected_interp_method=UPWIND,
    ):
        self.session = session
        self.mesh = mesh
        self.classifier = classifier
        self.boundary_values = boundary_values
        self.velocity_interp_method = check_method(
            velocity_interp_method, VELOCITY_INTERP_METHODS, "velocity interpolation method"
        )
        self.advected_interp_method = check_method(
            advected_interp_method, ADVECTED_INTERP_METHODS, "advected interpolation method"
        )
        self.dim = mesh.dim
        self._velocity = resolve_velocity(fields, velocity, self.dim)
        self._pressure = fields.require(pressure, PRESSURE)
        self.mu = as_functor(mu, "viscosity")
        self.rho = as_functor(rho, "density")
        self._pressure_grads = None

    # --- field access ---
    def refresh(self):
        """Recompute the pressure cell gradients from the current pressure field."""
        p = self._pressure.values
        self._pressure_grads = compute_cell_gradients(
            self.mesh.data, p, self.boundary_values.pressure_face_array(p)
        )

    @property
    def pressure_gradients(self):
        if self._pressure_grads is None:
            self.refresh()
        return self._pressure_grads

    def cell_velocity(self, cell):
        return np.array([comp.values[cell] for comp in self._velocity])

    def boundary_velocity(self, face):
        return np.array(
            [self.boundary_values.velocity(face, i, comp.values) for i, comp in enumerate(self._velocity)]
        )

    # --- coefficients ---
    def coefficient(self, elem, tid=0):
        return self.session.cache.lookup(tid, elem, self.compute_coefficient)

    def compute_coefficient(self, elem):
        return reduce(
            lambda acc, face: acc + self._face_coefficient(elem, face),
            self.mesh.faces_of(elem),
            np.zeros(self.dim),
        )

    def _face_coefficient(self, elem, face):
        elem_has_info = face.elem_has_info(elem)
        if not elem_has_info and face.neighbor != elem:
            raise InternalInvariantViolation(
                f"face {face.index} (elem {face.elem}, neighbor {face.neighbor}) "
                f"is not incident to element {elem}"
            )
        normal = face.normal if elem_has_info else -face.normal
        surface = face.area * face.coord
        rc_centroid = face.elem_centroid if elem_has_info else face.neighbor_centroid
        mu = self.mu.face(face)

        if face.on_boundary:
            bid = face.boundary_id
            if bid in self.classifier.no_slip:
                dist = abs(np.dot(face.centroid - rc_centroid, normal))
                return mu * surface / dist * (1.0 - normal**2)
            if bid in self.classifier.slip:
                return np.zeros(self.dim)
            if bid in self.classifier.flow:
                v_face = self.boundary_velocity(face)
                rho = self.rho.face(face)
                temp = self._advective_coefficient(face, True, v_face, rho, normal * surface)
                if bid not in self.classifier.fully_developed:
                    temp += mu * surface / face.distance
                return np.full(self.dim, temp)
            if bid in self.classifier.symmetry:
                dist = abs(np.dot(face.centroid - rc_centroid, normal))
                return 2.0 * mu * surface / dist * normal**2
            raise ConfigurationError(
                f"boundary '{self.mesh.boundary_name(bid)}' is not covered by any recognized condition"
            )

        v_face = linear_interpolate(face, self.cell_velocity(face.elem), self.cell_velocity(face.neighbor))
        rho = self.rho.face(face)
        temp = self._advective_coefficient(face, elem_has_info, v_face, rho, normal * surface)
        temp += mu * surface / np.linalg.norm(face.neighbor_centroid - face.elem_centroid)
        return np.full(self.dim, temp)

    def _advective_coefficient(self, face, elem_has_info, v_face, rho, area_vector):
        w_elem, _ = interp_coeffs(self.advected_interp_method, face, elem_has_info, v_face)
        return rho * np.dot(v_face, area_vector) * w_elem

    def d_coefficient(self, elem, tid=0):
        """D = V * coord / a per component."""
        a = self.coefficient(elem, tid)
        if np.any(a == 0.0):
            raise InternalInvariantViolation(
                f"zero Rhie-Chow coefficient {a} on element {elem}; cannot form V / a"
            )
        return self.mesh.cell_volumes[elem] * self.mesh.cell_coords[elem] / a

    # --- face velocity ---
    def interpolate(self, face, tid=0, method=None):
        """Advecting velocity on ``face``.

        Flow boundaries return the boundary velocity. Interior faces return
        the linear average, corrected with the Rhie–Chow term when
        ``method`` (default: the configured one) is ``"rc"``.
        """
        method = method or self.velocity_interp_method
        if face.on_boundary:
            if face.boundary_id not in self.classifier.flow:
                raise InternalInvariantViolation(
                    f"face velocity requested on boundary '{self.mesh.boundary_name(face.boundary_id)}', "
                    f"which is not a flow boundary"
                )
            return self.boundary_velocity(face)

        velocity = linear_interpolate(face, self.cell_velocity(face.elem), self.cell_velocity(face.neighbor))
        if method == AVERAGE:
            return velocity

        grads = self.pressure_gradients
        p = self._pressure.values
        grad_p = corrected_face_gradient(face, p, grads)
        unc_grad_p = uncorrected_face_gradient(face, grads)

        D_face = linear_interpolate(face, self.d_coefficient(face.elem, tid), self.d_coefficient(face.neighbor, tid))
        return velocity - D_face * (grad_p - unc_grad_p)

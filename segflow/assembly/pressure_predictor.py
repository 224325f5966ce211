"""
Pressure predictor residual.

Per face, with Ainv and Hu interpolated linearly from the element and its
neighbor::

    r_f = sum_i Ainv_f,i (dp/dx_i)_f n_i + Hu_f . n

On boundary faces the neighbor value falls back to the element value. The
residual is evaluated on boundary faces that fix the pressure and on flow
boundaries that fix the velocity; the latter contribute the prescribed flux
``-u_b . n`` only.
"""

import numpy as np

from segflow.assembly.kernels import FVFluxKernel
from segflow.core.fields import PRESSURE
from segflow.discretization.gradient.gauss import compute_cell_gradients, corrected_face_gradient
from segflow.discretization.interpolation import linear_interpolate
from segflow.exceptions import ConfigurationError

COMPONENT_SUFFIXES = ("x", "y", "z")


def _component_fields(fields, names, dim, what):
    names = tuple(names or ())
    if len(names) < dim:
        missing = [f"{what}_{s}" for s in COMPONENT_SUFFIXES[len(names):dim]]
        raise ConfigurationError(f"{what} fields {missing} are required on a {dim}-D mesh")
    return [fields.require(name) for name in names[:dim]]


def neighbor_value(values, face, elem_value):
    """Value on the far side of ``face``; ``elem_value`` where there is none."""
    if face.on_boundary:
        return elem_value
    return values[face.neighbor]


class PressurePredictor(FVFluxKernel):
    """
    Parameters
    ----------
    mesh : FVMesh
    classifier : BoundaryClassifier
    boundary_values : BoundaryFaceValues
    fields : FieldStore
    pressure : str
        The unknown; must be a pressure-kind field.
    ainv, hu : sequence of str
        Per-component inverse-coefficient and momentum-source fields.
    """

    def __init__(
        self,
        mesh,
        classifier,
        boundary_values,
        fields,
        pressure="pressure",
        ainv=("Ainv_x", "Ainv_y"),
        hu=("Hu_x", "Hu_y"),
    ):
        self.mesh = mesh
        self.classifier = classifier
        self.boundary_values = boundary_values
        self._pressure = fields.require(pressure, PRESSURE)
        self._ainv = _component_fields(fields, ainv, mesh.dim, "Ainv")
        self._hu = _component_fields(fields, hu, mesh.dim, "Hu")
        self._grads = None

    def residual_setup(self):
        p = self._pressure.values
        self._grads = compute_cell_gradients(
            self.mesh.data, p, self.boundary_values.pressure_face_array(p)
        )

    def _prescribed_inflow(self, face):
        return (
            self.classifier.is_flow(face.boundary_id)
            and self.boundary_values.velocity_dirichlet[face.index]
            and not self.boundary_values.pressure_dirichlet[face.index]
        )

    def skip_for_boundary(self, face):
        if self.boundary_values.pressure_dirichlet[face.index]:
            return False
        return not self._prescribed_inflow(face)

    def _interp(self, field, face):
        elem_value = field.values[face.elem]
        return linear_interpolate(face, elem_value, neighbor_value(field.values, face, elem_value))

    def face_residual(self, face, tid=0):
        if face.on_boundary and self._prescribed_inflow(face):
            return -face.normal.dot(self.boundary_values.velocity_values[face.index])

        p = self._pressure.values
        boundary_value = None
        if face.on_boundary:
            boundary_value = self.boundary_values.pressure(face, p)
        grad_p = corrected_face_gradient(face, p, self._grads, boundary_value)

        ainv_face = np.array([self._interp(f, face) for f in self._ainv])
        hu_face = np.array([self._interp(f, face) for f in self._hu])
        return np.sum(ainv_face * grad_p * face.normal) + hu_face.dot(face.normal)

"""Material property functors (viscosity, density).

A functor is evaluated either on an element or on a face. Face evaluation is
two-sided linear interpolation on interior faces and falls back to the element
value on boundary faces or when a one-sided value is asked for.
"""

import numpy as np

from segflow.exceptions import ConfigurationError


class ConstantFunctor:
    def __init__(self, value):
        self.value = float(value)

    def elem(self, cell):
        return self.value

    def face(self, face, two_sided=True):
        return self.value

    def __repr__(self):
        return f"ConstantFunctor({self.value})"


class CellFunctor:
    """Per-element values, linearly interpolated to faces."""

    def __init__(self, values):
        self.values = np.asarray(values, dtype=np.float64)

    def elem(self, cell):
        return self.values[cell]

    def face(self, face, two_sided=True):
        if face.on_boundary or not two_sided:
            return self.values[face.elem]
        return face.g_elem * self.values[face.elem] + face.g_neighbor * self.values[face.neighbor]


def as_functor(value, name="property"):
    if isinstance(value, (ConstantFunctor, CellFunctor)):
        return value
    if np.isscalar(value):
        return ConstantFunctor(value)
    values = np.asarray(value, dtype=np.float64)
    if values.ndim != 1:
        raise ConfigurationError(f"{name}: expected a scalar or one value per cell")
    return CellFunctor(values)

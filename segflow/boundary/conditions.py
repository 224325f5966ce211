"""Boundary-condition registry.

Conditions are declared per boundary name, usually in the ``boundaries``
section of a YAML case file::

    boundaries:
      left:
        - type: flow
          velocity: [1.0, 0.0]
      right:
        - type: flow
          pressure: 0.0
      top:
        - type: no-slip-wall
      bottom:
        - type: no-slip-wall

Values may be numbers or strings evaluated with ``np`` and the face centroid
``x`` in scope, e.g. ``"4*x[1]*(1-x[1])"`` for a parabolic inlet.
"""

import logging
from dataclasses import dataclass

import numpy as np
import yaml

from segflow.exceptions import ConfigurationError

log = logging.getLogger(__name__)

FLOW = "flow"
FULLY_DEVELOPED_FLOW = "fully-developed-flow"
NO_SLIP_WALL = "no-slip-wall"
SLIP_WALL = "slip-wall"
SYMMETRY = "symmetry"

BC_CATEGORIES = (FLOW, FULLY_DEVELOPED_FLOW, NO_SLIP_WALL, SLIP_WALL, SYMMETRY)
_CONDITION_KEYS = {"type", "velocity", "pressure"}


def _evaluate_bc_value_at_face(raw_value, x_f, field_name, boundary_name):
    """
    Evaluates a boundary condition value which can be a scalar, list, or string expression.
    String expressions are evaluated with 'np' (NumPy) and 'x' (face center coordinates) available.
    """
    if isinstance(raw_value, str):
        try:
            return eval(raw_value, {"np": np, "x": x_f})
        except Exception as e:
            raise ConfigurationError(
                f"failed to evaluate {field_name} expression '{raw_value}' on boundary "
                f"'{boundary_name}' at x = {x_f}: {e}"
            ) from e
    if isinstance(raw_value, (list, tuple)):
        return [
            _evaluate_bc_value_at_face(item, x_f, f"{field_name}[{i}]", boundary_name)
            for i, item in enumerate(raw_value)
        ]
    return raw_value


@dataclass(frozen=True)
class BoundaryCondition:
    """One condition attached to a boundary.

    ``velocity`` makes the velocity Dirichlet (a list with one entry per
    component, or an expression returning such a list); ``pressure`` makes the
    pressure Dirichlet. A no-slip wall is always velocity-Dirichlet, with zero
    wall velocity unless ``velocity`` is given.
    """

    category: str
    velocity: object = None
    pressure: object = None

    def __post_init__(self):
        if self.category not in BC_CATEGORIES:
            raise ConfigurationError(
                f"unrecognized boundary condition type '{self.category}', "
                f"expected one of {BC_CATEGORIES}"
            )
        if self.velocity is not None and self.category in (SLIP_WALL, SYMMETRY):
            raise ConfigurationError(f"a {self.category} boundary cannot prescribe a velocity")

    @property
    def is_flow(self):
        return self.category in (FLOW, FULLY_DEVELOPED_FLOW)

    @property
    def is_fully_developed(self):
        return self.category == FULLY_DEVELOPED_FLOW

    @property
    def has_dirichlet_velocity(self):
        return self.velocity is not None or self.category == NO_SLIP_WALL

    @property
    def has_dirichlet_pressure(self):
        return self.pressure is not None

    def velocity_at(self, x_f, dim, boundary_name=""):
        value = np.zeros(dim)
        if self.velocity is None:
            return value
        evaluated = _evaluate_bc_value_at_face(self.velocity, x_f, "velocity", boundary_name)
        components = np.atleast_1d(np.asarray(evaluated, dtype=np.float64))
        if len(components) > dim:
            raise ConfigurationError(
                f"boundary '{boundary_name}': velocity has {len(components)} components on a {dim}-D mesh"
            )
        value[: len(components)] = components
        return value

    def pressure_at(self, x_f, boundary_name=""):
        return float(_evaluate_bc_value_at_face(self.pressure, x_f, "pressure", boundary_name))


class BoundaryConditionRegistry:
    """Boundary name -> list of :class:`BoundaryCondition`."""

    def __init__(self, conditions=None):
        self._conditions = {}
        for name, conds in (conditions or {}).items():
            for cond in conds:
                self.add(name, cond)

    @classmethod
    def from_dict(cls, boundaries):
        registry = cls()
        for name, entries in (boundaries or {}).items():
            if isinstance(entries, dict):
                entries = [entries]
            if not isinstance(entries, list):
                raise ConfigurationError(f"boundary '{name}': expected a condition or a list of conditions")
            for entry in entries:
                unknown = set(entry) - _CONDITION_KEYS
                if unknown:
                    raise ConfigurationError(f"boundary '{name}': unknown keys {sorted(unknown)}")
                if "type" not in entry:
                    raise ConfigurationError(f"boundary '{name}': condition without a 'type'")
                try:
                    cond = BoundaryCondition(
                        category=str(entry["type"]).lower(),
                        velocity=entry.get("velocity"),
                        pressure=entry.get("pressure"),
                    )
                except ConfigurationError as e:
                    raise ConfigurationError(f"boundary '{name}': {e}") from e
                registry.add(name, cond)
        return registry

    @classmethod
    def from_yaml(cls, filename):
        with open(filename, "r") as f:
            config = yaml.safe_load(f) or {}
        return cls.from_dict(config.get("boundaries", {}))

    def add(self, name, condition):
        self._conditions.setdefault(name, []).append(condition)

    def conditions_on(self, name):
        return list(self._conditions.get(name, ()))

    def names(self):
        return list(self._conditions)


class BoundaryFaceValues:
    """Dirichlet masks and values of velocity and pressure on every boundary face.

    Faces without a Dirichlet value extrapolate the element value (zero
    normal gradient).
    """

    def __init__(self, mesh, registry):
        self.mesh = mesh
        self._owner = np.array(mesh.data.owner_cells)
        n_faces, dim = mesh.n_faces, mesh.dim
        self.velocity_dirichlet = np.zeros(n_faces, dtype=bool)
        self.velocity_values = np.zeros((n_faces, dim))
        self.pressure_dirichlet = np.zeros(n_faces, dtype=bool)
        self.pressure_values = np.zeros(n_faces)

        for face in mesh.boundary_faces():
            name = mesh.boundary_name(face.boundary_id)
            for cond in registry.conditions_on(name):
                if cond.has_dirichlet_velocity:
                    self.velocity_dirichlet[face.index] = True
                    self.velocity_values[face.index] = cond.velocity_at(face.centroid, dim, name)
                if cond.has_dirichlet_pressure:
                    self.pressure_dirichlet[face.index] = True
                    self.pressure_values[face.index] = cond.pressure_at(face.centroid, name)

        log.debug(
            f"{int(self.velocity_dirichlet.sum())} velocity-Dirichlet and "
            f"{int(self.pressure_dirichlet.sum())} pressure-Dirichlet boundary faces"
        )

    def velocity(self, face, component, cell_values):
        if self.velocity_dirichlet[face.index]:
            return self.velocity_values[face.index, component]
        return cell_values[face.elem]

    def pressure(self, face, cell_values):
        if self.pressure_dirichlet[face.index]:
            return self.pressure_values[face.index]
        return cell_values[face.elem]

    def pressure_face_array(self, cell_values):
        """Boundary pressure on every face (interior entries unused)."""
        return np.where(self.pressure_dirichlet, self.pressure_values, cell_values[self._owner])

"""Case configuration.

A case is a YAML file with the sections ``mesh``, ``fluid``, ``numerics``,
``initial_conditions`` and ``boundaries``::

    mesh:
      nx: 50
      ny: 10
      lx: 5.0
      ly: 1.0
    fluid:
      rho: 1.0
      mu: 0.01
    numerics:
      outer_iterations: 2
      relaxation: 0.7
    initial_conditions:
      velocity: [0.0, 0.0]
      pressure: 0.0
    boundaries:
      left: {type: flow, velocity: [1.0, 0.0]}
      ...

``mesh.file`` loads a Gmsh file instead of generating a rectangle.
"""

import logging
import os
from dataclasses import asdict, dataclass, field, fields
from typing import List, Optional

import pandas as pd
import yaml

from segflow.boundary.conditions import BoundaryConditionRegistry
from segflow.discretization.interpolation import (
    ADVECTED_INTERP_METHODS,
    VELOCITY_INTERP_METHODS,
    check_method,
)
from segflow.exceptions import ConfigurationError
from segflow.linear_solvers.scipy_solver import LINEAR_SOLVERS
from segflow.mesh.face_info import COORD_SYSTEMS, FVMesh
from segflow.mesh.mesh_loader import load_mesh
from segflow.mesh.structured import generate_rectangle

log = logging.getLogger(__name__)

_SECTIONS = ("mesh", "fluid", "numerics", "initial_conditions", "boundaries")


def _from_section(cls, section, name):
    section = section or {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"section '{name}' must be a mapping")
    known = {f.name for f in fields(cls)}
    unknown = set(section) - known
    if unknown:
        raise ConfigurationError(f"section '{name}': unknown keys {sorted(unknown)}")
    return cls(**section)


# ========================================================
# Sections
# ========================================================


@dataclass
class MeshConfig:
    file: Optional[str] = None
    nx: int = 50
    ny: int = 10
    lx: float = 5.0
    ly: float = 1.0

    def build(self, coord_system="XYZ", base_dir="."):
        """Load or generate the mesh and wrap it in an :class:`FVMesh`."""
        if self.file:
            path = self.file if os.path.isabs(self.file) else os.path.join(base_dir, self.file)
            mesh, names = load_mesh(path)
        else:
            mesh, names = generate_rectangle(self.nx, self.ny, self.lx, self.ly)
        return FVMesh(mesh, names, coord_system)


@dataclass
class FluidProperties:
    rho: float = 1.0
    mu: float = 1.0

    def __post_init__(self):
        if self.rho < 0.0:
            raise ConfigurationError(f"density must be non-negative, got {self.rho}")
        if self.mu < 0.0:
            raise ConfigurationError(f"viscosity must be non-negative, got {self.mu}")


@dataclass
class NumericsConfig:
    velocity_interp_method: str = "rc"
    advected_interp_method: str = "upwind"
    relaxation: float = 1.0
    outer_iterations: int = 2
    dt: Optional[float] = None
    include_pressure_gradient: bool = False
    include_time_derivative: bool = False
    nl_abs_tol: float = 1e-8
    nl_rel_tol: float = 1e-10
    nl_max_its: int = 10
    linear_solver: str = "direct"
    linear_tol: float = 1e-10
    n_threads: int = 1
    coord_system: str = "XYZ"

    def __post_init__(self):
        check_method(self.velocity_interp_method, VELOCITY_INTERP_METHODS, "velocity interpolation method")
        check_method(self.advected_interp_method, ADVECTED_INTERP_METHODS, "advected interpolation method")
        if not 0.0 < self.relaxation <= 1.0:
            raise ConfigurationError(f"relaxation must be in (0, 1], got {self.relaxation}")
        if self.include_time_derivative and (self.dt is None or self.dt <= 0.0):
            raise ConfigurationError(f"time derivative enabled with non-positive dt {self.dt}")
        if self.linear_solver not in LINEAR_SOLVERS:
            raise ConfigurationError(
                f"unknown linear solver '{self.linear_solver}', expected one of {LINEAR_SOLVERS}"
            )
        if self.coord_system not in COORD_SYSTEMS:
            raise ConfigurationError(
                f"unknown coordinate system '{self.coord_system}', expected one of {COORD_SYSTEMS}"
            )
        if self.outer_iterations < 1:
            raise ConfigurationError(f"outer_iterations must be at least 1, got {self.outer_iterations}")
        if self.nl_max_its < 1:
            raise ConfigurationError(f"nl_max_its must be at least 1, got {self.nl_max_its}")
        if self.n_threads < 1:
            raise ConfigurationError(f"n_threads must be at least 1, got {self.n_threads}")


@dataclass
class InitialConditions:
    velocity: List[float] = field(default_factory=lambda: [0.0, 0.0])
    pressure: float = 0.0


# ========================================================
# Case
# ========================================================


@dataclass
class SolverConfig:
    mesh: MeshConfig = field(default_factory=MeshConfig)
    fluid: FluidProperties = field(default_factory=FluidProperties)
    numerics: NumericsConfig = field(default_factory=NumericsConfig)
    initial_conditions: InitialConditions = field(default_factory=InitialConditions)
    boundaries: dict = field(default_factory=dict)
    base_dir: str = "."

    @classmethod
    def from_dict(cls, config, base_dir="."):
        config = config or {}
        unknown = set(config) - set(_SECTIONS)
        if unknown:
            raise ConfigurationError(f"unknown configuration sections {sorted(unknown)}")
        return cls(
            mesh=_from_section(MeshConfig, config.get("mesh"), "mesh"),
            fluid=_from_section(FluidProperties, config.get("fluid"), "fluid"),
            numerics=_from_section(NumericsConfig, config.get("numerics"), "numerics"),
            initial_conditions=_from_section(
                InitialConditions, config.get("initial_conditions"), "initial_conditions"
            ),
            boundaries=dict(config.get("boundaries") or {}),
            base_dir=base_dir,
        )

    @classmethod
    def from_yaml(cls, filename):
        with open(filename, "r") as f:
            config = yaml.safe_load(f)
        log.info(f"Loaded case {filename}")
        return cls.from_dict(config, base_dir=os.path.dirname(os.path.abspath(filename)))

    def build_mesh(self):
        return self.mesh.build(self.numerics.coord_system, self.base_dir)

    def build_registry(self):
        return BoundaryConditionRegistry.from_dict(self.boundaries)

    def to_dataframe(self):
        """One-row table of the scalar settings."""
        row = {}
        for section in ("mesh", "fluid", "numerics"):
            row.update({f"{section}.{k}": v for k, v in asdict(getattr(self, section)).items()})
        return pd.DataFrame([row])

# conftest.py

from pathlib import Path
from types import SimpleNamespace

import numpy as np
import pytest

from segflow.assembly.rhie_chow import RhieChowInterpolator
from segflow.boundary import BoundaryClassifier, BoundaryConditionRegistry, BoundaryFaceValues
from segflow.core.fields import PRESSURE, VELOCITY, FieldStore
from segflow.mesh import FVMesh, generate_rectangle, load_mesh
from segflow.session import SolverSession

DATA_DIR = Path(__file__).parent / "data"

RECTANGLES = {
    "uniform_4x3": dict(nx=4, ny=3, lx=2.0, ly=1.5),
    "stretched_row": dict(nx=6, ny=1, lx=3.0, ly=0.5),
    "single_cell": dict(nx=1, ny=1, lx=1.0, ly=1.0),
}


def find_test_meshes():
    """Mesh label -> zero-argument loader returning an FVMesh."""
    meshes = {
        label: (lambda kw=kw: FVMesh(*generate_rectangle(**kw)))
        for label, kw in RECTANGLES.items()
    }
    gmsh_file = DATA_DIR / "two_quads.msh"
    if gmsh_file.exists():
        meshes["gmsh_two_quads"] = lambda: FVMesh(*load_mesh(str(gmsh_file)))
    else:
        print(f"Warning: Gmsh test mesh not found at {gmsh_file}")
    return meshes


@pytest.fixture
def mesh_instance(mesh_label):
    return find_test_meshes()[mesh_label]()


def pytest_generate_tests(metafunc):
    if "mesh_label" in metafunc.fixturenames:
        metafunc.parametrize("mesh_label", sorted(find_test_meshes()))


@pytest.fixture
def rectangle():
    def make(nx, ny, lx, ly, coord_system="XYZ"):
        mesh, names = generate_rectangle(nx, ny, lx, ly)
        return FVMesh(mesh, names, coord_system)

    return make


@pytest.fixture
def slip_boundaries():
    return {name: {"type": "slip-wall"} for name in ("bottom", "right", "top", "left")}


@pytest.fixture
def channel_boundaries():
    return {
        "left": [{"type": "flow", "velocity": [1.0, 0.0]}],
        "right": [{"type": "flow", "pressure": 0.0}],
        "top": [{"type": "no-slip-wall"}],
        "bottom": [{"type": "no-slip-wall"}],
    }


@pytest.fixture
def make_interpolator():
    """Build a RhieChowInterpolator with its own session and field storage."""

    def make(
        mesh,
        boundaries,
        mu=1.0,
        rho=1.0,
        velocity=(0.0, 0.0),
        pressure=0.0,
        n_threads=1,
        velocity_interp_method="rc",
        advected_interp_method="upwind",
    ):
        registry = BoundaryConditionRegistry.from_dict(boundaries)
        classifier = BoundaryClassifier(mesh, registry)
        boundary_values = BoundaryFaceValues(mesh, registry)
        session = SolverSession(n_threads)

        fields = FieldStore(mesh.n_cells)
        for name, value in zip(("u_adv", "v_adv"), velocity):
            fields.add(name, VELOCITY).set_value(value)
        fields.add("pressure", PRESSURE).set_value(pressure)

        rc = RhieChowInterpolator(
            session,
            mesh,
            classifier,
            boundary_values,
            fields,
            velocity=("u_adv", "v_adv"),
            pressure="pressure",
            mu=mu,
            rho=rho,
            velocity_interp_method=velocity_interp_method,
            advected_interp_method=advected_interp_method,
        )
        return SimpleNamespace(
            rc=rc,
            fields=fields,
            registry=registry,
            classifier=classifier,
            boundary_values=boundary_values,
            session=session,
        )

    return make


def interior_face_between(mesh, a, b):
    for face in mesh.faces_of(a):
        if not face.on_boundary and {face.elem, face.neighbor} == {a, b}:
            return face
    raise KeyError((a, b))


@pytest.fixture
def face_between():
    return interior_face_between


@pytest.fixture
def random_generator():
    return np.random.default_rng(1234)

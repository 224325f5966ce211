import numpy as np
import pytest
from numpy.testing import assert_allclose

from segflow.boundary import (
    BoundaryClassifier,
    BoundaryCondition,
    BoundaryConditionRegistry,
    BoundaryFaceValues,
)
from segflow.exceptions import ConfigurationError


def test_registry_from_dict(subtests, channel_boundaries):
    registry = BoundaryConditionRegistry.from_dict(channel_boundaries)

    with subtests.test("names"):
        assert sorted(registry.names()) == ["bottom", "left", "right", "top"]

    with subtests.test("dirichlet_flags"):
        (inlet,) = registry.conditions_on("left")
        (outlet,) = registry.conditions_on("right")
        (wall,) = registry.conditions_on("top")
        assert inlet.is_flow and inlet.has_dirichlet_velocity and not inlet.has_dirichlet_pressure
        assert outlet.is_flow and outlet.has_dirichlet_pressure and not outlet.has_dirichlet_velocity
        assert wall.has_dirichlet_velocity and not wall.is_flow
        assert_allclose(wall.velocity_at(np.zeros(2), 2), [0.0, 0.0])

    with subtests.test("single_mapping"):
        registry = BoundaryConditionRegistry.from_dict({"top": {"type": "SLIP-WALL"}})
        assert registry.conditions_on("top")[0].category == "slip-wall"
        assert registry.conditions_on("bottom") == []


@pytest.mark.parametrize(
    "boundaries, message",
    [
        ({"left": {"type": "inlet"}}, "unrecognized boundary condition type"),
        ({"left": {"velocity": [1.0, 0.0]}}, "without a 'type'"),
        ({"left": {"type": "flow", "temperature": 3.0}}, "unknown keys"),
        ({"left": {"type": "slip-wall", "velocity": [1.0, 0.0]}}, "cannot prescribe a velocity"),
        ({"left": "flow"}, "expected a condition"),
    ],
)
def test_registry_rejects(boundaries, message):
    with pytest.raises(ConfigurationError, match=message):
        BoundaryConditionRegistry.from_dict(boundaries)


def test_expression_values():
    inlet = BoundaryCondition("flow", velocity=["4*x[1]*(1-x[1])", 0.0])
    assert_allclose(inlet.velocity_at(np.array([0.0, 0.5]), 2), [1.0, 0.0])

    outlet = BoundaryCondition("flow", pressure="2*x[0]")
    assert outlet.pressure_at(np.array([3.0, 0.0])) == 6.0

    broken = BoundaryCondition("flow", pressure="y + 1")
    with pytest.raises(ConfigurationError, match="failed to evaluate"):
        broken.pressure_at(np.zeros(2), "right")

    too_long = BoundaryCondition("flow", velocity=[1.0, 0.0, 0.0])
    with pytest.raises(ConfigurationError, match="3 components"):
        too_long.velocity_at(np.zeros(2), 2, "left")


def test_registry_from_yaml(tmp_path):
    case = tmp_path / "bcs.yaml"
    case.write_text(
        "boundaries:\n"
        "  left:\n"
        "    - type: flow\n"
        "      velocity: [2.0, 0.0]\n"
        "  right:\n"
        "    - type: fully-developed-flow\n"
    )
    registry = BoundaryConditionRegistry.from_yaml(case)
    assert registry.conditions_on("right")[0].is_fully_developed
    assert registry.conditions_on("left")[0].velocity == [2.0, 0.0]


def test_boundary_face_values(rectangle, channel_boundaries):
    mesh = rectangle(4, 2, 4.0, 2.0)
    values = BoundaryFaceValues(mesh, BoundaryConditionRegistry.from_dict(channel_boundaries))
    cells = np.arange(mesh.n_cells, dtype=float)

    left = mesh.boundary_faces(mesh.boundary_id("left"))
    right = mesh.boundary_faces(mesh.boundary_id("right"))
    top = mesh.boundary_faces(mesh.boundary_id("top"))

    assert values.velocity_dirichlet.sum() == len(left) + 2 * 4
    assert values.pressure_dirichlet.sum() == len(right)
    for face in left:
        assert values.velocity(face, 0, cells) == 1.0
        assert values.pressure(face, cells) == cells[face.elem]
    for face in right:
        assert values.velocity(face, 0, cells) == cells[face.elem]
        assert values.pressure(face, cells) == 0.0
    for face in top:
        assert values.velocity(face, 1, cells) == 0.0

    p_faces = values.pressure_face_array(cells)
    assert_allclose(p_faces[[f.index for f in right]], 0.0)
    assert_allclose(p_faces[[f.index for f in left]], [cells[f.elem] for f in left])


def test_classifier_categories(rectangle, channel_boundaries):
    mesh = rectangle(5, 2, 5.0, 1.0)
    registry = BoundaryConditionRegistry.from_dict(
        dict(channel_boundaries, top=[{"type": "symmetry"}], bottom=[{"type": "slip-wall"}])
    )
    classifier = BoundaryClassifier(mesh, registry)

    ids = {name: mesh.boundary_id(name) for name in ("left", "right", "top", "bottom")}
    assert classifier.flow == {ids["left"], ids["right"]}
    assert classifier.fully_developed == set()
    assert classifier.symmetry == {ids["top"]}
    assert classifier.slip == {ids["bottom"]}
    assert classifier.all == set(ids.values())
    assert classifier.category(ids["top"]) == "symmetry"
    assert classifier.is_flow(ids["left"]) and not classifier.is_flow(ids["top"])

    # classification is idempotent
    classifier.classify()
    assert classifier.flow == {ids["left"], ids["right"]}


def test_classifier_fully_developed(rectangle, channel_boundaries):
    mesh = rectangle(3, 1, 3.0, 1.0)
    boundaries = dict(channel_boundaries, right=[{"type": "fully-developed-flow"}])
    classifier = BoundaryClassifier(mesh, BoundaryConditionRegistry.from_dict(boundaries))
    right = mesh.boundary_id("right")
    assert right in classifier.flow and right in classifier.fully_developed
    assert classifier.category(right) == "fully-developed-flow"


def test_classifier_coverage(rectangle, channel_boundaries, subtests):
    mesh = rectangle(3, 2, 3.0, 1.0)

    with subtests.test("uncovered_boundary"):
        boundaries = {k: v for k, v in channel_boundaries.items() if k != "top"}
        with pytest.raises(ConfigurationError, match="top"):
            BoundaryClassifier(mesh, BoundaryConditionRegistry.from_dict(boundaries))

    with subtests.test("mixed_fully_developed"):
        boundaries = dict(
            channel_boundaries,
            right=[{"type": "flow", "pressure": 0.0}, {"type": "fully-developed-flow"}],
        )
        with pytest.raises(ConfigurationError, match="mixes fully-developed"):
            BoundaryClassifier(mesh, BoundaryConditionRegistry.from_dict(boundaries))

    with subtests.test("block_restriction"):
        # no cell lies in block 7, so no boundary is touched
        classifier = BoundaryClassifier(mesh, BoundaryConditionRegistry(), blocks=[7])
        assert classifier.connected_boundaries() == set()
        assert classifier.all == set()

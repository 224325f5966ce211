import logging

from segflow.boundary.conditions import NO_SLIP_WALL, SLIP_WALL, SYMMETRY
from segflow.exceptions import ConfigurationError

log = logging.getLogger(__name__)


class BoundaryClassifier:
    """
    Partitions the boundaries touching a block restriction into category sets.

    A boundary carrying any flow-type condition is ``flow``, and additionally
    ``fully_developed`` when its flow conditions are fully-developed ones.
    Otherwise a no-slip wall, slip wall or symmetry condition decides. Every
    classified boundary is also added to ``all``.

    Parameters
    ----------
    mesh : FVMesh
    registry : BoundaryConditionRegistry
    blocks : iterable of int, optional
        Subdomain ids the kernel is restricted to; all subdomains when omitted.
    """

    def __init__(self, mesh, registry, blocks=None):
        self.mesh = mesh
        self.registry = registry
        self.blocks = None if blocks is None else frozenset(blocks)
        self.flow = set()
        self.fully_developed = set()
        self.no_slip = set()
        self.slip = set()
        self.symmetry = set()
        self.all = set()
        self.classify()

    def connected_boundaries(self):
        """Boundary ids with at least one face whose element lies in the blocks."""
        connected = set()
        for face in self.mesh.boundary_faces():
            if self.blocks is None or self.mesh.cell_subdomains[face.elem] in self.blocks:
                connected.add(face.boundary_id)
        return connected

    def classify(self):
        """Populate the category sets. Safe to call again."""
        for category in (self.flow, self.fully_developed, self.no_slip, self.slip, self.symmetry, self.all):
            category.clear()

        for bid in sorted(self.connected_boundaries()):
            name = self.mesh.boundary_name(bid)
            conditions = self.registry.conditions_on(name)
            categories = {c.category for c in conditions}

            flow_conditions = [c for c in conditions if c.is_flow]
            if flow_conditions:
                developed = {c.is_fully_developed for c in flow_conditions}
                if len(developed) > 1:
                    raise ConfigurationError(
                        f"boundary '{name}' mixes fully-developed and developing flow conditions"
                    )
                self.flow.add(bid)
                if developed.pop():
                    self.fully_developed.add(bid)
            elif NO_SLIP_WALL in categories:
                self.no_slip.add(bid)
            elif SLIP_WALL in categories:
                self.slip.add(bid)
            elif SYMMETRY in categories:
                self.symmetry.add(bid)
            else:
                continue
            self.all.add(bid)

        uncovered = self.connected_boundaries() - self.all
        if uncovered:
            names = sorted(self.mesh.boundary_name(b) for b in uncovered)
            raise ConfigurationError(
                f"boundaries {names} have no flow, no-slip-wall, slip-wall or symmetry condition"
            )
        log.debug(
            f"classified boundaries: flow={self._names(self.flow)} "
            f"fully-developed={self._names(self.fully_developed)} no-slip={self._names(self.no_slip)} "
            f"slip={self._names(self.slip)} symmetry={self._names(self.symmetry)}"
        )

    def _names(self, ids):
        return sorted(self.mesh.boundary_name(b) for b in ids)

    def category(self, boundary_id):
        if boundary_id in self.flow:
            return "fully-developed-flow" if boundary_id in self.fully_developed else "flow"
        if boundary_id in self.no_slip:
            return NO_SLIP_WALL
        if boundary_id in self.slip:
            return SLIP_WALL
        if boundary_id in self.symmetry:
            return SYMMETRY
        return None

    def is_flow(self, boundary_id):
        return boundary_id in self.flow

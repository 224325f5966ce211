import numpy as np

from segflow.exceptions import ConfigurationError

PRESSURE = "pressure"
VELOCITY = "velocity"
AUXILIARY = "auxiliary"
FIELD_KINDS = (PRESSURE, VELOCITY, AUXILIARY)


class CellField:
    """
    Cell-centred scalar field with one value per control volume.

    The ``kind`` tag tells kernels what the field stands for, so a kernel can
    refuse, for example, a velocity field passed where it needs a pressure.
    """

    def __init__(self, n_cells, name="field", kind=AUXILIARY, values=None):
        if kind not in FIELD_KINDS:
            raise ConfigurationError(f"field '{name}': unknown kind '{kind}', expected one of {FIELD_KINDS}")
        self.name = name
        self.kind = kind
        if values is None:
            self.values = np.zeros(n_cells)
        else:
            values = np.asarray(values, dtype=np.float64)
            if values.shape != (n_cells,):
                raise ConfigurationError(
                    f"field '{name}': expected {n_cells} values, got shape {values.shape}"
                )
            self.values = values.copy()

    def set_value(self, value):
        self.values[:] = value

    def copy(self, name=None):
        return CellField(len(self.values), name or f"{self.name}_copy", self.kind, self.values)

    def norm(self):
        return np.linalg.norm(self.values)

    def __getitem__(self, idx):
        return self.values[idx]

    def __setitem__(self, idx, value):
        self.values[idx] = value

    def __len__(self):
        return len(self.values)

    def __repr__(self):
        return f"CellField({self.name!r}, kind={self.kind!r}, n={len(self.values)})"


class FieldStore:
    """Named cell fields owned by one sub-problem."""

    def __init__(self, n_cells):
        self.n_cells = n_cells
        self._fields = {}

    def add(self, name, kind=AUXILIARY, values=None):
        if name in self._fields:
            raise ConfigurationError(f"field '{name}' is already declared")
        field = CellField(self.n_cells, name, kind, values)
        self._fields[name] = field
        return field

    def require(self, name, kind=None):
        """Return the field ``name``, checking its kind when one is given."""
        field = self._fields.get(name)
        if field is None:
            raise ConfigurationError(
                f"required field '{name}' is missing (declared: {sorted(self._fields)})"
            )
        if kind is not None and field.kind != kind:
            raise ConfigurationError(
                f"field '{name}' must be a {kind} field, got a {field.kind} field"
            )
        return field

    def missing(self, names):
        return [n for n in names if n not in self._fields]

    def names(self):
        return list(self._fields)

    def __getitem__(self, name):
        return self.require(name)

    def __contains__(self, name):
        return name in self._fields

    def __iter__(self):
        return iter(self._fields.values())

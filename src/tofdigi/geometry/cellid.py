# src/tofdigi/geometry/cellid.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple

ID_BITS = 64
_ID_MASK = (1 << ID_BITS) - 1


@dataclass(frozen=True, slots=True)
class BitField:
    """
    One named field of a cell id.

    offset: first bit (LSB = 0)
    width: number of bits
    signed: two's complement interpretation of the field value
    """
    name: str
    offset: int
    width: int
    signed: bool = False

    @property
    def mask(self) -> int:
        return ((1 << self.width) - 1) << self.offset

    @property
    def min_value(self) -> int:
        return -(1 << (self.width - 1)) if self.signed else 0

    @property
    def max_value(self) -> int:
        return (1 << (self.width - 1)) - 1 if self.signed else (1 << self.width) - 1

    def value(self, cell_id: int) -> int:
        v = (int(cell_id) & self.mask) >> self.offset
        if self.signed and v >= (1 << (self.width - 1)):
            v -= 1 << self.width
        return v

    def encode(self, value: int) -> int:
        value = int(value)
        if not (self.min_value <= value <= self.max_value):
            raise ValueError(
                f"Value {value} out of range for field '{self.name}' "
                f"[{self.min_value}, {self.max_value}]"
            )
        return (value & ((1 << self.width) - 1)) << self.offset


def parse_descriptor(descriptor: str) -> List[BitField]:
    """
    Parse a DD4hep-style readout descriptor.

    Entries are comma separated, either ``name:width`` (packed after the
    previous field) or ``name:offset:width``. A negative width marks a signed
    field, e.g. ``"system:8,layer:4,x:32:-16,y:-16"``.
    """
    fields: List[BitField] = []
    used = 0
    cursor = 0
    for raw in descriptor.split(","):
        entry = raw.strip()
        if not entry:
            continue
        parts = [p.strip() for p in entry.split(":")]
        if len(parts) == 2:
            name, offset, width = parts[0], cursor, int(parts[1])
        elif len(parts) == 3:
            name, offset, width = parts[0], int(parts[1]), int(parts[2])
        else:
            raise ValueError(f"Malformed descriptor entry '{entry}'")
        signed = width < 0
        width = abs(width)
        if not name or width == 0:
            raise ValueError(f"Malformed descriptor entry '{entry}'")
        if offset < 0 or offset + width > ID_BITS:
            raise ValueError(f"Field '{name}' does not fit into {ID_BITS} bits")
        f = BitField(name=name, offset=offset, width=width, signed=signed)
        if used & f.mask:
            raise ValueError(f"Field '{name}' overlaps a previous field")
        if any(g.name == name for g in fields):
            raise ValueError(f"Duplicate field '{name}'")
        used |= f.mask
        fields.append(f)
        cursor = offset + width
    if not fields:
        raise ValueError("Empty cell id descriptor")
    return fields


class CellIDDecoder:
    """Encode/decode 64-bit cell ids against a readout descriptor."""

    def __init__(self, descriptor: str):
        self.descriptor = descriptor
        self.fields: Tuple[BitField, ...] = tuple(parse_descriptor(descriptor))
        self._by_name: Dict[str, BitField] = {f.name: f for f in self.fields}

    @property
    def field_names(self) -> Tuple[str, ...]:
        return tuple(f.name for f in self.fields)

    def __contains__(self, name: str) -> bool:
        return name in self._by_name

    def field(self, name: str) -> BitField:
        try:
            return self._by_name[name]
        except KeyError:
            raise KeyError(f"Unknown field '{name}' in descriptor '{self.descriptor}'") from None

    def get(self, cell_id: int, name: str) -> int:
        return self.field(name).value(cell_id)

    def values(self, cell_id: int, names: Iterable[str] | None = None) -> Dict[str, int]:
        names = self.field_names if names is None else names
        return {n: self.get(cell_id, n) for n in names}

    def key(self, cell_id: int, names: Iterable[str]) -> Tuple[int, ...]:
        return tuple(self.get(cell_id, n) for n in names)

    def encode(self, **values: int) -> int:
        cell_id = 0
        for name, v in values.items():
            cell_id |= self.field(name).encode(v)
        return cell_id

    def set(self, cell_id: int, **values: int) -> int:
        """Return cell_id with the given fields replaced."""
        out = int(cell_id) & _ID_MASK
        for name, v in values.items():
            f = self.field(name)
            out = (out & ~f.mask & _ID_MASK) | f.encode(v)
        return out

    def mask(self, names: Iterable[str]) -> int:
        m = 0
        for n in names:
            m |= self.field(n).mask
        return m

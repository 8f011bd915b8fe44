"""Register tree model for device descriptions."""

from dataclasses import dataclass, field
from typing import Optional, Union


@dataclass
class EnumeratedValue:
    """One named meaning of a field value."""
    name: str
    value: Optional[int] = None
    description: Optional[str] = None
    is_default: bool = False

    def to_dict(self) -> dict:
        return _compact({
            "name": self.name,
            "value": self.value,
            "description": self.description,
            "is_default": self.is_default or None,
        })


@dataclass
class EnumeratedValues:
    """A table of enumerated values attached to a field."""
    name: Optional[str] = None
    usage: Optional[str] = None
    values: list[EnumeratedValue] = field(default_factory=list)

    def to_dict(self) -> dict:
        return _compact({
            "name": self.name,
            "usage": self.usage,
            "values": [v.to_dict() for v in self.values],
        })


@dataclass
class WriteConstraint:
    write_as_read: Optional[bool] = None
    use_enumerated_values: Optional[bool] = None
    range_min: Optional[int] = None
    range_max: Optional[int] = None

    def to_dict(self) -> dict:
        return _compact({
            "write_as_read": self.write_as_read,
            "use_enumerated_values": self.use_enumerated_values,
            "range_min": self.range_min,
            "range_max": self.range_max,
        })


@dataclass
class Field:
    """A bit range within a register."""
    name: str
    bit_offset: int
    bit_width: int = 1
    access: Optional[str] = None
    description: Optional[str] = None
    enumerated_values: list[EnumeratedValues] = field(default_factory=list)
    write_constraint: Optional[WriteConstraint] = None

    def to_dict(self) -> dict:
        return _compact({
            "name": self.name,
            "bit_offset": self.bit_offset,
            "bit_width": self.bit_width,
            "access": self.access,
            "description": self.description,
            "enumerated_values": [e.to_dict() for e in self.enumerated_values] or None,
            "write_constraint": self.write_constraint.to_dict() if self.write_constraint else None,
        })


@dataclass
class Register:
    name: str
    address_offset: int
    size: Optional[int] = None
    access: Optional[str] = None
    reset_value: Optional[int] = None
    reset_mask: Optional[int] = None
    description: Optional[str] = None
    display_name: Optional[str] = None
    fields: list[Field] = field(default_factory=list)

    def to_dict(self) -> dict:
        return _compact({
            "name": self.name,
            "display_name": self.display_name,
            "description": self.description,
            "address_offset": self.address_offset,
            "size": self.size,
            "access": self.access,
            "reset_value": self.reset_value,
            "reset_mask": self.reset_mask,
            "fields": [f.to_dict() for f in self.fields] or None,
        })


@dataclass
class Cluster:
    """A named container of nested registers and clusters."""
    name: str
    address_offset: int
    description: Optional[str] = None
    children: list["RegisterCluster"] = field(default_factory=list)

    def to_dict(self) -> dict:
        return _compact({
            "name": self.name,
            "description": self.description,
            "address_offset": self.address_offset,
            "children": [tagged(c) for c in self.children] or None,
        })


RegisterCluster = Union[Register, Cluster]


@dataclass
class Interrupt:
    name: str
    value: int
    description: Optional[str] = None


@dataclass
class Peripheral:
    """A hardware block and its register tree.

    ``registers`` is ``None`` when the description carries no register tree
    at all (typically a derived peripheral), and an empty list when the tree
    exists but is empty.
    """
    name: str
    group_name: Optional[str] = None
    derived_from: Optional[str] = None
    description: Optional[str] = None
    registers: Optional[list[RegisterCluster]] = None
    interrupts: list[Interrupt] = field(default_factory=list)

    @property
    def group(self) -> str:
        return self.group_name or self.name

    @property
    def is_derived(self) -> bool:
        return self.derived_from is not None


@dataclass
class Device:
    name: str
    peripherals: list[Peripheral] = field(default_factory=list)


def tagged(rc: RegisterCluster) -> dict:
    """Wrap a register or cluster in a single-key mapping naming its kind."""
    if isinstance(rc, Cluster):
        return {"cluster": rc.to_dict()}
    return {"register": rc.to_dict()}


def _compact(d: dict) -> dict:
    return {k: v for k, v in d.items() if v is not None}

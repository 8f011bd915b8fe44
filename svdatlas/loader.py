"""Load SVD documents into the register tree model."""

import logging
import os
from enum import Enum

from cmsis_svd.model import (
    SVDRegisterArray,
    SVDRegisterCluster,
    SVDRegisterClusterArray,
)
from cmsis_svd.parser import SVDParser

from .model import (
    Cluster,
    Device,
    EnumeratedValue,
    EnumeratedValues,
    Field,
    Interrupt,
    Peripheral,
    Register,
    WriteConstraint,
)

logger = logging.getLogger("svdatlas.loader")


class AtlasParser(SVDParser):
    """SVDParser that keeps the numeric bounds of ``writeConstraint/range``.

    cmsis-svd reads ``<minimum>`` and ``<maximum>`` as booleans, which
    collapses every range to ``False``/``None``.
    """

    @staticmethod
    def _parse_write_constraint(write_constraint_node):
        wc = SVDParser._parse_write_constraint(write_constraint_node)
        range_node = write_constraint_node.find("./range")
        if wc.range is not None and range_node is not None:
            wc.range.minimum = parse_int(range_node.findtext("minimum"))
            wc.range.maximum = parse_int(range_node.findtext("maximum"))
        return wc


def parse_int(text):
    """Parse an SVD scalar: decimal, ``0x`` hex or ``#`` binary. None stays None."""
    if text is None:
        return None
    text = text.strip().lower()
    if not text:
        return None
    if text.startswith("#"):
        # 'x' marks a don't-care bit
        return int(text[1:].replace("x", "0"), 2)
    if text.startswith("0x"):
        return int(text, 16)
    return int(text)


def find_inputs(directory: str, origin: bool = False) -> list[str]:
    """List input documents in ``directory``, sorted by file name.

    Original vendor files (``.svd``) are picked in origin mode, patched
    files (``.patched``) otherwise.
    """
    ext = ".svd" if origin else ".patched"
    return sorted(
        os.path.join(directory, f)
        for f in os.listdir(directory)
        if f.endswith(ext) and os.path.isfile(os.path.join(directory, f))
    )


def load_device(path: str) -> Device:
    """Parse an SVD document and convert it to a Device."""
    parser = AtlasParser.for_xml_file(path)
    device = from_cmsis_device(parser.get_device())
    logger.debug("Parsed %s: %d peripherals", path, len(device.peripherals))
    return device


def from_cmsis_device(dev) -> Device:
    # get_peripherals() expands <dim> peripheral arrays
    return Device(
        name=dev.name,
        peripherals=[_peripheral(p) for p in dev.get_peripherals()],
    )


def _peripheral(p) -> Peripheral:
    return Peripheral(
        name=p.name,
        group_name=p.group_name or None,
        derived_from=p.derived_from,
        description=p.description,
        registers=None if p.registers is None else _children(p.registers),
        interrupts=[
            Interrupt(name=i.name, value=i.value, description=i.description)
            for i in (p.interrupts or [])
        ],
    )


def _children(items) -> list:
    """Convert a mixed list of registers, clusters and their arrays.

    Arrays are replaced by their expanded elements, in place.
    """
    out = []
    for rc in items:
        if isinstance(rc, SVDRegisterArray):
            out.extend(_register(r) for r in rc.registers)
        elif isinstance(rc, SVDRegisterClusterArray):
            out.extend(_cluster(c) for c in rc.clusters)
        elif isinstance(rc, SVDRegisterCluster):
            out.append(_cluster(rc))
        else:
            out.append(_register(rc))
    return out


def _cluster(c) -> Cluster:
    return Cluster(
        name=c.name,
        address_offset=c.address_offset or 0,
        description=c.description,
        children=_children(list(c.registers or []) + list(c.clusters or [])),
    )


def _register(r) -> Register:
    return Register(
        name=r.name,
        address_offset=r.address_offset or 0,
        size=r.size,
        access=_enum_str(r.access),
        reset_value=r.reset_value,
        reset_mask=r.reset_mask,
        description=r.description,
        display_name=r.display_name,
        fields=[_field(f) for f in r.get_fields()],
    )


def _field(f) -> Field:
    return Field(
        name=f.name,
        bit_offset=f.bit_offset,
        bit_width=f.bit_width or 1,
        access=_enum_str(f.access),
        description=f.description,
        enumerated_values=[_enumerated_values(evs) for evs in (f.enumerated_values or [])],
        write_constraint=_write_constraint(f.write_constraint),
    )


def _enumerated_values(evs) -> EnumeratedValues:
    return EnumeratedValues(
        name=evs.name,
        usage=_enum_str(evs.usage),
        values=[
            EnumeratedValue(
                name=ev.name,
                value=ev.value,
                description=ev.description,
                is_default=bool(ev.is_default),
            )
            for ev in evs.enumerated_values
        ],
    )


def _write_constraint(wc):
    if wc is None:
        return None
    return WriteConstraint(
        write_as_read=wc.write_as_read,
        use_enumerated_values=wc.use_enumerated_values,
        range_min=wc.range.minimum if wc.range else None,
        range_max=wc.range.maximum if wc.range else None,
    )


def _enum_str(v):
    if v is None:
        return None
    if isinstance(v, Enum):
        return str(v.value)
    return str(v)

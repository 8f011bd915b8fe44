"""Canonical ordering and metadata stripping for peripheral register trees."""

import copy

from .model import Cluster, Peripheral, Register, RegisterCluster


def normalize_peripheral(peripheral: Peripheral, keep_descriptions: bool = False) -> Peripheral:
    """Return a normalized copy of ``peripheral``.

    Registers and clusters are ordered by address offset at every level,
    fields by bit offset and enumerated values by value. All sorts are stable,
    so ties keep their source order. Unless ``keep_descriptions`` is set,
    free-text metadata (descriptions and display names) is removed.
    The input is never modified.
    """
    p = copy.deepcopy(peripheral)
    strip = not keep_descriptions

    if strip:
        p.description = None
        for irq in p.interrupts:
            irq.description = None

    if p.registers is not None:
        p.registers = _normalize_children(p.registers, strip)
    return p


def _normalize_children(children: list[RegisterCluster], strip: bool) -> list[RegisterCluster]:
    ordered = sorted(children, key=lambda rc: rc.address_offset)
    for rc in ordered:
        if isinstance(rc, Cluster):
            _normalize_cluster(rc, strip)
        else:
            _normalize_register(rc, strip)
    return ordered


def _normalize_cluster(c: Cluster, strip: bool):
    if strip:
        c.description = None
    c.children = _normalize_children(c.children, strip)


def _normalize_register(r: Register, strip: bool):
    if strip:
        r.description = None
        r.display_name = None

    r.fields.sort(key=lambda f: f.bit_offset)
    for f in r.fields:
        if strip:
            f.description = None
        for evs in f.enumerated_values:
            # isDefault entries carry no value and go last
            evs.values.sort(key=lambda ev: (ev.value is None, ev.value or 0))
            if strip:
                for ev in evs.values:
                    ev.description = None

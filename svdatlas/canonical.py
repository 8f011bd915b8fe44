"""Canonical serialization and structural/skeleton fingerprints."""

import copy
import hashlib
from dataclasses import dataclass

import yaml

from .model import Cluster, RegisterCluster, tagged

# Hex characters of each digest kept in an entry id
ID_PREFIX_LEN = 8


class FingerprintError(ValueError):
    """A register tree could not be canonically serialized."""


@dataclass
class Fingerprint:
    """Digests of one peripheral's normalized register tree.

    ``structural`` covers the full tree. ``skeleton`` covers the same tree with
    enumerated values and write constraints erased, so two peripherals that
    only disagree on bit meanings share a skeleton but not a structure.
    ``payload`` is the structural serialization, the form that gets stored.
    """
    structural: str
    skeleton: str
    payload: str

    def digest_id(self, device: str | None = None, peripheral: str | None = None,
                  show_name: bool = False) -> str:
        s = self.structural[:ID_PREFIX_LEN]
        if show_name:
            return f"{s}_{device}_{peripheral}"
        return f"{s}_{self.skeleton[:ID_PREFIX_LEN]}"


def serialize_registers(registers: list[RegisterCluster]) -> str:
    """Serialize a register tree to canonical YAML.

    Key order is fixed by the model's ``to_dict`` methods and unset values are
    omitted, so equal trees always give byte-identical text.
    """
    data = [tagged(rc) for rc in registers]
    try:
        return yaml.safe_dump(
            data,
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
            width=4096,
        )
    except yaml.YAMLError as e:
        raise FingerprintError(f"cannot serialize register tree: {e}") from e


def strip_constraints(registers: list[RegisterCluster]) -> list[RegisterCluster]:
    """Return a copy of the tree with enumerated values and write constraints erased."""
    stripped = copy.deepcopy(registers)
    _erase(stripped)
    return stripped


def _erase(children: list[RegisterCluster]):
    for rc in children:
        if isinstance(rc, Cluster):
            _erase(rc.children)
            continue
        for f in rc.fields:
            f.enumerated_values = []
            f.write_constraint = None


def digest(text: str) -> str:
    return hashlib.md5(text.encode("utf-8")).hexdigest()


def compute_fingerprint(registers: list[RegisterCluster]) -> Fingerprint:
    """Fingerprint a normalized register tree.

    The structural serialization is taken before the skeleton copy is built,
    and the skeleton is erased on its own copy.
    """
    payload = serialize_registers(registers)
    skeleton_text = serialize_registers(strip_constraints(registers))
    return Fingerprint(
        structural=digest(payload),
        skeleton=digest(skeleton_text),
        payload=payload,
    )

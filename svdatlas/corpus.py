"""On-disk corpus: content-addressed register trees and per-group reference logs."""

import logging
import os
from typing import Optional

import yaml

logger = logging.getLogger("svdatlas.corpus")

INDEX_FILENAME = "peripherals.txt"


class ContentStore:
    """Stores each unique register tree once, as ``<root>/<group>/<id>.yaml``.

    Entries are never overwritten: the first payload written under an id wins.
    """

    def __init__(self, root: str):
        self.root = root

    def path_for(self, group: str, digest_id: str) -> str:
        return os.path.join(self.root, group, f"{digest_id}.yaml")

    def put(self, group: str, digest_id: str, payload: str) -> bool:
        """Write ``payload`` unless an entry already exists. Returns True if written."""
        path = self.path_for(group, digest_id)
        if os.path.exists(path):
            return False
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w", encoding="utf-8", newline="\n") as f:
            f.write(payload)
        logger.debug("Stored %s", path)
        return True

    def get(self, group: str, digest_id: str) -> str:
        """Return the stored payload text. Raises FileNotFoundError if absent."""
        with open(self.path_for(group, digest_id), encoding="utf-8") as f:
            return f.read()

    def load(self, group: str, digest_id: str) -> Optional[list]:
        """Load a stored entry back into plain data, or None if absent."""
        path = self.path_for(group, digest_id)
        if not os.path.exists(path):
            return None
        with open(path, encoding="utf-8") as f:
            return yaml.safe_load(f)

    def list_groups(self) -> list[str]:
        """List all group directories in the store."""
        if not os.path.isdir(self.root):
            return []
        return sorted(
            d for d in os.listdir(self.root)
            if os.path.isdir(os.path.join(self.root, d))
            and not d.startswith(".")
        )

    def list_entries(self, group: str) -> list[str]:
        """List entry ids in a group (without .yaml extension)."""
        group_dir = os.path.join(self.root, group)
        if not os.path.isdir(group_dir):
            return []
        return sorted(
            os.path.splitext(f)[0]
            for f in os.listdir(group_dir)
            if f.endswith(".yaml") and not f.startswith(".")
        )


class ReferenceIndex:
    """Per-group log of ``<digest_id> <peripheral> <device>`` lines.

    The first append to a group during the lifetime of this object truncates
    the group's log, so every run rebuilds it from scratch. With
    ``enabled=False`` nothing is written.
    """

    def __init__(self, root: str, enabled: bool = True):
        self.root = root
        self.enabled = enabled
        self._touched: set[str] = set()

    def path_for(self, group: str) -> str:
        return os.path.join(self.root, group, INDEX_FILENAME)

    def append(self, group: str, digest_id: str, peripheral: str, device: str):
        if not self.enabled:
            return
        path = self.path_for(group)
        mode = "a" if group in self._touched else "w"
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, mode, encoding="utf-8", newline="\n") as f:
            f.write(f"{digest_id} {peripheral} {device}\n")
        self._touched.add(group)

    def read(self, group: str) -> list[str]:
        """Return the reference lines of a group's log, ignoring any report block."""
        path = self.path_for(group)
        if not os.path.exists(path):
            return []
        lines = []
        with open(path, encoding="utf-8") as f:
            for line in f:
                line = line.rstrip("\n")
                if not line:
                    break
                lines.append(line)
        return lines

    def finalize(self, group: str, report_lines=()) -> list[str]:
        """Sort a group's reference lines and rewrite the log.

        A non-empty ``report_lines`` is written after a blank line.
        Returns the sorted reference lines.
        """
        lines = sorted(self.read(group))
        text = "".join(f"{line}\n" for line in lines)
        if report_lines:
            text += "\n" + "".join(f"{line}\n" for line in report_lines)
        with open(self.path_for(group), "w", encoding="utf-8", newline="\n") as f:
            f.write(text)
        return lines

    @staticmethod
    def digest_of(line: str) -> str:
        return line.split(" ", 1)[0]

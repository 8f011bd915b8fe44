"""Batch deduplication of peripheral register trees across devices."""

import logging
from dataclasses import dataclass, field

from .canonical import FingerprintError, compute_fingerprint
from .config import AtlasConfig
from .corpus import ContentStore, ReferenceIndex
from .model import Device
from .normalize import normalize_peripheral
from .pattern import compress_names
from .similarity import MissingPayloadError, PairScore, SimilarityScorer, report_lines

logger = logging.getLogger("svdatlas.pipeline")


@dataclass
class PeripheralRecord:
    """Where one peripheral of one device ended up."""
    peripheral: str
    group: str
    digest_id: str
    stored: bool


@dataclass
class DeviceResult:
    device: str
    excluded: bool = False
    records: list[PeripheralRecord] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def new_entries(self) -> int:
        return sum(1 for r in self.records if r.stored)


@dataclass
class GroupSummary:
    """A group after finalization."""
    name: str
    pattern: str
    members: list[str] = field(default_factory=list)
    digests: list[str] = field(default_factory=list)
    references: list[str] = field(default_factory=list)
    report: list[str] = field(default_factory=list)
    scores: list[PairScore] = field(default_factory=list)
    report_error: str | None = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "pattern": self.pattern,
            "members": self.members,
            "digests": self.digests,
            "report": self.report,
            "scores": [s.to_dict() for s in self.scores],
            "report_error": self.report_error,
        }


class Pipeline:
    """Normalizes, fingerprints and files every peripheral of a batch of devices.

    Devices are processed one at a time, peripherals in input order.
    Call ``finalize`` once after the last device.
    """

    def __init__(self, store: ContentStore, index: ReferenceIndex, config: AtlasConfig | None = None):
        self.store = store
        self.index = index
        self.config = config or AtlasConfig()
        self.scorer = SimilarityScorer(store)
        # group -> member names (non-derived), in first-seen order
        self._members: dict[str, dict[str, None]] = {}
        # group -> digest ids, in first-seen order
        self._digests: dict[str, dict[str, None]] = {}

    def process_device(self, device: Device) -> DeviceResult:
        result = DeviceResult(device=device.name)
        if self.config.is_excluded(device.name):
            logger.info("Skipping excluded device %s", device.name)
            result.excluded = True
            return result

        for p in device.peripherals:
            normalized = normalize_peripheral(p, keep_descriptions=self.config.keep_descriptions)
            if normalized.registers is None:
                logger.debug("%s/%s has no registers", device.name, p.name)
                continue

            try:
                fp = compute_fingerprint(normalized.registers)
            except FingerprintError as e:
                logger.warning("Skipping %s/%s: %s", device.name, p.name, e)
                result.skipped.append(p.name)
                continue

            group = p.group
            digest_id = fp.digest_id(device.name, p.name, show_name=self.config.show_name)
            stored = self.store.put(group, digest_id, fp.payload)
            self.index.append(group, digest_id, p.name, device.name)

            self._digests.setdefault(group, {})[digest_id] = None
            members = self._members.setdefault(group, {})
            if not p.is_derived:
                members[p.name] = None

            result.records.append(PeripheralRecord(
                peripheral=p.name, group=group, digest_id=digest_id, stored=stored,
            ))
        return result

    def finalize(self) -> list[GroupSummary]:
        """Sort every group's log and attach similarity reports."""
        compare = self.config.compare_percent and not self.config.show_name
        summaries = []
        for group in sorted(self._digests):
            members = list(self._members.get(group, {}))
            digests = list(self._digests[group])
            summary = GroupSummary(
                name=group,
                pattern=compress_names(group, members),
                members=members,
                digests=digests,
            )
            if compare:
                try:
                    summary.scores = self.scorer.compare_group(group, digests)
                    summary.report = report_lines(summary.scores)
                except MissingPayloadError as e:
                    logger.warning("Skipping comparison for %s: %s", group, e)
                    summary.report_error = str(e)
            if self.index.enabled:
                summary.references = self.index.finalize(group, summary.report)
            summaries.append(summary)
        return summaries

    def run(self, devices) -> tuple[list[DeviceResult], list[GroupSummary]]:
        results = [self.process_device(d) for d in devices]
        return results, self.finalize()

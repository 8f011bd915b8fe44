"""End-to-end tests for the deduplication pipeline."""

import os

import pytest

from svdatlas.config import AtlasConfig
from svdatlas.corpus import INDEX_FILENAME, ContentStore, ReferenceIndex
from svdatlas.model import (
    Device,
    EnumeratedValue,
    EnumeratedValues,
    Field,
    Peripheral,
    Register,
)
from svdatlas.pipeline import Pipeline


# ── Helpers ───────────────────────────────────────────────────────────


def _timer(name: str, description: str = "timer", enum=("OFF", "ON"), group: str = "TIM",
           derived_from: str | None = None) -> Peripheral:
    return Peripheral(
        name=name,
        group_name=group,
        derived_from=derived_from,
        description=description,
        registers=[
            Register(name="CNT", address_offset=0x24, description=f"{name} counter"),
            Register(name="CR1", address_offset=0x0, fields=[
                Field(name="DIR", bit_offset=4),
                Field(name="CEN", bit_offset=0, enumerated_values=[EnumeratedValues(values=[
                    EnumeratedValue(name=enum[1], value=1),
                    EnumeratedValue(name=enum[0], value=0),
                ])]),
            ]),
        ],
    )


def _make_pipeline(root, **kwargs):
    cfg = AtlasConfig(output_root=str(root), exclude_prefixes=("STM32MP1",), **kwargs)
    store = ContentStore(cfg.output_dir)
    index = ReferenceIndex(cfg.output_dir, enabled=not cfg.show_name)
    return Pipeline(store, index, cfg)


def _yamls(path):
    return sorted(f for f in os.listdir(path) if f.endswith(".yaml"))


def _index_lines(root, group):
    with open(os.path.join(root, group, INDEX_FILENAME)) as f:
        return f.read().splitlines()


# ── Tests ─────────────────────────────────────────────────────────────


class TestEndToEnd:

    def test_identical_trees_stored_once(self, tmp_path):
        pipeline = _make_pipeline(tmp_path)
        pipeline.run([
            Device(name="DEV_B", peripherals=[_timer("TIM2", description="second")]),
            Device(name="DEV_A", peripherals=[_timer("TIM1", description="first")]),
        ])
        files = _yamls(tmp_path / "TIM")
        assert len(files) == 1
        digest_id = files[0][:-len(".yaml")]
        assert _index_lines(tmp_path, "TIM") == [
            f"{digest_id} TIM1 DEV_A",
            f"{digest_id} TIM2 DEV_B",
        ]

    def test_rerun_is_idempotent(self, tmp_path):
        devices = [
            Device(name="DEV_A", peripherals=[_timer("TIM1")]),
            Device(name="DEV_B", peripherals=[_timer("TIM2", enum=("DIS", "EN"))]),
        ]
        _make_pipeline(tmp_path).run(devices)
        first_files = _yamls(tmp_path / "TIM")
        first_index = _index_lines(tmp_path, "TIM")

        results, _ = _make_pipeline(tmp_path).run(devices)
        assert all(r.new_entries == 0 for r in results)
        assert _yamls(tmp_path / "TIM") == first_files
        assert _index_lines(tmp_path, "TIM") == first_index

    def test_device_result(self, tmp_path):
        pipeline = _make_pipeline(tmp_path)
        first = pipeline.process_device(Device(name="DEV_A", peripherals=[_timer("TIM1"), _timer("TIM2")]))
        assert [r.peripheral for r in first.records] == ["TIM1", "TIM2"]
        assert [r.stored for r in first.records] == [True, False]
        assert first.new_entries == 1

    def test_group_defaults_to_peripheral_name(self, tmp_path):
        pipeline = _make_pipeline(tmp_path)
        p = _timer("IWDG", group=None)
        pipeline.run([Device(name="DEV_A", peripherals=[p])])
        assert len(_yamls(tmp_path / "IWDG")) == 1

    def test_stored_payload_is_structural(self, tmp_path):
        pipeline = _make_pipeline(tmp_path)
        pipeline.run([Device(name="DEV_A", peripherals=[_timer("TIM1")])])
        text = (tmp_path / "TIM" / _yamls(tmp_path / "TIM")[0]).read_text()
        assert "OFF" in text
        assert "counter" not in text


class TestGroups:

    def test_pattern_excludes_derived(self, tmp_path):
        pipeline = _make_pipeline(tmp_path)
        _, summaries = pipeline.run([
            Device(name="DEV_A", peripherals=[
                _timer("TIM1"),
                _timer("TIM2"),
                _timer("TIM15", derived_from="TIM1"),
            ]),
        ])
        [tim] = summaries
        assert tim.name == "TIM"
        assert tim.members == ["TIM1", "TIM2"]
        assert tim.pattern == "TIM[12]"
        # derived peripherals are still referenced
        assert len(tim.references) == 3

    def test_no_register_tree_skipped(self, tmp_path):
        pipeline = _make_pipeline(tmp_path)
        result = pipeline.process_device(Device(name="DEV_A", peripherals=[
            Peripheral(name="TIM3", group_name="TIM", derived_from="TIM2"),
        ]))
        assert result.records == []
        assert pipeline.finalize() == []
        assert not (tmp_path / "TIM").exists()

    def test_summaries_sorted_by_group(self, tmp_path):
        pipeline = _make_pipeline(tmp_path)
        _, summaries = pipeline.run([Device(name="DEV_A", peripherals=[
            _timer("USART1", group="USART"),
            _timer("ADC1", group="ADC"),
        ])])
        assert [s.name for s in summaries] == ["ADC", "USART"]


class TestModes:

    def test_excluded_device_produces_nothing(self, tmp_path):
        pipeline = _make_pipeline(tmp_path)
        result = pipeline.process_device(Device(name="STM32MP157", peripherals=[_timer("TIM1")]))
        assert result.excluded
        assert pipeline.finalize() == []
        assert os.listdir(tmp_path) == []

    def test_show_name(self, tmp_path):
        pipeline = _make_pipeline(tmp_path, show_name=True, compare_percent=True)
        _, summaries = pipeline.run([
            Device(name="DEV_A", peripherals=[_timer("TIM1")]),
            Device(name="DEV_B", peripherals=[_timer("TIM2")]),
        ])
        files = _yamls(tmp_path / "TIM")
        assert len(files) == 2
        assert files[0].endswith("_DEV_A_TIM1.yaml")
        assert files[1].endswith("_DEV_B_TIM2.yaml")
        assert not (tmp_path / "TIM" / INDEX_FILENAME).exists()
        assert summaries[0].report == []

    def test_keep_descriptions(self, tmp_path):
        pipeline = _make_pipeline(tmp_path, keep_descriptions=True)
        pipeline.run([
            Device(name="DEV_A", peripherals=[_timer("TIM1")]),
            Device(name="DEV_B", peripherals=[_timer("TIM2")]),
        ])
        # register descriptions name the instance, so the trees now differ
        assert len(_yamls(tmp_path / "TIM")) == 2

    def test_compare_percent_appends_report(self, tmp_path):
        pipeline = _make_pipeline(tmp_path, compare_percent=True)
        _, [tim] = pipeline.run([
            Device(name="DEV_A", peripherals=[_timer("TIM1")]),
            Device(name="DEV_B", peripherals=[_timer("TIM2", enum=("DIS", "EN"))]),
        ])
        ids = sorted(tim.digests)
        assert len(ids) == 2
        # same layout, different enum names: skeleton halves agree
        assert ids[0].split("_")[1] == ids[1].split("_")[1]
        assert len(tim.report) == 1
        assert tim.report[0].endswith(f"% {ids[0]} {ids[1]}")

        lines = _index_lines(tmp_path, "TIM")
        assert lines[2] == ""
        assert lines[3] == tim.report[0]

    def test_summary_dict_carries_scores(self, tmp_path):
        pipeline = _make_pipeline(tmp_path, compare_percent=True)
        _, [tim] = pipeline.run([
            Device(name="DEV_A", peripherals=[_timer("TIM1")]),
            Device(name="DEV_B", peripherals=[_timer("TIM2", enum=("DIS", "EN"))]),
        ])
        d = tim.to_dict()
        [score] = d["scores"]
        assert [score["first"], score["second"]] == sorted(tim.digests)
        assert 0 < score["ratio"] < 100
        assert tim.report[0].startswith(f"{score['ratio']:5.1f}%")
        assert d["report_error"] is None

    def test_no_report_without_compare(self, tmp_path):
        pipeline = _make_pipeline(tmp_path)
        pipeline.run([
            Device(name="DEV_A", peripherals=[_timer("TIM1")]),
            Device(name="DEV_B", peripherals=[_timer("TIM2", enum=("DIS", "EN"))]),
        ])
        assert len(_index_lines(tmp_path, "TIM")) == 2


class TestErrors:

    def test_unserializable_peripheral_skipped(self, tmp_path):
        bad = _timer("TIM2")
        bad.registers[0].reset_value = object()
        pipeline = _make_pipeline(tmp_path)
        result = pipeline.process_device(Device(name="DEV_A", peripherals=[_timer("TIM1"), bad, _timer("TIM3")]))
        assert result.skipped == ["TIM2"]
        assert [r.peripheral for r in result.records] == ["TIM1", "TIM3"]

    def test_missing_payload_skips_group_report(self, tmp_path):
        pipeline = _make_pipeline(tmp_path, compare_percent=True)
        pipeline.process_device(Device(name="DEV_A", peripherals=[
            _timer("TIM1"),
            _timer("TIM2", enum=("DIS", "EN")),
        ]))
        pipeline.process_device(Device(name="DEV_A", peripherals=[_timer("ADC1", group="ADC")]))
        os.remove(tmp_path / "TIM" / _yamls(tmp_path / "TIM")[0])

        summaries = {s.name: s for s in pipeline.finalize()}
        assert summaries["TIM"].report == []
        assert summaries["TIM"].report_error
        assert len(_index_lines(tmp_path, "TIM")) == 2
        assert summaries["ADC"].report_error is None

    def test_output_failure_propagates(self, tmp_path):
        blocker = tmp_path / "out"
        blocker.write_text("not a directory")
        pipeline = _make_pipeline(blocker)
        with pytest.raises(OSError):
            pipeline.process_device(Device(name="DEV_A", peripherals=[_timer("TIM1")]))

"""Run configuration for svdatlas"""
import os
from dataclasses import dataclass, field


def _env_list(name: str, default: str) -> tuple[str, ...]:
    raw = os.getenv(name, default)
    return tuple(p.strip() for p in raw.split(",") if p.strip())


@dataclass
class AtlasConfig:
    """svdatlas run options"""

    # Input documents
    input_dir: str = os.getenv("SVDATLAS_INPUT", ".")
    origin: bool = False  # scan original .svd files instead of .patched ones

    # Output root; derived from `origin` when unset
    output_root: str | None = os.getenv("SVDATLAS_OUTPUT")
    clean: bool = False  # remove the output root before the run

    # Processing modes
    keep_descriptions: bool = False
    show_name: bool = False
    compare_percent: bool = False

    # Device families that are skipped entirely
    exclude_prefixes: tuple[str, ...] = field(
        default_factory=lambda: _env_list("SVDATLAS_EXCLUDE", "STM32MP1")
    )

    @property
    def input_extension(self) -> str:
        return ".svd" if self.origin else ".patched"

    @property
    def output_dir(self) -> str:
        if self.output_root:
            return self.output_root
        return "yamls_orig" if self.origin else "yamls"

    def is_excluded(self, device_name: str) -> bool:
        return any(device_name.startswith(p) for p in self.exclude_prefixes)

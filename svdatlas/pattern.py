"""Compact rendering of a group's peripheral names."""

from typing import Iterable


def compress_names(group: str, names: Iterable[str]) -> str:
    """Render the names of a peripheral family as a short pattern.

    When every name starts with ``group`` the suffixes are packed behind it:
    ``TIM1, TIM2`` -> ``TIM[12]``. Suffixes longer than one character are
    braced (``TIM[{10}2]``) and the bare group name shows up as ``x``. A lone
    member renders as its own name. If any name lacks the prefix, the names
    are listed instead: ``ADC: ADC1, SharedADC``.
    """
    members = list(dict.fromkeys(names))
    if not members:
        return group

    if not all(n.startswith(group) for n in members):
        return f"{group}: " + ", ".join(members)

    suffixes = [n[len(group):] for n in members]
    if len(suffixes) == 1:
        return group + suffixes[0]

    return group + "[" + "".join(_token(s) for s in suffixes) + "]"


def _token(suffix: str) -> str:
    if not suffix:
        return "x"
    if len(suffix) > 1:
        return "{" + suffix + "}"
    return suffix

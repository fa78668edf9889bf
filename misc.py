import logging
from pathlib import Path
from typing import Optional

import yaml

from filterbank_builder import FilterBankConfig, GainPolicy, MelScale, SlaneyPolicy

FILTERBANK_KEYS = {
    "n_filters",
    "win_s",
    "samplerate",
    "freq_min",
    "freq_max",
    "scale",
    "gain",
    "slaney",
}
REQUIRED_FILTERBANK_KEYS = ("n_filters", "win_s", "samplerate")


def load_config(path: Path = Path("config.yaml")) -> Optional[dict]:
    """
    Loads the yaml config
    """
    with open(path, "r", encoding="utf-8") as f:
        try:
            return yaml.safe_load(f)
        except yaml.YAMLError as exc:
            logging.error(f"Failed to load config: {exc}")
            return None


def _none_or(value, cast):
    # yaml gives us None for `~`, some configs spell it as a string
    return None if value in (None, "None", "none") else cast(value)


def filterbank_config_from_dict(section: dict) -> FilterBankConfig:
    """
    Turn the `filterbank` section of the config into a FilterBankConfig.

    Missing sizes raise ValueError like unknown keys do, so typos don't
    silently fall back to defaults.
    """
    unknown = set(section) - FILTERBANK_KEYS
    if unknown:
        raise ValueError(f"Unknown filterbank options: {sorted(unknown)}")
    missing = [k for k in REQUIRED_FILTERBANK_KEYS if section.get(k) is None]
    if missing:
        raise ValueError(f"Missing filterbank options: {missing}")

    slaney = section.get("slaney") or {}
    unknown = set(slaney) - set(SlaneyPolicy.__dataclass_fields__)
    if unknown:
        raise ValueError(f"Unknown slaney options: {sorted(unknown)}")

    return FilterBankConfig(
        n_filters=int(section["n_filters"]),
        win_s=int(section["win_s"]),
        samplerate=int(section["samplerate"]),
        freq_min=float(section.get("freq_min", 0.0)),
        freq_max=_none_or(section.get("freq_max"), float),
        scale=MelScale(section.get("scale", "htk")),
        gain=_none_or(section.get("gain"), GainPolicy),
        slaney=SlaneyPolicy(**slaney),
    )

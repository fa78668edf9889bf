"""Tests for config loading."""

import logging
from pathlib import Path

import pytest

from filterbank_builder import GainPolicy, MelScale, build_filterbank
from misc import filterbank_config_from_dict, load_config

REPO_CONFIG = Path(__file__).resolve().parent.parent / "config.yaml"


class TestLoadConfig:
    def test_repo_config_builds(self):
        cfg = load_config(REPO_CONFIG)
        config = filterbank_config_from_dict(cfg["filterbank"])

        bank = build_filterbank(config)

        assert bank.filters.shape == (config.n_filters, config.win_s)
        assert cfg["audio"]["hop_length"] > 0

    def test_invalid_yaml_returns_none(self, tmp_path, caplog):
        path = tmp_path / "broken.yaml"
        path.write_text("filterbank: [1, 2\n")

        with caplog.at_level(logging.ERROR):
            assert load_config(path) is None
        assert "Failed to load config" in caplog.text


class TestFilterbankSection:
    def test_conversion(self):
        config = filterbank_config_from_dict(
            {
                "n_filters": "26",
                "win_s": 1024,
                "samplerate": 22050,
                "freq_min": 20,
                "freq_max": 8000,
                "scale": "htk",
                "gain": "equal_area",
            }
        )

        assert config.n_filters == 26
        assert config.freq_min == 20.0
        assert config.fmax == 8000.0
        assert config.scale is MelScale.HTK
        assert config.gain is GainPolicy.EQUAL_AREA

    def test_defaults(self):
        config = filterbank_config_from_dict(
            {"n_filters": 20, "win_s": 512, "samplerate": 16000, "freq_max": None}
        )

        assert config.freq_min == 0.0
        assert config.fmax == 8000.0
        assert config.gain is None
        assert config.gain_policy is GainPolicy.EQUAL_GAIN

    def test_slaney_section(self):
        config = filterbank_config_from_dict(
            {
                "n_filters": 10,
                "win_s": 1024,
                "samplerate": 16000,
                "scale": "slaney",
                "gain": "None",
                "slaney": {"linear_filters": 4, "log_filters": 6},
            }
        )

        assert config.scale is MelScale.SLANEY
        assert config.slaney.linear_filters == 4
        assert config.slaney.log_spacing == pytest.approx(1.0711703)
        assert build_filterbank(config).n_filters == 10

    def test_unknown_key_rejected(self):
        with pytest.raises(ValueError, match="n_filter"):
            filterbank_config_from_dict({"n_filter": 20, "win_s": 512})

    def test_unknown_slaney_key_rejected(self):
        with pytest.raises(ValueError):
            filterbank_config_from_dict(
                {
                    "n_filters": 40,
                    "win_s": 512,
                    "samplerate": 16000,
                    "scale": "slaney",
                    "slaney": {"linear_filter": 13},
                }
            )

    def test_unknown_scale_rejected(self):
        with pytest.raises(ValueError):
            filterbank_config_from_dict(
                {"n_filters": 40, "win_s": 512, "samplerate": 16000, "scale": "bark"}
            )

    def test_missing_size_rejected(self):
        with pytest.raises(ValueError, match="Missing filterbank options"):
            filterbank_config_from_dict({"n_filters": 40, "samplerate": 16000})

    def test_missing_sizes_listed(self):
        with pytest.raises(ValueError, match=r"\['win_s', 'samplerate'\]"):
            filterbank_config_from_dict({"n_filters": 40, "win_s": None})

"""Tests for the directory scanning script."""

from pathlib import Path

import numpy as np
import pytest
import soundfile as sf

from scan_filterbank import find_audio, main

REPO_CONFIG = str(Path(__file__).resolve().parent.parent / "config.yaml")
SR = 16000


@pytest.fixture
def input_dir(tmp_path):
    in_dir = tmp_path / "input"
    (in_dir / "nested").mkdir(parents=True)
    t = np.arange(SR) / SR
    tone = (0.5 * np.sin(2 * np.pi * 1000.0 * t)).astype(np.float32)
    sf.write(in_dir / "nested" / "tone.wav", tone, SR)
    return in_dir


class TestFindAudio:
    def test_recursive(self, input_dir):
        assert [f.name for f in find_audio(input_dir)] == ["tone.wav"]


class TestMain:
    def test_saves_energies(self, input_dir, tmp_path):
        out_dir = tmp_path / "out"

        main(
            [
                "--config",
                REPO_CONFIG,
                "--input",
                str(input_dir),
                "--output",
                str(out_dir),
                "--preview",
            ]
        )

        energies = np.load(out_dir / "energies" / "tone.npy")
        assert energies.shape == (40, 1 + SR // 160)
        assert energies.dtype == np.float32
        assert np.all(np.isfinite(energies))
        assert (out_dir / "previews" / "tone.png").exists()

    def test_empty_input(self, tmp_path):
        out_dir = tmp_path / "out"
        (tmp_path / "empty").mkdir()

        main(
            [
                "--config",
                REPO_CONFIG,
                "--input",
                str(tmp_path / "empty"),
                "--output",
                str(out_dir),
            ]
        )

        assert list((out_dir / "energies").iterdir()) == []

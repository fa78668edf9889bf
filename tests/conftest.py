"""Shared fixtures for the filterbank tests."""

import numpy as np
import pytest

from filterbank_builder import (
    FilterBankConfig,
    GainPolicy,
    MelScale,
    build_filterbank,
)


@pytest.fixture
def htk_config():
    return FilterBankConfig(
        n_filters=40, win_s=512, samplerate=16000, freq_min=0.0, freq_max=8000.0
    )


@pytest.fixture
def htk_bank(htk_config):
    bank = build_filterbank(htk_config)
    yield bank
    bank.close()


@pytest.fixture
def equal_area_config():
    return FilterBankConfig(
        n_filters=24,
        win_s=1024,
        samplerate=16000,
        freq_min=100.0,
        freq_max=7000.0,
        gain=GainPolicy.EQUAL_AREA,
    )


@pytest.fixture
def slaney_config():
    return FilterBankConfig(
        n_filters=40, win_s=512, samplerate=16000, scale=MelScale.SLANEY
    )


@pytest.fixture
def slaney_bank(slaney_config):
    bank = build_filterbank(slaney_config)
    yield bank
    bank.close()


def assert_unimodal(row: np.ndarray):
    """Non-negative, one contiguous support, rising then falling."""
    assert np.all(np.isfinite(row))
    assert np.all(row >= 0.0)

    support = np.flatnonzero(row > 0.0)
    assert support.size > 0
    onset, offset = support[0], support[-1]
    assert np.all(row[onset : offset + 1] > 0.0)

    peak = int(np.argmax(row))
    assert np.all(np.diff(row[: peak + 1]) >= 0.0)
    assert np.all(np.diff(row[peak:]) <= 0.0)

"""
Construction of triangular filterbanks.

Two layouts are supported, selected by ``FilterBankConfig.scale``:

- ``MelScale.HTK``: ``n_filters`` triangles equally spaced on the HTK mel
  scale between ``freq_min`` and ``freq_max``, quantised to FFT bins, with
  equal-gain (peak 1.0) or equal-area heights.
- ``MelScale.SLANEY``: Slaney's auditory toolbox layout, a run of linearly
  spaced filters followed by logarithmically spaced ones, each with unit area
  in Hz.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

import numpy as np

from filterbank import FilterBank, FilterBankError

_logger = logging.getLogger(__name__)
_logger.addHandler(logging.NullHandler())

UNRESOLVABLE_MSG = (
    "requested filter count exceeds resolvable bins for the given frequency range"
)


class MelScale(Enum):
    HTK = "htk"
    SLANEY = "slaney"


class GainPolicy(Enum):
    EQUAL_GAIN = "equal_gain"
    EQUAL_AREA = "equal_area"


@dataclass(frozen=True)
class SlaneyPolicy:
    """Peak layout of the Slaney filterbank (defaults from the auditory toolbox)."""

    lowest_frequency: float = 133.3333
    linear_spacing: float = 66.66666666
    log_spacing: float = 1.0711703
    linear_filters: int = 13
    log_filters: int = 27

    @property
    def n_filters(self) -> int:
        return self.linear_filters + self.log_filters


@dataclass(frozen=True)
class FilterBankConfig:
    """
    Everything needed to build a filterbank.

    Attributes:
        n_filters: Number of triangular filters
        win_s: Length of each filter in bins
        samplerate: Sample rate of the analysed signal (Hz)
        freq_min: Peak of the first HTK filter (Hz), which rises from bin 0
        freq_max: Upper edge of the last HTK filter (Hz), Nyquist if None
        scale: Which layout to build
        gain: Height policy, None picks the scale's default
        slaney: Peak layout used by the Slaney scale
    """

    n_filters: int
    win_s: int
    samplerate: int
    freq_min: float = 0.0
    freq_max: Optional[float] = None
    scale: MelScale = MelScale.HTK
    gain: Optional[GainPolicy] = None
    slaney: SlaneyPolicy = field(default_factory=SlaneyPolicy)

    def __post_init__(self):
        if self.n_filters < 1:
            raise ValueError(f"n_filters must be >= 1, got {self.n_filters}")
        if self.win_s < 2:
            raise ValueError(f"win_s must be >= 2, got {self.win_s}")
        if self.samplerate <= 0:
            raise ValueError(f"samplerate must be > 0, got {self.samplerate}")

        if self.scale is MelScale.HTK:
            if not 0 <= self.freq_min < self.fmax <= self.nyquist:
                raise ValueError(
                    f"Expected 0 <= freq_min < freq_max <= {self.nyquist:g}, got "
                    f"freq_min={self.freq_min:g}, freq_max={self.fmax:g}"
                )
        elif self.scale is MelScale.SLANEY:
            if self.gain is GainPolicy.EQUAL_GAIN:
                raise ValueError("The Slaney filterbank is always area normalised")
            policy = self.slaney
            if policy.linear_filters < 1 or policy.log_filters < 0:
                raise ValueError(
                    "Slaney layout needs at least one linear filter, got "
                    f"linear_filters={policy.linear_filters}, "
                    f"log_filters={policy.log_filters}"
                )
            if (
                policy.lowest_frequency < 0
                or policy.linear_spacing <= 0
                or policy.log_spacing <= 1
            ):
                raise ValueError(f"Invalid Slaney spacing: {policy}")
            if self.n_filters != policy.n_filters:
                raise ValueError(
                    f"The Slaney layout builds {policy.n_filters} filters "
                    f"({policy.linear_filters} linear + {policy.log_filters} log), "
                    f"but n_filters={self.n_filters} was requested"
                )
        else:
            raise ValueError(f"Unknown scale: {self.scale!r}")

    @property
    def nyquist(self) -> float:
        return self.samplerate / 2.0

    @property
    def fmax(self) -> float:
        return self.nyquist if self.freq_max is None else float(self.freq_max)

    @property
    def gain_policy(self) -> GainPolicy:
        if self.gain is not None:
            return self.gain
        if self.scale is MelScale.SLANEY:
            return GainPolicy.EQUAL_AREA
        return GainPolicy.EQUAL_GAIN


@dataclass(frozen=True)
class FilterEdges:
    """Lower edge, peak and upper edge of one triangle, plus its height."""

    lower: float
    center: float
    upper: float
    height: float


def hz_to_mel(freq):
    """HTK mel scale: 1127 * ln(1 + f / 700)."""
    return 1127.0 * np.log(1.0 + np.asarray(freq, dtype=np.float64) / 700.0)


def mel_to_hz(mel):
    return 700.0 * (np.exp(np.asarray(mel, dtype=np.float64) / 1127.0) - 1.0)


# ---------- HTK layout ----------


def htk_edges(config: FilterBankConfig) -> List[FilterEdges]:
    """
    Bin positions and heights of the HTK filters.

    ``n_filters + 1`` peaks are spread on the mel scale from freq_min to
    freq_max, one mel step of ``span / n_filters`` apart, and rounded to the
    nearest FFT bin. Filter n is centred on peak n and falls to zero on peak
    n + 1; it rises from peak n - 1, or from bin 0 for the first filter.
    """
    mel_min = hz_to_mel(config.freq_min)
    mel_max = hz_to_mel(config.fmax)
    mel_peaks = np.linspace(mel_min, mel_max, config.n_filters + 1)
    lin_peaks = mel_to_hz(mel_peaks)
    half = config.win_s // 2
    # Half-up rounding, np.rint would round half to even
    fft_peaks = np.floor(lin_peaks / config.nyquist * half + 0.5).astype(np.int64)
    fft_peaks = np.clip(fft_peaks, 0, half)

    collapsed = np.flatnonzero(np.diff(fft_peaks) <= 0)
    if collapsed.size:
        k = int(collapsed[0])
        raise FilterBankError(
            f"{UNRESOLVABLE_MSG}: peaks {k} and {k + 1} "
            f"({lin_peaks[k]:.1f} Hz, {lin_peaks[k + 1]:.1f} Hz) both fall on "
            f"bin {fft_peaks[k]}"
        )

    lowers = np.concatenate([[0], fft_peaks[:-2]])
    centers = fft_peaks[:-1]
    uppers = fft_peaks[1:]

    spans = uppers - lowers
    if config.gain_policy is GainPolicy.EQUAL_AREA:
        heights = spans[0] / spans
    else:
        heights = np.ones(config.n_filters)

    return [
        FilterEdges(
            lower=int(lowers[n]),
            center=int(centers[n]),
            upper=int(uppers[n]),
            height=float(heights[n]),
        )
        for n in range(config.n_filters)
    ]


def _htk_weights(edges: List[FilterEdges], win_s: int) -> np.ndarray:
    weights = np.zeros((len(edges), win_s), dtype=np.float64)
    for n, e in enumerate(edges):
        if e.center == e.lower:
            # first filter peaking on bin 0: no rising edge
            weights[n, e.center] = e.height
        else:
            # rise over [lower, center], the peak bin gets exactly `height`
            rise = np.arange(e.lower, e.center + 1)
            weights[n, e.lower : e.center + 1] = e.height * (
                (rise - e.lower) / (e.center - e.lower)
            )
        # fall over (center, upper], reaching 0 on the next filter's peak
        fall = np.arange(e.center + 1, e.upper + 1)
        weights[n, e.center + 1 : e.upper + 1] = e.height * (
            (e.upper - fall) / (e.upper - e.center)
        )
    return weights


# ---------- Slaney layout ----------


def slaney_edges(config: FilterBankConfig) -> List[FilterEdges]:
    """Hz edges of the Slaney filters, each triangle scaled to unit area."""
    policy = config.slaney
    linear = policy.lowest_frequency + np.arange(policy.linear_filters) * (
        policy.linear_spacing
    )
    log = linear[-1] * policy.log_spacing ** np.arange(1, policy.log_filters + 3)
    freqs = np.concatenate([linear, log])

    lower, center, upper = freqs[:-2], freqs[1:-1], freqs[2:]
    heights = 2.0 / (upper - lower)
    return [
        FilterEdges(float(lo), float(c), float(up), float(h))
        for lo, c, up, h in zip(lower, center, upper, heights)
    ]


def _slaney_weights(
    edges: List[FilterEdges], win_s: int, samplerate: int
) -> np.ndarray:
    # Frequency of every bin of the window, not only up to Nyquist
    bin_hz = float(samplerate) * np.arange(win_s) / win_s

    weights = np.zeros((len(edges), win_s), dtype=np.float64)
    for n, e in enumerate(edges):
        rise_inc = e.height / (e.center - e.lower)
        # The falling edge has its own slope so every triangle keeps unit
        # area. Log-spaced filters are asymmetric, so this differs from the
        # legacy auditory-toolbox port, which reused rise_inc and cut them short.
        fall_inc = e.height / (e.upper - e.center)
        rising = (bin_hz - e.lower) * rise_inc
        falling = e.height - (bin_hz - e.center) * fall_inc
        row = np.where(bin_hz <= e.center, rising, falling)
        row[(bin_hz <= e.lower) | (bin_hz >= e.upper)] = 0.0
        weights[n] = np.maximum(row, 0.0)

        if not np.any(weights[n] > 0):
            raise FilterBankError(
                f"{UNRESOLVABLE_MSG}: filter {n} ({e.lower:.1f}-{e.upper:.1f} Hz) "
                f"covers no bin at {samplerate} Hz / {win_s} bins"
            )
    return weights


# ---------- entry point ----------


def build_filterbank(
    config: FilterBankConfig, logger: Optional[logging.Logger] = None
) -> FilterBank:
    """
    Build and populate a filterbank.

    Args:
        config: Layout, sizes and gain policy of the bank
        logger: Receives the per-filter edge table at DEBUG level. Defaults
            to this module's logger, which is silent unless logging is
            configured by the application.

    Returns:
        FilterBank: a read-only bank of config.n_filters x config.win_s weights

    Raises:
        FilterBankError: if the frequency resolution can't separate the filters
    """
    log = logger if logger is not None else _logger

    if config.scale is MelScale.SLANEY:
        edges = slaney_edges(config)
        weights = _slaney_weights(edges, config.win_s, config.samplerate)
    else:
        edges = htk_edges(config)
        weights = _htk_weights(edges, config.win_s)

    log.debug(
        f"{config.scale.value} filter tables ({config.gain_policy.value}), "
        f"{len(edges)} filters x {config.win_s} bins"
    )
    for n, e in enumerate(edges):
        log.debug(
            f"filter n. {n} {e.lower:f} {e.center:f} {e.upper:f} {e.height:f}"
        )

    return FilterBank(len(edges), config.win_s).fill(weights)

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import numpy as np

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

# Floor applied before the log so silent bands stay finite
VERY_SMALL_NUMBER = 2e-42


class FilterBankError(ValueError):
    """Raised for degenerate filterbanks and for use of a released bank."""


@dataclass
class SpectrumFrame:
    """
    One frame of a spectrum as produced by the FFT stage.

    Only ``norm`` (the magnitudes) is read by the filterbank, ``phase`` is
    carried along for whoever produced the frame.
    """

    norm: np.ndarray
    phase: Optional[np.ndarray] = None

    def __len__(self):
        return len(self.norm)


def _as_magnitudes(frame) -> np.ndarray:
    if isinstance(frame, SpectrumFrame):
        frame = frame.norm
    mags = np.asarray(frame)
    if np.iscomplexobj(mags):
        raise TypeError("Expected magnitudes, got a complex spectrum")
    return mags.astype(np.float64, copy=False)


class FilterBank:
    """
    A set of ``n_filters`` weighting vectors of length ``win_s``.

    The bank is created zero-filled, populated once through ``fill`` (which
    ``filterbank_builder.build_filterbank`` does) and read-only afterwards.
    """

    def __init__(self, n_filters: int, win_s: int):
        if n_filters < 0 or win_s < 0:
            raise ValueError(
                f"Filterbank sizes must be non-negative, got n_filters={n_filters}, "
                f"win_s={win_s}"
            )
        self.n_filters = int(n_filters)
        self.win_s = int(win_s)
        self._weights = np.zeros((self.n_filters, self.win_s), dtype=np.float64)

    # ---------- lifecycle ----------

    @property
    def closed(self) -> bool:
        return self._weights is None

    def close(self):
        """Release the weight storage. Safe to call more than once."""
        self._weights = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def _storage(self) -> np.ndarray:
        if self._weights is None:
            raise FilterBankError("Filterbank has been released")
        return self._weights

    def fill(self, weights: np.ndarray):
        """Copy the builder's weights in and make the bank read-only."""
        storage = self._storage()
        if not storage.flags.writeable:
            raise FilterBankError("Filterbank weights are already populated")
        weights = np.asarray(weights, dtype=np.float64)
        if weights.shape != storage.shape:
            raise ValueError(
                f"Expected weights of shape {storage.shape}, got {weights.shape}"
            )
        storage[:] = weights
        storage.flags.writeable = False
        return self

    @property
    def filters(self) -> np.ndarray:
        """Read-only view of the weights, shape (n_filters, win_s)."""
        view = self._storage().view()
        view.flags.writeable = False
        return view

    def __len__(self):
        return self.n_filters

    def __repr__(self):
        state = "released" if self.closed else "ready"
        return f"FilterBank(n_filters={self.n_filters}, win_s={self.win_s}, {state})"

    # ---------- diagnostics ----------

    def dump(self, path: Union[str, Path] = "filterbank.txt"):
        """
        Write one row of space separated weights per filter.

        Diagnostic only: if the file can't be opened nothing is written and
        nothing is raised.
        """
        weights = self._storage()
        try:
            f = open(path, "w", encoding="utf-8")
        except OSError as exc:
            logger.debug(f"Skipping filterbank dump to {path}: {exc}")
            return
        with f:
            for row in weights:
                f.write("".join(f"{w:f} " for w in row))
                f.write("\n")

    # ---------- apply ----------

    def energies(self, frame) -> np.ndarray:
        """
        Pre-log filterbank energies of one magnitude frame.

        Args:
            frame (SpectrumFrame | np.ndarray): magnitudes of length L <= win_s.

        Returns:
            np.ndarray: (n_filters,) dot products over the first L bins.
        """
        weights = self._storage()
        mags = _as_magnitudes(frame)
        if mags.ndim != 1:
            raise ValueError(f"Expected a 1D frame, got shape {mags.shape}")
        n_bins = mags.shape[0]
        if n_bins > self.win_s:
            raise ValueError(
                f"Frame has {n_bins} bins but the filterbank only covers {self.win_s}"
            )
        return weights[:, :n_bins] @ mags

    def apply(self, frame, out: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Log-compressed filterbank energies of one magnitude frame.

        When ``out`` is given, only the first min(n_filters, len(out)) entries
        are written and ``out`` is returned.
        """
        energy = np.log(np.maximum(self.energies(frame), VERY_SMALL_NUMBER))
        if out is None:
            return energy
        n = min(self.n_filters, out.shape[0])
        out[:n] = energy[:n]
        return out

    def apply_spectrogram(self, spec: np.ndarray) -> np.ndarray:
        """
        Log filterbank energies of a (bins, frames) magnitude spectrogram.

        Returns an (n_filters, frames) array.
        """
        weights = self._storage()
        mags = _as_magnitudes(spec)
        if mags.ndim != 2:
            raise ValueError(f"Expected a (bins, frames) array, got {mags.shape}")
        n_bins = mags.shape[0]
        if n_bins > self.win_s:
            raise ValueError(
                f"Spectrogram has {n_bins} bins but the filterbank only covers "
                f"{self.win_s}"
            )
        return np.log(np.maximum(weights[:, :n_bins] @ mags, VERY_SMALL_NUMBER))

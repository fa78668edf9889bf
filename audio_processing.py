from pathlib import Path
from typing import Optional, Union

import librosa
import numpy as np

from filterbank import FilterBank, SpectrumFrame


def load_audio(path: Union[str, Path], sr: Optional[int], start: float = 0.0, end=None):
    y, sr = librosa.load(
        str(path),
        sr=sr,
        offset=start,
        duration=None if end is None else (end - start),
    )
    return y, sr


def _stft(audio: np.ndarray, win_s: int, hop_length: int, window: str, center: bool):
    return librosa.stft(
        y=audio.astype(np.float32, copy=False),
        n_fft=int(win_s),
        hop_length=int(hop_length),
        window=window,
        center=bool(center),
    )


def magnitude_spectrogram(
    audio: np.ndarray,
    win_s: int,
    hop_length: int,
    window: str = "hamming",
    center: bool = True,
):
    """
    Magnitude STFT of a waveform, shape (win_s // 2 + 1, frames).

    The phase is dropped here, the filterbank only reads magnitudes.
    """
    return np.abs(_stft(audio, win_s, hop_length, window, center))


def spectrum_frames(
    audio: np.ndarray,
    win_s: int,
    hop_length: int,
    window: str = "hamming",
    center: bool = True,
):
    """Yield one SpectrumFrame per STFT column, magnitude and phase."""
    stft = _stft(audio, win_s, hop_length, window, center)
    mag, phase = librosa.magphase(stft)
    for t in range(stft.shape[1]):
        yield SpectrumFrame(norm=mag[:, t], phase=np.angle(phase[:, t]))


def log_filterbank_energies(
    audio: np.ndarray,
    bank: FilterBank,
    hop_length: int,
    window: str = "hamming",
    center: bool = True,
):
    """
    Log filterbank energies of a waveform, shape (n_filters, frames).

    The FFT size is the filterbank's win_s.
    """
    spec = magnitude_spectrogram(audio, bank.win_s, hop_length, window, center)
    return bank.apply_spectrogram(spec)

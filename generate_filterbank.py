#!/usr/bin/env python3
"""
Build the triangular filterbank described by config.yaml, dump its weights
to a text file and (optionally) plot it.

Defaults come from the `filterbank` section of the config; any of the
command line options below overrides them. With --compare_librosa the HTK
bank is checked against librosa's HTK mel filters (no normalisation). librosa
spreads n_mels + 2 points and keeps them fractional, so its filters sit
slightly above ours.
"""

import argparse
import logging

import librosa
import librosa.filters
import matplotlib.pyplot as plt
import numpy as np

from filterbank_builder import (
    FilterBankConfig,
    GainPolicy,
    MelScale,
    SlaneyPolicy,
    build_filterbank,
    htk_edges,
)
from init import init
from misc import filterbank_config_from_dict, load_config


def compare_with_librosa(config: FilterBankConfig, filters: np.ndarray) -> float:
    """Max absolute weight difference against librosa.filters.mel(htk=True)."""
    ref = librosa.filters.mel(
        sr=config.samplerate,
        n_fft=config.win_s,
        n_mels=config.n_filters,
        fmin=config.freq_min,
        fmax=config.fmax,
        htk=True,
        norm=None,
    )
    n_bins = ref.shape[1]
    return float(np.max(np.abs(filters[:, :n_bins] - ref)))


def plot_filterbank(config: FilterBankConfig, filters: np.ndarray, outfile: str):
    n_bins = config.win_s // 2 + 1
    freqs = config.samplerate * np.arange(n_bins) / config.win_s

    plt.figure(figsize=(10, 3))
    for i in range(filters.shape[0]):
        plt.plot(freqs, filters[i, :n_bins], linewidth=0.9, alpha=0.8)

    title_bits = [
        f"{filters.shape[0]}-filter {config.scale.value} bank",
        config.gain_policy.value,
        f"sr={config.samplerate}",
        f"win_s={config.win_s}",
    ]
    if config.scale is MelScale.HTK:
        title_bits.append(f"fmin={config.freq_min:g}, fmax={config.fmax:g}")
    plt.title(" | ".join(title_bits))
    plt.xlabel("Frequency (Hz)")
    plt.ylabel("Amplitude (weight)")
    plt.xlim([0, config.samplerate / 2.0])
    plt.ylim([0.0, np.max(filters) * 1.05])
    plt.grid(True, which="both", axis="x", alpha=0.2)
    plt.tight_layout()
    plt.savefig(outfile)
    plt.close()


def parse_args(argv=None):
    ap = argparse.ArgumentParser()
    ap.add_argument("--config", type=str, default="config.yaml", help="config file")
    ap.add_argument("--n_filters", type=int, default=None, help="number of filters")
    ap.add_argument("--win_s", type=int, default=None, help="filter length (bins)")
    ap.add_argument("--sr", type=int, default=None, help="sample rate (Hz)")
    ap.add_argument("--fmin", type=float, default=None, help="min frequency (Hz)")
    ap.add_argument("--fmax", type=float, default=None, help="max frequency (Hz)")
    ap.add_argument(
        "--scale", choices=[s.value for s in MelScale], default=None, help="layout"
    )
    ap.add_argument(
        "--gain", choices=[g.value for g in GainPolicy], default=None, help="heights"
    )
    ap.add_argument("--dump", type=str, default=None, help="weights text file")
    ap.add_argument("--plot", type=str, default=None, help="output figure file")
    ap.add_argument(
        "--compare_librosa",
        action="store_true",
        help="report the max deviation from librosa's HTK mel filters",
    )
    ap.add_argument("--debug", action="store_true", help="log the filter tables")
    return ap.parse_args(argv)


def config_from_args(args, cfg: dict) -> FilterBankConfig:
    section = dict(cfg.get("filterbank") or {})
    overrides = {
        "n_filters": args.n_filters,
        "win_s": args.win_s,
        "samplerate": args.sr,
        "freq_min": args.fmin,
        "freq_max": args.fmax,
        "scale": args.scale,
        "gain": args.gain,
    }
    section.update({k: v for k, v in overrides.items() if v is not None})

    # The Slaney layout fixes its own filter count
    if section.get("scale") == MelScale.SLANEY.value and args.n_filters is None:
        slaney = SlaneyPolicy(**(section.get("slaney") or {}))
        section["n_filters"] = slaney.n_filters
    return filterbank_config_from_dict(section)


def main(argv=None):
    args = parse_args(argv)
    init(level=logging.DEBUG if args.debug else logging.INFO)

    logging.info(f"Loading config from {args.config}")
    cfg = load_config(args.config)
    if cfg is None:
        exit(1)

    config = config_from_args(args, cfg)

    logging.info(
        f"Building {config.n_filters} {config.scale.value} filters over "
        f"{config.win_s} bins at {config.samplerate} Hz"
    )
    bank = build_filterbank(config, logger=logging.getLogger("generate_filterbank"))

    with bank:
        filters = bank.filters

        dump_path = args.dump or (cfg.get("output") or {}).get("dump_path")
        if dump_path:
            bank.dump(dump_path)
            logging.info(f"Dumped filter weights to {dump_path}")

        if config.scale is MelScale.HTK:
            centers = [e.center for e in htk_edges(config)]
            logging.info(f"Peak bins: {centers}")
            if args.compare_librosa:
                if config.gain_policy is not GainPolicy.EQUAL_GAIN:
                    logging.warning("librosa comparison assumes equal-gain filters")
                deviation = compare_with_librosa(config, filters)
                logging.info(f"Max deviation from librosa HTK filters: {deviation:.4f}")
        elif args.compare_librosa:
            logging.warning("librosa comparison is only available for the HTK scale")

        if args.plot:
            plot_filterbank(config, filters, args.plot)
            logging.info(f"Saved: {args.plot}")


if __name__ == "__main__":
    main()

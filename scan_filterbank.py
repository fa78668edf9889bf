#!/usr/bin/env python3
"""
Scan a directory for audio, compute log filterbank energies for each file
with the bank described by config.yaml, and save them.

Outputs (in output/):
- energies/<file>.npy      : (n_filters, frames) log energies per file
- previews/<file>.png      : per-file energy previews (with --preview)
"""

import argparse
import glob
import logging
from pathlib import Path

import librosa.display
import matplotlib.pyplot as plt
import numpy as np
from tqdm import tqdm

from audio_processing import load_audio, log_filterbank_energies
from filterbank_builder import build_filterbank
from init import init
from misc import filterbank_config_from_dict, load_config

AUDIO_PATTERNS = ("*.ogg", "*.wav", "*.flac")


def save_energy_preview(energies, sr, hop, out_png, title=None):
    plt.figure(figsize=(8, 4))
    librosa.display.specshow(
        energies,
        sr=sr,
        hop_length=hop,
        x_axis="time",
        cmap="magma",
    )
    plt.colorbar(label="log energy")
    plt.ylabel("Filter")
    if title:
        plt.title(title)
    plt.tight_layout()
    plt.savefig(out_png, dpi=150)
    plt.close()


def find_audio(in_dir: Path):
    files = []
    for pattern in AUDIO_PATTERNS:
        files.extend(glob.glob(str(in_dir / "**" / pattern), recursive=True))
    return sorted(Path(f) for f in files)


def main(argv=None):
    p = argparse.ArgumentParser(
        description="Compute log filterbank energies for a directory of audio."
    )
    p.add_argument("--config", default="config.yaml", help="Config file")
    p.add_argument(
        "--input", default="input", help="Input directory (searched recursively)"
    )
    p.add_argument("--output", default="output", help="Output directory")
    p.add_argument("--preview", action="store_true", help="Save PNG previews")
    args = p.parse_args(argv)

    init()

    logging.info(f"Loading config from {args.config}")
    cfg = load_config(args.config)
    if cfg is None:
        exit(1)

    config = filterbank_config_from_dict(cfg["filterbank"])
    audio_cfg = cfg.get("audio") or {}
    hop = int(audio_cfg.get("hop_length", config.win_s // 4))
    window = audio_cfg.get("window", "hamming")
    center = bool(audio_cfg.get("center", True))

    in_dir = Path(args.input)
    out_dir = Path(args.output)
    energy_dir = out_dir / "energies"
    preview_dir = out_dir / "previews"
    energy_dir.mkdir(parents=True, exist_ok=True)
    if args.preview:
        preview_dir.mkdir(parents=True, exist_ok=True)

    files = find_audio(in_dir)
    if not files:
        logging.warning(f"No audio files found under {in_dir.resolve()}")
        return

    logging.info(f"Found {len(files)} audio files. Processing...")
    done = 0
    with build_filterbank(config) as bank:
        for fp in tqdm(files):
            try:
                y, sr = load_audio(fp, sr=config.samplerate)
            except Exception as e:
                logging.warning(f"Skipping {fp} due to error: {e}")
                continue

            energies = log_filterbank_energies(
                y, bank, hop, window=window, center=center
            )
            np.save(energy_dir / (fp.stem + ".npy"), energies.astype(np.float32))
            if args.preview:
                save_energy_preview(
                    energies, sr, hop, preview_dir / (fp.stem + ".png"), title=fp.stem
                )
            done += 1

    logging.info(f"Saved energies for {done}/{len(files)} files in {energy_dir}")


if __name__ == "__main__":
    main()

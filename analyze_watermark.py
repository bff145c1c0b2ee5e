#!/usr/bin/env python3
"""
Infer a watermark from a directory of samples that all carry it.

Each sample must be pixel-aligned with the others. The normalized interval
field is written to WATERMARK_DATA and the watermark itself (color plus
opacity) to EXTRACTED_WATERMARK.
"""

import argparse
import sys
from pathlib import Path

from inversion import render_overlay_appearance
from range_field import infer_interval_field, save_field
from samples import DecodeError, EncodeError, UnsupportedDepthError, load_sample, save_buffer

SAMPLES_DIR = 'samples'
WATERMARK_DATA = 'watermark_data.npz'
EXTRACTED_WATERMARK = 'extracted_watermark.png'
IMAGE_EXTENSIONS = ('.png', '.jpg', '.jpeg', '.bmp', '.tif', '.tiff', '.webp')


def list_images(directory):
    return sorted(p for p in Path(directory).iterdir()
                  if p.is_file() and p.suffix.lower() in IMAGE_EXTENSIONS)


def load_samples(paths):
    samples = []
    for path in paths:
        try:
            samples.append(load_sample(path))
        except DecodeError as e:
            print(f"Failed to load {path.name}: {e}")
    return samples


def analyze_watermark(samples_dir=SAMPLES_DIR, data_path=WATERMARK_DATA,
                      image_path=EXTRACTED_WATERMARK, normalize=True, workers=1):
    paths = list_images(samples_dir)
    print(f"Found {len(paths)} sample images.")

    samples = load_samples(paths)
    if not samples:
        print("No usable samples found.")
        return None

    field = infer_interval_field(samples, normalize=normalize, workers=workers)
    print(f"Interval field: {field.width}x{field.height}, {field.channels} channel(s)")

    widths = field.widths
    print(f"  Mean interval width: {widths.mean():.4f}")
    print(f"  Pixels with watermark: {(widths.min(axis=2) < 1.0).sum()}")

    save_field(field, data_path)
    print(f"Saved field to: {data_path}")

    if image_path:
        save_buffer(render_overlay_appearance(field, workers=workers), image_path)
        print(f"Saved watermark to: {image_path}")

    print("Watermark extraction complete.")
    return field


def main(argv=None):
    parser = argparse.ArgumentParser(description='Infer a watermark from watermarked samples.')
    parser.add_argument('-s', '--samples', default=SAMPLES_DIR, help='Directory of sample images')
    parser.add_argument('-d', '--data', default=WATERMARK_DATA, help='Output interval field (.npz)')
    parser.add_argument('-o', '--output', default=EXTRACTED_WATERMARK,
                        help='Output watermark image (RGBA)')
    parser.add_argument('-w', '--workers', type=int, default=1, help='Worker threads')
    parser.add_argument('--no-normalize', action='store_true',
                        help='Skip equalizing interval widths across channels')
    args = parser.parse_args(argv)

    try:
        field = analyze_watermark(args.samples, args.data, args.output,
                                  normalize=not args.no_normalize, workers=args.workers)
    except (UnsupportedDepthError, EncodeError) as e:
        print(f"Error: {e}")
        return 1
    return 0 if field is not None else 1


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""Remove an inferred watermark from images that carry it."""

import argparse
import sys
from pathlib import Path

from analyze_watermark import list_images, load_samples
from inversion import ROUNDING_OFFSET, remove_overlay_from_image
from range_field import FieldFormatError, infer_interval_field, load_field
from samples import DecodeError, EncodeError, UnsupportedDepthError, load_sample, save_buffer

SAMPLES_DIR = 'samples'
OUTPUT_DIR = 'output'
WATERMARK_DATA = 'watermark_data.npz'


def load_watermark_field(data_path=WATERMARK_DATA, samples_dir=None, workers=1):
    """Read a saved field, or infer one from `samples_dir` when given."""
    if samples_dir is None:
        return load_field(data_path)
    samples = load_samples(list_images(samples_dir))
    if not samples:
        raise DecodeError(f"No usable samples in {samples_dir}")
    return infer_interval_field(samples, workers=workers)


def remove_watermark_file(field, in_path, out_path, rounding_offset=ROUNDING_OFFSET, workers=1):
    target = load_sample(in_path)
    if target.width != field.width or target.height != field.height:
        print(f"Image {Path(in_path).name} is {target.width}x{target.height}, "
              f"watermark is {field.width}x{field.height}; only the overlap is restored.")
    restored = remove_overlay_from_image(field, target, rounding_offset, workers=workers)
    return save_buffer(restored, out_path)


def remove_watermark(field, input_dir=SAMPLES_DIR, output_dir=OUTPUT_DIR,
                     rounding_offset=ROUNDING_OFFSET, workers=1):
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    files = list_images(input_dir)
    print(f"Processing {len(files)} images...")

    processed = 0
    for i, in_path in enumerate(files, 1):
        out_path = output_dir / in_path.name
        print(f"[{i}/{len(files)}] Processing {in_path.name}...", flush=True)
        try:
            remove_watermark_file(field, in_path, out_path, rounding_offset, workers)
        except DecodeError as e:
            print(f"Failed to load {in_path.name}: {e}")
            continue
        processed += 1

    print("Processing complete.")
    return processed


def main(argv=None):
    parser = argparse.ArgumentParser(description='Remove watermarks from images.')
    parser.add_argument('-i', '--input', help='Input image path')
    parser.add_argument('-o', '--output', help='Output image path')
    parser.add_argument('-d', '--data', default=WATERMARK_DATA, help='Interval field (.npz)')
    parser.add_argument('-s', '--samples', help='Infer the field from this sample directory '
                                                'instead of reading --data')
    parser.add_argument('--input-dir', default=SAMPLES_DIR, help='Batch mode input directory')
    parser.add_argument('--output-dir', default=OUTPUT_DIR, help='Batch mode output directory')
    parser.add_argument('--rounding-offset', type=float, default=ROUNDING_OFFSET,
                        help='Offset added to each value before normalizing (0.5 = cell center)')
    parser.add_argument('-w', '--workers', type=int, default=1, help='Worker threads')
    args = parser.parse_args(argv)

    if bool(args.input) != bool(args.output):
        print("Error: Both -i and -o must be provided together.")
        return 2

    try:
        field = load_watermark_field(args.data, args.samples, args.workers)
    except (FieldFormatError, DecodeError, UnsupportedDepthError) as e:
        print(f"Error: {e}")
        return 1

    try:
        if args.input:
            remove_watermark_file(field, args.input, args.output, args.rounding_offset,
                                  args.workers)
            print(f"Processed {args.input} -> {args.output}")
        else:
            remove_watermark(field, args.input_dir, args.output_dir, args.rounding_offset,
                             args.workers)
    except (DecodeError, EncodeError, UnsupportedDepthError) as e:
        print(f"Error: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

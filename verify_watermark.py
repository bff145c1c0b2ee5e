#!/usr/bin/env python3
"""Compare restored images against clean references inside the watermark."""

import argparse
import sys

import numpy as np

from analyze_watermark import list_images
from range_field import FieldFormatError, load_field
from samples import DecodeError, load_sample

DESIRED_DIR = 'desired'
OUTPUT_DIR = 'output'
WATERMARK_DATA = 'watermark_data.npz'
MSE_THRESHOLD = 0.001


def watermark_mask(field):
    """Pixels where the inferred opacity (channel 0) is above zero."""
    return field.widths[:, :, 0] < 1.0


def region_mse(output, desired, mask):
    """Mean squared error of normalized values over `mask`, or None if nothing overlaps."""
    rows = min(output.height, desired.height, mask.shape[0])
    cols = min(output.width, desired.width, mask.shape[1])
    chans = min(output.channels, desired.channels)
    region = mask[:rows, :cols]
    if not region.any():
        return None

    a = output.data[:rows, :cols, :chans].astype(np.float64) / output.maximum
    b = desired.data[:rows, :cols, :chans].astype(np.float64) / desired.maximum
    return float(np.mean((a[region] - b[region]) ** 2))


def verify(field, output_dir=OUTPUT_DIR, desired_dir=DESIRED_DIR, threshold=MSE_THRESHOLD):
    mask = watermark_mask(field)
    desired = {p.name: p for p in list_images(desired_dir)}
    common = [p for p in list_images(output_dir) if p.name in desired]
    print(f"Verifying {len(common)} images...")

    mses = []
    for path in common:
        try:
            mse = region_mse(load_sample(path), load_sample(desired[path.name]), mask)
        except DecodeError as e:
            print(f"Failed to load {path.name}: {e}")
            continue
        if mse is not None:
            mses.append(mse)

    if not mses:
        print("Nothing to compare.")
        return None

    avg_mse = float(np.mean(mses))
    print(f"Average MSE in watermark region: {avg_mse:.6f}")
    if avg_mse < threshold:
        print("Verification PASSED: MSE is low.")
    else:
        print("Verification FAILED: MSE is high.")
    return avg_mse


def main(argv=None):
    parser = argparse.ArgumentParser(description='Verify restored images against references.')
    parser.add_argument('-d', '--data', default=WATERMARK_DATA, help='Interval field (.npz)')
    parser.add_argument('--output-dir', default=OUTPUT_DIR, help='Restored images')
    parser.add_argument('--desired-dir', default=DESIRED_DIR, help='Clean reference images')
    parser.add_argument('--threshold', type=float, default=MSE_THRESHOLD)
    args = parser.parse_args(argv)

    try:
        field = load_field(args.data)
    except FieldFormatError as e:
        print(f"Error: {e}")
        return 1

    avg_mse = verify(field, args.output_dir, args.desired_dir, args.threshold)
    return 0 if avg_mse is not None and avg_mse < args.threshold else 1


if __name__ == "__main__":
    sys.exit(main())

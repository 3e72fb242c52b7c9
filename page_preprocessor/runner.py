"""CLI runner for page preprocessing."""

from __future__ import annotations

import argparse
import os
import sys
from typing import List, Optional

from tqdm import tqdm

from .buffers import PixelBuffer
from .decoder import BoundedDecoder
from .errors import DecodeError, PipelineStageError
from .options import ConfigValidationError, PreprocessConfig
from .orientation import load_upright
from .processing import preprocess


def _load_config(settings_path: Optional[str]) -> PreprocessConfig:
    """
    Load the pipeline config from a settings file, or use the defaults.

    Raises:
        SystemExit: If the settings file cannot be read or holds invalid values.
    """
    if not settings_path:
        return PreprocessConfig()

    from ocr_workflow.settings import load_settings_file

    try:
        return load_settings_file(settings_path)
    except (OSError, ConfigValidationError) as exc:
        print(f"FATAL: Could not load settings from {settings_path}: {exc}", file=sys.stderr)
        sys.exit(1)


def _annotate(buffer: PixelBuffer, annotations_dir: str, image_path: str) -> PixelBuffer:
    """
    Draw a saved recognition result onto the processed page.

    The result is looked up as ``<image stem>.json`` in annotations_dir. When it is
    missing the buffer is returned unchanged.
    """
    from text_overlay.drawing import render_annotations
    from text_overlay.serialization import text_from_json

    stem = os.path.splitext(os.path.basename(image_path))[0]
    json_path = os.path.join(annotations_dir, f"{stem}.json")
    if not os.path.exists(json_path):
        print(f"    - No recognition result at {json_path}, skipping annotation", file=sys.stderr)
        return buffer

    with open(json_path, "r", encoding="utf-8") as f:
        text = text_from_json(f.read())
    annotated = render_annotations(buffer, text)
    buffer.release()
    return annotated


def _save_page_image(buffer: PixelBuffer, output_dir: str, image_path: str) -> str:
    """
    Save a processed page as PNG, named after the source image.

    Returns:
        The absolute path to the saved image file.
    """
    stem = os.path.splitext(os.path.basename(image_path))[0]
    path = os.path.join(output_dir, f"{stem}.png")
    buffer.to_image().save(path)
    return os.path.abspath(path)


def main(
    image_paths: List[str],
    output_dir: str,
    settings_path: Optional[str] = None,
    max_width: Optional[int] = None,
    max_height: Optional[int] = None,
    annotations_dir: Optional[str] = None,
) -> List[str]:
    """
    Main entry point for the page preprocessing pipeline.

    For each image:
    1. Decodes it within the memory budget (optionally downsampled to a requested size)
    2. Rotates it upright from its EXIF orientation
    3. Runs the enabled preprocessing stages
    4. Optionally draws a saved recognition result onto it
    5. Saves it as PNG in output_dir

    Images that fail are reported on stderr and skipped.

    Args:
        image_paths: Source page images.
        output_dir: Directory where processed pages will be saved.
        settings_path: Optional JSON settings file (same keys as the settings store).
        max_width: Optional requested width used to pick a downsampling factor.
        max_height: Optional requested height used to pick a downsampling factor.
        annotations_dir: Optional directory of ``<image stem>.json`` recognition results.

    Returns:
        The absolute paths of the saved pages.
    """
    config = _load_config(settings_path)
    decoder = BoundedDecoder()
    os.makedirs(output_dir, exist_ok=True)

    print(f"Processing {len(image_paths)} page(s) into {output_dir}")
    saved = []
    for image_path in tqdm(image_paths, desc="Processing pages"):
        try:
            buffer, _ = load_upright(image_path, decoder, max_width, max_height)
            processed = preprocess(buffer, config)
            if annotations_dir:
                processed = _annotate(processed, annotations_dir, image_path)
            saved.append(_save_page_image(processed, output_dir, image_path))
            processed.release()
        except (DecodeError, PipelineStageError, ValueError, OSError) as exc:
            print(f"    - FATAL WARNING: Could not process {image_path}: {exc}", file=sys.stderr)

    print(f"Saved {len(saved)} of {len(image_paths)} page(s)")
    return saved


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Decode, rotate upright and binarize page images ready for text recognition."
    )
    parser.add_argument("images", nargs="+", help="Source page image files")
    parser.add_argument("-o", "--output-dir", required=True, help="Directory for processed pages")
    parser.add_argument("--settings", help="JSON file with preprocessing settings")
    parser.add_argument("--max-width", type=int, help="Requested width for downsampled decoding")
    parser.add_argument("--max-height", type=int, help="Requested height for downsampled decoding")
    parser.add_argument(
        "--annotate",
        metavar="DIR",
        help="Directory of <image stem>.json recognition results to draw onto the pages",
    )
    return parser


def cli(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    saved = main(
        args.images,
        args.output_dir,
        settings_path=args.settings,
        max_width=args.max_width,
        max_height=args.max_height,
        annotations_dir=args.annotate,
    )
    return 0 if len(saved) == len(args.images) else 1

"""Command-line interface for document normalization.

Reads image files, runs the pipeline and writes the normalized images. File
handling lives here; the pipeline itself only sees bytes.
"""

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

import cv2

from .config import get_default_config, load_config
from .exceptions import ConfigurationError, DocumentNormalizerError
from .pipeline import DocumentNormalizer
from .utils.logging_utils import ProcessingProgress, get_logger, setup_logging

logger = get_logger(__name__)

FILE_EXTENSIONS = {"webp": "webp", "jpeg": "jpg", "png": "png"}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="doc-normalize",
        description="Crop photographed document pages and normalize their contrast",
    )
    parser.add_argument("inputs", nargs="+", help="Input image files")
    parser.add_argument("-o", "--output", default=".", help="Output directory (default: current directory)")
    parser.add_argument("-c", "--config", help="Configuration file (.json, .yaml/.yml or .toml; other suffixes are read as YAML)")
    parser.add_argument("--format", choices=["webp", "jpeg", "jpg", "png"], help="Output format")
    parser.add_argument("--quality", type=float, help="Output quality in (0, 1]")
    parser.add_argument("--max-dimension", type=int, help="Longer side limit of the output")
    parser.add_argument("--debug-dir", help="Save intermediate stage images into this directory")
    parser.add_argument("--json", action="store_true", help="Print a JSON summary per image")
    parser.add_argument("--log-level", default=None,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                        help="Logging level (default: from config)")
    parser.add_argument("--no-rich", action="store_true", help="Plain log output")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Run the CLI. Returns the process exit code."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config) if args.config else get_default_config()
        options = config.normalization.model_copy()
        if args.format:
            options.output_format = args.format
        if args.quality is not None:
            options.output_quality = args.quality
        if args.max_dimension is not None:
            options.output_max_dimension = args.max_dimension
        if args.debug_dir:
            options.save_debug_images = True
        normalizer = DocumentNormalizer(options)
    except (ConfigurationError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    setup_logging(
        level=args.log_level or config.logging.level.value,
        log_file=config.logging.log_file,
        use_rich=config.logging.use_rich and not args.no_rich,
        format_style=config.logging.format_style,
    )

    output_dir = Path(args.output)
    output_dir.mkdir(parents=True, exist_ok=True)
    extension = FILE_EXTENSIONS[options.format_name]

    failures = 0
    with ProcessingProgress("Normalizing images", len(args.inputs), logger,
                            enabled=not args.json) as progress:
        for name in args.inputs:
            input_path = Path(name)
            try:
                data = input_path.read_bytes()
                result = normalizer.normalize(data)
            except (OSError, DocumentNormalizerError) as e:
                logger.error("Failed to normalize %s: %s", input_path, e)
                failures += 1
                progress.update(success=False)
                continue

            output_path = output_dir / f"{input_path.stem}_normalized.{extension}"
            output_path.write_bytes(result.data)
            logger.info("Wrote %s", output_path)

            if args.debug_dir:
                _save_debug_images(result.debug_images, Path(args.debug_dir) / input_path.stem)

            if args.json:
                summary = result.to_dict()
                summary["input"] = str(input_path)
                summary["output"] = str(output_path)
                print(json.dumps(summary))
            progress.update(success=True)

    return 1 if failures else 0


def _save_debug_images(images, debug_dir: Path) -> None:
    """Save stage images as PNG files."""
    if not images:
        return
    debug_dir.mkdir(parents=True, exist_ok=True)
    for name, image in images.items():
        if image.ndim == 3 and image.shape[2] == 4:
            image = cv2.cvtColor(image, cv2.COLOR_RGBA2BGRA)
        cv2.imwrite(str(debug_dir / f"{name}.png"), image)


if __name__ == "__main__":
    sys.exit(main())

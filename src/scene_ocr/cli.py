"""
Command Line Interface for scene-text OCR
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from .errors import ImageDecodeError
from .pipeline import OCRPipeline


def main(argv=None):
    """Main CLI entry point"""
    parser = argparse.ArgumentParser(
        description="Detect and recognize text in an image",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Print every text region found in an image
  python -m scene_ocr.cli models/config.json photo.jpg

  # Emit machine-readable results
  python -m scene_ocr.cli models/config.json photo.jpg --json
        """
    )

    parser.add_argument(
        'config',
        type=str,
        help='Path to the JSON config file'
    )
    parser.add_argument(
        'image',
        type=str,
        help='Input image file path'
    )
    parser.add_argument(
        '--json',
        action='store_true',
        help='Print results as a JSON array'
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable debug logging'
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    image_path = Path(args.image)
    if not image_path.exists():
        print(f"Error: Input file '{args.image}' not found", file=sys.stderr)
        return 1

    try:
        ocr = OCRPipeline()
        if not ocr.initialize(args.config):
            print("Error: Failed to initialize OCR engine", file=sys.stderr)
            return 1

        results = ocr.run_path(image_path)

        if args.json:
            print(json.dumps([r.to_dict() for r in results], ensure_ascii=False, indent=2))
            return 0

        print(f"Found {len(results)} text region(s):\n")
        for idx, result in enumerate(results):
            print(f"--- Region {idx + 1} ---")
            print(f"Text: {result.line.text}")
            print(f"Box Score: {result.box.score * 100:.2f}%")
            print(f"Rotated: {result.angle.is_rotated}")
            print(f"Angle Score: {result.angle.score * 100:.2f}%")
            print(f"Bounding Box: {json.dumps([list(p) for p in result.box.points])}")
            print()

        return 0

    except ImageDecodeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\n\nInterrupted by user", file=sys.stderr)
        return 130


if __name__ == '__main__':
    sys.exit(main())

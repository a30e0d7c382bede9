"""
Command Line Interface for beholder
"""

import argparse
import sys
from pathlib import Path

from .image.ops import OP_TABLE
from .image.raw import read_image, write_image
from .logging_config import setup_logging
from .neural.families import DETECTOR_FAMILIES
from .pipeline import Pipeline, PipelineConfig, load_pipeline_config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="beholder",
        description="Run images through processing operations and neural detectors",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # List the available processing operations
  beholder ops

  # Detect text with an EAST model and save the annotated image
  beholder run photo.jpg --family east --model-path models --model east.onnx \\
      --post DrawBoundingBoxes -o annotated.png

  # Run a pipeline described in a JSON file
  beholder run photo.jpg --config pipeline.json
        """
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("ops", help="List registered processing operations")

    run = sub.add_parser("run", help="Run an image through a pipeline")
    run.add_argument('image', type=str, help='Input image file path')
    run.add_argument(
        '--config',
        type=str,
        default=None,
        help='Pipeline configuration (JSON); other options are added to it'
    )
    run.add_argument(
        '--family',
        type=str,
        default=None,
        choices=sorted(DETECTOR_FAMILIES),
        help='Detector family'
    )
    run.add_argument('--model-path', type=str, default=None, help='Directory holding the model')
    run.add_argument('--model', type=str, default=None, help='Model file name')
    run.add_argument(
        '--pre',
        nargs='+',
        default=[],
        metavar='OP',
        help='Pre-processing operations, by name, applied in order'
    )
    run.add_argument(
        '--post',
        nargs='+',
        default=[],
        metavar='OP',
        help='Post-processing operations, by name, applied in order'
    )
    run.add_argument(
        '-o', '--output',
        type=str,
        default=None,
        help='Write the final image to this path'
    )
    run.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose output'
    )
    return parser


def _pipeline_config(args) -> PipelineConfig:
    config = load_pipeline_config(args.config) if args.config else PipelineConfig()
    if args.family:
        config.family = args.family
    if args.model_path:
        config.detector["model_path"] = args.model_path
    if args.model:
        config.detector["model"] = args.model
    config.preprocessing.extend({name: None} for name in args.pre)
    config.postprocessing.extend({name: None} for name in args.post)
    return config


def _list_ops() -> int:
    for name in sorted(OP_TABLE):
        doc = (OP_TABLE[name].__doc__ or "").strip().splitlines()
        summary = doc[0] if doc and not doc[0].startswith(name + "(") else ""
        print(f"  {name:<28} {summary}")
    return 0


def _run(args) -> int:
    input_path = Path(args.image)
    if not input_path.exists():
        print(f"Error: Input file '{args.image}' not found", file=sys.stderr)
        return 1

    config = _pipeline_config(args)
    if args.verbose:
        print("=" * 70)
        print(f"Input:    {input_path}")
        print(f"Detector: {config.family or 'none'} {config.detector.get('model', '')}")
        print(f"Pre:      {', '.join(next(iter(op)) for op in config.preprocessing) or '-'}")
        print(f"Post:     {', '.join(next(iter(op)) for op in config.postprocessing) or '-'}")
        print("=" * 70)

    pipeline = Pipeline.from_config(config)
    if not pipeline.init():
        print("Error: could not initialize the detector", file=sys.stderr)
        return 1

    image = read_image(input_path)
    if image is None:
        print(f"Error: could not read image '{input_path}'", file=sys.stderr)
        return 1

    outcome = pipeline.run(image)
    for r in outcome.results:
        left, top, right, bottom = r.box.coordinates
        print(
            f"{r.text!r:<24} conf={r.confidence:.3f} "
            f"box=({left:.0f}, {top:.0f}, {right:.0f}, {bottom:.0f}) angle={r.box_rot_angle:.1f}"
        )

    if not outcome.ok:
        print(
            f"Error: {outcome.failed_stage.value} step {outcome.failed_index} "
            f"({outcome.failed_name}) failed",
            file=sys.stderr,
        )
        return 1

    if args.output:
        if not write_image(args.output, outcome.image):
            print(f"Error: could not write '{args.output}'", file=sys.stderr)
            return 1
        print(f"Saved to: {args.output}")
    elif args.verbose:
        print(f"{len(outcome.results)} results")
    return 0


def main(argv=None):
    """Main CLI entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging("INFO" if getattr(args, "verbose", False) else None)

    try:
        if args.command == "ops":
            return _list_ops()
        return _run(args)

    except KeyboardInterrupt:
        print("\n\nInterrupted by user", file=sys.stderr)
        return 130
    except Exception as e:
        print(f"\nError: {e}", file=sys.stderr)
        if getattr(args, "verbose", False):
            import traceback
            traceback.print_exc()
        return 1


if __name__ == '__main__':
    sys.exit(main())

"""
Command-Line Interface for the Cuboid Voxelizer

Usage:
    cubegen model.obj -o out/
    cubegen model.obj --scale 32 --stats -o out/
    cubegen model.obj --analyze
    cubegen --batch models/ --output-dir out/

"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional
import time

from . import __version__
from .generator import CuboidGenerator, BatchProcessor
from .intersect import ContactRule


DEFAULT_MAX_CELLS = 200_000_000


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="cubegen",
        description="Cuboid Voxelizer - Convert triangle meshes to Bedrock cube geometry",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  cubegen statue.obj -o models/
      Convert statue.obj to models/statue.geo.json at 16 voxels per unit

  cubegen statue.obj --scale 8 --analyze
      Print vertex, face, voxel and cube counts without writing output

  cubegen --batch meshes/ --output-dir models/
      Convert every OBJ in the meshes directory

Contact Rules:
  behind  - Faces on a grid plane fill the cell behind them (default)
  closed  - Any contact with a cell's closed box fills it
        """
    )

    # Input
    parser.add_argument(
        "input",
        nargs="?",
        help="Input mesh file (OBJ recommended)"
    )

    # Output
    parser.add_argument(
        "-o", "--output-dir",
        help="Output directory (default: next to the input file)"
    )

    parser.add_argument(
        "--identifier",
        help="Geometry identifier suffix (default: input file stem)"
    )

    # Voxelization settings
    parser.add_argument(
        "-s", "--scale",
        type=float,
        default=16.0,
        help="Voxels per world unit (default: 16)"
    )

    parser.add_argument(
        "--contact",
        choices=["behind", "closed"],
        default="behind",
        help="Boundary contact rule (default: behind)"
    )

    parser.add_argument(
        "--max-cells",
        type=int,
        default=DEFAULT_MAX_CELLS,
        help=f"Per-mesh limit on tested cells, 0 disables (default: {DEFAULT_MAX_CELLS})"
    )

    # Concurrency
    parser.add_argument(
        "--workers",
        type=int,
        default=4,
        help="Meshes processed concurrently (default: 4)"
    )

    parser.add_argument(
        "--triangle-workers",
        type=int,
        default=1,
        help="Threads per mesh for triangle chunks (default: 1)"
    )

    # Meshing settings
    parser.add_argument(
        "--naive-mesh",
        action="store_true",
        help="One cube per voxel (no merging, for debugging)"
    )

    # Modes
    parser.add_argument(
        "--analyze",
        action="store_true",
        help="Report counts only, do not write output"
    )

    parser.add_argument(
        "--batch",
        help="Batch convert a directory of meshes"
    )

    parser.add_argument(
        "--pattern",
        default="*.obj",
        help="File pattern for batch processing (default: *.obj)"
    )

    # Misc
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output with debug logging"
    )

    parser.add_argument(
        "--stats",
        action="store_true",
        help="Print conversion statistics"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    return parser


def get_contact_rule(name: str) -> ContactRule:
    """Convert string to ContactRule enum."""
    return {
        "behind": ContactRule.BEHIND,
        "closed": ContactRule.CLOSED,
    }[name]


def generator_kwargs(args) -> dict:
    """Collect CuboidGenerator arguments from the parsed command line."""
    return {
        "scale": args.scale,
        "contact_rule": get_contact_rule(args.contact),
        "mesh_workers": args.workers,
        "triangle_workers": args.triangle_workers,
        "max_candidate_cells": args.max_cells or None,
        "naive": args.naive_mesh,
    }


def print_stats(generator: CuboidGenerator):
    """Print conversion statistics."""
    stats = generator.get_mesh_stats()
    print("\nConversion Statistics:")
    print(f"  Meshes: {stats['meshes']} ({stats['groups']} with voxels)")
    print(f"  Vertices: {stats['vertex_count']}")
    print(f"  Faces: {stats['face_count']}")
    print(f"  Voxels: {stats['voxel_count']}")
    print(f"  Cubes: {stats['cube_count']}")
    print(f"  Cube reduction: {stats['cuboid_reduction_percent']:.1f}%")


def process_analyze(args) -> int:
    """Analyze a single mesh file."""
    if not args.input:
        print("Error: No input file specified", file=sys.stderr)
        return 1

    try:
        generator = CuboidGenerator(**generator_kwargs(args))
        info = generator.analyze_file(args.input)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1

    print(f"File: {info.name}")
    print(f"  Vertices: {info.vertices}")
    print(f"  Faces: {info.faces}")
    print(f"  Voxels: {info.voxel_count}")
    print(f"  Cubes: {info.cube_count}")

    if args.stats:
        print_stats(generator)

    return 0


def process_single(args) -> int:
    """Convert a single mesh file."""
    if not args.input:
        print("Error: No input file specified", file=sys.stderr)
        return 1

    input_path = Path(args.input)
    if not input_path.exists():
        print(f"Error: Input file not found: {input_path}", file=sys.stderr)
        return 1

    output_dir = Path(args.output_dir) if args.output_dir else input_path.parent

    start_time = time.time()

    try:
        generator = CuboidGenerator(**generator_kwargs(args))

        if args.verbose:
            print(f"Converting: {input_path} at scale {args.scale:g}")

        result = generator.convert_file(input_path, output_dir, args.identifier)

        if not result.success:
            print(f"Error: {result.message}", file=sys.stderr)
            return 1

        print(result.message)
        if args.verbose:
            print(f"Exported: {result.output_path}")

        if args.stats:
            print_stats(generator)

        elapsed = time.time() - start_time
        if args.verbose:
            print(f"\nCompleted in {elapsed:.2f}s")

        return 0

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1


def process_batch(args) -> int:
    """Convert a directory of mesh files."""
    batch_dir = Path(args.batch)
    if not batch_dir.is_dir():
        print(f"Error: Batch directory not found: {batch_dir}", file=sys.stderr)
        return 1

    output_dir = Path(args.output_dir) if args.output_dir else batch_dir / "output"

    start_time = time.time()

    try:
        processor = BatchProcessor(**generator_kwargs(args))
        results = processor.process_directory(batch_dir, output_dir, pattern=args.pattern)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1

    failed = [r for r in results if not r.success]
    elapsed = time.time() - start_time
    print(f"Processed {len(results)} files in {elapsed:.2f}s ({len(failed)} failed)")
    print(f"Output directory: {output_dir}")

    return 1 if failed else 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s"
    )

    # Determine mode
    if args.batch:
        return process_batch(args)
    elif args.analyze:
        return process_analyze(args)
    else:
        return process_single(args)


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""
Tripack CLI

Command-line interface for packing triangular tiles into a polygon.

Usage:
    tripack pack <polygon.txt> [options]
    tripack info <polygon.txt> [options]
"""

import argparse
import logging
import sys
from typing import List, Optional

from . import __version__
from .errors import TripackError
from .geometry.predicates import get_predicates
from .geometry.vectors import TILE_AREA
from .layout.abstraction import Outline
from .layout.polygon_io import read_polygon, write_result
from .packing.config import PackingConfig, load_config
from .packing.simulation import TilePacker


def build_config(args) -> PackingConfig:
    """Configuration from an optional YAML file plus command-line overrides."""
    config = load_config(args.config) if args.config else PackingConfig()
    return config.with_overrides(
        max_steps=args.steps,
        target_quality=args.target_quality,
        use_exact_area=False if args.approximate else None,
    )


def cmd_pack(args):
    """Run a packing and report or save the result."""
    vertices = read_polygon(args.polygon)
    config = build_config(args)
    packer = TilePacker.from_polygon(
        vertices, args.edge_length, config=config, seed=args.seed, tile_count=args.count,
    )

    print(f"Packing {args.polygon}")
    print(f"  Vertices: {len(packer.outline)}")
    print(f"  Seed: {packer.state.seed}")

    packer.initialize()
    print(f"  Initial tiles: {packer.initial_count}")

    def progress_callback(diagnostics):
        if diagnostics.removed is not None or diagnostics.frame % 500 == 0:
            print(f"  Frame {diagnostics.frame}: tiles={diagnostics.tile_count} "
                  f"energy={diagnostics.energy:.4f} K={diagnostics.quality:.3f}")

    result = packer.run(callback=progress_callback if args.verbose else None)
    if args.best:
        result = packer.best_result(result.stop_reason, result.steps) or result

    print(f"\nStopped after {result.steps} steps ({result.stop_reason.value})")
    print(f"  Tiles: {result.tile_count} (removed {result.removals})")
    print(f"  Energy: {result.energy:.6f}")
    print(f"  Quality K: {result.quality:.4f}")

    if args.output:
        write_result(result.to_dict(), args.output)
        print(f"  Saved to: {args.output}")
    return 0


def cmd_info(args):
    """Print polygon statistics and the initial tile estimate."""
    vertices = read_polygon(args.polygon)
    outline = Outline.from_vertices(vertices, args.edge_length)
    predicates = get_predicates(exact=not args.approximate)
    area = predicates.polygon_area(outline.points)
    min_x, min_y, max_x, max_y = outline.get_bounding_box()

    print(f"Polygon: {args.polygon}")
    print(f"  Vertices: {len(outline)}")
    print(f"  Scale: {outline.scale:.6f} input units per normalized unit")
    print(f"  Bounding box: ({min_x:.3f}, {min_y:.3f}) - ({max_x:.3f}, {max_y:.3f}) normalized")
    print(f"  Area: {area:.4f} normalized, {area * outline.scale ** 2:.4f} input units")
    print(f"  Initial tiles: {int(area / TILE_AREA)}")
    return 0


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Tripack - triangular tile packing",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  tripack info square.txt --edge-length 1
  tripack pack square.txt --edge-length 1 --seed 42 -o tiles.json
  tripack pack square.txt --count 50 --steps 5000 --config packing.yaml -v
        """,
    )

    parser.add_argument('--version', action='version', version=f'tripack {__version__}')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # Pack command
    pack_parser = subparsers.add_parser('pack', help='Pack tiles into a polygon')
    pack_parser.add_argument('polygon', help='Polygon file (whitespace separated x y pairs)')
    pack_parser.add_argument('--edge-length', type=float,
                             help='Tile edge length in polygon units (default: sqrt(3))')
    pack_parser.add_argument('--count', type=int, help='Initial tile count (default: area estimate)')
    pack_parser.add_argument('--seed', type=int, help='Random seed (default: current time)')
    pack_parser.add_argument('--steps', type=int, help='Step budget (default: 60000)')
    pack_parser.add_argument('--config', help='YAML file with packing configuration overrides')
    pack_parser.add_argument('--approximate', action='store_true',
                             help='Monte-Carlo area and ray-casting containment')
    pack_parser.add_argument('--target-quality', type=float,
                             help='Stop early once K reaches this value with zero energy')
    pack_parser.add_argument('--best', action='store_true',
                             help='Report the lowest-energy configuration of the final tile count')
    pack_parser.add_argument('-o', '--output', help='Result file (.json, .yaml or .yml)')
    pack_parser.add_argument('-v', '--verbose', action='store_true', help='Verbose output')
    pack_parser.add_argument('--debug', action='store_true', help='Debug logging')

    # Info command
    info_parser = subparsers.add_parser('info', help='Show polygon statistics')
    info_parser.add_argument('polygon', help='Polygon file (whitespace separated x y pairs)')
    info_parser.add_argument('--edge-length', type=float,
                             help='Tile edge length in polygon units (default: sqrt(3))')
    info_parser.add_argument('--approximate', action='store_true',
                             help='Monte-Carlo area estimate')
    info_parser.add_argument('-v', '--verbose', action='store_true', help='Verbose output')
    info_parser.add_argument('--debug', action='store_true', help='Debug logging')

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    if args.debug:
        level = logging.DEBUG
    elif args.verbose:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    # Dispatch command
    commands = {
        'pack': cmd_pack,
        'info': cmd_info,
    }

    try:
        return commands[args.command](args)
    except (TripackError, OSError) as e:
        print(f"Error: {e}")
        return 1


if __name__ == '__main__':
    sys.exit(main())

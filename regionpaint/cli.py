"""Command line interface for regionpaint."""
import argparse
import logging
import sys
import time
from pathlib import Path

from regionpaint.cache import RegionCache
from regionpaint.color_space import is_hex_color
from regionpaint.color_blend import paint_image
from regionpaint.debug_utils import (
    audit_partition,
    render_region_overlay,
    render_selection_overlay,
    save_overlay,
)
from regionpaint.raster_ingest import load_image, load_image_pair, save_image
from regionpaint.segmenter import create_region_set
from regionpaint.serialization import load_region_set, mask_filename, save_region_set
from regionpaint.similarity import find_color_similar_regions, find_smart_group
from regionpaint.types import (
    EDGE_THRESHOLD,
    MIN_REGION_SIZE,
    PAINT_PALETTE,
    RegionPaintError,
    SegmentationConfig,
)

logger = logging.getLogger(__name__)

EDGE_FILENAME = 'edge.png'
NORMALS_FILENAME = 'normals.png'


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog='regionpaint',
        description='Segment edge maps into paintable regions and repaint them'
    )

    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable debug logging'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)

    segment = subparsers.add_parser('segment', help='Generate regions for one image pair')
    segment.add_argument('edge', type=str, help='Edge map path')
    segment.add_argument('normals', type=str, help='Normal map path')
    segment.add_argument(
        '-o', '--output',
        type=str,
        help='Output JSON path (default: masks-<id>.json next to the edge map)'
    )
    segment.add_argument(
        '--id',
        type=str,
        default=None,
        help='Source id stored in the document (default: edge map directory name)'
    )
    _add_segmentation_args(segment)
    segment.add_argument(
        '--overlay',
        type=str,
        default=None,
        help='Also save a region overlay image to this path'
    )

    batch = subparsers.add_parser(
        'batch',
        help=f'Generate regions for every subdirectory holding {EDGE_FILENAME} and {NORMALS_FILENAME}'
    )
    batch.add_argument('root', type=str, help='Directory of image sets')
    batch.add_argument(
        '-o', '--output-dir',
        type=str,
        default=None,
        help='Directory for region documents (default: <root>/masks)'
    )
    _add_segmentation_args(batch)

    paint = subparsers.add_parser('paint', help='Paint the regions under given points')
    paint.add_argument('masks', type=str, help='Region document path')
    paint.add_argument('image', type=str, help='Photograph to repaint')
    paint.add_argument('--normals', type=str, default=None, help='Normal map for lighting')
    paint.add_argument(
        '--point',
        type=int,
        nargs=2,
        action='append',
        metavar=('X', 'Y'),
        required=True,
        help='Pixel inside a region to paint (repeatable)'
    )
    paint.add_argument(
        '--color',
        type=_paint_color,
        default=PAINT_PALETTE[0].id,
        help='Palette id (' + ', '.join(p.id for p in PAINT_PALETTE) + ') or #rrggbb'
    )
    mode = paint.add_mutually_exclusive_group()
    mode.add_argument('--smart', action='store_true', help='Extend each pick to its smart group')
    mode.add_argument('--same-color', action='store_true', help='Extend each pick to same-colored regions')
    paint.add_argument('--feather', action='store_true', help='Fade paint in at region edges')
    paint.add_argument('-o', '--output', type=str, required=True, help='Output image path')
    paint.add_argument(
        '--selection-overlay',
        type=str,
        default=None,
        help='Also save the selected regions highlighted over the photograph'
    )

    overlay = subparsers.add_parser('overlay', help='Render all regions in their display colors')
    overlay.add_argument('masks', type=str, help='Region document path')
    overlay.add_argument('-o', '--output', type=str, required=True, help='Output image path')
    overlay.add_argument('--base', type=str, default=None, help='Composite over this image')

    return parser


def _add_segmentation_args(parser: argparse.ArgumentParser):
    parser.add_argument(
        '--min-size',
        type=int,
        default=MIN_REGION_SIZE,
        help=f'Minimum region size in pixels (default: {MIN_REGION_SIZE})'
    )
    parser.add_argument(
        '--threshold',
        type=float,
        default=EDGE_THRESHOLD,
        help=f'Edge grayscale threshold (default: {EDGE_THRESHOLD})'
    )
    parser.add_argument(
        '--truncate-oversize',
        action='store_true',
        help='Keep regions that hit the flood-fill ceiling instead of failing'
    )


def _segmentation_config(parsed_args) -> SegmentationConfig:
    return SegmentationConfig(
        edge_threshold=parsed_args.threshold,
        min_region_size=parsed_args.min_size,
        on_oversize='truncate' if parsed_args.truncate_oversize else 'raise',
    )


def _paint_color(value: str) -> str:
    """Resolve a palette id or validate a hex color for argparse."""
    for paint in PAINT_PALETTE:
        if paint.id == value:
            return paint.hex
    if is_hex_color(value):
        return value
    raise argparse.ArgumentTypeError(
        f"unknown paint color '{value}' (expected a palette id or #rrggbb)"
    )


def run_segment(parsed_args) -> int:
    edge_path = Path(parsed_args.edge)
    source_id = parsed_args.id or edge_path.resolve().parent.name
    output_path = (
        Path(parsed_args.output) if parsed_args.output
        else edge_path.parent / mask_filename(source_id)
    )

    edge, normals = load_image_pair(edge_path, parsed_args.normals)
    start = time.time()
    region_set = create_region_set(source_id, edge, normals, _segmentation_config(parsed_args))
    elapsed = time.time() - start

    stats = audit_partition(region_set, edge, parsed_args.threshold)
    save_region_set(region_set, output_path)

    print(f"Regions: {len(region_set)}")
    print(f"  Covered: {stats['covered_pixels']:,} / {stats['total_pixels']:,} pixels")
    print(f"  Void: {stats['void_pixels']:,} pixels")
    print(f"  Time: {elapsed:.1f}s")
    print(f"Saved to {output_path}")

    if parsed_args.overlay:
        save_overlay(render_region_overlay(region_set), parsed_args.overlay, base=edge)
        print(f"Overlay saved to {parsed_args.overlay}")

    return 0


def run_batch(parsed_args) -> int:
    root = Path(parsed_args.root)
    if not root.is_dir():
        print(f"Error: Not a directory: {root}", file=sys.stderr)
        return 1

    output_dir = Path(parsed_args.output_dir) if parsed_args.output_dir else root / 'masks'
    config = _segmentation_config(parsed_args)

    set_dirs = sorted(
        d for d in root.iterdir()
        if (d / EDGE_FILENAME).is_file() and (d / NORMALS_FILENAME).is_file()
    )
    if not set_dirs:
        print(f"Error: No image sets found in {root}", file=sys.stderr)
        return 1

    failures = 0
    total_regions = 0
    print("Set\tRegions\tTime")
    for set_dir in set_dirs:
        start = time.time()
        try:
            edge, normals = load_image_pair(set_dir / EDGE_FILENAME, set_dir / NORMALS_FILENAME)
            region_set = create_region_set(set_dir.name, edge, normals, config)
            save_region_set(region_set, output_dir / mask_filename(set_dir.name))
        except RegionPaintError as e:
            failures += 1
            logger.error(f"Failed to process set {set_dir.name}: {e}")
            print(f"{set_dir.name}\tFAILED\t{e}")
            continue

        total_regions += len(region_set)
        print(f"{set_dir.name}\t{len(region_set)}\t{time.time() - start:.1f}s")

    print(f"\nTotal: {total_regions} regions in {len(set_dirs) - failures} sets")
    return 1 if failures else 0


def run_paint(parsed_args) -> int:
    cache = RegionCache()
    region_set = cache.put(load_region_set(parsed_args.masks))
    index = cache.ownership_index(region_set)

    image = load_image(parsed_args.image)
    normals = load_image(parsed_args.normals) if parsed_args.normals else None
    if image.shape[:2] != (region_set.height, region_set.width):
        print(
            f"Error: Image is {image.shape[1]}x{image.shape[0]}, regions were generated "
            f"for {region_set.width}x{region_set.height}",
            file=sys.stderr
        )
        return 1

    selected = []
    for x, y in parsed_args.point:
        seed = index.hit_test(x, y)
        if seed is None:
            print(f"Warning: No region at ({x}, {y})", file=sys.stderr)
            continue

        if parsed_args.smart:
            picks = find_smart_group(
                seed, region_set.regions, region_set.width, region_set.height, image
            )
        elif parsed_args.same_color:
            picks = find_color_similar_regions(seed, region_set.regions, image)
        else:
            picks = [seed]
        selected.extend(r.id for r in picks)

    if not selected:
        print("Error: No regions selected", file=sys.stderr)
        return 1

    paint_hex = parsed_args.color
    applied = {region_id: paint_hex for region_id in selected}
    result = paint_image(
        image, normals, region_set, applied, feather=parsed_args.feather
    )
    save_image(result, parsed_args.output)

    region_count, pixel_count = region_set.selection_stats(applied)
    print(f"Painted {region_count} regions ({pixel_count / 1000:.1f}k pixels) with {paint_hex}")
    print(f"Saved to {parsed_args.output}")

    if parsed_args.selection_overlay:
        save_overlay(
            render_selection_overlay(region_set, applied),
            parsed_args.selection_overlay,
            base=image,
        )

    return 0


def run_overlay(parsed_args) -> int:
    region_set = load_region_set(parsed_args.masks)
    base = load_image(parsed_args.base) if parsed_args.base else None
    save_overlay(render_region_overlay(region_set), parsed_args.output, base=base)
    print(f"Overlay of {len(region_set)} regions saved to {parsed_args.output}")
    return 0


COMMANDS = {
    'segment': run_segment,
    'batch': run_batch,
    'paint': run_paint,
    'overlay': run_overlay,
}


def main(args=None):
    """Main entry point."""
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    logging.basicConfig(
        level=logging.DEBUG if parsed_args.verbose else logging.INFO,
        format='%(levelname)s %(name)s: %(message)s'
    )

    try:
        return COMMANDS[parsed_args.command](parsed_args)
    except (FileNotFoundError, RegionPaintError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())

"""
Render or export catalog rasters without starting the web server.

    python scripts/respirit_cli.py catalog
    python scripts/respirit_cli.py render "Alnus spp." -o alnus.png
    python scripts/respirit_cli.py export Betula -o downloads/
"""

import argparse
import json
import logging
import os
import sys
from dataclasses import replace

from app_config import AppConfig, configure_logging
from color_mapping import ColorMapping
from export_bundler import ExportBundler
from map_errors import ConfigError, MapError
from overlay_renderer import OverlayRenderer
from raster_catalog import build_catalog
from raster_loader import RasterLoader


logger = logging.getLogger("respirit_cli")


def cmd_catalog(args, config: AppConfig):
    catalog = build_catalog(config.data_dir)
    for entry in catalog.entries():
        status = "ok" if os.path.isfile(entry.source_path) else "missing"
        print(f"{entry.selection_key:<10} {entry.display_label:<20} {entry.source_path} [{status}]")
    return 0


def cmd_render(args, config: AppConfig):
    catalog = build_catalog(config.data_dir)
    entry = catalog.resolve(args.selection)
    grid = RasterLoader().load(entry.source_path)
    renderer = OverlayRenderer(max_bytes=args.max_bytes or config.max_bytes, min_side=config.min_side)
    overlay = renderer.render(grid, ColorMapping())
    del grid

    output = args.output or f"{entry.export_base_name}.png"
    with open(output, 'wb') as f:
        f.write(overlay.to_png())

    print(json.dumps({
        'output': output,
        'width': overlay.width,
        'height': overlay.height,
        'byte_size': overlay.byte_size,
        'geo_bounds': list(overlay.geo_bounds),
        'latlon_bounds': list(overlay.latlon_bounds),
    }, indent=2))
    return 0


def cmd_export(args, config: AppConfig):
    catalog = build_catalog(config.data_dir)
    entry = catalog.resolve(args.selection)
    bundler = ExportBundler(catalog, RasterLoader(), config.info_file)
    bundle = bundler.export(entry.selection_key)

    os.makedirs(args.output, exist_ok=True)
    path = os.path.join(args.output, bundle.archive_name)
    with open(path, 'wb') as f:
        f.write(bundle.to_zip())
    print(f"Saved {path} ({', '.join(bundle.names)})")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="RespirIT raster overlays and downloads")
    parser.add_argument("--data-dir", help="Directory holding <Species>.tif files")
    parser.add_argument("--info-file", help="Metadata text bundled with downloads")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("catalog", help="List the available datasets")

    render = sub.add_parser("render", help="Render the overlay PNG for a dataset")
    render.add_argument("selection", help="Display label or key, e.g. 'Alnus spp.' or Alnus")
    render.add_argument("-o", "--output", help="PNG path (default <Key>.png)")
    render.add_argument("--max-bytes", type=int, help="Override the overlay byte budget")

    export = sub.add_parser("export", help="Write the download ZIP for a dataset")
    export.add_argument("selection", help="Display label or key")
    export.add_argument("-o", "--output", default=".", help="Output directory")

    return parser


COMMANDS = {
    'catalog': cmd_catalog,
    'render': cmd_render,
    'export': cmd_export,
}


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = AppConfig.from_env()
        overrides = {}
        if args.data_dir:
            overrides['data_dir'] = args.data_dir
        if args.info_file:
            overrides['info_file'] = args.info_file
        if overrides:
            config = replace(config, **overrides)
    except ConfigError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    configure_logging('DEBUG' if args.verbose else config.log_level)

    try:
        return COMMANDS[args.command](args, config)
    except MapError as e:
        logger.error("%s: %s", e.kind, e)
        return 1


if __name__ == "__main__":
    sys.exit(main())

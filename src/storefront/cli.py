"""Command-line interface for storefront."""

import argparse
import logging
import os
import sys
from pathlib import Path

from . import __version__
from .config import StoreConfig
from .errors import StorefrontError
from .export import export_csv, export_filename
from .services import Services


def get_services(args: argparse.Namespace) -> Services:
    """Build Services from the environment, honouring --backend/--data-dir."""
    config = StoreConfig.from_env()
    if getattr(args, "backend", None):
        config.backend = args.backend
    if getattr(args, "data_dir", None):
        config.data_dir = Path(args.data_dir)
    return Services.build(config)


def serve_environment(args: argparse.Namespace) -> dict[str, str]:
    """Environment variables carrying --backend/--data-dir to a reloaded server."""
    env = {}
    if getattr(args, "backend", None):
        env["STOREFRONT_BACKEND"] = args.backend
    if getattr(args, "data_dir", None):
        env["STOREFRONT_DATA_DIR"] = str(Path(args.data_dir).resolve())
    return env


def cmd_seed_regions(args: argparse.Namespace) -> int:
    """Add the default delivery regions."""
    try:
        services = get_services(args)
        added = services.delivery.seed_defaults()
        total = len(services.delivery.list_regions())
        print(f"Added {added} region(s), {total} configured")
        return 0

    except StorefrontError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_cleanup(args: argparse.Namespace) -> int:
    """Prune old orders."""
    try:
        services = get_services(args)
        services.retention.keep = args.keep
        deleted = services.retention.prune_orders()
        print(f"Deleted {deleted} order(s)")
        return 0

    except StorefrontError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_export(args: argparse.Namespace) -> int:
    """Write the ZR Express CSV."""
    try:
        services = get_services(args)
        order_ids = {i.strip() for i in args.ids.split(",") if i.strip()} if args.ids else None
        content = export_csv(services.orders.list_orders(), order_ids)

        output = Path(args.output) if args.output else Path(export_filename())
        output.write_text(content, encoding="utf-8")
        rows = content.count("\n")
        print(f"Exported {rows} order(s) to {output}")
        return 0

    except (StorefrontError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_serve(args: argparse.Namespace) -> int:
    """Start the API server."""
    try:
        import uvicorn

        config = StoreConfig.from_env()
        print("Starting storefront API server...")
        print(f"Storage backend: {args.backend or config.backend}")
        print(f"API docs: http://{args.host}:{args.port}/docs")
        print()

        # When reload is enabled, uvicorn requires the app as an import string,
        # and the reloaded process reads its configuration from the environment
        app_target = "storefront.api:app" if args.reload else None
        if app_target is not None:
            os.environ.update(serve_environment(args))
        else:
            from .api import create_app

            app_target = create_app(get_services(args))

        uvicorn.run(
            app_target,
            host=args.host,
            port=args.port,
            reload=args.reload,
            log_level=config.log_level.lower(),
        )
        return 0

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="storefront",
        description="Storefront catalog, checkout and order fulfillment",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--backend", choices=["file", "mongo"], help="Storage backend")
    parser.add_argument("--data-dir", help="Data directory for the file backend")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to bind to")
    serve_parser.add_argument("--reload", action="store_true", help="Enable auto-reload")

    subparsers.add_parser("seed-regions", help="Add the default delivery regions")

    cleanup_parser = subparsers.add_parser("cleanup", help="Delete old orders")
    cleanup_parser.add_argument(
        "--keep", type=int, default=100, help="Always keep this many recent orders"
    )

    export_parser = subparsers.add_parser("export", help="Export orders as ZR Express CSV")
    export_parser.add_argument("--ids", help="Comma-separated order ids (default: all)")
    export_parser.add_argument("--output", "-o", help="Output file")

    return parser


def main() -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args()

    logging.basicConfig(
        level=StoreConfig.from_env().log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not args.command:
        parser.print_help()
        return 0

    commands = {
        "serve": cmd_serve,
        "seed-regions": cmd_seed_regions,
        "cleanup": cmd_cleanup,
        "export": cmd_export,
    }

    cmd_func = commands.get(args.command)
    if cmd_func:
        return cmd_func(args)

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())

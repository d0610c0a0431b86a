#!/usr/bin/env python3
"""
hubcrawler - Registry overview CLI

Command-line interface for aggregating a private registry's repositories,
tags and build provenance, deleting tags, and serving the web overview.
"""

import argparse
import logging
import sys

import uvicorn

from .base import LEVEL_DANGER
from .client import Deadline, RegistryClient
from .config import AppConfig, load_config
from .errors import ConfigError, RegistryError
from .pipeline import aggregate
from .render import render_json, render_table
from .web import create_app

logger = logging.getLogger(__name__)


def aggregate_command(config: AppConfig, args) -> int:
    """Aggregate the registry and print the result"""
    print(f"Aggregating {config.registry}...", file=sys.stderr)
    result = aggregate(config)

    if args.output_format == 'json':
        print(render_json(result))
    else:
        print(render_table(result))

    # Partial results are still printed; signal that something went wrong
    return 1 if any(m.level == LEVEL_DANGER for m in result.messages) else 0


def delete_command(config: AppConfig, args) -> int:
    """Delete a tag by content digest"""
    client = RegistryClient(config.registry, scheme=config.registry_scheme)
    logger.info("Deleting image %s/%s.", args.image, args.digest)

    try:
        status = client.delete_manifest(args.image, args.digest, Deadline(config.request_deadline))
    except RegistryError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Deleted {args.image}@{args.digest} (HTTP {status})", file=sys.stderr)
    return 0


def serve_command(config: AppConfig, args) -> int:
    """Serve the web overview"""
    host, port = config.host_port
    logger.info("Listening on %s...", config.listen)
    uvicorn.run(create_app(config), host=host, port=port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='hubcrawler - Container registry overview'
    )
    parser.add_argument('--config', help='YAML config file (optional)')
    parser.add_argument('--registry', help='Registry host (env: REGISTRY, default: registry.local)')
    parser.add_argument('--scheme', choices=['http', 'https'],
                        help='Registry URL scheme (env: REGISTRY_SCHEME, default: https)')
    parser.add_argument('--listen', help='Listen address for serve (env: LISTEN, default: :8080)')
    parser.add_argument('--max-workers', type=int,
                        help='Concurrent repository workers (env: MAX_WORKERS, default: 8)')
    parser.add_argument('--deadline', type=float, dest='request_deadline',
                        help='Request deadline in seconds (env: REQUEST_DEADLINE, default: 60)')
    parser.add_argument('--tag-limit', type=int,
                        help='Non-latest tags shown per image (env: TAG_LIMIT, default: 4)')
    parser.add_argument('--surface-provenance-errors', action='store_true', default=None,
                        help='Report tags whose provenance cannot be decoded')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    agg_parser = subparsers.add_parser('aggregate', help='Print repositories, tags and provenance')
    agg_parser.add_argument('--output-format', choices=['table', 'json'], default='table',
                            help='Output format (default: table)')

    del_parser = subparsers.add_parser('delete', help='Delete a tag by content digest')
    del_parser.add_argument('image', help='Repository name (e.g., team/app)')
    del_parser.add_argument('digest', help='Content digest (e.g., sha256:...)')

    subparsers.add_parser('serve', help='Serve the web overview')

    return parser


def main(argv=None) -> int:
    """Main CLI entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
        stream=sys.stderr,
    )

    if not args.command:
        parser.print_help()
        return 1

    try:
        config = load_config(
            args.config,
            registry=args.registry,
            registry_scheme=args.scheme,
            listen=args.listen,
            max_workers=args.max_workers,
            request_deadline=args.request_deadline,
            tag_limit=args.tag_limit,
            surface_provenance_errors=args.surface_provenance_errors,
        )
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    # Run command
    if args.command == 'aggregate':
        return aggregate_command(config, args)
    elif args.command == 'delete':
        return delete_command(config, args)
    elif args.command == 'serve':
        return serve_command(config, args)
    else:
        print(f"Error: Unknown command: {args.command}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())

#!/usr/bin/env python3
"""CLI entry point for cluster-driver.

Noun-action subcommands:
- cluster apply:    cluster-driver cluster apply -c cluster.yaml [--confirm]
- component apply:  cluster-driver component apply [NAME ...]
- component list:   cluster-driver component list
- platform list:    cluster-driver platform list
"""

import argparse
import json
import logging
import sys
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Optional

from config import ConfigError, find_config_file, load_cluster_config
from errors import ApplyError
from orchestrator import ApplyOptions, ApplyOrchestrator, ApplyOutcome, apply_components, new_provisioner
from platforms import list_platforms
from readiness import run_preflight

NOUN_COMMANDS = {
    "cluster": "Cluster lifecycle (apply)",
    "component": "Component releases (apply/list)",
    "platform": "Supported platforms (list)",
}

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(message)s'
LOG_DATEFMT = '%Y-%m-%d %H:%M:%S'

logging.basicConfig(level=logging.INFO, format=LOG_FORMAT, datefmt=LOG_DATEFMT)
logger = logging.getLogger(__name__)


def get_version() -> str:
    try:
        return version('cluster-driver')
    except PackageNotFoundError:
        return 'dev'


def _configure_logging(args) -> None:
    """Apply --verbose and --json-output to the root logger."""
    root_logger = logging.getLogger()
    if getattr(args, 'json_output', False):
        # stdout is reserved for the JSON report
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
        root_logger.addHandler(stderr_handler)
    if args.verbose:
        root_logger.setLevel(logging.DEBUG)


def _common_parser(prog: str, description: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=f'cluster-driver {prog}', description=description)
    parser.add_argument(
        '--config', '-c',
        type=Path,
        help='Path to cluster.yaml (default: $CLUSTER_DRIVER_CONFIG or ./cluster.yaml)',
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose logging',
    )
    return parser


def _load_config(path: Optional[Path]):
    return load_cluster_config(find_config_file(path))


def cluster_apply_main(argv: list) -> int:
    """Handle 'cluster apply'."""
    parser = _common_parser('cluster apply', 'Deploy or update a cluster')
    parser.add_argument(
        '--confirm',
        action='store_true',
        help='Upgrade cluster without asking for confirmation',
    )
    parser.add_argument(
        '--skip-components',
        action='store_true',
        help='Skip applying component configuration',
    )
    parser.add_argument(
        '--upgrade-kubelets',
        action='store_true',
        help='Also upgrade the kubelet chart during the control plane upgrade',
    )
    parser.add_argument(
        '--report-dir', '-r',
        type=Path,
        help='Directory for apply reports',
    )
    parser.add_argument(
        '--json-output',
        action='store_true',
        help='Output structured JSON to stdout (logs go to stderr)',
    )
    parser.add_argument(
        '--skip-preflight',
        action='store_true',
        help='Skip pre-flight validation checks',
    )
    args = parser.parse_args(argv)
    _configure_logging(args)

    try:
        config = _load_config(args.config)
    except ConfigError as e:
        print(f"Error: {e}")
        return 1

    if not args.skip_preflight:
        errors = run_preflight(config)
        if errors:
            print("\nPre-flight validation failed:")
            for error in errors:
                print(f"  ✗ {error}")
            print("\nUse --skip-preflight to bypass these checks")
            return 1
        logger.info("Pre-flight validation passed")

    options = ApplyOptions(
        confirm=args.confirm,
        skip_components=args.skip_components,
        upgrade_kubelets=args.upgrade_kubelets,
        verbose=args.verbose,
    )
    orchestrator = ApplyOrchestrator(
        config=config,
        provisioner=new_provisioner(config, verbose=args.verbose),
        options=options,
        report_dir=args.report_dir,
    )

    rc = 0
    try:
        outcome = orchestrator.run()
    except ApplyError as e:
        print(f"Error: {e}")
        rc = 1
    else:
        if outcome is ApplyOutcome.ABORTED:
            print("Cluster apply cancelled.")
        else:
            print("\nYour cluster is ready.")

    if args.json_output:
        print(json.dumps(orchestrator.report.to_dict(), indent=2))
    return rc


def component_apply_main(argv: list) -> int:
    """Handle 'component apply [NAME ...]'."""
    parser = _common_parser('component apply', 'Install or upgrade components on an applied cluster')
    parser.add_argument(
        'names',
        nargs='*',
        metavar='NAME',
        help='Components to apply (default: all declared components)',
    )
    args = parser.parse_args(argv)
    _configure_logging(args)

    try:
        config = _load_config(args.config)
        results = apply_components(config, args.names)
    except (ConfigError, ApplyError) as e:
        print(f"Error: {e}")
        return 1

    for name, action in results:
        print(f"  {name:30} {action}")
    return 0


def component_list_main(argv: list) -> int:
    """Handle 'component list'."""
    parser = _common_parser('component list', 'List declared components')
    args = parser.parse_args(argv)
    _configure_logging(args)

    try:
        config = _load_config(args.config)
    except ConfigError as e:
        print(f"Error: {e}")
        return 1

    if not config.components:
        print("No components declared.")
        return 0
    print("Declared components:")
    for c in config.components:
        wait = ' (wait)' if c.wait else ''
        print(f"  {c.name:30} {c.namespace:20} {c.chart}{wait}")
    return 0


def platform_list_main(_argv: list) -> int:
    print("Supported platforms:")
    for kind, managed in list_platforms():
        print(f"  {kind:15} {'managed' if managed else 'self-hosted'}")
    return 0


ACTIONS = {
    "cluster": {"apply": cluster_apply_main},
    "component": {"apply": component_apply_main, "list": component_list_main},
    "platform": {"list": platform_list_main},
}


def dispatch_noun(noun: str, argv: list) -> int:
    """Dispatch to a noun's action handler.

    Args:
        noun: The noun command (e.g., "cluster")
        argv: Arguments after the noun (e.g., ['apply', '--confirm'])

    Returns:
        Exit code
    """
    actions = ACTIONS[noun]
    if not argv or argv[0].startswith('-'):
        print(f"Usage: cluster-driver {noun} <action> [options]")
        print()
        print(f"Actions: {', '.join(actions)}")
        return 1 if not argv else 0

    action, rest = argv[0], argv[1:]
    if action not in actions:
        print(f"Error: Unknown {noun} action '{action}'")
        print(f"Available actions: {', '.join(actions)}")
        return 1
    return actions[action](rest)


def print_usage():
    """Print top-level usage showing noun commands."""
    print(f"cluster-driver {get_version()}")
    print()
    print("Usage: cluster-driver <noun> <action> [options]")
    print()
    print("Commands:")
    for noun, desc in NOUN_COMMANDS.items():
        print(f"  {noun:<12} {desc}")
    print()
    print("Examples:")
    print("  cluster-driver cluster apply -c cluster.yaml")
    print("  cluster-driver cluster apply --confirm --upgrade-kubelets")
    print("  cluster-driver component apply metallb")


def main(argv: Optional[list] = None) -> int:
    """CLI entry point."""
    argv = sys.argv[1:] if argv is None else argv

    if not argv or argv[0] in ('-h', '--help'):
        print_usage()
        return 0
    if argv[0] == '--version':
        print(f"cluster-driver {get_version()}")
        return 0

    noun = argv[0]
    if noun not in NOUN_COMMANDS:
        print(f"Error: Unknown command '{noun}'")
        print_usage()
        return 1

    try:
        return dispatch_noun(noun, argv[1:])
    except KeyboardInterrupt:
        print("\nInterrupted.")
        return 130


if __name__ == '__main__':
    sys.exit(main())

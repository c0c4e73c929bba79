"""Main CLI entry point for deporder."""

import argparse
import logging
import sys
from typing import Optional

from . import __version__
from .commands.stats import show_stats
from .config import load_config
from .exceptions import DependencyOrderError
from .formatters import OutputFormatter
from .graph_builder import DependencyTreeBuilder
from .sources import open_source
from .trace import LoggingTrace, TraceRecorder

logger = logging.getLogger(__name__)

LOG_LEVEL_ALIASES = {'TRACE': 'DEBUG', 'WARN': 'WARNING'}


def setup_logging(verbose: bool = False, log_level: Optional[str] = None):
    """Configure logging based on verbosity flags."""
    if log_level:
        name = LOG_LEVEL_ALIASES.get(log_level.upper(), log_level.upper())
        level = getattr(logging, name, logging.WARNING)
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format='%(levelname)s: %(message)s'
    )


def _build_tree(args, trace):
    """Load config and source, then build the tree for the requested packages."""
    config = load_config(
        args.config,
        dependency_level=args.level,
        max_rewires=args.max_rewires,
    )
    source = open_source(args.source)
    try:
        builder = DependencyTreeBuilder(source, config, trace)
        return builder.build(args.packages)
    finally:
        if hasattr(source, 'close'):
            source.close()


def handle_order(args):
    """Handle the 'order' subcommand."""
    setup_logging(args.verbose, args.loglevel)
    command_line = ' '.join(sys.argv[1:])

    recorder = TraceRecorder() if args.trace else None
    try:
        tree = _build_tree(args, recorder if recorder is not None else LoggingTrace())
    except (DependencyOrderError, OSError, ValueError) as e:
        logger.error(f"Error resolving build order: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        if args.output_format == 'tree':
            output = OutputFormatter.format_as_tree(tree)
        elif args.output_format == 'json':
            output = OutputFormatter.format_as_json(tree)
        elif args.output_format == 'sbom':
            output = OutputFormatter.format_as_sbom(tree, command_line)
        else:  # list (default)
            output = OutputFormatter.format_as_list(tree.order())
    except Exception as e:
        logger.error(f"Error generating output: {e}")
        print(f"Error generating output: {e}", file=sys.stderr)
        return 1

    if recorder is not None:
        output += "\nTrace:\n" + "".join(f"  {event}\n" for event in recorder.events)

    try:
        if args.output == '-':
            print(output, end='')
        else:
            with open(args.output, 'w') as f:
                f.write(output)
            logger.info(f"Output written to: {args.output}")
            print(f"Output written to: {args.output}")
    except OSError as e:
        logger.error(f"Error writing output: {e}")
        print(f"Error writing output: {e}", file=sys.stderr)
        return 1

    logger.info("Build order computed successfully")
    return 0


def handle_stats(args):
    """Handle the 'stats' subcommand."""
    setup_logging(args.verbose, args.loglevel)
    try:
        tree = _build_tree(args, LoggingTrace())
    except (DependencyOrderError, OSError, ValueError) as e:
        logger.error(f"Error resolving build order: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1

    show_stats(tree)
    return 0


def _add_common_arguments(parser):
    parser.add_argument('packages', nargs='+', metavar='PACKAGE',
                        help='Package(s) to build')
    parser.add_argument('--source', required=True,
                        help='Dependency metadata: a directory of .dep files, a packages .xml file, '
                             'or an http(s) metadata server URL')
    parser.add_argument('--level', type=int, choices=[1, 2, 3, 4], default=None,
                        help='Dependency level: 1 required, 2 +recommended, '
                             '3 +optional for requested packages, 4 +optional everywhere. Default: 2')
    parser.add_argument('--config', help='Config file with KEY=value lines (DEP_LEVEL, MAX_REWIRES, ROOT_NAME)')
    parser.add_argument('--max-rewires', dest='max_rewires', type=int, default=None,
                        help='Abort after this many cycle rewires. Default: 1000')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Verbose output')
    parser.add_argument('--loglevel',
                        choices=['TRACE', 'DEBUG', 'INFO', 'WARN', 'ERROR'],
                        help='Set log level')


def main(argv=None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog='deporder',
        description='Build order resolution for source-based distributions'
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')

    subparsers = parser.add_subparsers(dest='command', help='Subcommands')

    order_parser = subparsers.add_parser('order', help='Compute the build order of packages')
    _add_common_arguments(order_parser)
    order_parser.add_argument('--format', dest='output_format', default='list',
                              choices=['list', 'tree', 'json', 'sbom'],
                              help='Output format (list, tree, json, sbom). Default: list')
    order_parser.add_argument('--output', default='-',
                              help='Output file (default: stdout, use - for stdout)')
    order_parser.add_argument('--trace', action='store_true',
                              help='Append the decision trace to the output')
    order_parser.set_defaults(func=handle_order)

    stats_parser = subparsers.add_parser('stats', help='Show dependency tree statistics')
    _add_common_arguments(stats_parser)
    stats_parser.set_defaults(func=handle_stats)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        return args.func(args)
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())

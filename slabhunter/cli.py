#!/usr/bin/env python3
"""
SlabHunter CLI Interface

Runs a Python entry point with leak hunting installed on the default buffer
pool, printing the leak overview on a fixed interval.
"""

import argparse
import os
import runpy
import sys

from . import __version__
from .config import SlabHunterConfig
from .core import get_hunter, setup


def create_parser():
    """Create the argument parser for SlabHunter CLI."""
    parser = argparse.ArgumentParser(
        prog='slabhunter',
        description='SlabHunter - Buffer and slab-retainer leak detection',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  slabhunter run app.py
  slabhunter run --interval 30 --leak-cutoff-ms 10000 app.py
  slabhunter run --json worker.py --worker-flag
        """
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    run_parser = subparsers.add_parser('run', help='Run an entry point with leak hunting enabled')
    run_parser.add_argument('entrypoint', nargs='?',
                            help='Python script to run (for example: app.py)')
    run_parser.add_argument('args', nargs=argparse.REMAINDER,
                            help='Arguments passed on to the entry point')
    run_parser.add_argument('--interval', '-i', type=float, default=None,
                            help='Seconds between leak reports (default: 120)')
    run_parser.add_argument('--leak-cutoff-ms', type=float, default=None,
                            help='Milliseconds before a live buffer is a leak candidate (default: 60000)')
    run_parser.add_argument('--big-buffer-cutoff', type=int, default=None,
                            help='Bytes from which a buffer counts as big (default: 4000)')
    run_parser.add_argument('--json', action='store_true',
                            help='Print reports as JSON')

    return parser


def build_config(args) -> SlabHunterConfig:
    """Environment overrides first, explicit flags win."""
    config = SlabHunterConfig.from_env()
    overrides = {}
    if args.interval is not None:
        overrides['log_interval_s'] = args.interval
    if args.leak_cutoff_ms is not None:
        overrides['ms_leak_cutoff'] = args.leak_cutoff_ms
    if args.big_buffer_cutoff is not None:
        overrides['big_buffer_cutoff'] = args.big_buffer_cutoff
    return config.merge(**overrides) if overrides else config


def cmd_run(args):
    """Install the hunter, start periodic reports and run the entry point."""
    if not args.entrypoint:
        print('Usage: slabhunter run <entrypoint> (for example: slabhunter run app.py)',
              file=sys.stderr)
        return 1

    entry_point = os.path.abspath(args.entrypoint)
    if not os.path.isfile(entry_point):
        print(f'Entry point not found: {entry_point}', file=sys.stderr)
        return 1

    try:
        config = build_config(args)
    except ValueError as e:
        print(f'Invalid configuration: {e}', file=sys.stderr)
        return 1

    print(f'Setting up slab hunter for entrypoint {entry_point}')
    print(f'Printing leak info every {config.log_interval_s:g} seconds')

    setup(config=config)
    hunter = get_hunter()

    def emit(_text=None):
        print(hunter.overview().to_json() if args.json else hunter.render())

    hunter.watch(sink=emit)

    args_tail = args.args[1:] if args.args[:1] == ['--'] else args.args
    saved_argv, saved_path = sys.argv, list(sys.path)
    sys.argv = [entry_point] + list(args_tail)
    sys.path.insert(0, os.path.dirname(entry_point))
    try:
        runpy.run_path(entry_point, run_name='__main__')
    finally:
        sys.argv = saved_argv
        sys.path[:] = saved_path
        hunter.stop_watching()
        # Final report once the entry point returns
        emit()
        hunter.dispose()
    return 0


def main(argv=None):
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        if args.command == 'run':
            return cmd_run(args)
        else:
            print(f"Unknown command: {args.command}")
            return 1
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 1


if __name__ == '__main__':
    sys.exit(main())

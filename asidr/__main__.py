#! /usr/bin/env python3
""" Command-line entry point that dispatches to the ASIDR tools.

    asidr interpret mutations.csv resistance.csv comments.csv
    asidr compare_algorithms "RT:M184V" --algorithm HIVDB_9.0.xml
    asidr --version
"""
import argparse
import runpy
import sys
from pathlib import PurePosixPath
from typing import Dict, Sequence

# Checked against the source tree in asidr/tests/test_main.py
EXECUTABLES = [
    "asidr/__main__.py",
    "asidr/resistance/interpret.py",
    "asidr/resistance/compare_algorithms.py",
    "asidr/utils/version.py",
]


def executable_name(path: str) -> str:
    return PurePosixPath(path).stem


def executable_module(path: str) -> str:
    return '.'.join(PurePosixPath(path).with_suffix('').parts)


EXECUTABLES_MAP: Dict[str, str] = {executable_name(path): path
                                   for path in EXECUTABLES}


def run_program(module_name: str, arguments: Sequence[str]) -> int:
    """ Run a tool's module as if it were started with python -m. """
    sys.argv = [module_name, *arguments]
    runpy.run_module(module_name, run_name='__main__', alter_sys=True)
    return 0


def get_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='asidr',
                                     description='Run an ASIDR tool.',
                                     add_help=False)
    parser.add_argument('--version',
                        action='store_true',
                        help='print the version and exit')
    parser.add_argument('--help',
                        action='store_true',
                        help='show this help message and exit')
    parser.add_argument('program',
                        nargs='?',
                        choices=sorted(EXECUTABLES_MAP),
                        help='tool to run')
    parser.add_argument('arguments',
                        nargs=argparse.REMAINDER,
                        help='arguments for the tool')
    return parser


def main(argv: Sequence[str]) -> int:
    parser = get_parser()
    args = parser.parse_args(argv)
    if args.version:
        return run_program(executable_module(EXECUTABLES_MAP['version']), [])
    if args.help or args.program is None:
        parser.print_help()
        return 0 if args.help else 1
    return run_program(executable_module(EXECUTABLES_MAP[args.program]),
                       args.arguments)


def cli() -> int:
    return main(sys.argv[1:])


if __name__ == '__main__':
    sys.exit(cli())

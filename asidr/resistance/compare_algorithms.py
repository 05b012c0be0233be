#! /usr/bin/env python3
""" Compare how several ASI algorithms score the same mutations.

    python -m asidr compare_algorithms "RT:M184V, RT:K65R" \
        --algorithm HIVDB_9.0.xml --algorithm ANRS_30.xml
"""
import logging
import sys
from argparse import ArgumentParser, FileType
from logging.config import dictConfig

from asidr.core.virus import load_default_virus
from asidr.resistance.asi_algorithm import (DrugResistanceAlgorithm,
                                            HIVDB_DEMO_PATH)
from asidr.resistance.comparison import (AlgorithmComparison,
                                         comparison_to_json, write_comparison)
from asidr.utils.logging_config import LOGGING
from asidr.utils.user_error import UserError

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = ArgumentParser(
        description='Compare drug resistance calls from ASI algorithms.')
    parser.add_argument('mutations',
                        help='mutations with gene names, like "RT:M184V, '
                             'PR:L90M"')
    parser.add_argument('--algorithm',
                        action='append',
                        type=FileType(),
                        help='ASI2 algorithm XML, may be repeated. Uses the '
                             'HIVDB demo by default.')
    output_group = parser.add_mutually_exclusive_group()
    output_group.add_argument('--csv',
                              action='store_true',
                              help='write comma separated values instead of '
                                   'tabs')
    output_group.add_argument('--json',
                              action='store_true',
                              help='write JSON instead of a table')
    return parser.parse_args(argv)


def compare(mutation_text, algorithm_files, output, is_csv=False, is_json=False):
    virus = load_default_virus()
    if not algorithm_files:
        algorithm_files = [HIVDB_DEMO_PATH]
    algorithms = [DrugResistanceAlgorithm.from_xml(virus, algorithm_file)
                  for algorithm_file in algorithm_files]
    mutations = virus.new_mutation_set(mutation_text)
    comparison = AlgorithmComparison(mutations, algorithms)
    results = comparison.get_comparison_results()
    if is_json:
        output.write(comparison_to_json(results, indent=2))
        output.write('\n')
    else:
        write_comparison(results,
                         output,
                         [algorithm.name for algorithm in algorithms],
                         dialect='excel' if is_csv else 'excel-tab')


def main(argv=None):
    dictConfig(LOGGING)
    args = parse_args(argv)
    try:
        compare(args.mutations,
                args.algorithm,
                sys.stdout,
                is_csv=args.csv,
                is_json=args.json)
        logger.debug("Done.")
        return 0
    except BrokenPipeError:
        logger.debug("Broken pipe.")
        return 1
    except UserError as e:
        logger.fatal(e.fmt, *e.fmt_args)
        return e.code


if __name__ == '__main__':
    sys.exit(main())

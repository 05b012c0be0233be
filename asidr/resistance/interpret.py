#! /usr/bin/env python3
""" Score drug resistance for samples listed in a CSV file.

The input has sample and mutations columns, like:

sample,mutations
E1234,"RT:M41L, RT:M184V, PR:L90M"
"""
import logging
import os
import sys
from argparse import ArgumentParser, FileType
from csv import DictReader, DictWriter
from logging.config import dictConfig

from asidr.core.virus import load_default_virus
from asidr.resistance.asi_algorithm import (DrugResistanceAlgorithm,
                                            HIVDB_DEMO_PATH)
from asidr.resistance.asi_result import AsiResult
from asidr.resistance.comments import (group_comments_by_type,
                                       load_default_comments)
from asidr.utils.logging_config import LOGGING
from asidr.utils.user_error import InvalidMutationError, UserError

logger = logging.getLogger(__name__)

MISSING_VALUE = 'NA'
RESISTANCE_FIELDS = ['sample',
                     'gene',
                     'drug_class',
                     'drug',
                     'algorithm',
                     'score',
                     'level',
                     'level_text',
                     'sir',
                     'explanation']
COMMENT_FIELDS = ['sample',
                  'gene',
                  'comment_name',
                  'comment_type',
                  'text',
                  'highlight']


def parse_args(argv=None):
    parser = ArgumentParser(
        description='Score drug resistance for lists of mutations.')
    parser.add_argument('mutations_csv',
                        type=FileType(),
                        help='samples and their mutations')
    parser.add_argument('resistance_csv',
                        type=FileType('w'),
                        help='drug scores for each sample and gene')
    parser.add_argument('comments_csv',
                        type=FileType('w'),
                        help='comments for each sample and gene')
    parser.add_argument('--algorithm',
                        type=FileType(),
                        help='ASI2 algorithm XML, the HIVDB demo by default')
    parser.add_argument('--gene',
                        help='only score this gene, like RT. Mutations '
                             'without a gene name belong to it.')
    return parser.parse_args(argv)


def create_writers(resistance_csv, comments_csv):
    resistance_writer = DictWriter(resistance_csv,
                                   RESISTANCE_FIELDS,
                                   restval=MISSING_VALUE,
                                   lineterminator=os.linesep)
    resistance_writer.writeheader()
    comments_writer = DictWriter(comments_csv,
                                 COMMENT_FIELDS,
                                 restval=MISSING_VALUE,
                                 lineterminator=os.linesep)
    comments_writer.writeheader()
    return resistance_writer, comments_writer


def write_resistance(mutations_csv,
                     resistance_csv,
                     comments_csv,
                     algorithm,
                     gene_name=None,
                     virus=None,
                     comments=None):
    """ Score each sample and write the scores and comments.

    A sample with unreadable mutations is logged and written with NA
    placeholders, then the other samples carry on.
    """
    if virus is None:
        virus = load_default_virus()
    if comments is None:
        comments = load_default_comments(virus)
    if gene_name is None:
        default_gene = None
        genes = algorithm.get_genes()
    else:
        default_gene = virus.get_config_gene(gene_name, algorithm.strain)
        genes = [default_gene]
    resistance_writer, comments_writer = create_writers(resistance_csv,
                                                        comments_csv)
    for row in DictReader(mutations_csv):
        sample = row['sample']
        try:
            mutations = virus.new_mutation_set(row['mutations'], default_gene)
        except InvalidMutationError as ex:
            logger.warning('Skipping sample %s: ' + ex.fmt, sample, *ex.fmt_args)
            resistance_writer.writerow(dict(sample=sample))
            comments_writer.writerow(dict(sample=sample))
            continue
        for gene in genes:
            asi_result = AsiResult(gene, mutations, algorithm)
            write_gene_resistance(sample, asi_result, resistance_writer)
            write_gene_comments(sample, asi_result, comments, comments_writer)


def write_gene_comments(sample, asi_result, comments, comments_writer):
    """ Write the gene's bound comments, grouped by comment type. """
    bound_comments = comments.from_asi_mutation_comments(
        asi_result.get_triggered_comment_definitions(),
        asi_result.mutations)
    bound_comments.extend(comments.from_asi_drug_level_comments(
        asi_result.triggered_result_comments))
    for type_comments in group_comments_by_type(bound_comments).values():
        for bound_comment in type_comments:
            comments_writer.writerow(dict(
                sample=sample,
                gene=asi_result.gene.abstract_gene,
                comment_name=bound_comment.name,
                comment_type=bound_comment.comment_type.value,
                text=bound_comment.text,
                highlight=';'.join(bound_comment.highlight_text)))


def write_gene_resistance(sample, asi_result, resistance_writer):
    for drug, drug_susc in asi_result.drug_susceptibilities.items():
        resistance_writer.writerow(dict(sample=sample,
                                        gene=asi_result.gene.abstract_gene,
                                        drug_class=drug.drug_class.name,
                                        drug=drug.display_abbr,
                                        algorithm=drug_susc.algorithm.name,
                                        score=drug_susc.score_display,
                                        level=drug_susc.level,
                                        level_text=drug_susc.level_text,
                                        sir=drug_susc.sir.value,
                                        explanation=drug_susc.explanation))


def main(argv=None):
    dictConfig(LOGGING)
    args = parse_args(argv)
    try:
        virus = load_default_virus()
        algorithm = DrugResistanceAlgorithm.from_xml(
            virus,
            args.algorithm or HIVDB_DEMO_PATH)
        with args.mutations_csv, args.resistance_csv, args.comments_csv:
            write_resistance(args.mutations_csv,
                             args.resistance_csv,
                             args.comments_csv,
                             algorithm,
                             args.gene,
                             virus)
        logger.debug("Done.")
        return 0
    except UserError as e:
        logger.fatal(e.fmt, *e.fmt_args)
        return e.code


if __name__ == '__main__':
    sys.exit(main())

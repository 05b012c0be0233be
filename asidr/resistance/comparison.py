""" Compare the drug scores of several ASI algorithms on the same mutations.
"""
import json
import os
import typing
from collections import OrderedDict
from csv import DictWriter

from asidr.resistance.asi_result import AsiResult
from asidr.utils.user_error import ConfigurationError

MISSING_VALUE = 'NA'


class ComparableDrugScore(typing.NamedTuple):
    drug: object
    algorithm: str
    sir: object
    interpretation: str
    explanation: str

    @property
    def gene(self):
        return self.drug.drug_class.abstract_gene

    def __str__(self):
        return '{} ({}): {}'.format(self.drug, self.algorithm, self.sir.value)


class AlgorithmComparison:
    def __init__(self, mutations, algorithms, genes=None):
        """ Evaluate mutations with each algorithm.

        :param mutations: a MutationSet, possibly across several genes
        :param algorithms: DrugResistanceAlgorithm list, reported in order
        :param genes: genes that were sequenced, or None for the genes that
            have mutations
        :raises ConfigurationError: if two algorithms share a name
        """
        self.algorithms = list(algorithms)
        names = set()
        for algorithm in self.algorithms:
            if algorithm.name in names:
                raise ConfigurationError(
                    'Algorithm %s is listed more than once. Give each '
                    'algorithm a different ALGNAME or ALGVERSION.',
                    algorithm.name)
            names.add(algorithm.name)
        if genes is None:
            genes = mutations.group_by_gene().keys()
        self.asi_results = OrderedDict()  # {gene: [AsiResult]}
        for gene in sorted(genes):
            self.asi_results[gene] = [AsiResult(gene, mutations, algorithm)
                                      for algorithm in self.algorithms]

    def get_asi_results(self, gene):
        return self.asi_results.get(gene, [])

    def get_comparison_results(self):
        """ Scores grouped by gene, drug class and drug, with one entry for
        each algorithm that covers the drug.
        """
        results = []
        for gene, asi_results in self.asi_results.items():
            for drug_class in gene.drug_classes:
                for drug in drug_class.drugs:
                    for asi_result in asi_results:
                        drug_susc = asi_result.drug_susceptibilities.get(drug)
                        if drug_susc is None:
                            continue
                        results.append(ComparableDrugScore(
                            drug,
                            asi_result.algorithm.name,
                            drug_susc.sir,
                            drug_susc.level_text,
                            drug_susc.explanation))
        return results


def write_comparison(results,
                     handle,
                     algorithm_names=None,
                     dialect='excel-tab'):
    """ Write one row per drug, with SIR and interpretation columns for each
    algorithm.

    :param results: ComparableDrugScore list
    :param handle: open file to write to
    :param algorithm_names: column order, or None for the order in results
    :param dialect: csv dialect, tab separated by default
    """
    if algorithm_names is None:
        algorithm_names = list(OrderedDict.fromkeys(
            result.algorithm for result in results))
    elif len(set(algorithm_names)) < len(algorithm_names):
        raise ConfigurationError('Duplicate algorithm names: %s.',
                                 ', '.join(algorithm_names))
    field_names = ['gene', 'drug_class', 'drug']
    for name in algorithm_names:
        field_names.append(name + '.SIR')
        field_names.append(name + '.interpretation')
    writer = DictWriter(handle,
                        field_names,
                        restval=MISSING_VALUE,
                        dialect=dialect,
                        lineterminator=os.linesep)
    writer.writeheader()
    rows = OrderedDict()
    for result in results:
        row = rows.get(result.drug)
        if row is None:
            row = rows[result.drug] = dict(
                gene=result.gene,
                drug_class=result.drug.drug_class.name,
                drug=result.drug.display_abbr)
        row[result.algorithm + '.SIR'] = result.sir.value
        row[result.algorithm + '.interpretation'] = result.interpretation
    writer.writerows(rows.values())


def comparison_to_json(results, indent=None):
    return json.dumps(
        [dict(gene=result.gene,
              drugClass=result.drug.drug_class.name,
              drug=result.drug.display_abbr,
              algorithm=result.algorithm,
              SIR=result.sir.value,
              interpretation=result.interpretation,
              explanation=result.explanation)
         for result in results],
        indent=indent)

import json
from io import StringIO
from unittest import TestCase

from asidr.core.mutation_set import MutationSet
from asidr.core.virus import load_default_virus
from asidr.resistance.asi_algorithm import (SIR, DrugResistanceAlgorithm,
                                            HIVDB_DEMO_PATH)
from asidr.resistance.comparison import (AlgorithmComparison,
                                         comparison_to_json, write_comparison)
from asidr.tests.test_asi_algorithm import create_asi
from asidr.utils.user_error import ConfigurationError


class AlgorithmComparisonTest(TestCase):
    def setUp(self):
        self.virus = load_default_virus()
        self.demo = DrugResistanceAlgorithm.from_xml(self.virus,
                                                     HIVDB_DEMO_PATH)
        self.fake = create_asi(name='fake')

    def test_results_in_order(self):
        demo_copy = DrugResistanceAlgorithm.from_xml(self.virus,
                                                     HIVDB_DEMO_PATH,
                                                     name='HIVDB_copy')
        mutations = self.virus.new_mutation_set('RT:M184V')

        comparison = AlgorithmComparison(mutations, [self.demo, demo_copy])
        results = comparison.get_comparison_results()

        self.assertEqual(20, len(results))
        self.assertEqual([('ABC', 'HIVDB_demo'),
                          ('ABC', 'HIVDB_copy'),
                          ('AZT', 'HIVDB_demo'),
                          ('AZT', 'HIVDB_copy')],
                         [(result.drug.name, result.algorithm)
                          for result in results[:4]])
        self.assertEqual('RPV', results[-1].drug.name)
        first = results[0]
        self.assertEqual('RT', first.gene)
        self.assertEqual(SIR.I, first.sir)
        self.assertEqual('Low-Level Resistance', first.interpretation)
        self.assertEqual('Total score: 15.0\nM184V (15.0)', first.explanation)
        self.assertEqual('ABC (HIVDB_demo): I', str(first))

    def test_duplicate_algorithm_names(self):
        demo_copy = DrugResistanceAlgorithm.from_xml(self.virus,
                                                     HIVDB_DEMO_PATH)
        mutations = self.virus.new_mutation_set('RT:M184V')

        with self.assertRaisesRegex(ConfigurationError,
                                    'Algorithm HIVDB_demo is listed more '
                                    'than once'):
            AlgorithmComparison(mutations, [self.demo, demo_copy])

    def test_genes_sorted(self):
        mutations = self.virus.new_mutation_set('RT:M184V, PR:L90M')

        comparison = AlgorithmComparison(mutations, [self.demo])

        self.assertEqual(['HIV1PR', 'HIV1RT'],
                         [gene.name for gene in comparison.asi_results])

    def test_explicit_genes(self):
        pr = self.virus.get_gene('PR')

        comparison = AlgorithmComparison(MutationSet(), [self.demo], [pr])
        results = comparison.get_comparison_results()

        self.assertEqual(['ATV', 'DRV', 'LPV'],
                         [result.drug.name for result in results])
        self.assertEqual({SIR.S}, {result.sir for result in results})
        self.assertEqual(1, len(comparison.get_asi_results(pr)))
        self.assertEqual([], comparison.get_asi_results(
            self.virus.get_gene('IN')))

    def test_drug_not_covered(self):
        mutations = self.virus.new_mutation_set('RT:M184V')

        comparison = AlgorithmComparison(mutations, [self.demo, self.fake])
        results = comparison.get_comparison_results()

        self.assertEqual(12, len(results))
        self.assertEqual(['HIVDB_demo'],
                         [result.algorithm
                          for result in results
                          if result.drug.name == 'AZT'])
        self.assertEqual(['HIVDB_demo', 'fake'],
                         [result.algorithm
                          for result in results
                          if result.drug.name == 'LMV'])

    def test_write(self):
        mutations = self.virus.new_mutation_set('RT:M184V')
        results = AlgorithmComparison(
            mutations,
            [self.demo, self.fake]).get_comparison_results()
        expected_lines = [
            'gene\tdrug_class\tdrug\t'
            'HIVDB_demo.SIR\tHIVDB_demo.interpretation\t'
            'fake.SIR\tfake.interpretation',
            'RT\tNRTI\tABC\tI\tLow-Level Resistance\tS\tSusceptible',
            'RT\tNRTI\tAZT\tS\tSusceptible\tNA\tNA',
            'RT\tNRTI\tFTC\tR\tHigh-Level Resistance\tNA\tNA',
            'RT\tNRTI\t3TC\tR\tHigh-Level Resistance\t'
            'R\tHigh-Level Resistance',
            'RT\tNRTI\tTDF\tS\tSusceptible\tNA\tNA',
            'RT\tNNRTI\tDOR\tS\tSusceptible\tNA\tNA']
        report = StringIO()

        write_comparison(results, report)

        self.assertEqual(expected_lines, report.getvalue().splitlines()[:7])
        self.assertEqual(11, len(report.getvalue().splitlines()))

    def test_write_csv_column_order(self):
        mutations = self.virus.new_mutation_set('RT:M184V')
        results = AlgorithmComparison(
            mutations,
            [self.demo, self.fake]).get_comparison_results()
        report = StringIO()

        write_comparison(results,
                         report,
                         algorithm_names=['fake', 'HIVDB_demo'],
                         dialect='excel')

        lines = report.getvalue().splitlines()
        self.assertEqual('gene,drug_class,drug,fake.SIR,fake.interpretation,'
                         'HIVDB_demo.SIR,HIVDB_demo.interpretation',
                         lines[0])
        self.assertEqual('RT,NRTI,AZT,NA,NA,S,Susceptible', lines[2])

    def test_write_duplicate_names(self):
        with self.assertRaisesRegex(ConfigurationError,
                                    'Duplicate algorithm names'):
            write_comparison([], StringIO(), ['fake', 'fake'])

    def test_json(self):
        mutations = self.virus.new_mutation_set('RT:M184V')
        results = AlgorithmComparison(mutations,
                                      [self.demo]).get_comparison_results()

        entries = json.loads(comparison_to_json(results, indent=2))

        self.assertEqual(10, len(entries))
        self.assertEqual(dict(gene='RT',
                              drugClass='NRTI',
                              drug='ABC',
                              algorithm='HIVDB_demo',
                              SIR='I',
                              interpretation='Low-Level Resistance',
                              explanation='Total score: 15.0\nM184V (15.0)'),
                         entries[0])

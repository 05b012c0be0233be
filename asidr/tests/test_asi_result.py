from collections import OrderedDict
from operator import attrgetter
from random import Random
from unittest import TestCase

from asidr.core.mutation_set import MutationSet
from asidr.core.virus import load_default_virus
from asidr.resistance.asi_algorithm import (SIR, DrugResistanceAlgorithm,
                                            HIVDB_DEMO_PATH)
from asidr.resistance.asi_result import (AsiResult, evaluate, evaluate_batch,
                                         evaluate_drug)
from asidr.resistance.drug_susc import NOT_TRIGGERED, AsiDrugSusc
from asidr.tests.test_asi_algorithm import create_asi


def load_demo():
    return DrugResistanceAlgorithm.from_xml(load_default_virus(),
                                            HIVDB_DEMO_PATH)


class SingleRuleTest(TestCase):
    def setUp(self):
        self.virus = load_default_virus()
        self.rt = self.virus.get_gene('RT')
        self.lmv = self.virus.get_drug('3TC')
        self.algorithm = create_asi()

    def test_high_level(self):
        mutations = self.virus.new_mutation_set('RT:M184V')

        drug_susc = evaluate_drug(self.lmv, self.rt, mutations, self.algorithm)

        self.assertEqual(60, drug_susc.score)
        self.assertEqual(5, drug_susc.level)
        self.assertEqual('High-Level Resistance', drug_susc.level_text)
        self.assertEqual(SIR.R, drug_susc.sir)
        self.assertTrue(drug_susc.triggered)
        self.assertEqual('Total score: 60.0\nM184V (60.0)',
                         drug_susc.explanation)

    def test_no_match(self):
        mutations = self.virus.new_mutation_set('RT:M184I')

        drug_susc = evaluate_drug(self.lmv, self.rt, mutations, self.algorithm)

        self.assertEqual(0, drug_susc.score)
        self.assertEqual(1, drug_susc.level)
        self.assertEqual(SIR.S, drug_susc.sir)
        self.assertFalse(drug_susc.triggered)
        self.assertFalse(drug_susc.has_partial_scores)
        self.assertEqual(NOT_TRIGGERED, drug_susc.explanation)

    def test_drug_without_rules(self):
        abc = self.virus.get_drug('ABC')
        mutations = self.virus.new_mutation_set('RT:M184V')

        drug_susc = evaluate_drug(abc, self.rt, mutations, self.algorithm)

        self.assertEqual((0, 1, False),
                         (drug_susc.score, drug_susc.level, drug_susc.triggered))


class RuleSelectionTest(TestCase):
    def setUp(self):
        self.virus = load_default_virus()
        self.rt = self.virus.get_gene('RT')
        self.lmv = self.virus.get_drug('3TC')

    def evaluate(self, drugs, mutation_text):
        algorithm = create_asi(drugs=drugs)
        mutations = self.virus.new_mutation_set(mutation_text)
        return evaluate_drug(self.lmv, self.rt, mutations, algorithm)

    def test_highest_score_rule_wins(self):
        drugs = """
  <DRUG>
    <NAME>3TC</NAME>
    <RULE>
      <CONDITION>SCORE FROM (184V => 60)</CONDITION>
      <ACTIONS><SCORERANGE><USE_GLOBALRANGE/></SCORERANGE></ACTIONS>
    </RULE>
    <RULE>
      <CONDITION>SCORE FROM (184V => 10, 41L => 30)</CONDITION>
      <ACTIONS><SCORERANGE><USE_GLOBALRANGE/></SCORERANGE></ACTIONS>
    </RULE>
  </DRUG>
"""
        first_wins = self.evaluate(drugs, 'RT:M184V, RT:M41L')
        second_wins = self.evaluate(drugs, 'RT:M41L')

        self.assertEqual(60, first_wins.score)
        self.assertEqual('Total score: 60.0\nM184V (60.0)',
                         first_wins.explanation)
        self.assertEqual(30, second_wins.score)
        self.assertEqual('SCORE FROM (184V => 10, 41L => 30)',
                         second_wins.statement)

    def test_rule_score_range(self):
        drugs = """
  <DRUG>
    <NAME>3TC</NAME>
    <RULE>
      <CONDITION>SCORE FROM (184V => 15)</CONDITION>
      <ACTIONS>
        <SCORERANGE>(-INF TO 9 => 1, 10 TO INF => 5)</SCORERANGE>
      </ACTIONS>
    </RULE>
  </DRUG>
"""
        drug_susc = self.evaluate(drugs, 'RT:M184V')

        self.assertEqual((15, 5), (drug_susc.score, drug_susc.level))

    def test_level_rule(self):
        drugs = """
  <DRUG>
    <NAME>3TC</NAME>
    <RULE>
      <CONDITION>SCORE FROM (184V => 10)</CONDITION>
      <ACTIONS><SCORERANGE><USE_GLOBALRANGE/></SCORERANGE></ACTIONS>
    </RULE>
    <RULE>
      <CONDITION>41L</CONDITION>
      <ACTIONS><LEVEL>4</LEVEL></ACTIONS>
    </RULE>
    <RULE>
      <CONDITION>41L AND 215Y</CONDITION>
      <ACTIONS><LEVEL>5</LEVEL></ACTIONS>
    </RULE>
  </DRUG>
"""
        level_only = self.evaluate(drugs, 'RT:M41L')
        highest_level = self.evaluate(drugs, 'RT:M41L, RT:T215Y')
        scored = self.evaluate(drugs, 'RT:M41L, RT:M184V')

        self.assertEqual((0, 4, True),
                         (level_only.score,
                          level_only.level,
                          level_only.triggered))
        self.assertEqual('41L (Intermediate Resistance)',
                         level_only.explanation)
        self.assertEqual(5, highest_level.level)
        self.assertEqual('41L AND 215Y (High-Level Resistance)',
                         highest_level.explanation)
        self.assertEqual((10, 4), (scored.score, scored.level))
        self.assertEqual('Total score: 10.0\nM184V (10.0)', scored.explanation)

    def test_highest_level_of_score_and_level_rules(self):
        drugs = """
  <DRUG>
    <NAME>3TC</NAME>
    <RULE>
      <CONDITION>SCORE FROM (184V => 5, 65R => 60)</CONDITION>
      <ACTIONS><SCORERANGE><USE_GLOBALRANGE/></SCORERANGE></ACTIONS>
    </RULE>
    <RULE>
      <CONDITION>41L</CONDITION>
      <ACTIONS><LEVEL>4</LEVEL></ACTIONS>
    </RULE>
  </DRUG>
"""
        level_rule_higher = self.evaluate(drugs, 'RT:M41L, RT:M184V')
        score_higher = self.evaluate(drugs, 'RT:M41L, RT:K65R')

        self.assertEqual((5, 4, 'Intermediate Resistance', SIR.I, True),
                         (level_rule_higher.score,
                          level_rule_higher.level,
                          level_rule_higher.level_text,
                          level_rule_higher.sir,
                          level_rule_higher.triggered))
        self.assertEqual('SCORE FROM (184V => 5, 65R => 60)',
                         level_rule_higher.statement)
        self.assertEqual('Total score: 5.0\nM184V (5.0)',
                         level_rule_higher.explanation)
        self.assertEqual((60, 5), (score_higher.score, score_higher.level))

    def test_comment_rule_without_level(self):
        drugs = """
  <DRUG>
    <NAME>3TC</NAME>
    <RULE>
      <CONDITION>184V</CONDITION>
      <ACTIONS><COMMENT reference="RT184V"/></ACTIONS>
    </RULE>
  </DRUG>
"""
        drug_susc = self.evaluate(drugs, 'RT:M184V')

        self.assertTrue(drug_susc.triggered)
        self.assertEqual(1, drug_susc.level)
        self.assertEqual('184V (Susceptible)', drug_susc.explanation)


class DemoAlgorithmTest(TestCase):
    def setUp(self):
        self.virus = load_default_virus()
        self.algorithm = load_demo()
        self.pr = self.virus.get_gene('PR')
        self.rt = self.virus.get_gene('RT')
        self.in_ = self.virus.get_gene('IN')

    def test_nrti(self):
        mutations = self.virus.new_mutation_set('RT:M184V, RT:K65R')
        compared_attrs = ('drug.display_abbr', 'score', 'level', 'sir.value')
        expected_drugs = [('3TC', 90, 5, 'R'),
                          ('ABC', 70, 5, 'R'),
                          ('AZT', -20, 1, 'S'),
                          ('FTC', 90, 5, 'R'),
                          ('TDF', 50, 4, 'I'),
                          ('DOR', 0, 1, 'S'),
                          ('EFV', 0, 1, 'S'),
                          ('ETR', 0, 1, 'S'),
                          ('NVP', 0, 1, 'S'),
                          ('RPV', 0, 1, 'S')]

        results = evaluate(self.rt, mutations, self.algorithm)

        drugs = list(map(attrgetter(*compared_attrs), results.values()))
        self.assertEqual(expected_drugs, drugs)
        self.assertEqual('Total score: 90.0\nK65R (30.0), M184V (60.0)',
                         results[self.virus.get_drug('3TC')].explanation)

    def test_combination_partial_scores(self):
        azt = self.virus.get_drug('AZT')
        mutations = self.virus.new_mutation_set('RT:M41L, RT:T215Y')

        drug_susc = evaluate(self.rt, mutations, self.algorithm)[azt]

        self.assertEqual(65, drug_susc.score)
        self.assertEqual(OrderedDict([
            (self.virus.new_mutation_set('RT:M41L'), 15),
            (self.virus.new_mutation_set('RT:M41L, RT:T215Y'), 10),
            (self.virus.new_mutation_set('RT:T215Y'), 40)]),
            drug_susc.partial_scores)
        self.assertEqual('Total score: 65.0\n'
                         'M41L (15.0), M41L + T215Y (10.0), T215Y (40.0)',
                         drug_susc.explanation)

    def test_partial_scores_at_one_position(self):
        azt = self.virus.get_drug('AZT')
        mutations = self.virus.new_mutation_set('RT:T215SY')

        drug_susc = evaluate(self.rt, mutations, self.algorithm)[azt]

        self.assertEqual(60, drug_susc.score)
        self.assertEqual('Total score: 60.0\nT215SY (60.0)',
                         drug_susc.explanation)

    def test_max_not_double_counted(self):
        drv = self.virus.get_drug('DRV')
        mutations = self.virus.new_mutation_set('PR:I47AV')

        drug_susc = evaluate(self.pr, mutations, self.algorithm)[drv]

        self.assertEqual(20, drug_susc.score)
        self.assertEqual(3, drug_susc.level)
        self.assertEqual('Total score: 20.0\nI47A (20.0)',
                         drug_susc.explanation)

    def test_level_rule(self):
        dor = self.virus.get_drug('DOR')
        mutations = self.virus.new_mutation_set('RT:F227C')

        drug_susc = evaluate(self.rt, mutations, self.algorithm)[dor]

        self.assertEqual(0, drug_susc.score)
        self.assertEqual(3, drug_susc.level)
        self.assertEqual(SIR.I, drug_susc.sir)
        self.assertTrue(drug_susc.triggered)
        self.assertEqual('227CL OR 234I (Low-Level Resistance)',
                         drug_susc.explanation)

    def test_score_rule_before_level_rule(self):
        dor = self.virus.get_drug('DOR')
        mutations = self.virus.new_mutation_set('RT:F227C, RT:L100I')

        drug_susc = evaluate(self.rt, mutations, self.algorithm)[dor]

        self.assertEqual(15, drug_susc.score)
        self.assertEqual('Total score: 15.0\nL100I (15.0)',
                         drug_susc.explanation)

    def test_empty(self):
        results = evaluate(self.rt, MutationSet(), self.algorithm)

        self.assertEqual(10, len(results))
        for drug_susc in results.values():
            self.assertEqual(0, drug_susc.score)
            self.assertEqual(1, drug_susc.level)
            self.assertEqual(SIR.S, drug_susc.sir)
            self.assertFalse(drug_susc.triggered)
            self.assertEqual(NOT_TRIGGERED, drug_susc.explanation)

    def test_other_genes_ignored(self):
        mutations = self.virus.new_mutation_set('PR:L90M, IN:R263K')

        results = evaluate(self.rt, mutations, self.algorithm)

        self.assertFalse(any(drug_susc.triggered
                             for drug_susc in results.values()))

    def test_deterministic(self):
        mutations = self.virus.new_mutation_set(
            'RT:M41L, RT:K65R, RT:D67N, RT:T69ins, RT:M184V, RT:T215SY')

        results1 = evaluate(self.rt, mutations, self.algorithm)
        results2 = evaluate(self.rt, mutations, self.algorithm)

        self.assertEqual(results1, results2)
        self.assertEqual([drug_susc.explanation
                          for drug_susc in results1.values()],
                         [drug_susc.explanation
                          for drug_susc in results2.values()])

    def test_merge_with_itself(self):
        mutations = self.virus.new_mutation_set(
            'RT:M41L, RT:K65R, RT:T215Y, RT:F227C')

        results = evaluate(self.rt, mutations, self.algorithm)
        merged_results = evaluate(self.rt,
                                  mutations.merges_with(mutations),
                                  self.algorithm)

        self.assertEqual(results, merged_results)

    def test_batch(self):
        pool = ['RT:M41L', 'RT:K65R', 'RT:K65N', 'RT:D67N', 'RT:T69ins',
                'RT:K70R', 'RT:L100I', 'RT:K103N', 'RT:M184V', 'RT:M184I',
                'RT:T215Y', 'RT:T215S', 'RT:K219Q', 'RT:F227C']
        random = Random(42)
        mutation_sets = [
            self.virus.new_mutation_set(', '.join(
                random.sample(pool, random.randint(0, 5))))
            for _ in range(1000)]

        results = evaluate_batch(self.rt,
                                 mutation_sets,
                                 self.algorithm,
                                 max_workers=8)

        self.assertEqual(len(set(mutation_sets)), len(results))
        for mutations in mutation_sets:
            self.assertEqual(evaluate(self.rt, mutations, self.algorithm),
                             results[mutations])


class AsiResultTest(TestCase):
    def setUp(self):
        self.virus = load_default_virus()
        self.algorithm = load_demo()
        self.pr = self.virus.get_gene('PR')
        self.rt = self.virus.get_gene('RT')
        self.in_ = self.virus.get_gene('IN')

    def test_gene_mutations(self):
        mutations = self.virus.new_mutation_set('PR:L90M, RT:M184V')

        result = AsiResult(self.rt, mutations, self.algorithm)

        self.assertEqual(self.virus.new_mutation_set('RT:M184V'),
                         result.mutations)

    def test_drug_susc(self):
        lmv = self.virus.get_drug('3TC')
        mutations = self.virus.new_mutation_set('RT:M184V')

        result = AsiResult(self.rt, mutations, self.algorithm)

        self.assertEqual(60, result.get_drug_susc(lmv).score)
        self.assertEqual(5, result.get_drug_levels()[lmv])

    def test_mutation_comments(self):
        mutations = self.virus.new_mutation_set('RT:M184V, RT:K65R')

        result = AsiResult(self.rt, mutations, self.algorithm)

        self.assertEqual(['RT65R', 'RT184VI'],
                         [definition.id
                          for definition in result.triggered_mutation_comments])

    def test_drug_comments(self):
        dor = self.virus.get_drug('DOR')
        mutations = self.virus.new_mutation_set('RT:F227C')

        result = AsiResult(self.rt, mutations, self.algorithm)

        self.assertEqual([dor], list(result.drug_comments))
        self.assertEqual(['RT227C'],
                         [definition.id
                          for definition in result.drug_comments[dor]])

    def test_drug_mut_scores(self):
        azt = self.virus.get_drug('AZT')
        nrti = self.virus.get_drug_class('NRTI')
        mutations = self.virus.new_mutation_set('RT:M41L, RT:T215Y')

        result = AsiResult(self.rt, mutations, self.algorithm)

        self.assertEqual(
            OrderedDict([(self.virus.parse_mutation('RT:M41L'), 15),
                         (self.virus.parse_mutation('RT:T215Y'), 40)]),
            result.drug_mut_scores[azt])
        self.assertEqual({mutations: 10}, result.drug_combo_mut_scores[azt])
        self.assertEqual(65,
                         result.get_drug_class_total_drug_scores(nrti)[azt])
        self.assertEqual(
            ['NRTI', 'NNRTI'],
            [drug_class.name
             for drug_class in result.get_drug_class_total_drug_scores()])
        self.assertEqual([self.virus.get_drug('ABC'), azt],
                         list(result.get_drug_class_drug_combo_mut_scores(nrti)))
        self.assertIn(nrti, result.get_drug_class_drug_mut_scores())

    def test_no_drug_mut_scores(self):
        result = AsiResult(self.rt, MutationSet(), self.algorithm)

        self.assertEqual({}, result.drug_mut_scores)
        self.assertEqual({}, result.drug_combo_mut_scores)
        self.assertEqual({}, result.triggered_drug_rules)

    def test_triggered_drug_rules(self):
        dor = self.virus.get_drug('DOR')
        mutations = self.virus.new_mutation_set('RT:F227C, RT:L100I')

        result = AsiResult(self.rt, mutations, self.algorithm)

        self.assertEqual({dor: {'227CL OR 234I': 'Low-Level Resistance'}},
                         result.triggered_drug_rules)

    def test_triggered_comment_definitions(self):
        mutations = self.virus.new_mutation_set('RT:F227C, RT:M184V')

        result = AsiResult(self.rt, mutations, self.algorithm)

        self.assertEqual(['RT184VI', 'RT227C'],
                         [definition.id for definition
                          in result.get_triggered_comment_definitions()])

    def test_result_comments(self):
        mutations = self.virus.new_mutation_set('PR:I47A')

        result = AsiResult(self.pr, mutations, self.algorithm)

        self.assertEqual([['DRVHighDose']],
                         [[definition.id for definition in rule.comments]
                          for rule in result.triggered_result_comments])

    def test_result_comment_level_range(self):
        moderate = AsiResult(self.in_,
                             self.virus.new_mutation_set('IN:R263K'),
                             self.algorithm)
        high = AsiResult(self.in_,
                         self.virus.new_mutation_set('IN:G118R, IN:R263K'),
                         self.algorithm)

        self.assertEqual(1, len(moderate.triggered_result_comments))
        self.assertEqual([], high.triggered_result_comments)

    def test_result_comments_other_gene(self):
        mutations = self.virus.new_mutation_set('PR:I47A')

        result = AsiResult(self.rt, mutations, self.algorithm)

        self.assertEqual([], result.triggered_result_comments)

    def test_group_by_drug_class(self):
        mutations = self.virus.new_mutation_set('RT:M184V')

        groups = AsiResult(self.rt, mutations, self.algorithm).group_by_drug_class()

        self.assertEqual(['NRTI', 'NNRTI'],
                         [drug_class.name for drug_class in groups])
        self.assertEqual(['ABC', 'AZT', 'FTC', 'LMV', 'TDF'],
                         [drug_susc.drug.name
                          for drug_susc in groups[self.virus.get_drug_class('NRTI')]])

    def test_triggered_mutations(self):
        mutations = self.virus.new_mutation_set('RT:M184V, RT:K65R, RT:K103N, '
                                                'RT:P1L')
        nnrti = self.virus.get_drug_class('NNRTI')

        result = AsiResult(self.rt, mutations, self.algorithm)

        self.assertEqual('K65R,K103N,M184V',
                         result.get_triggered_mutations().join())
        self.assertEqual('K103N', result.get_triggered_mutations(nnrti).join())


class AsiDrugSuscTest(TestCase):
    def setUp(self):
        self.virus = load_default_virus()
        self.algorithm = load_demo()

    def create(self, drug_name, score=0.0, level=1, statement='',
               triggered=False, partial_scores=None):
        level_definition = self.algorithm.get_level(level)
        return AsiDrugSusc(self.virus.get_drug(drug_name),
                           self.algorithm,
                           score,
                           level,
                           level_definition.text,
                           level_definition.sir,
                           partial_scores or OrderedDict(),
                           statement,
                           triggered)

    def test_score_display(self):
        drug_susc = self.create('3TC', score=1/3, triggered=True)

        self.assertEqual(0.33, drug_susc.score_display)

    def test_statement_explanation(self):
        drug_susc = self.create('3TC',
                                level=3,
                                statement='41L,67N+70R',
                                triggered=True)

        self.assertEqual('41L, 67N + 70R (Low-Level Resistance)',
                         drug_susc.explanation)

    def test_sort(self):
        abc = self.create('ABC', score=5, triggered=True)
        lmv = self.create('3TC', level=5, score=60, triggered=True)
        efv = self.create('EFV')

        self.assertEqual([abc, lmv, efv], sorted([efv, lmv, abc]))

    def test_hashable(self):
        drug_susc1 = self.create('3TC')
        drug_susc2 = self.create('3TC')

        self.assertEqual(drug_susc1, drug_susc2)
        self.assertEqual(1, len({drug_susc1, drug_susc2}))

    def test_partial_scores_read_only(self):
        mutations = self.virus.new_mutation_set('RT:M184V')
        partial_scores = OrderedDict([(mutations, 60.0)])
        drug_susc = self.create('3TC',
                                score=60,
                                triggered=True,
                                partial_scores=partial_scores)

        partial_scores[mutations] = 0.0
        with self.assertRaises(TypeError):
            drug_susc.partial_scores[mutations] = 10.0

        self.assertEqual(60, drug_susc.partial_scores[mutations])

    def test_partial_score_accessors(self):
        single = self.virus.new_mutation_set('RT:M41L')
        combination = self.virus.new_mutation_set('RT:M41L, RT:T215Y')
        drug_susc = self.create('AZT',
                                score=25,
                                triggered=True,
                                partial_scores=OrderedDict([(single, 15.0),
                                                            (combination,
                                                             10.0)]))

        self.assertEqual(15, drug_susc.get_partial_score(single))
        self.assertEqual(0, drug_susc.get_partial_score(
            self.virus.new_mutation_set('RT:M184V')))
        self.assertTrue(drug_susc.has_single_mut_partial_score())
        self.assertEqual({self.virus.parse_mutation('RT:M41L'): 15.0},
                         drug_susc.get_single_mut_partial_scores())
        self.assertTrue(drug_susc.has_multi_muts_partial_score())
        self.assertEqual({combination: 10.0},
                         drug_susc.get_multi_muts_partial_scores())

    def test_no_partial_scores(self):
        drug_susc = self.create('AZT')

        self.assertFalse(drug_susc.has_single_mut_partial_score())
        self.assertFalse(drug_susc.has_multi_muts_partial_score())

    def test_drug_is(self):
        drug_susc = self.create('3TC')
        nrti = self.virus.get_drug_class('NRTI')

        self.assertTrue(drug_susc.drug_is(self.virus.get_drug('3TC')))
        self.assertTrue(drug_susc.drug_is('LMV'))
        self.assertFalse(drug_susc.drug_is('ABC'))
        self.assertTrue(drug_susc.drug_class_is(nrti))
        self.assertTrue(drug_susc.drug_class_is('NRTI'))
        self.assertFalse(drug_susc.drug_class_is('NNRTI'))

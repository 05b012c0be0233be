""" Score a gene's mutations with an ASI algorithm.

    algorithm = DrugResistanceAlgorithm.from_xml(virus, HIVDB_DEMO_PATH)
    rt = virus.get_gene('HIV1RT')
    mutations = virus.new_mutation_set('RT:M184V, RT:K65R')
    for drug, drug_susc in evaluate(rt, mutations, algorithm).items():
        print(drug, drug_susc.score, drug_susc.sir, drug_susc.explanation)

For each drug, every score rule is added up and the highest total wins.
The level is the highest one reached by the winning score range or by a true
boolean rule with a LEVEL action. Boolean rules only supply the statement
when no score rule found anything. Evaluation only reads its inputs, so the
same inputs always give the same results, whichever thread runs them.
"""
import logging
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor
from operator import attrgetter

from asidr.core.mutation_set import MutationSet
from asidr.resistance.drug_susc import AsiDrugSusc

logger = logging.getLogger(__name__)


def evaluate(gene, mutations, algorithm):
    """ Score every drug the algorithm has rules for in a gene.

    :param gene: the gene to score
    :param mutations: a MutationSet, mutations in other genes are ignored
    :param algorithm: a DrugResistanceAlgorithm
    :return: {drug: AsiDrugSusc} in the algorithm's drug order
    """
    gene_mutations = mutations.get_gene_mutations_no_split(gene)
    results = OrderedDict()
    for drug in algorithm.get_drugs(gene):
        results[drug] = evaluate_drug(drug, gene, gene_mutations, algorithm)
    return results


def evaluate_drug(drug, gene, mutations, algorithm):
    best_score = None
    best_rule = None
    level_rules = []
    for rule in algorithm.get_drug_rules(drug):
        if rule.is_score_rule:
            score_result = rule.condition.evaluate(gene, mutations)
            if not score_result.scored_items:
                continue
            if best_score is None or score_result.score > best_score.score:
                best_score = score_result
                best_rule = rule
        elif rule.condition.evaluate(gene, mutations).is_true:
            level_rules.append(rule)

    levels = [rule.level for rule in level_rules]
    if best_score is not None:
        score = best_score.score
        levels.append(best_rule.find_level(score))
        partial_scores = group_partial_scores(best_score.scored_items)
        statement = best_rule.condition_text
        triggered = True
    else:
        score = 0.0
        partial_scores = OrderedDict()
        statement = find_level_statement(level_rules)
        triggered = bool(level_rules)
    level = max((level for level in levels if level is not None),
                key=attrgetter('order'),
                default=algorithm.default_level)
    logger.debug('%s scored %s at level %d.', drug, score, level.order)
    return AsiDrugSusc(drug,
                       algorithm,
                       score,
                       level.order,
                       level.text,
                       level.sir,
                       partial_scores,
                       statement,
                       triggered)


def find_level_statement(level_rules):
    """ Condition text of the true boolean rule with the highest level. """
    statement = ''
    best_order = None
    for rule in level_rules:
        if not statement:
            statement = rule.condition_text
        if rule.level is not None and (best_order is None or
                                       rule.level.order > best_order):
            best_order = rule.level.order
            statement = rule.condition_text
    return statement


def group_partial_scores(scored_items):
    """ Sum the scored items that share the same positions.

    :return: {MutationSet: score}, sorted by mutation set
    """
    grouped = {}
    for item in scored_items:
        if not item.mutations:
            continue
        key = '+'.join(str(position)
                       for position in item.mutations.get_positions())
        mutations, score = grouped.get(key, (MutationSet(), 0.0))
        grouped[key] = (mutations.merges_with(item.mutations),
                        score + item.score)
    return OrderedDict(sorted(grouped.values()))


def evaluate_batch(gene, mutation_sets, algorithm, max_workers=None):
    """ Evaluate many mutation sets in a thread pool.

    :return: {MutationSet: {drug: AsiDrugSusc}} in the order of the input
    """
    mutation_sets = list(mutation_sets)
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = [executor.submit(evaluate, gene, mutations, algorithm)
                   for mutations in mutation_sets]
        results = OrderedDict()
        for mutations, future in zip(mutation_sets, futures):
            results[mutations] = future.result()
    logger.debug('Evaluated %d mutation sets in %s.',
                 len(mutation_sets),
                 gene)
    return results


class AsiResult:
    """ Drug scores and triggered comments for one gene.

    Besides the AsiDrugSusc for each drug, this collects what each drug's
    rules triggered:

    drug_mut_scores        {drug: {Mutation: highest score of a lone mutation}}
    drug_combo_mut_scores  {drug: {MutationSet: highest combination score}}
    triggered_drug_rules   {drug: {condition text: level text or ''}} for
                           true boolean rules
    drug_comments          {drug: [CommentDefinition]} from triggered rules
    """
    def __init__(self, gene, mutations, algorithm):
        self.gene = gene
        self.mutations = mutations.get_gene_mutations_no_split(gene)
        self.algorithm = algorithm
        self.drug_susceptibilities = evaluate(gene, self.mutations, algorithm)
        self.drug_mut_scores = OrderedDict()
        self.drug_combo_mut_scores = OrderedDict()
        self.triggered_drug_rules = OrderedDict()
        self.drug_comments = OrderedDict()
        for drug in self.drug_susceptibilities:
            self._collect_drug_rules(drug)
        self.triggered_mutation_comments = self._find_mutation_comments()
        levels = self.get_drug_levels()
        self.triggered_result_comments = [
            rule
            for rule in algorithm.result_comment_rules
            if rule.is_triggered(levels)]

    def _find_mutation_comments(self):
        """ Comment definitions from the gene's triggered comment rules. """
        definitions = OrderedDict()
        for rule in self.algorithm.get_mutation_comment_rules(self.gene):
            if rule.condition.evaluate(self.gene, self.mutations).is_true:
                for definition in rule.comments:
                    definitions.setdefault(definition.id, definition)
        return list(definitions.values())

    def _collect_drug_rules(self, drug):
        mut_scores = {}
        combo_scores = {}
        rules = OrderedDict()
        definitions = OrderedDict()
        for rule in self.algorithm.get_drug_rules(drug):
            result = rule.condition.evaluate(self.gene, self.mutations)
            if rule.is_score_rule:
                is_triggered = bool(result.scored_items)
                for item in result.scored_items:
                    scored = item.mutations.display_ambiguities()
                    if len(scored) == 1:
                        scores, key = mut_scores, next(iter(scored))
                    elif scored:
                        scores, key = combo_scores, scored
                    else:
                        continue
                    scores[key] = max(item.score, scores.get(key, item.score))
            else:
                is_triggered = result.is_true
                if is_triggered:
                    rules.setdefault(rule.condition_text,
                                     rule.level.text if rule.level else '')
            if is_triggered:
                for definition in rule.comments:
                    definitions.setdefault(definition.id, definition)
        if mut_scores:
            self.drug_mut_scores[drug] = OrderedDict(sorted(mut_scores.items()))
        if combo_scores:
            self.drug_combo_mut_scores[drug] = OrderedDict(
                sorted(combo_scores.items()))
        if rules:
            self.triggered_drug_rules[drug] = rules
        if definitions:
            self.drug_comments[drug] = list(definitions.values())

    def get_triggered_comment_definitions(self):
        """ Mutation comment definitions, then any others that drug rules
        triggered, without repeats.
        """
        definitions = OrderedDict(
            (definition.id, definition)
            for definition in self.triggered_mutation_comments)
        for drug_definitions in self.drug_comments.values():
            for definition in drug_definitions:
                definitions.setdefault(definition.id, definition)
        return list(definitions.values())

    def get_drug_susc(self, drug):
        return self.drug_susceptibilities[drug]

    def get_drug_levels(self):
        return {drug: drug_susc.level
                for drug, drug_susc in self.drug_susceptibilities.items()}

    def get_total_drug_scores(self):
        return OrderedDict((drug, drug_susc.score)
                           for drug, drug_susc
                           in self.drug_susceptibilities.items())

    def get_drug_class_total_drug_scores(self, drug_class=None):
        """ {drug_class: {drug: score}}, or {drug: score} for one class. """
        return self._by_drug_class(self.get_total_drug_scores(), drug_class)

    def get_drug_class_drug_mut_scores(self, drug_class=None):
        return self._by_drug_class(self.drug_mut_scores, drug_class)

    def get_drug_class_drug_combo_mut_scores(self, drug_class=None):
        return self._by_drug_class(self.drug_combo_mut_scores, drug_class)

    @staticmethod
    def _by_drug_class(by_drug, drug_class):
        if drug_class is not None:
            return OrderedDict((drug, value)
                               for drug, value in by_drug.items()
                               if drug.drug_class is drug_class)
        grouped = {}
        for drug, value in by_drug.items():
            grouped.setdefault(drug.drug_class, OrderedDict())[drug] = value
        return OrderedDict((drug_class, grouped[drug_class])
                           for drug_class in sorted(grouped))

    def group_by_drug_class(self):
        """ {drug_class: [AsiDrugSusc]}, in drug class order. """
        grouped = {}
        for drug, drug_susc in self.drug_susceptibilities.items():
            grouped.setdefault(drug.drug_class, []).append(drug_susc)
        return OrderedDict((drug_class, sorted(grouped[drug_class]))
                           for drug_class in sorted(grouped))

    def get_triggered_mutations(self, drug_class=None):
        """ Merge all mutations that contributed a partial score. """
        triggered = MutationSet()
        for drug, drug_susc in self.drug_susceptibilities.items():
            if drug_class is not None and drug.drug_class is not drug_class:
                continue
            for mutations in drug_susc.partial_scores:
                triggered = triggered.merges_with(mutations)
        return triggered.display_ambiguities()

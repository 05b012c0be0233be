"""
This module loads an ASI2 algorithm XML file into a DrugResistanceAlgorithm,
ready for the rule evaluation in asi_result.

#loading algorithms:
virus = load_default_virus()
algorithm = DrugResistanceAlgorithm.from_xml(virus, HIVDB_DEMO_PATH)
with open('ANRS_30.xml') as anrs_file:
    anrs = DrugResistanceAlgorithm.from_xml(virus, anrs_file)

The algorithm provides the following:

algorithm.name  #like HIVDB_9.0, unless another name was given
algorithm.family  #ALGNAME, like HIVDB
algorithm.version  #ALGVERSION, like 9.0
algorithm.get_genes()  #genes that have drug rules
algorithm.get_drugs(gene)  #drugs scored for a gene
algorithm.get_drug_rules(drug)  #DrugRule objects, in document order
algorithm.get_mutation_comment_rules(gene)
algorithm.result_comment_rules  #drug level conditions that trigger comments

Rule conditions are parsed once, here, so a broken rule fails on load instead
of in the middle of a batch.
"""
import logging
import math
import operator
import os
import re
import typing
import xml.dom.minidom as minidom
from collections import OrderedDict
from enum import Enum
from functools import total_ordering
from pathlib import Path
from xml.parsers.expat import ExpatError

from asidr.resistance.asi_grammar import (ScoreCondition, RuleSyntaxError,
                                          parse_condition)
from asidr.utils.user_error import AlgorithmError

logger = logging.getLogger(__name__)

HIVDB_DEMO_PATH = Path(__file__).parent / 'HIVDB_demo.xml'
RANGE_PATTERN = re.compile(r'\s*(\S+)\s*TO\s*(\S+)\s*=>\s*(\S+)\s*')
LEVEL_OPERATORS = {'EQ': operator.eq,
                   'NEQ': operator.ne,
                   'LT': operator.lt,
                   'LTE': operator.le,
                   'GT': operator.gt,
                   'GTE': operator.ge}


class SIR(Enum):
    S = 'S'
    I = 'I'  # noqa: E741
    R = 'R'

    @property
    def ordinal(self):
        return 'SIR'.index(self.value)


class LevelDefinition(typing.NamedTuple):
    order: int
    text: str
    sir: SIR


class ScoreRange(typing.NamedTuple):
    min: float
    max: float
    level: LevelDefinition


class CommentDefinition(typing.NamedTuple):
    id: str
    text: str
    sort_tag: str


class DrugRule:
    def __init__(self,
                 condition_text,
                 condition,
                 level=None,
                 comments=(),
                 score_ranges=None):
        self.condition_text = condition_text
        self.condition = condition
        self.level = level
        self.comments = tuple(comments)
        self.score_ranges = score_ranges

    @property
    def is_score_rule(self):
        return isinstance(self.condition, ScoreCondition)

    def find_level(self, score):
        """ Choose the level for a score from this rule's ranges.

        Uses the highest range that starts at or below the score, so a score
        that falls in a gap between ranges gets the lower neighbour.
        :return: a LevelDefinition, or None if no range applies
        """
        best = None
        for score_range in self.score_ranges or ():
            if score_range.min <= score and (
                    best is None or score_range.min > best.min):
                best = score_range
        return best and best.level

    def __repr__(self):
        return 'DrugRule({!r})'.format(self.condition_text)


class MutationCommentRule(typing.NamedTuple):
    gene: object
    condition_text: str
    condition: object
    comments: tuple


class DrugLevelCondition(typing.NamedTuple):
    drug: object
    operator_name: str
    level: int

    def check(self, levels):
        drug_level = levels.get(self.drug)
        if drug_level is None:
            return False
        return LEVEL_OPERATORS[self.operator_name](drug_level, self.level)


class ResultCommentRule(typing.NamedTuple):
    conditions: tuple
    comments: tuple

    @property
    def drugs(self):
        return [condition.drug for condition in self.conditions]

    def is_triggered(self, levels):
        """ Check the conditions against a {drug: level order} map. """
        return all(condition.check(levels) for condition in self.conditions)


@total_ordering
class DrugResistanceAlgorithm:
    def __init__(self,
                 virus,
                 strain,
                 family,
                 version,
                 publish_date=None,
                 name=None,
                 levels=None,
                 global_range=(),
                 comment_definitions=None,
                 drug_rules=None,
                 mutation_comment_rules=None,
                 result_comment_rules=()):
        self.virus = virus
        self.strain = strain
        self.family = family
        self.version = version
        self.publish_date = publish_date
        self.name = name or '{}_{}'.format(family, version)
        self.levels = levels or OrderedDict()
        self.global_range = tuple(global_range)
        self.comment_definitions = comment_definitions or OrderedDict()
        self.drug_rules = drug_rules or OrderedDict()  # {gene: {drug: [rule]}}
        self.mutation_comment_rules = mutation_comment_rules or OrderedDict()
        self.result_comment_rules = tuple(result_comment_rules)
        try:
            self.default_level = self.levels[1]
        except KeyError:
            raise AlgorithmError('Algorithm %s has no level 1 definition.',
                                 self.name) from None

    @classmethod
    def from_xml(cls,
                 virus,
                 source,
                 name=None,
                 family=None,
                 version=None,
                 publish_date=None,
                 strain=None):
        """ Load ASI rules from a file name or file object.

        :param virus: the vocabulary that names genes, drug classes and drugs
        :param source: the XML file name or an open file
        :param name: overrides the default name of ALGNAME_ALGVERSION
        :param family: overrides ALGNAME
        :param version: overrides ALGVERSION
        :param publish_date: overrides ALGDATE
        :param strain: the strain to score, or the virus's main strain
        :raises AlgorithmError: if the document is malformed or refers to
            unknown drugs, drug classes, comments or levels
        """
        try:
            if isinstance(source, os.PathLike):
                source = os.fspath(source)
            dom = minidom.parse(source)
        except ExpatError as ex:
            raise AlgorithmError('Algorithm XML is malformed: %s.', ex) from ex
        if strain is None:
            strain = virus.main_strain
        loader = _AlgorithmLoader(virus, strain, dom)
        family = family or loader.read_header('ALGNAME')
        version = version or loader.read_header('ALGVERSION')
        publish_date = publish_date or loader.read_header('ALGDATE',
                                                          is_required=False)
        loader.load()
        algorithm = cls(virus,
                        strain,
                        family,
                        version,
                        publish_date,
                        name,
                        loader.levels,
                        loader.global_range,
                        loader.comment_definitions,
                        loader.drug_rules,
                        loader.mutation_comment_rules,
                        loader.result_comment_rules)
        logger.debug('Loaded algorithm %s for %d genes.',
                     algorithm.name,
                     len(algorithm.drug_rules))
        return algorithm

    @property
    def display(self):
        return '{} {}'.format(self.family, self.version)

    @property
    def original_level_text(self):
        return self.default_level.text

    @property
    def original_level_sir(self):
        return self.default_level.sir

    def get_level(self, order):
        try:
            return self.levels[order]
        except KeyError:
            raise KeyError('Level {} not defined in {}.'.format(order,
                                                                 self.name))

    def get_comment_definition(self, comment_id):
        try:
            return self.comment_definitions[comment_id]
        except KeyError:
            raise KeyError('Comment {} not defined in {}.'.format(comment_id,
                                                                   self.name))

    def get_genes(self):
        return list(self.drug_rules.keys())

    def get_drugs(self, gene):
        return list(self.drug_rules.get(gene, {}).keys())

    def get_drug_rules(self, drug):
        for drugs in self.drug_rules.values():
            rules = drugs.get(drug)
            if rules is not None:
                return rules
        return []

    def get_mutation_comment_rules(self, gene):
        return self.mutation_comment_rules.get(gene, [])

    def get_gene_positions(self, gene):
        """ All positions that any drug rule of a gene looks at. """
        positions = set()
        for rules in self.drug_rules.get(gene, {}).values():
            for rule in rules:
                positions |= rule.condition.positions()
        return positions

    def _sort_key(self):
        return self.family, self.version, self.name

    def __lt__(self, other):
        return self._sort_key() < other._sort_key()

    def __eq__(self, other):
        return self is other

    def __hash__(self):
        return id(self)

    def __repr__(self):
        return 'DrugResistanceAlgorithm({!r})'.format(self.name)

    def __str__(self):
        return self.name


class _AlgorithmLoader:
    """ Read the sections of one ASI2 document. """
    def __init__(self, virus, strain, dom):
        self.virus = virus
        self.strain = strain
        self.dom = dom
        self.levels = OrderedDict()
        self.global_range = []
        self.comment_definitions = OrderedDict()
        self.gene_drug_classes = OrderedDict()  # {gene: [drug_class]}
        self.class_drugs = OrderedDict()  # {drug_class: [drug]}
        self.drug_rules = OrderedDict()
        self.mutation_comment_rules = OrderedDict()
        self.result_comment_rules = []

    def read_header(self, tag, is_required=True):
        nodes = self.dom.getElementsByTagName(tag)
        if not nodes:
            if is_required:
                raise AlgorithmError('Algorithm header %s is missing.', tag)
            return None
        return _get_node_text(nodes[0])

    def load(self):
        definitions = self.dom.getElementsByTagName('DEFINITIONS')
        if not definitions:
            raise AlgorithmError('Algorithm DEFINITIONS are missing.')
        defs = definitions[0]
        self.load_levels(defs)
        self.load_comment_definitions(defs)
        self.load_drug_classes(defs)
        self.load_genes(defs)
        for node in defs.getElementsByTagName('GLOBALRANGE'):
            self.global_range = self.parse_ranges(_get_node_text(node))
        self.load_drugs()
        self.load_mutation_comments()
        self.load_result_comments()

    def load_levels(self, defs):
        for node in defs.getElementsByTagName('LEVEL_DEFINITION'):
            order = self.parse_int(_get_child_text(node, 'ORDER'), 'level ORDER')
            text = _get_child_text(node, 'ORIGINAL')
            sir_text = _get_child_text(node, 'SIR')
            try:
                sir = SIR(sir_text)
            except ValueError:
                raise AlgorithmError('Level %d has unknown SIR value %r.',
                                     order,
                                     sir_text) from None
            self.levels[order] = LevelDefinition(order, text, sir)

    def load_comment_definitions(self, defs):
        for comment_defs in defs.getElementsByTagName('COMMENT_DEFINITIONS'):
            for node in comment_defs.getElementsByTagName('COMMENT_STRING'):
                comment_id = node.getAttribute('id')
                text = _get_child_text(node, 'TEXT')
                sort_tag = _get_child_text(node, 'SORT_TAG', is_required=False)
                self.comment_definitions[comment_id] = CommentDefinition(
                    comment_id,
                    text,
                    sort_tag)

    def load_drug_classes(self, defs):
        for node in defs.getElementsByTagName('DRUGCLASS'):
            class_name = _get_child_text(node, 'NAME')
            drug_class = self.find_drug_class(class_name)
            drug_names = _get_child_text(node, 'DRUGLIST').split(',')
            self.class_drugs[drug_class] = [self.find_drug(drug_name.strip())
                                            for drug_name in drug_names
                                            if drug_name.strip()]

    def load_genes(self, defs):
        for node in defs.getElementsByTagName('GENE_DEFINITION'):
            gene_name = _get_child_text(node, 'NAME')
            class_names = _get_child_text(node, 'DRUGCLASSLIST',
                                          is_required=False) or ''
            drug_classes = [self.find_drug_class(class_name.strip())
                            for class_name in class_names.split(',')
                            if class_name.strip()]
            gene = self.find_gene(gene_name)
            if gene is None:
                continue
            self.gene_drug_classes[gene] = drug_classes
            drugs = OrderedDict()
            for drug_class in drug_classes:
                for drug in self.class_drugs.get(drug_class, []):
                    drugs[drug] = []
            self.drug_rules[gene] = drugs

    def load_drugs(self):
        for drug_node in self.dom.getElementsByTagName('DRUG'):
            drug = self.find_drug(_get_child_text(drug_node, 'NAME'))
            gene = self.find_drug_gene(drug)
            if gene is None:
                logger.debug('Skipping rules for %s, no gene scores it.', drug)
                continue
            rules = self.drug_rules[gene][drug]
            for rule_node in drug_node.getElementsByTagName('RULE'):
                rules.append(self.parse_drug_rule(rule_node, gene, drug))

    def load_mutation_comments(self):
        for section in self.dom.getElementsByTagName('MUTATION_COMMENTS'):
            for gene_node in section.getElementsByTagName('GENE'):
                gene = self.find_gene(_get_child_text(gene_node, 'NAME'))
                if gene is None:
                    continue
                rules = self.mutation_comment_rules.setdefault(gene, [])
                for rule_node in gene_node.getElementsByTagName('RULE'):
                    condition_text, condition = self.parse_rule_condition(
                        rule_node,
                        gene)
                    if isinstance(condition, ScoreCondition):
                        raise AlgorithmError(
                            'Mutation comment rule %r must be a boolean '
                            'condition.',
                            condition_text)
                    comments = []
                    for action_node in rule_node.getElementsByTagName('ACTIONS'):
                        comments.extend(self.find_comments(action_node))
                    rules.append(MutationCommentRule(gene,
                                                     condition_text,
                                                     condition,
                                                     tuple(comments)))

    def load_result_comments(self):
        for section in self.dom.getElementsByTagName('RESULT_COMMENTS'):
            for rule_node in section.getElementsByTagName('RESULT_COMMENT_RULE'):
                conditions = []
                for condition_node in rule_node.getElementsByTagName(
                        'DRUG_LEVEL_CONDITION'):
                    conditions.append(self.parse_drug_level_condition(
                        condition_node))
                comments = []
                for action_node in rule_node.getElementsByTagName('LEVEL_ACTION'):
                    comments.extend(self.find_comments(action_node))
                self.result_comment_rules.append(
                    ResultCommentRule(tuple(conditions), tuple(comments)))

    def parse_drug_level_condition(self, node):
        drug = self.find_drug(_get_child_text(node, 'DRUG_NAME'))
        for operator_name in LEVEL_OPERATORS:
            level_nodes = node.getElementsByTagName(operator_name)
            if level_nodes:
                level = self.parse_int(_get_node_text(level_nodes[0]),
                                       operator_name)
                if level not in self.levels:
                    raise AlgorithmError(
                        'Result comment condition uses undefined level %d.',
                        level)
                return DrugLevelCondition(drug, operator_name, level)
        raise AlgorithmError('Drug level condition for %s has no comparison.',
                             drug)

    def parse_drug_rule(self, rule_node, gene, drug):
        condition_text, condition = self.parse_rule_condition(rule_node, gene)
        level = None
        comments = []
        score_ranges = None
        for action_node in rule_node.getElementsByTagName('ACTIONS'):
            for level_node in action_node.getElementsByTagName('LEVEL'):
                level = self.find_level(self.parse_int(_get_node_text(level_node),
                                                       'LEVEL'))
            comments.extend(self.find_comments(action_node))
            for range_node in action_node.getElementsByTagName('SCORERANGE'):
                if range_node.getElementsByTagName('USE_GLOBALRANGE'):
                    score_ranges = self.global_range
                else:
                    score_ranges = self.parse_ranges(_get_node_text(range_node))
        is_score_rule = isinstance(condition, ScoreCondition)
        if is_score_rule and score_ranges is None:
            raise AlgorithmError('Score rule for %s needs a SCORERANGE: %r.',
                                 drug,
                                 condition_text)
        if not is_score_rule and score_ranges is not None:
            raise AlgorithmError(
                'SCORERANGE for %s needs a SCORE FROM condition: %r.',
                drug,
                condition_text)
        return DrugRule(condition_text,
                        condition,
                        level,
                        comments,
                        score_ranges)

    def parse_rule_condition(self, rule_node, gene):
        condition_text = _get_child_text(rule_node, 'CONDITION')
        condition_text = re.sub(r'\s+', ' ', condition_text).strip()
        try:
            condition = parse_condition(condition_text)
        except RuleSyntaxError as ex:
            raise AlgorithmError('Malformed rule for %s: %s',
                                 gene,
                                 ex) from ex
        for position in sorted(condition.positions()):
            if not 1 <= position <= gene.aa_size:
                raise AlgorithmError(
                    'Rule %r uses position %d outside %s (1-%d).',
                    condition_text,
                    position,
                    gene.name,
                    gene.aa_size)
        return condition_text, condition

    def parse_ranges(self, text):
        """ Parse text like (-INF TO 9 => 1, 10 TO 14 => 2). """
        ranges = []
        for item in text.strip(')( \n').split(','):
            item = item.strip('\n \t')
            match = RANGE_PATTERN.fullmatch(item)
            if match is None:
                raise AlgorithmError('Malformed score range %r.', item)
            low, high, level = match.groups()
            ranges.append(ScoreRange(self.parse_limit(low),
                                     self.parse_limit(high),
                                     self.find_level(self.parse_int(level,
                                                                    'range'))))
        return ranges

    @staticmethod
    def parse_limit(text):
        if text.upper() == '-INF':
            return -math.inf
        if text.upper() == 'INF':
            return math.inf
        try:
            return float(text)
        except ValueError:
            raise AlgorithmError('Malformed score limit %r.', text) from None

    @staticmethod
    def parse_int(text, description):
        try:
            return int(text)
        except ValueError:
            raise AlgorithmError('Malformed %s value %r.',
                                 description,
                                 text) from None

    def find_level(self, order):
        try:
            return self.levels[order]
        except KeyError:
            raise AlgorithmError('Level %d is not defined.', order) from None

    def find_comments(self, action_node):
        comments = []
        for comment_node in action_node.getElementsByTagName('COMMENT'):
            comment_id = comment_node.getAttribute('reference')
            try:
                comments.append(self.comment_definitions[comment_id])
            except KeyError:
                raise AlgorithmError('Comment %r is not defined.',
                                     comment_id) from None
        return comments

    def find_gene(self, name):
        try:
            return self.virus.get_gene(name, self.strain)
        except KeyError:
            logger.warning('Gene %s is not supported by %s, skipping it.',
                           name,
                           self.strain)
            return None

    def find_drug_class(self, name):
        try:
            return self.virus.get_drug_class(name)
        except KeyError:
            raise AlgorithmError('Unknown drug class %s.', name) from None

    def find_drug(self, name):
        try:
            return self.virus.get_drug(name)
        except KeyError:
            raise AlgorithmError('Unknown drug %s.', name) from None

    def find_drug_gene(self, drug):
        for gene, drugs in self.drug_rules.items():
            if drug in drugs:
                return gene
        return None


def _get_node_text(node):
    return ''.join(child.nodeValue
                   for child in node.childNodes
                   if child.nodeType in (child.TEXT_NODE,
                                         child.CDATA_SECTION_NODE)).strip()


def _get_child_text(node, tag, is_required=True):
    children = node.getElementsByTagName(tag)
    if not children:
        if is_required:
            raise AlgorithmError('%s element is missing from %s.',
                                 tag,
                                 node.tagName)
        return None
    return _get_node_text(children[0])

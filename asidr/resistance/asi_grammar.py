""" Parse and evaluate the condition language of ASI algorithm rules.

A rule condition is either a boolean condition, used with LEVEL and COMMENT
actions:

    41L AND (67N OR 70R) AND EXCLUDE 215Y
    SELECT ATLEAST 2 FROM (41L, 67N, 70R, 210W, 215FY, 219QE)
    215(NOT T)

or a score condition that adds up the items that match:

    SCORE FROM (41L => 5, (41L AND 215FY) => 10, MAX (65N => 30, 65R => 60))

AND and OR have the same precedence and combine from left to right.
Evaluation works on a MutationSet for one gene. Each match remembers the
mutations that made it true, so scores can be explained.
"""
import typing

from pyparsing import (CaselessKeyword, DelimitedList, Forward, Group,
                       ParseBaseException, ParserElement, Regex, StringEnd,
                       Suppress, ZeroOrMore)

from asidr.core.aa_utils import from_asi_format, to_asi_format
from asidr.core.mutation_set import MutationSet

ParserElement.enable_packrat()


class Match(typing.NamedTuple):
    is_true: bool
    mutations: tuple = ()


class ScoredItem(typing.NamedTuple):
    score: float
    mutations: MutationSet
    statement: str


class ScoreResult(typing.NamedTuple):
    score: float
    scored_items: list


class Residue:
    """ Amino acids at one position, like M184VI, 69i or 215(NOT T). """
    def __init__(self, wild_type, position, aas, is_inverted=False):
        self.wild_type = wild_type
        self.position = position
        self.aas = aas
        self.is_inverted = is_inverted

    def evaluate(self, gene, mutations):
        mutation = mutations.get(gene, self.position)
        if mutation is None:
            return Match(False)
        if self.is_inverted:
            matched = mutation.subtracts_by(self.aas)
            if matched is not None:
                matched = matched.subtracts_by(mutation.reference)
        else:
            matched = mutation.intersects_with(self.aas)
        if matched is None:
            return Match(False)
        return Match(True, (matched, ))

    def positions(self):
        return {self.position}

    def __str__(self):
        if self.is_inverted:
            return '{}{}(NOT {})'.format(self.wild_type,
                                         self.position,
                                         to_asi_format(self.aas))
        return '{}{}{}'.format(self.wild_type,
                               self.position,
                               to_asi_format(self.aas))


class Exclude:
    def __init__(self, residue):
        self.residue = residue

    def evaluate(self, gene, mutations):
        return Match(not self.residue.evaluate(gene, mutations).is_true)

    def positions(self):
        return self.residue.positions()

    def __str__(self):
        return 'EXCLUDE {}'.format(self.residue)


class Select:
    """ Count how many listed residues match. """
    def __init__(self, residues, at_least=None, not_more_than=None):
        self.residues = residues
        self.at_least = at_least
        self.not_more_than = not_more_than

    def evaluate(self, gene, mutations):
        matched = []
        count = 0
        for residue in self.residues:
            match = residue.evaluate(gene, mutations)
            if match.is_true:
                count += 1
                matched.extend(match.mutations)
        if self.at_least is not None and count < self.at_least:
            return Match(False)
        if self.not_more_than is not None and count > self.not_more_than:
            return Match(False)
        return Match(True, tuple(matched))

    def positions(self):
        return {position
                for residue in self.residues
                for position in residue.positions()}

    def __str__(self):
        if self.at_least == self.not_more_than:
            limits = 'EXACTLY {}'.format(self.at_least)
        elif self.not_more_than is None:
            limits = 'ATLEAST {}'.format(self.at_least)
        elif self.at_least is None:
            limits = 'NOTMORETHAN {}'.format(self.not_more_than)
        else:
            limits = 'ATLEAST {} AND NOTMORETHAN {}'.format(self.at_least,
                                                            self.not_more_than)
        return 'SELECT {} FROM ({})'.format(
            limits,
            ', '.join(str(residue) for residue in self.residues))


class Logic:
    """ Conditions joined by AND or OR, evaluated left to right. """
    def __init__(self, first, operations):
        self.first = first
        self.operations = operations  # [(operator, condition)]

    def evaluate(self, gene, mutations):
        match = self.first.evaluate(gene, mutations)
        for operator, condition in self.operations:
            other = condition.evaluate(gene, mutations)
            if operator == 'AND':
                if match.is_true and other.is_true:
                    match = Match(True, match.mutations + other.mutations)
                else:
                    match = Match(False)
            elif match.is_true or other.is_true:
                match = Match(True, match.mutations + other.mutations)
            else:
                match = Match(False)
        return match

    def positions(self):
        positions = set(self.first.positions())
        for _, condition in self.operations:
            positions.update(condition.positions())
        return positions

    def __str__(self):
        parts = [_format_nested(self.first)]
        for operator, condition in self.operations:
            parts.append(operator)
            parts.append(_format_nested(condition))
        return ' '.join(parts)


class ScoreItem:
    def __init__(self, condition, score):
        self.condition = condition
        self.score = score

    def evaluate(self, gene, mutations):
        """ Score this item.

        :return: a ScoredItem, or None if the condition doesn't match
        """
        match = self.condition.evaluate(gene, mutations)
        if not match.is_true:
            return None
        return ScoredItem(self.score, MutationSet(match.mutations), str(self))

    def positions(self):
        return self.condition.positions()

    def __str__(self):
        return '{} => {}'.format(_format_nested(self.condition),
                                 _format_number(self.score))


class MaxItem:
    """ Only the highest of the matching alternatives counts. """
    def __init__(self, items):
        self.items = items

    def evaluate(self, gene, mutations):
        best = None
        for item in self.items:
            scored = item.evaluate(gene, mutations)
            if scored is not None and (best is None or scored.score > best.score):
                best = scored
        return best

    def positions(self):
        return {position
                for item in self.items
                for position in item.positions()}

    def __str__(self):
        return 'MAX ({})'.format(', '.join(str(item) for item in self.items))


class ScoreCondition:
    def __init__(self, items):
        self.items = items

    def evaluate(self, gene, mutations):
        scored_items = []
        for item in self.items:
            scored = item.evaluate(gene, mutations)
            if scored is not None:
                scored_items.append(scored)
        return ScoreResult(sum(item.score for item in scored_items),
                           scored_items)

    def positions(self):
        return {position
                for item in self.items
                for position in item.positions()}

    def __str__(self):
        return 'SCORE FROM ({})'.format(', '.join(str(item)
                                                  for item in self.items))


def _format_nested(condition):
    if isinstance(condition, Logic):
        return '({})'.format(condition)
    return str(condition)


def _format_number(value):
    if value == int(value):
        return str(int(value))
    return str(value)


def _build_residue(tokens):
    return Residue(tokens.get('ref') or '',
                   int(tokens['pos']),
                   from_asi_format(tokens['aas']))


def _build_inverted_residue(tokens):
    residue = _build_residue(tokens)
    residue.is_inverted = True
    return residue


def _build_select(tokens):
    limits = tokens[0]
    residues = list(tokens[1])
    keyword = limits[0].upper()
    if keyword == 'EXACTLY':
        return Select(residues, int(limits[1]), int(limits[1]))
    if keyword == 'NOTMORETHAN':
        return Select(residues, not_more_than=int(limits[1]))
    if len(limits) > 2:
        return Select(residues, int(limits[1]), int(limits[4]))
    return Select(residues, at_least=int(limits[1]))


def _build_logic(tokens):
    tokens = list(tokens[0])
    if len(tokens) == 1:
        return tokens[0]
    operations = [(tokens[i].upper(), tokens[i+1])
                  for i in range(1, len(tokens), 2)]
    return Logic(tokens[0], operations)


def _build_grammar():
    and_ = CaselessKeyword('AND')
    or_ = CaselessKeyword('OR')
    l_par = Suppress('(')
    r_par = Suppress(')')
    integer = Regex(r'\d+')
    number = Regex(r'-?\d+(?:\.\d+)?').set_parse_action(
        lambda tokens: float(tokens[0]))

    residue_invert = Regex(
        r'(?P<ref>[A-Z])?(?P<pos>\d+)\s*\(\s*(?i:NOT)\s+(?P<aas>[A-Zid]+)\s*\)')
    residue_invert.set_parse_action(_build_inverted_residue)
    residue = Regex(r'(?P<ref>[A-Z])?(?P<pos>\d+)(?P<aas>[A-Zid]+)\b')
    residue.set_parse_action(_build_residue)
    any_residue = residue_invert | residue

    exclude = Suppress(CaselessKeyword('EXCLUDE')) + any_residue
    exclude.set_parse_action(lambda tokens: Exclude(tokens[0]))

    limits = Group(
        (CaselessKeyword('EXACTLY') + integer) |
        (CaselessKeyword('ATLEAST') + integer +
         and_ + CaselessKeyword('NOTMORETHAN') + integer) |
        (CaselessKeyword('ATLEAST') + integer) |
        (CaselessKeyword('NOTMORETHAN') + integer))
    select = (Suppress(CaselessKeyword('SELECT')) + limits +
              Suppress(CaselessKeyword('FROM')) +
              Group(l_par + DelimitedList(any_residue) + r_par))
    select.set_parse_action(_build_select)

    boolean_condition = Forward()
    condition = (select |
                 exclude |
                 any_residue |
                 (l_par + boolean_condition + r_par))
    boolean_condition <<= Group(condition + ZeroOrMore((and_ | or_) + condition))
    boolean_condition.set_parse_action(_build_logic)

    score_item = boolean_condition + Suppress('=>') + number
    score_item.set_parse_action(lambda tokens: ScoreItem(tokens[0], tokens[1]))
    max_item = (Suppress(CaselessKeyword('MAX')) +
                Group(l_par + DelimitedList(score_item) + r_par))
    max_item.set_parse_action(lambda tokens: MaxItem(list(tokens[0])))
    score_condition = (Suppress(CaselessKeyword('SCORE')) +
                       Suppress(CaselessKeyword('FROM')) +
                       Group(l_par + DelimitedList(max_item | score_item) +
                             r_par))
    score_condition.set_parse_action(
        lambda tokens: ScoreCondition(list(tokens[0])))

    return (score_condition | boolean_condition) + StringEnd()


GRAMMAR = _build_grammar()


class RuleSyntaxError(ValueError):
    pass


def parse_condition(text):
    """ Parse one rule condition.

    :return: a ScoreCondition, or a boolean condition with an evaluate()
        method that returns a Match
    :raises RuleSyntaxError: if the text is malformed
    """
    try:
        return GRAMMAR.parse_string(text, parse_all=True)[0]
    except ParseBaseException as ex:
        raise RuleSyntaxError('{} in {!r}'.format(ex, text)) from ex

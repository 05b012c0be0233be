""" Bind conditional comments to mutations and drug levels.

A conditional comment either names the amino acids at a gene position
(MUTATION) or the resistance levels of some drugs (DRUGLEVEL). Binding one
produces a BoundComment with the text to report and the words to highlight.
"""
import logging
import re
import typing
from collections import OrderedDict
from enum import Enum
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType

from yaml import safe_load

from asidr.core.aa_utils import normalize_aas
from asidr.core.mutation import GenePosition
from asidr.utils.user_error import ConfigurationError

logger = logging.getLogger(__name__)

HIV1_COMMENTS_PATH = Path(__file__).parent / 'hiv1_comments.yaml'
WILDCARD_PATTERN = re.compile(r'\$listMutsIn\{.+?\}')


class ConditionType(Enum):
    MUTATION = 'MUTATION'
    DRUGLEVEL = 'DRUGLEVEL'


class CommentType(Enum):
    Major = 'Major'
    Accessory = 'Accessory'
    NRTI = 'NRTI'
    NNRTI = 'NNRTI'
    Uncertain = 'Uncertain'
    Other = 'Other'
    Dosage = 'Dosage'

    @classmethod
    def from_mutation_type(cls, mutation_type):
        return cls(mutation_type.name)


class MutationCondition(typing.NamedTuple):
    gene: object
    position: int
    aas: str

    @property
    def gene_position(self):
        return GenePosition(self.gene, self.position)


class ConditionalComment:
    def __init__(self,
                 strain,
                 name,
                 drug_class,
                 condition_type,
                 condition_value,
                 text):
        self.strain = strain
        self.name = name
        self.drug_class = drug_class
        self.condition_type = condition_type
        self.condition_value = condition_value
        self.text = text
        self.mutation_conditions = ()
        self.drug_levels = MappingProxyType({})
        virus = strain.virus
        if condition_type == ConditionType.MUTATION:
            values = condition_value.get('or', [condition_value])
            self.mutation_conditions = tuple(
                MutationCondition(virus.get_config_gene(value['gene'], strain),
                                  int(value['pos']),
                                  normalize_aas(value['aas']))
                for value in values)
        else:
            values = condition_value.get('and', [condition_value])
            self.drug_levels = MappingProxyType(
                {virus.get_config_drug(value['drug']): [int(level)
                                                        for level in value['levels']]
                 for value in values})

    @property
    def gene(self):
        return self.strain.get_gene(self.drug_class.abstract_gene)

    def get_drug_levels_text(self):
        """ Describe the drug levels, like 'DTG: 5; BIC: 5'. """
        return '; '.join(
            '{}: {}'.format(drug, ', '.join(str(level) for level in levels))
            for drug, levels in self.drug_levels.items())

    def matches_levels(self, levels):
        """ Check every drug against a {drug: level} map. """
        return all(levels.get(drug) in allowed
                   for drug, allowed in self.drug_levels.items())

    def __repr__(self):
        return 'ConditionalComment({!r})'.format(self.name)


class BoundComment(typing.NamedTuple):
    strain: object
    name: str
    drug_class: object
    comment_type: CommentType
    text: str
    highlight_text: list
    mutation: object = None

    @property
    def gene(self):
        return self.strain.get_gene(self.drug_class.abstract_gene)


class ConditionalComments:
    def __init__(self, virus, records):
        """ Build comments from a list of records.

        :param virus: the vocabulary that names strains, genes, drugs and
            drug classes
        :param records: dicts with commentName, strain, drugClass,
            conditionType, conditionValue and comment
        :raises ConfigurationError: for duplicate names or unknown entries
        """
        self.virus = virus
        comments = {}
        for record in records:
            try:
                name = record['commentName']
                if name in comments:
                    raise ConfigurationError('Duplicate comment name %s.', name)
                try:
                    condition_type = ConditionType(record['conditionType'])
                except ValueError:
                    raise ConfigurationError('Unknown condition type %r in %s.',
                                             record['conditionType'],
                                             name) from None
                comments[name] = ConditionalComment(
                    virus.get_config_strain(record['strain']),
                    name,
                    virus.get_config_drug_class(record['drugClass']),
                    condition_type,
                    record['conditionValue'],
                    record['comment'])
            except KeyError as ex:
                raise ConfigurationError('Missing entry %s in comment %r.',
                                         ex,
                                         record.get('commentName')) from ex
        self._comments = MappingProxyType(comments)
        by_position = {}
        for comment in comments.values():
            for condition in comment.mutation_conditions:
                by_position.setdefault(condition.gene_position, []).append(
                    (comment, condition))
        self._by_position = MappingProxyType(
            {key: tuple(value) for key, value in by_position.items()})
        logger.debug('Loaded %d conditional comments.', len(comments))

    @classmethod
    def load(cls, virus, path=None):
        if path is None:
            path = HIV1_COMMENTS_PATH
        with open(path) as comments_file:
            records = safe_load(comments_file)
        if not isinstance(records, list):
            raise ConfigurationError('Comments file %s is not a list.', path)
        return cls(virus, records)

    def __len__(self):
        return len(self._comments)

    def __contains__(self, name):
        return name in self._comments

    def get(self, name):
        try:
            return self._comments[name]
        except KeyError:
            raise KeyError('Comment {} not found.'.format(name))

    def get_comments(self, mutation):
        """ Bind every MUTATION comment that shares amino acids with a
        mutation.
        """
        comments = []
        for comment, condition in self._by_position.get(mutation.gene_position,
                                                        ()):
            bound_mutation = mutation.intersects_with(condition.aas)
            if bound_mutation is not None:
                comments.append(self._bind_mutation(comment,
                                                    comment.text,
                                                    bound_mutation))
        return comments

    def from_asi_mutation_comments(self, definitions, mutations):
        """ Bind the comment definitions that an algorithm triggered.

        Definitions without a MUTATION comment of the same name are logged
        and skipped, so one algorithm comment can't stop a whole batch.
        :param definitions: CommentDefinition entries from AsiResult
        :param mutations: the MutationSet that triggered them
        :return: BoundComment list, sorted by bound mutation
        """
        results = []
        for definition in definitions:
            if definition.id not in self:
                logger.warning('Comment %s is not a conditional comment, '
                               'skipping it.',
                               definition.id)
                continue
            comment = self.get(definition.id)
            if comment.condition_type != ConditionType.MUTATION:
                logger.warning('Comment %s is a %s comment, not a mutation '
                               'comment, skipping it.',
                               definition.id,
                               comment.condition_type.value)
                continue
            bound_mutation = self._find_bound_mutation(comment, mutations)
            if bound_mutation is None:
                logger.warning('Comment %s triggered without a matching '
                               'mutation in %s.',
                               definition.id,
                               mutations)
                continue
            results.append(self._bind_mutation(comment,
                                               definition.text,
                                               bound_mutation))
        results.sort(key=lambda bound: bound.mutation)
        return results

    def from_asi_drug_level_comments(self, result_comments):
        """ Bind triggered drug level rules from AsiResult as Dosage comments.
        """
        results = []
        for rule in result_comments:
            drugs = rule.drugs
            for definition in rule.comments:
                if definition.id not in self:
                    logger.warning('Comment %s is not a conditional '
                                   'comment, skipping it.',
                                   definition.id)
                    continue
                comment = self.get(definition.id)
                results.append(BoundComment(comment.strain,
                                            comment.name,
                                            comment.drug_class,
                                            CommentType.Dosage,
                                            definition.text,
                                            _get_drug_highlights(drugs)))
        return results

    def get_drug_level_comments(self, levels):
        """ Bind DRUGLEVEL comments whose drugs are all at a listed level.

        :param levels: {drug: level order}
        """
        results = []
        for comment in self._comments.values():
            if comment.condition_type != ConditionType.DRUGLEVEL:
                continue
            if comment.matches_levels(levels):
                results.append(BoundComment(
                    comment.strain,
                    comment.name,
                    comment.drug_class,
                    CommentType.Dosage,
                    comment.text,
                    _get_drug_highlights(comment.drug_levels.keys())))
        return results

    @staticmethod
    def _find_bound_mutation(comment, mutations):
        for condition in comment.mutation_conditions:
            mutation = mutations.get(condition.gene, condition.position)
            if mutation is not None:
                bound_mutation = mutation.intersects_with(condition.aas)
                if bound_mutation is not None:
                    return bound_mutation
        return None

    @staticmethod
    def _bind_mutation(comment, text, mutation):
        return BoundComment(
            comment.strain,
            comment.name,
            comment.drug_class,
            CommentType.from_mutation_type(mutation.primary_type),
            WILDCARD_PATTERN.sub(mutation.human_format, text),
            [mutation.human_format_without_leading_ref],
            mutation)


def _get_drug_highlights(drugs):
    highlights = set()
    for drug in drugs:
        highlights.add(drug.display_abbr)
        highlights.add(drug.name)
    return sorted(highlights)


def group_comments_by_type(bound_comments):
    """ {CommentType: [BoundComment]}, in the order CommentType lists them.

    Types without comments are left out.
    """
    grouped = OrderedDict((comment_type, []) for comment_type in CommentType)
    for bound_comment in bound_comments:
        grouped[bound_comment.comment_type].append(bound_comment)
    return OrderedDict((comment_type, type_comments)
                       for comment_type, type_comments in grouped.items()
                       if type_comments)


@lru_cache()
def load_default_comments(virus):
    return ConditionalComments.load(virus)

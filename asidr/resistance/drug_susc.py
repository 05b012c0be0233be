import typing
from collections import OrderedDict
from dataclasses import dataclass, field
from functools import total_ordering
from types import MappingProxyType

from asidr.resistance.asi_algorithm import SIR

NOT_TRIGGERED = 'No rules were triggered'


@total_ordering
@dataclass(frozen=True)
class AsiDrugSusc:
    """ Result of scoring one drug against one gene's mutations.

    partial_scores maps each MutationSet that scored to its summed score,
    sorted by mutation set, and can't be changed after construction. score
    keeps full precision, score_display is what gets reported.
    """
    drug: object
    algorithm: object
    score: float
    level: int
    level_text: str
    sir: SIR
    partial_scores: typing.Mapping = field(hash=False)
    statement: str
    triggered: bool

    def __post_init__(self):
        object.__setattr__(self,
                           'partial_scores',
                           MappingProxyType(OrderedDict(self.partial_scores)))

    @property
    def drug_class(self):
        return self.drug.drug_class

    def drug_is(self, drug):
        """ Compare with a Drug object or a drug name. """
        if isinstance(drug, str):
            return self.drug.name == drug
        return self.drug is drug

    def drug_class_is(self, drug_class):
        """ Compare with a DrugClass object or a drug class name. """
        if isinstance(drug_class, str):
            return self.drug_class.name == drug_class
        return self.drug_class is drug_class

    @property
    def score_display(self):
        return round(self.score, 2)

    @property
    def has_partial_scores(self):
        return bool(self.partial_scores)

    def get_partial_score(self, mutations):
        return self.partial_scores.get(mutations, 0.0)

    def has_single_mut_partial_score(self):
        return any(len(mutations) == 1 for mutations in self.partial_scores)

    def get_single_mut_partial_scores(self):
        """ {Mutation: score} for the partial scores of lone mutations. """
        return OrderedDict(sorted(
            (next(iter(mutations)), score)
            for mutations, score in self.partial_scores.items()
            if len(mutations) == 1))

    def has_multi_muts_partial_score(self):
        return any(len(mutations) > 1 for mutations in self.partial_scores)

    def get_multi_muts_partial_scores(self):
        return OrderedDict((mutations, score)
                           for mutations, score in self.partial_scores.items()
                           if len(mutations) > 1)

    @property
    def explanation(self):
        if not self.triggered:
            return NOT_TRIGGERED
        if self.has_partial_scores:
            pairs = ', '.join(
                '{} ({:.1f})'.format(mutations.join(' + '), score)
                for mutations, score in self.partial_scores.items())
            return 'Total score: {:.1f}\n{}'.format(self.score, pairs)
        statement = self.statement.replace('+', ' + ').replace(',', ', ')
        return '{} ({})'.format(statement, self.level_text)

    def _sort_key(self):
        return (self.algorithm,
                self.drug,
                self.sir.ordinal,
                -self.score,
                -self.level)

    def __lt__(self, other):
        return self._sort_key() < other._sort_key()

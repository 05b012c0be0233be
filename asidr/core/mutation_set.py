""" Immutable, ordered collections of mutations.

At most one mutation is kept for each gene position. Adding a second
mutation at the same position merges the amino acids, so 'RT:48V' plus
'RT:48E' becomes 'RT:48EV'. Mutations that only repeat the reference amino
acid are dropped.
"""
import re
from collections import OrderedDict
from functools import total_ordering
from types import MappingProxyType

from asidr.core.mutation import GenePosition, Mutation

DELIMITER_PATTERN = re.compile(r'[\s,;+.]+')


def format_human(mutation):
    return mutation.human_format


@total_ordering
class MutationSet:
    def __init__(self, mutations=()):
        by_position = {}
        for mutation in mutations:
            if mutation is None:
                continue
            key = mutation.gene_position
            existing = by_position.get(key)
            if mutation == existing or mutation.aas == mutation.reference:
                continue
            if existing is not None:
                mutation = existing.merges_with(mutation.aa_chars)
            by_position[key] = mutation
        self._by_position = MappingProxyType(
            OrderedDict((mutation.gene_position, mutation)
                        for mutation in sorted(by_position.values())))
        self._splitted = None

    @classmethod
    def parse_string(cls, virus, text, default_gene=None):
        """ Parse mutations separated by spaces, commas, semicolons, plus
        signs or dots, like 'RT:M41L, RT:T215Y' or '41L+215Y'.

        :raises InvalidMutationError: for the first piece that can't be parsed
        """
        if text is None:
            return cls()
        return cls(Mutation.parse_string(virus, piece, default_gene)
                   for piece in DELIMITER_PATTERN.split(text)
                   if piece)

    def __iter__(self):
        return iter(self._by_position.values())

    def __len__(self):
        return len(self._by_position)

    def __bool__(self):
        return bool(self._by_position)

    def __contains__(self, mutation):
        return self._by_position.get(mutation.gene_position) == mutation

    def __eq__(self, other):
        if not isinstance(other, MutationSet):
            return NotImplemented
        return list(self) == list(other)

    def __hash__(self):
        return hash(tuple(self))

    def __lt__(self, other):
        """ Compare mutation by mutation on the split amino acids. """
        return self.get_splitted() < other.get_splitted()

    def __repr__(self):
        return 'MutationSet([{}])'.format(
            ', '.join(m.human_format_with_gene for m in self))

    def __str__(self):
        return self.join()

    def display_ambiguities(self):
        return MutationSet(Mutation(mutation.gene,
                                    mutation.position,
                                    mutation.aa_chars,
                                    max_display_aas=0xff)
                           for mutation in self)

    def merges_with(self, other):
        """ Union of both sets, merging amino acids at shared positions.

        :param other: a MutationSet, a collection of mutations, or a mutation
        """
        if isinstance(other, Mutation):
            other = [other]
        return MutationSet(list(self) + list(other))

    def intersects_with(self, other):
        """ Keep the amino acids that both sets have at a shared position. """
        if isinstance(other, Mutation):
            other = [other]
        if not isinstance(other, MutationSet):
            other = MutationSet(other)
        mutations = []
        for key, mutation in self._by_position.items():
            other_mutation = other.get(*key)
            if other_mutation is not None:
                mutations.append(
                    mutation.intersects_with(other_mutation.aa_chars))
        return MutationSet(mutations)

    def subtracts_by(self, other):
        if isinstance(other, Mutation):
            other = [other]
        if not isinstance(other, MutationSet):
            other = MutationSet(other)
        mutations = []
        for key, mutation in self._by_position.items():
            other_mutation = other.get(*key)
            if other_mutation is None:
                mutations.append(mutation)
            else:
                mutations.append(mutation.subtracts_by(other_mutation.aa_chars))
        return MutationSet(mutations)

    def filter_by(self, predicate):
        """ Split mixtures, then keep the amino acids that match. """
        return MutationSet(filter(predicate, self.get_splitted()))

    def filter_by_no_split(self, predicate):
        return MutationSet(filter(predicate, self))

    def count(self):
        return self.count_if(lambda mutation: True)

    def count_if(self, predicate):
        """ Count matching split mutations, with a run of deletions at
        consecutive positions counted once.
        """
        counter = 0
        previous = None
        for mutation in sorted(filter(predicate, self.get_splitted())):
            if (previous is None or
                    not mutation.is_deletion or
                    not previous.is_deletion or
                    previous.gene is not mutation.gene or
                    previous.position + 1 < mutation.position):
                counter += 1
            previous = mutation
        return counter

    def filter_and_group_by(self, predicate, key_func):
        """ Group the matching mutations into sets, sorted by key. """
        grouped = {}
        for mutation in self:
            if predicate(mutation):
                grouped.setdefault(key_func(mutation), []).append(mutation)
        return OrderedDict((key, MutationSet(grouped[key]))
                           for key in sorted(grouped))

    def group_by(self, key_func):
        return self.filter_and_group_by(lambda mutation: True, key_func)

    def group_by_gene(self):
        return self.group_by(lambda mutation: mutation.gene)

    def group_by_mut_type(self, gene):
        """ Group a gene's mutations by primary type, including every type
        the gene's drug classes know about, even without mutations.
        """
        groups = self.filter_and_group_by(
            lambda mutation: mutation.gene is gene,
            lambda mutation: mutation.primary_type)
        for drug_class in gene.drug_classes:
            for mutation_type in drug_class.mutation_types:
                groups.setdefault(mutation_type, MutationSet())
        return OrderedDict((key, groups[key]) for key in sorted(groups))

    def get_by_mut_type(self, mutation_type):
        return self.filter_by(
            lambda mutation: mutation.primary_type is mutation_type)

    def get_gene_mutations(self, gene):
        return self.filter_by(lambda mutation: mutation.gene is gene)

    def get_gene_mutations_no_split(self, gene):
        return self.filter_by_no_split(lambda mutation: mutation.gene is gene)

    def get_insertions(self):
        return self.filter_by(lambda mutation: mutation.is_insertion)

    def get_deletions(self):
        return self.filter_by(lambda mutation: mutation.is_deletion)

    def get_stop_codons(self):
        return self.filter_by(lambda mutation: mutation.has_stop)

    def get_ambiguous_codons(self):
        return self.filter_by_no_split(lambda mutation: mutation.is_ambiguous)

    def get_drms(self, drug_class=None):
        return self._get_category('DRM', drug_class)

    def get_sdrms(self, drug_class=None):
        return self._get_category('SDRM', drug_class)

    def get_tsms(self, drug_class=None):
        return self._get_category('TSM', drug_class)

    def _get_category(self, category, drug_class):
        if drug_class is None:
            return self.filter_by(
                lambda mutation: mutation.get_category_drug_class(
                    category) is not None)
        return self.filter_by(
            lambda mutation: mutation.get_category_drug_class(
                category) is drug_class)

    def get(self, gene, position):
        return self._by_position.get(GenePosition(gene, position))

    def get_splitted(self):
        if self._splitted is None:
            self._splitted = sorted(split_mutation
                                    for mutation in self
                                    for split_mutation in mutation.split())
        return list(self._splitted)

    def get_positions(self):
        return list(self._by_position.keys())

    def has_insertion_at(self, gene, position):
        mutation = self.get(gene, position)
        return mutation is not None and mutation.is_insertion

    def has_deletion_at(self, gene, position):
        mutation = self.get(gene, position)
        return mutation is not None and mutation.is_deletion

    def has_shared_aa_mutation(self, other, ignore_ref_or_stops=True):
        mutation = self._by_position.get(other.gene_position)
        if mutation is None:
            return False
        return mutation.contains_shared_aa(other.aa_chars, ignore_ref_or_stops)

    def join(self, delimiter=',', formatter=format_human):
        """ Format each mutation and join them, or 'None' for no mutations. """
        if not self:
            return 'None'
        return delimiter.join(formatter(mutation) for mutation in self)

    def to_string_list(self, formatter=format_human):
        return [formatter(mutation) for mutation in self]

    def to_asi_format(self):
        return self.to_string_list(lambda mutation: mutation.asi_format)


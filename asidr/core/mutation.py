""" Single amino acid changes at a gene position.

A mutation holds the set of amino acids observed at one position. Reading
'RT:M184VI' gives a mixture of V and I at position 184 of RT. Insertions,
deletions and stop codons are stored with the internal characters from
aa_utils: '_', '-' and '*'.
"""
import re
import typing
from functools import lru_cache, total_ordering

from asidr.core.aa_utils import normalize_aas
from asidr.utils.user_error import InvalidMutationError

MAX_DISPLAY_AAS = 6
CHAR_SYNONYMS = {'#': '_', 'i': '_', '~': '-', 'd': '-', 'Z': '*', '.': '*'}
NON_ASI_AA_PATTERN = re.compile(
    r'^(?:[AC-IK-NP-TV-Z.*]+(?:[#_]?[AC-IK-NP-TV-Z.*]+)?|'
    r'[_#][AC-IK-NP-TV-Z.*]+|[id_#~-]|'
    r'[iI]ns(?:ertion)?|[dD]el(?:etion)?)$')
MUTATION_TEMPLATE = (
    r'^\s*'
    r'(?P<asi>__ASI__)?(?P<gene>(?i:{genes}))?[:_-]?'
    r'(?P<ref>[AC-IK-NP-TV-Y])?'
    r'(?P<pos>\d{{1,4}})'
    r'(?P<aas>[AC-IK-NP-TV-Zid.*]+(?:[#_]?[AC-IK-NP-TV-Z.*]+)?|'
    r'[_#][AC-IK-NP-TV-Z.*]+|[id_#~-]|'
    r'[iI]ns(?:ertion)?|[dD]el(?:etion)?)'
    r'(?::(?P<triplet>[ACGTRYMWSKBDHVN-]{{3}})?)?'
    r'\s*$')


def normalize_aa_chars(aas) -> frozenset:
    chars = set()
    for aa in aas:
        chars.add(CHAR_SYNONYMS.get(aa, aa))
    return frozenset(chars)


class GenePosition(typing.NamedTuple):
    gene: object
    position: int

    def __str__(self):
        return '{}:{}'.format(self.gene.name, self.position)


@total_ordering
class Mutation:
    """ Amino acids found at one position of a gene.

    Equal mutations share gene, position and amino acid set. Sorting goes by
    gene, then position, then the amino acid text.
    """
    def __init__(self,
                 gene,
                 position: int,
                 aas: str,
                 triplet: str = '',
                 inserted_nas: str = '',
                 max_display_aas: int = MAX_DISPLAY_AAS):
        if not 1 <= position <= gene.aa_size:
            raise InvalidMutationError(
                '{}:{}{}'.format(gene.abstract_gene, position, aas),
                'Position is out of bounds for %s: %d (1-%d).',
                gene.name,
                position,
                gene.aa_size)
        self.gene = gene
        self.position = position
        self.triplet = triplet.upper()
        self.inserted_nas = inserted_nas
        self.max_display_aas = max_display_aas
        if not isinstance(aas, str):
            self.aa_chars = normalize_aa_chars(aas)
            self.aas = ''.join(sorted(self.aa_chars))
        else:
            self.aas = normalize_aas(aas) if aas else ''
            if '_' in self.aas:
                # Inserted amino acids follow the marker, like '_SS'.
                self.aa_chars = frozenset('_')
            else:
                self.aa_chars = normalize_aa_chars(self.aas)
                self.aas = ''.join(sorted(self.aa_chars))
        if not self.aa_chars and not self.is_unsequenced:
            raise InvalidMutationError(
                '{}:{}'.format(gene.abstract_gene, position),
                'No amino acids at %s:%d.',
                gene.name,
                position)

    @classmethod
    def unsequenced(cls, gene, position):
        """ Placeholder for a position the sequence doesn't cover. """
        return cls(gene, position, '', triplet='NNN')

    @classmethod
    def parse_string(cls, virus, text, default_gene=None):
        """ Parse one mutation, like 'RT:M184V', '184V', '69_SS' or '44del'.

        :param virus: supplies the gene names of its main strain
        :param text: the mutation text
        :param default_gene: gene to use when the text doesn't name one
        :raises InvalidMutationError: if the text can't be parsed
        """
        match = _get_mutation_pattern(virus).match(text)
        if match is None:
            raise InvalidMutationError(text)
        gene_name = match.group('gene')
        if gene_name is not None:
            gene = _find_gene(virus, gene_name)
        elif default_gene is not None:
            gene = default_gene
        else:
            raise InvalidMutationError(
                text,
                'Gene is not specified and also not found in the given text: '
                '%s. The correct format for an input mutation string is, '
                'for example, RT:215Y.',
                text)
        aas = match.group('aas')
        is_asi = match.group('asi') is not None
        if not is_asi and not NON_ASI_AA_PATTERN.match(aas):
            raise InvalidMutationError(text)
        aas = normalize_aas(aas)
        if is_asi:
            return cls(gene, int(match.group('pos')), frozenset(aas))
        return cls(gene,
                   int(match.group('pos')),
                   aas,
                   triplet=match.group('triplet') or '')

    @property
    def gene_position(self):
        return GenePosition(self.gene, self.position)

    @property
    def reference(self):
        return self.gene.get_reference(self.position)

    @property
    def is_unsequenced(self):
        return (not self.is_insertion and
                self.triplet.replace('-', 'N').count('N') > 1)

    @property
    def is_insertion(self):
        return '_' in self.aa_chars

    @property
    def is_deletion(self):
        return '-' in self.aa_chars

    @property
    def is_indel(self):
        return self.is_insertion or self.is_deletion

    @property
    def is_mixture(self):
        if self.is_unsequenced:
            return False
        return len(self.aa_chars) > 1 or 'X' in self.aa_chars

    @property
    def has_reference(self):
        return self.reference in self.aa_chars

    @property
    def has_stop(self):
        return not self.is_unsequenced and '*' in self.aa_chars

    @property
    def is_ambiguous(self):
        return (self.is_unsequenced or
                len(self.aa_chars) > self.max_display_aas or
                'X' in self.aa_chars)

    @property
    def display_aas(self):
        if len(self.aa_chars) > self.max_display_aas:
            return 'X'
        return self.aas

    @property
    def types(self):
        types = self.gene.strain.virus.get_mutation_types_of(self)
        if not types:
            types = [self.gene.strain.virus.get_mutation_type('Other')]
        return types

    @property
    def primary_type(self):
        if self.is_unsequenced:
            return self.gene.strain.virus.get_mutation_type('Other')
        return self.types[0]

    @property
    def is_drm(self):
        return self.gene.strain.virus.is_category(self, 'DRM')

    @property
    def is_sdrm(self):
        return self.gene.strain.virus.is_category(self, 'SDRM')

    @property
    def is_tsm(self):
        return self.gene.strain.virus.is_category(self, 'TSM')

    def get_category_drug_class(self, category):
        return self.gene.strain.virus.get_category_drug_class(self, category)

    def split(self):
        """ One mutation per amino acid, leaving out the reference. """
        if self.is_unsequenced:
            return [self]
        return [Mutation(self.gene, self.position, aa)
                for aa in sorted(self.aa_chars)
                if aa != self.reference]

    def merges_with(self, aas):
        return Mutation(self.gene,
                        self.position,
                        self.aa_chars | normalize_aa_chars(aas),
                        max_display_aas=self.max_display_aas)

    def subtracts_by(self, aas):
        remaining = self.aa_chars - normalize_aa_chars(aas)
        if not remaining:
            return None
        return Mutation(self.gene,
                        self.position,
                        remaining,
                        max_display_aas=self.max_display_aas)

    def intersects_with(self, aas):
        """ Restrict this mutation to the given amino acids.

        :return: a new mutation, or None if no amino acids are shared
        """
        shared = self.aa_chars & normalize_aa_chars(aas)
        if not shared:
            return None
        return Mutation(self.gene,
                        self.position,
                        shared,
                        max_display_aas=self.max_display_aas)

    def contains_shared_aa(self, aas, ignore_ref_or_stops=True):
        shared = set(self.aa_chars & normalize_aa_chars(aas))
        if ignore_ref_or_stops:
            shared.discard(self.reference)
            shared.discard('*')
        return bool(shared)

    def get_aas_with_ref_first(self):
        chars = sorted(self.aa_chars)
        if len(chars) > self.max_display_aas:
            chars = ['X']
        ref = self.reference
        if ref in chars:
            chars.remove(ref)
            chars.insert(0, ref)
        return ''.join(chars)

    def get_aas_without_reference(self):
        chars = sorted(self.aa_chars)
        if len(chars) > self.max_display_aas:
            chars = ['X']
        return ''.join(aa for aa in chars if aa != self.reference)

    def _format_aas(self, insertion, deletion):
        if self.is_unsequenced:
            return 'X'
        aas = self.get_aas_with_ref_first()
        if aas == '_':
            return insertion
        if aas == '-':
            return deletion
        return aas

    @property
    def human_format(self):
        """ Reference, position and amino acids, like M184V or T69ins. """
        return '{}{}{}'.format(self.reference,
                               self.position,
                               self._format_aas('ins', 'del'))

    @property
    def short_human_format(self):
        return '{}{}{}'.format(self.reference,
                               self.position,
                               self._format_aas('i', 'd'))

    @property
    def human_format_without_leading_ref(self):
        return self.human_format[1:]

    @property
    def human_format_with_gene(self):
        return '{}:{}'.format(self.gene.name, self.human_format)

    @property
    def human_format_with_abstract_gene(self):
        return '{}:{}'.format(self.gene.abstract_gene, self.human_format)

    @property
    def asi_format(self):
        aas = ''.join(sorted(self.aa_chars))
        aas = aas.replace('_', 'i').replace('-', 'd')
        aas = re.sub('[X*]', 'Z', aas)
        if self.is_unsequenced or len(aas) > self.max_display_aas:
            aas = 'X'
        return '{}{}{}'.format(self.reference, self.position, aas)

    @property
    def hivdb_format(self):
        aas = ''.join(sorted(self.aa_chars))
        aas = aas.replace('_', '#').replace('-', '~')
        if self.is_unsequenced or len(aas) > self.max_display_aas:
            aas = 'X'
        return '{}{}'.format(self.position, aas)

    def _sort_key(self):
        return self.gene.strain.ordinal, self.gene.ordinal, self.position, self.aas

    def __eq__(self, other):
        if not isinstance(other, Mutation):
            return NotImplemented
        return (self.gene is other.gene and
                self.position == other.position and
                self.aa_chars == other.aa_chars)

    def __hash__(self):
        return hash((self.gene, self.position, self.aa_chars))

    def __lt__(self, other):
        return self._sort_key() < other._sort_key()

    def __repr__(self):
        return 'Mutation({!r}, {!r}, {!r})'.format(self.gene.name,
                                                   self.position,
                                                   self.aas)

    def __str__(self):
        return self.human_format


def _find_gene(virus, gene_name):
    upper_name = gene_name.upper()
    for name in virus.get_abstract_genes():
        if name.upper() == upper_name:
            return virus.get_gene(name)
    raise InvalidMutationError(gene_name, 'Unknown gene %r.', gene_name)


@lru_cache()
def _get_mutation_pattern(virus):
    names = sorted(virus.get_abstract_genes(), key=len, reverse=True)
    return re.compile(MUTATION_TEMPLATE.format(
        genes='|'.join(re.escape(name) for name in names)))

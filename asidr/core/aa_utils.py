""" Amino acid notation helpers.

Three notations meet in this package:

internal  the canonical form stored in mutations: '_' insertion, '-' deletion,
          '*' stop codon.
HIVDB     '#' insertion, '~' deletion.
ASI       'i' insertion, 'd' deletion, 'Z' stop codon.

normalize_aas() must be applied to every piece of amino acid text that comes
from outside, or equality and lookups between mutations silently fail. Words
like 'Ins' or 'deletion' may start with either case, but the single letters
'i' and 'd' must be lower case, because 'I' and 'D' are amino acids.
"""
import re

AMINO_ALPHABET = 'ACDEFGHIKLMNPQRSTVWY'

DELETION_PATTERN = re.compile(r'^(?:[dD]el(?:et(?:e|ion))?|d|~)$')
INSERTION_PATTERN = re.compile(r'^(?:[iI]ns(?:ert(?:ion)?)?|i)$|#')
STOP_PATTERN = re.compile(r'[.Z]')

INTERNAL_TO_HIVDB = {'_': '#', '-': '~'}
HIVDB_TO_INTERNAL = {'#': '_', '~': '-'}
INTERNAL_TO_ASI = {'_': 'i', '-': 'd', '*': 'Z'}


def normalize_aas(aas: str) -> str:
    """ Convert any accepted spelling of amino acids to internal format.

    >>> normalize_aas('Insertion')
    '_'
    >>> normalize_aas('del')
    '-'
    >>> normalize_aas('yf')
    'FY'
    """
    if aas is None:
        return None
    aas = DELETION_PATTERN.sub('-', aas)
    aas = INSERTION_PATTERN.sub('_', aas)
    aas = STOP_PATTERN.sub('*', aas)
    if len(aas) > 1 and '_' not in aas:
        aas = ''.join(sorted(aas.upper()))
    return aas.upper()


def to_hivdb_format(aas: str) -> str:
    if aas is None:
        return None
    return ''.join(INTERNAL_TO_HIVDB.get(aa, aa) for aa in aas)


def to_internal_format(aas: str) -> str:
    if aas is None:
        return None
    return ''.join(HIVDB_TO_INTERNAL.get(aa, aa) for aa in aas)


def to_asi_format(aas: str) -> str:
    if aas is None:
        return None
    return ''.join(INTERNAL_TO_ASI.get(aa, aa) for aa in aas)


def from_asi_format(aas: str) -> str:
    """ Read the amino acids of an ASI rule atom, like 'FY', 'i' or 'd'. """
    converted = []
    for aa in aas:
        if aa == 'i':
            converted.append('_')
        elif aa == 'd':
            converted.append('-')
        elif aa == 'Z':
            converted.append('*')
        else:
            converted.append(aa.upper())
    return ''.join(converted)

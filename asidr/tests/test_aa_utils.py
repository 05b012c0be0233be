import pytest

from asidr.core.aa_utils import (from_asi_format, normalize_aas,
                                 to_asi_format, to_hivdb_format,
                                 to_internal_format)


@pytest.mark.parametrize('aas, expected', [
    ('Insertion', '_'),
    ('insertion', '_'),
    ('Insert', '_'),
    ('ins', '_'),
    ('Ins', '_'),
    ('i', '_'),
    ('#', '_'),
    ('Deletion', '-'),
    ('deletion', '-'),
    ('Delete', '-'),
    ('del', '-'),
    ('Del', '-'),
    ('d', '-'),
    ('~', '-'),
    ('Z', '*'),
    ('.', '*'),
    ('yf', 'FY'),
    ('VI', 'IV'),
    ('K', 'K'),
    ('I', 'I'),
    ('D', 'D'),
    ('INS', 'INS'),
])
def test_normalize_aas(aas, expected):
    assert normalize_aas(aas) == expected


@pytest.mark.parametrize('aas', [
    'ins',
    'Ins',
    'i',
    '#',
    'Insertion',
    'del',
    'Del',
    'd',
    '~',
    'Deletion',
    'yf',
    'VIM',
    'Z',
    '_SS',
    '#SS',
])
def test_normalize_hivdb_round_trip(aas):
    normalized = normalize_aas(aas)

    assert normalize_aas(to_hivdb_format(normalized)) == normalized


def test_insertion_spellings_agree():
    spellings = ['ins', 'i', '#', 'Insertion', 'Ins']

    assert {normalize_aas(aas) for aas in spellings} == {'_'}


def test_normalize_none():
    assert normalize_aas(None) is None


def test_normalize_keeps_inserted_aas_in_order():
    assert normalize_aas('_SS') == '_SS'


def test_hivdb_format():
    assert to_hivdb_format('_-K') == '#~K'
    assert to_internal_format('#~K') == '_-K'


def test_asi_format():
    assert to_asi_format('_-*K') == 'idZK'
    assert from_asi_format('idZK') == '_-*K'


def test_from_asi_format_uppercases_amino_acids():
    assert from_asi_format('fy') == 'FY'

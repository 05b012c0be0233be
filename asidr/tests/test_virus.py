from unittest import TestCase

import pytest
import yaml

from asidr.core.virus import HIV1_PATH, Virus, load_default_virus
from asidr.utils.user_error import ConfigurationError


class VirusTest(TestCase):
    def setUp(self):
        self.virus = load_default_virus()

    def test_default_virus_is_cached(self):
        self.assertIs(self.virus, load_default_virus())

    def test_genes(self):
        self.assertEqual(['HIV1PR', 'HIV1RT', 'HIV1IN'],
                         [gene.name for gene in self.virus.get_genes()])

    def test_gene_names(self):
        rt = self.virus.get_gene('HIV1RT')

        self.assertIs(rt, self.virus.get_gene('RT'))
        self.assertIs(rt, self.virus.get_gene('RTase'))
        self.assertEqual(560, rt.aa_size)
        self.assertEqual('M', rt.get_reference(184))

    def test_unknown_gene(self):
        with self.assertRaisesRegex(KeyError, 'Gene GAG not found in HIV1'):
            self.virus.get_gene('GAG')

    def test_drug_classes_of_gene(self):
        rt = self.virus.get_gene('RT')

        self.assertEqual(['NRTI', 'NNRTI'],
                         [drug_class.name for drug_class in rt.drug_classes])
        self.assertEqual(['ABC', 'AZT', 'FTC', 'LMV', 'TDF',
                          'DOR', 'EFV', 'ETR', 'NVP', 'RPV'],
                         [drug.name for drug in rt.get_drugs()])

    def test_drug_names(self):
        drug = self.virus.get_drug('LMV')

        self.assertIs(drug, self.virus.get_drug('3TC'))
        self.assertIs(drug, self.virus.get_drug('lamivudine'))
        self.assertEqual('3TC', drug.display_abbr)
        self.assertEqual('NRTI', drug.drug_class.name)

    def test_unknown_drug(self):
        with self.assertRaisesRegex(KeyError, 'Drug XYZ not found'):
            self.virus.get_drug('XYZ')
        with self.assertRaisesRegex(ConfigurationError, 'Unknown drug XYZ'):
            self.virus.get_config_drug('XYZ')

    def test_drug_class_synonyms(self):
        drug_class = self.virus.get_drug_class('INSTI')

        self.assertIs(drug_class, self.virus.get_drug_class('INI'))
        self.assertIs(drug_class,
                      self.virus.get_drug_class(
                          'Integrase Strand Transfer Inhibitor'))

    def test_drugs_sorted_by_class(self):
        drugs = self.virus.get_drugs()

        self.assertEqual(['ATV', 'DRV', 'LPV'],
                         [drug.name for drug in drugs[:3]])
        self.assertEqual('RAL', drugs[-1].name)

    def test_main_strain(self):
        self.assertEqual('HIV1', self.virus.main_strain.name)
        self.assertEqual('HIV-1', self.virus.main_strain.display_text)

    def test_load_missing_entry(self):
        with self.assertRaisesRegex(ConfigurationError,
                                    "Missing entry 'strains'"):
            Virus({'name': 'HIV2'})

    def test_load_duplicate_drug(self):
        with open(HIV1_PATH) as config_file:
            config = yaml.safe_load(config_file)
        config['drugs'].append(dict(config['drugs'][0]))

        with self.assertRaisesRegex(ConfigurationError, 'Duplicate drug ATV'):
            Virus(config)

    def test_load_requires_other_type(self):
        with open(HIV1_PATH) as config_file:
            config = yaml.safe_load(config_file)
        config['mutation_types'].remove('Other')
        for drug_class in config['drug_classes']:
            drug_class['mutation_types'].remove('Other')

        with self.assertRaisesRegex(ConfigurationError,
                                    "Mutation type 'Other' is required"):
            Virus(config)


def test_load_not_a_mapping(tmp_path):
    config_path = tmp_path / 'virus.yaml'
    config_path.write_text('- just a list\n')

    with pytest.raises(ConfigurationError, match='is not a mapping'):
        Virus.load(config_path)

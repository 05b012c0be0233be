""" Reference vocabulary of strains, genes, drug classes and drugs.

A Virus object loads the vocabulary once and owns every Strain, Gene,
DrugClass, Drug and MutationType instance. Those objects are never copied,
so they compare by identity, and code that groups mutations by gene or drug
class can use them directly as keys.

    virus = load_default_virus()
    rt = virus.get_gene('HIV1RT')
    drug = virus.get_drug('3TC')
"""
import logging
import typing
from functools import lru_cache, total_ordering
from pathlib import Path
from types import MappingProxyType

from yaml import safe_load

from asidr.core.mutation import Mutation
from asidr.core.mutation_set import MutationSet
from asidr.utils.user_error import ConfigurationError

logger = logging.getLogger(__name__)

HIV1_PATH = Path(__file__).parent / 'hiv1.yaml'
OTHER_MUTATION_TYPE = 'Other'
MUTATION_CATEGORIES = ('DRM', 'SDRM', 'TSM')


@total_ordering
class Strain:
    def __init__(self, virus, name, display_text, ordinal):
        self.virus = virus
        self.name = name
        self.display_text = display_text
        self.ordinal = ordinal
        self.genes = ()

    def get_gene(self, abstract_gene):
        for gene in self.genes:
            if gene.abstract_gene == abstract_gene:
                return gene
        raise KeyError('Gene {} not found in strain {}.'.format(abstract_gene,
                                                                self.name))

    def __lt__(self, other):
        return self.ordinal < other.ordinal

    def __repr__(self):
        return 'Strain({!r})'.format(self.name)

    def __str__(self):
        return self.name


@total_ordering
class Gene:
    def __init__(self, strain: Strain, abstract_gene: str, ordinal: int,
                 ref_sequence: str, synonyms=()):
        self.strain = strain
        self.abstract_gene = abstract_gene
        self.ordinal = ordinal
        self.ref_sequence = ref_sequence
        self.synonyms = tuple(synonyms)
        self.drug_classes = ()

    @property
    def name(self):
        return self.strain.name + self.abstract_gene

    @property
    def aa_size(self):
        return len(self.ref_sequence)

    def get_reference(self, position: int) -> str:
        """ Reference amino acid at a 1-based position. """
        return self.ref_sequence[position - 1]

    def get_drugs(self):
        return [drug
                for drug_class in self.drug_classes
                for drug in drug_class.drugs]

    def __lt__(self, other):
        return (self.strain.ordinal, self.ordinal) < (other.strain.ordinal,
                                                      other.ordinal)

    def __repr__(self):
        return 'Gene({!r})'.format(self.name)

    def __str__(self):
        return self.name


@total_ordering
class MutationType:
    def __init__(self, name, ordinal):
        self.name = name
        self.ordinal = ordinal

    def __lt__(self, other):
        return self.ordinal < other.ordinal

    def __repr__(self):
        return 'MutationType({!r})'.format(self.name)

    def __str__(self):
        return self.name


@total_ordering
class DrugClass:
    def __init__(self,
                 name,
                 full_name,
                 abstract_gene,
                 ordinal,
                 strains=(),
                 synonyms=(),
                 mutation_types=()):
        self.name = name
        self.full_name = full_name
        self.abstract_gene = abstract_gene
        self.ordinal = ordinal
        self.strains = tuple(strains)
        self.synonyms = tuple(synonyms)
        self.mutation_types = tuple(mutation_types)
        self.drugs = ()

    def supports_strain(self, strain):
        return strain in self.strains

    def __lt__(self, other):
        return self.ordinal < other.ordinal

    def __repr__(self):
        return 'DrugClass({!r})'.format(self.name)

    def __str__(self):
        return self.name


@total_ordering
class Drug:
    def __init__(self, name, full_name, display_abbr, drug_class, ordinal):
        self.name = name
        self.full_name = full_name
        self.display_abbr = display_abbr
        self.drug_class = drug_class
        self.ordinal = ordinal

    def __lt__(self, other):
        return ((self.drug_class.ordinal, self.ordinal) <
                (other.drug_class.ordinal, other.ordinal))

    def __repr__(self):
        return 'Drug({!r})'.format(self.name)

    def __str__(self):
        return self.name


class MutationTypePair(typing.NamedTuple):
    """ Classifies the amino acids at one position for one drug class. """
    strain: Strain
    abstract_gene: str
    drug_class: DrugClass
    position: int
    aas: str
    mutation_type: MutationType
    is_unusual: bool = False

    @property
    def gene(self):
        return self.strain.get_gene(self.abstract_gene)

    def matches(self, mutation):
        return (mutation.gene is self.gene and
                mutation.position == self.position and
                mutation.intersects_with(self.aas) is not None)


class Virus:
    def __init__(self, config: dict):
        self.name = config['name']
        self._strains = {}
        self._genes = {}
        self._mutation_types = {}
        self._drug_classes = {}
        self._drug_class_synonyms = {}
        self._drugs = {}
        self._drug_synonyms = {}
        try:
            self._load_strains(config['strains'])
            self.main_strain = self.get_config_strain(
                config.get('main_strain', self.name))
            self._load_genes(config['genes'])
            self._load_mutation_types(config['mutation_types'])
            self._load_drug_classes(config['drug_classes'])
            self._load_drugs(config['drugs'])
            type_pairs = [self._build_type_pair(pair)
                          for pair in config.get('mutation_type_pairs', [])]
            categories = {
                category: self._load_category(
                    config.get('mutation_categories', {}).get(category, []))
                for category in MUTATION_CATEGORIES}
        except KeyError as ex:
            raise ConfigurationError(
                'Missing entry %s in %s virus configuration.',
                ex,
                self.name) from ex
        if OTHER_MUTATION_TYPE not in self._mutation_types:
            raise ConfigurationError('Mutation type %r is required.',
                                     OTHER_MUTATION_TYPE)
        pairs_by_position = {}
        for pair in type_pairs:
            key = (pair.gene, pair.position)
            pairs_by_position.setdefault(key, []).append(pair)
        self._type_pairs = MappingProxyType(
            {key: tuple(pairs) for key, pairs in pairs_by_position.items()})
        self._categories = MappingProxyType(categories)
        logger.debug('Loaded %s with %d genes and %d drugs.',
                     self.name,
                     len(self._genes),
                     len(self._drugs))

    @classmethod
    def load(cls, path=None):
        if path is None:
            path = HIV1_PATH
        with open(path) as config_file:
            config = safe_load(config_file)
        if not isinstance(config, dict):
            raise ConfigurationError('Virus configuration %s is not a mapping.',
                                     path)
        return cls(config)

    def _load_strains(self, strain_configs):
        for ordinal, strain_config in enumerate(strain_configs, 1):
            name = strain_config['name']
            self._strains[name] = Strain(self,
                                         name,
                                         strain_config.get('display_text', name),
                                         ordinal)

    def _load_genes(self, gene_configs):
        genes_by_strain = {}
        for gene_config in gene_configs:
            strain = self.get_config_strain(gene_config['strain'])
            ref_sequence = ''.join(gene_config['ref_sequence'].split())
            gene = Gene(strain,
                        gene_config['abstract_gene'],
                        gene_config['ordinal'],
                        ref_sequence,
                        gene_config.get('synonyms', ()))
            if gene.name in self._genes:
                raise ConfigurationError('Duplicate gene %s.', gene.name)
            self._genes[gene.name] = gene
            genes_by_strain.setdefault(strain, []).append(gene)
        for strain, genes in genes_by_strain.items():
            strain.genes = tuple(sorted(genes))

    def _load_mutation_types(self, type_names):
        for ordinal, name in enumerate(type_names, 1):
            self._mutation_types[name] = MutationType(name, ordinal)

    def _load_drug_classes(self, class_configs):
        for ordinal, class_config in enumerate(class_configs, 1):
            name = class_config['name']
            strains = [self.get_config_strain(strain_name)
                       for strain_name in class_config['strains']]
            mutation_types = [self._mutation_types[type_name]
                              for type_name in class_config.get('mutation_types',
                                                                [])]
            drug_class = DrugClass(name,
                                   class_config.get('full_name', name),
                                   class_config['abstract_gene'],
                                   ordinal,
                                   strains,
                                   class_config.get('synonyms', ()),
                                   mutation_types)
            self._drug_classes[name] = drug_class
            for synonym in (drug_class.full_name, ) + drug_class.synonyms:
                self._drug_class_synonyms[synonym] = drug_class
        for gene in self._genes.values():
            gene.drug_classes = tuple(
                drug_class
                for drug_class in self._drug_classes.values()
                if (drug_class.abstract_gene == gene.abstract_gene and
                    drug_class.supports_strain(gene.strain)))

    def _load_drugs(self, drug_configs):
        drugs_by_class = {}
        for ordinal, drug_config in enumerate(drug_configs, 1):
            name = drug_config['name']
            drug_class = self.get_config_drug_class(drug_config['drug_class'])
            drug = Drug(name,
                        drug_config.get('full_name', name),
                        drug_config.get('display_abbr', name),
                        drug_class,
                        ordinal)
            if name in self._drugs:
                raise ConfigurationError('Duplicate drug %s.', name)
            self._drugs[name] = drug
            self._drug_synonyms[drug.full_name] = drug
            self._drug_synonyms[drug.display_abbr] = drug
            drugs_by_class.setdefault(drug_class, []).append(drug)
        for drug_class, drugs in drugs_by_class.items():
            drug_class.drugs = tuple(drugs)

    def _build_type_pair(self, pair_config):
        strain = self.get_config_strain(pair_config['strain'])
        abstract_gene = pair_config['gene']
        try:
            strain.get_gene(abstract_gene)
        except KeyError as ex:
            raise ConfigurationError('Unknown gene %s in mutation type pairs.',
                                     abstract_gene) from ex
        mutation_type = self._mutation_types[pair_config['mutation_type']]
        return MutationTypePair(strain,
                                abstract_gene,
                                self.get_config_drug_class(
                                    pair_config['drug_class']),
                                pair_config['position'],
                                pair_config['aas'],
                                mutation_type,
                                pair_config.get('is_unusual', False))

    def _load_category(self, entries):
        """ Index one curated category by (gene, position). """
        category = {}
        for entry in entries:
            gene = self.get_config_gene(entry['gene'])
            drug_class = self.get_config_drug_class(entry['drug_class'])
            category.setdefault((gene, entry['position']), []).append(
                (entry['aas'], drug_class))
        return MappingProxyType({key: tuple(value)
                                 for key, value in category.items()})

    def get_config_strain(self, name):
        try:
            return self.get_strain(name)
        except KeyError as ex:
            raise ConfigurationError('Unknown strain %s.', name) from ex

    def get_config_drug_class(self, name):
        try:
            return self.get_drug_class(name)
        except KeyError as ex:
            raise ConfigurationError('Unknown drug class %s.', name) from ex

    def get_config_drug(self, name):
        try:
            return self.get_drug(name)
        except KeyError as ex:
            raise ConfigurationError('Unknown drug %s.', name) from ex

    def get_config_gene(self, name, strain=None):
        try:
            return self.get_gene(name, strain)
        except KeyError as ex:
            raise ConfigurationError('Unknown gene %s.', name) from ex

    def get_strain(self, name) -> Strain:
        try:
            return self._strains[name]
        except KeyError:
            raise KeyError('Strain {} not found in {}.'.format(name, self.name))

    def get_strains(self):
        return list(self._strains.values())

    def get_gene(self, name, strain=None) -> Gene:
        """ Find a gene by full name (HIV1RT), or abstract name or synonym
        within a strain, the main strain by default.
        """
        gene = self._genes.get(name)
        if gene is not None:
            return gene
        if strain is None:
            strain = self.main_strain
        for gene in strain.genes:
            if name == gene.abstract_gene or name in gene.synonyms:
                return gene
        raise KeyError('Gene {} not found in {}.'.format(name, self.name))

    def get_genes(self, strain=None):
        if strain is None:
            return sorted(self._genes.values())
        return list(strain.genes)

    def get_abstract_genes(self, strain=None):
        if strain is None:
            strain = self.main_strain
        names = [gene.abstract_gene for gene in strain.genes]
        for gene in strain.genes:
            names.extend(gene.synonyms)
        return names

    def get_mutation_type(self, name) -> MutationType:
        try:
            return self._mutation_types[name]
        except KeyError:
            raise KeyError('Mutation type {} not found.'.format(name))

    def get_mutation_types(self):
        return list(self._mutation_types.values())

    def get_drug_class(self, name) -> DrugClass:
        drug_class = (self._drug_classes.get(name) or
                      self._drug_class_synonyms.get(name))
        if drug_class is None:
            raise KeyError('Drug class {} not found in {}.'.format(name,
                                                                   self.name))
        return drug_class

    def get_drug_classes(self):
        return list(self._drug_classes.values())

    def get_drug(self, name) -> Drug:
        drug = self._drugs.get(name) or self._drug_synonyms.get(name)
        if drug is None:
            raise KeyError('Drug {} not found in {}.'.format(name, self.name))
        return drug

    def get_drugs(self, drug_class=None):
        if drug_class is None:
            return sorted(self._drugs.values())
        return list(drug_class.drugs)

    def get_mutation_type_pairs(self, gene, position):
        return self._type_pairs.get((gene, position), ())

    def get_mutation_types_of(self, mutation):
        """ All mutation types that classify some of the mutation's AAs. """
        types = {pair.mutation_type
                 for pair in self.get_mutation_type_pairs(mutation.gene,
                                                          mutation.position)
                 if pair.matches(mutation)}
        return sorted(types)

    def get_category_drug_class(self, mutation, category):
        """ Find the drug class that lists a mutation as a DRM, SDRM or TSM.

        :return: the drug class, or None if the mutation isn't listed
        """
        entries = self._categories[category].get((mutation.gene,
                                                  mutation.position), ())
        for aas, drug_class in entries:
            if mutation.contains_shared_aa(aas, ignore_ref_or_stops=False):
                return drug_class
        return None

    def is_category(self, mutation, category):
        return self.get_category_drug_class(mutation, category) is not None

    def parse_mutation(self, text, default_gene=None):
        return Mutation.parse_string(self, text, default_gene)

    def new_mutation_set(self, text, default_gene=None):
        return MutationSet.parse_string(self, text, default_gene)


@lru_cache()
def load_default_virus() -> Virus:
    return Virus.load()

from setuptools import setup

with open('README.md') as fh:
    long_description = fh.read()

setup(
    name='asidr',
    version='0.1',

    description='Scores HIV drug resistance from lists of mutations with ASI2 rule algorithms',
    long_description=long_description,
    long_description_content_type="text/markdown",

    packages=['asidr',
              'asidr.core',
              'asidr.resistance',
              'asidr.utils',
              'asidr.tests'],
    python_requires='>=3.9',
    install_requires=['PyYAML',
                      'pyparsing>=3.1'],
    extras_require={'test': ['pytest']},
    entry_points={'console_scripts': ['asidr=asidr.__main__:cli']},
    package_data={'asidr':
                      ['core/*.yaml',
                       'resistance/*.yaml',
                       'resistance/*.xml'],
                  }
)

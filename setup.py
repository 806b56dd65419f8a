from setuptools import setup, find_packages

setup(
    name             = 'cdc-scope',
    version          = '1.0.0',
    description      = 'CDC Scope: lawful-intercept Call Data Channel dump parser and call correlator',
    author           = 'Nous Loop Solutions',
    packages         = find_packages(exclude=['tests*']),
    install_requires = open('requirements.txt').read().splitlines(),
    extras_require   = {
        'test': ['pytest'],
    },
    entry_points     = {
        'console_scripts': [
            'cdcscope = cdcscope.cli:main',
        ],
    },
    python_requires  = '>=3.10',
    classifiers      = [
        'Programming Language :: Python :: 3',
        'License :: OSI Approved :: MIT License',
        'Operating System :: OS Independent',
    ],
)

from setuptools import setup, find_packages

setup(
    name             = 'sos-triage',
    version          = '1.0.0',
    description      = 'SOS Triage — emergency request scoring, responder board and offline sync queue',
    packages         = find_packages(exclude=['tests*']),
    install_requires = open('requirements.txt').read().splitlines(),
    extras_require   = {
        'test': ['pytest', 'httpx'],
    },
    entry_points     = {
        'console_scripts': [
            'sos-triage = triage.cli:main',
        ],
    },
    python_requires  = '>=3.10',
    classifiers      = [
        'Programming Language :: Python :: 3',
        'Operating System :: OS Independent',
    ],
)

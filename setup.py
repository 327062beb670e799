from setuptools import find_packages, setup

setup(
    name='croco-cartridge-tools',
    version='1.0.0',
    description='USB host tools for the Croco Cartridge Game Boy flash cartridge',
    author='',
    author_email='',
    packages=find_packages(include=['crococart', 'crococart.*']),
    python_requires='>=3.11',
    install_requires=[
        'pyusb>=1.1',
        'construct',
        'msgspec',
        'transitions',
        'tenacity',
        'marshmallow',
    ],
    extras_require={
        'test': [
            'pytest',
        ],
    },
    entry_points={
        'console_scripts': [
            'croco-cli=crococart.cli:main',
        ],
    },
    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: POSIX :: Linux',
        'Operating System :: MacOS',
    ],
)

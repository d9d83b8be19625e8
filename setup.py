import sys
from pathlib import Path

from setuptools import setup

if sys.version_info[0:2] < (3, 8):
    raise RuntimeError("This package requires Python 3.8+.")

setup(
    name="ormhelpers",
    version="0.3.0",
    packages=[
        "ormhelpers",
        "ormhelpers.orm",
        "ormhelpers.orm.schema",
    ],
    url="https://github.com/SunDwarf/ormhelpers",
    license="MIT",
    author="Laura Dickinson",
    author_email="l@veriny.tf",
    description="A declarative ORM schema layer with introspectable many to many relationships",
    long_description=Path(__file__).with_name("README.rst").read_text(encoding="utf-8"),
    install_requires=[
        "cached_property>=1.3.0",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-cov",
        ],
    },
    python_requires=">=3.8",
)

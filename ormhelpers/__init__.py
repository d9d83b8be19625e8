"""
Main package for ormhelpers - a small declarative ORM with compatibility helpers for
introspecting many to many relationships.

.. currentmodule:: ormhelpers

.. autosummary::
    :toctree:

    orm
    helpers

    exc
"""

__author__ = "Laura Dickinson"
__copyright__ = "Copyright (C) 2017 Laura Dickinson"

__licence__ = "MIT"
__status__ = "Development"

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version(__name__)
except PackageNotFoundError:
    # package is not installed
    pass

from ormhelpers.exc import *
from ormhelpers.helpers import ManyToManyInfo, ManyToManyRecord, RDBOHelpers
from ormhelpers.orm.inspection import get_accessor, get_m2m_info, get_pk, get_related_rows
# orm
from ormhelpers.orm.schema.column import Column
from ormhelpers.orm.schema.relationship import ForeignKey, ManyToMany, Relationship, \
    RelationshipInfo
from ormhelpers.orm.schema.table import PrimaryKey, Table, TableMetadata, table_base
from ormhelpers.orm.schema.types import ColumnType, ColumnValidationError, Integer, String

"""
Code for ORM schema objects.

.. currentmodule:: ormhelpers.orm.schema

.. autosummary::
    :toctree:

    table
    column
    relationship

    types

"""

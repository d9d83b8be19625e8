"""
The core code for the ORM.

.. currentmodule:: ormhelpers.orm

.. autosummary::
    :toctree:

    schema

    inspection

"""

"""
Inspection module - contains utilities for inspecting Table objects and rows.
"""
import typing

from ormhelpers.exc import NoSuchRelationshipError
from ormhelpers.orm.schema import relationship as md_relationship, table as md_table


def get_pk(row: 'md_table.Table', as_tuple: bool = True):
    """
    Gets the primary key for a Table row.

    :param row: The :class:`.Table` instance to extract the PK from.
    :param as_tuple: Should this PK always be returned as a tuple?
    """
    pk = row.primary_key
    if as_tuple and not isinstance(pk, tuple):
        return pk,

    return pk


def get_accessor(row: 'md_table.Table', name: str):
    """
    Gets the accessor registered under ``name`` for a row: a relationship accessor, or a many to
    many accessor.

    :param row: The :class:`.Table` instance.
    :param name: The name of a relationship or of a many to many accessor.
    :raises NoSuchRelationshipError: If the table has neither under that name.
    """
    relationship = row.table.get_relationship(name)
    if relationship is not None:
        return relationship.get_instance(row)

    m2m = row.table.get_many_to_many(name)
    if m2m is not None:
        return m2m.get_instance(row)

    raise NoSuchRelationshipError("No such relationship or many to many accessor '{}' on table {}"
                                  .format(name, row.table.__name__))


def get_related_rows(row: 'md_table.Table', name: str) -> 'typing.List[md_table.Table]':
    """
    Gets the rows behind an accessor as a list.

    :param row: The :class:`.Table` instance.
    :param name: The name of a relationship or of a many to many accessor.
    """
    accessor = get_accessor(row, name)
    if isinstance(accessor, md_relationship.ManyToOneAccessor):
        related = accessor.get()
        return [] if related is None else [related]

    return list(accessor)


def get_m2m_info(table: 'typing.Type[md_table.Table]', relationship_name: str):
    """
    Gets the resolved many to many metadata of a link relationship, or None if the relationship
    is not the link relationship of a registered many to many accessor.

    :param table: The table the relationship is declared on.
    :param relationship_name: The name of the link relationship.
    """
    return table.relationship_info(relationship_name).m2m

"""
Relationship helpers.
"""
import logging
import typing

from cached_property import cached_property

from ormhelpers.exc import SchemaError
from ormhelpers.orm.schema import column as md_column, table as md_table

logger = logging.getLogger(__name__)


class ForeignKey(object):
    """
    Represents a foreign key object in a column. This allows linking multiple tables together
    relationally.

    .. code-block:: python3

        class CdTrackJoin(Table):
            cdid = Column(Integer, primary_key=True, foreign_key=ForeignKey("Cd.cdid"))
    """

    def __init__(self, foreign_column: 'typing.Union[md_column.Column, str]'):
        """
        :param foreign_column: Either a :class:`.Column` representing the foreign column, or a str \
            in the format ``<table object name>.<column name>``.
        """
        #: The :class:`.Column` object this FK references.
        self.foreign_column = None  # type: md_column.Column

        # used to resolve a column later if we can't resolve it now
        if isinstance(foreign_column, md_column.Column):
            self.foreign_column = foreign_column
            self._f_name = None
        else:
            self._f_name = foreign_column

        #: The :class:`.Column` object this FK is associated with.
        self.column = None  # type: md_column.Column

    def __repr__(self):
        return "<ForeignKey owner='{}' foreign='{}'>".format(self.column,
                                                            self.foreign_column or self._f_name)

    @property
    def reference(self) -> 'typing.Union[md_column.Column, str]':
        """
        :return: The foreign column if it is resolved, otherwise the ``Table.column`` string.
        """
        return self.foreign_column if self.foreign_column is not None else self._f_name


def _strip_prefix(name: str, prefix: str) -> str:
    if name.startswith(prefix):
        return name[len(prefix):]

    return name


class RelationshipInfo(object):
    """
    The descriptor of a single relationship on a single table, as returned by
    :meth:`.Table.relationship_info`.

    Each table keeps one descriptor per relationship name and returns it on every lookup, so data
    cached on it (such as :attr:`.m2m`) is kept between lookups on that table only.
    """

    def __init__(self, relationship: 'Relationship', table: 'typing.Type[md_table.Table]'):
        #: The :class:`.Relationship` this describes.
        self.relationship = relationship

        #: The name of the relationship.
        self.name = relationship.name

        #: The table this descriptor belongs to: the declaring table or one of its subclasses.
        self.table = table

        #: Free-form attributes passed when the relationship was declared.
        self.attrs = dict(relationship.attrs)
        self.attrs.setdefault("accessor", "multi" if relationship.use_iter else "single")

        #: Resolved many-to-many metadata, if this relationship is the link relationship of a
        #: many-to-many accessor and it has been resolved. See :mod:`ormhelpers.helpers`.
        self.m2m = None

    def __repr__(self):
        return "<RelationshipInfo name='{}' table='{}'>".format(self.name, self.table.__name__)

    @cached_property
    def foreign_table(self) -> 'typing.Type[md_table.Table]':
        """
        The table on the other side of the relationship.
        """
        return self.relationship.foreign_table

    @cached_property
    def cond(self) -> typing.Dict[str, str]:
        """
        The join condition, as a mapping of ``foreign.<column>`` to ``self.<column>``.
        """
        our_column, foreign_column = self.relationship.join_columns
        return {"foreign.{}".format(foreign_column.name): "self.{}".format(our_column.name)}

    def iter_cond(self) -> 'typing.Generator[typing.Tuple[str, str], None, None]':
        """
        Yields ``(foreign column, local column)`` name pairs of the join condition, with the
        ``foreign.`` and ``self.`` prefixes removed.
        """
        for foreign, local in self.cond.items():
            yield _strip_prefix(foreign, "foreign."), _strip_prefix(local, "self.")


class Relationship(object):
    """
    Represents a relationship to another table object.

    The left column is the column on the table the relationship is declared on, the right column
    is the column on the foreign table.

    .. code-block:: python3

        class Cd(Table):
            cdid = Column(Integer, primary_key=True)

            # one cd has many rows in the cd_track_join table
            cd_tracks = Relationship(left="Cd.cdid", right="CdTrackJoin.cdid")

        class CdTrackJoin(Table):
            cdid = Column(Integer, primary_key=True, foreign_key=ForeignKey("Cd.cdid"))

            # and each of those rows belongs to one cd
            cd = Relationship(left="CdTrackJoin.cdid", right="Cd.cdid", use_iter=False)

    Relationships are usually declared with :meth:`.Table.has_many` and
    :meth:`.Table.belongs_to` instead, which fill in the primary key columns automatically.

    Once declared, rows expose the relationship as an accessor:

    .. code-block:: python3

        for join in cd.cd_tracks:
            print(join.cd.title)
    """

    def __init__(self,
                 left: 'typing.Union[md_column.Column, str]',
                 right: 'typing.Union[md_column.Column, str]', *,
                 use_iter: bool = True,
                 attrs: dict = None):
        """
        :param left: The left-hand column (the Column on this table) in this relationship.

        :param right: The right-hand column (the Column on the foreign table) in this relationship.

            Either column can be a ``Table.column`` string, resolved once all tables are defined.
            A bare ``Table`` string refers to the single primary key column of that table.

        :param use_iter: Should this relationship use the iterable format?

            This controls if this relationship is created as one to many, or as a many to one/one to
            one relationship.

        :param attrs: Free-form attributes, returned verbatim in the relationship's descriptor.
        """
        #: The left column for this relationship.
        self.left_column = left

        #: The right column for this relationship.
        self.right_column = right

        #: If this relationship uses the iterable format.
        self.use_iter = use_iter

        #: Attributes passed at declaration time.
        self.attrs = attrs or {}

        #: The owner table for this relationship.
        self.owner_table = None

        #: The name of this relationship.
        self._name = None

    def __set_name__(self, owner, name):
        self.owner_table = owner
        self._name = name

    def __repr__(self):
        def _fmt(col):
            if isinstance(col, md_column.Column):
                return "{}.{}".format(col.table_name, col.name)

            return col

        return "<Relationship '{}' '{}' <-> '{}'>".format(self._name, _fmt(self.left_column),
                                                         _fmt(self.right_column))

    @property
    def name(self) -> str:
        """
        :return: The name this relationship was declared with.
        """
        return self._name

    @property
    def resolved(self) -> bool:
        """
        :return: If both columns of this relationship are :class:`.Column` objects.
        """
        return isinstance(self.left_column, md_column.Column) \
            and isinstance(self.right_column, md_column.Column)

    def _resolve_column(self, reference: str) -> 'md_column.Column':
        if self.owner_table is None:
            raise SchemaError("Relationship {} is not bound to a table".format(self))

        table_name, _, column_name = reference.partition(".")
        table = self.owner_table.metadata.get_table(table_name)
        if table is None:
            raise SchemaError("No such table '{}' exists (from relationship {})"
                              .format(table_name, self))

        if not column_name:
            # a bare table name points at its primary key
            pk = table.primary_key
            if pk is None or len(pk.columns) != 1:
                raise SchemaError("Table '{}' needs a single column primary key to be referenced "
                                  "without a column (from relationship {})"
                                  .format(table_name, self))
            return pk.columns[0]

        col = table.get_column(column_name)
        if col is None:
            raise SchemaError("No such column '{}' exists on table '{}' (from relationship {})"
                              .format(column_name, table_name, self))

        return col

    def resolve(self) -> 'Relationship':
        """
        Resolves any "floating" columns (``Table.column`` strings) of this relationship.

        :raises SchemaError: If a table or column does not exist.
        """
        if isinstance(self.left_column, str):
            to_resolve = self.left_column
            self.left_column = self._resolve_column(to_resolve)
            logger.debug("Resolved {} to {}".format(to_resolve, self.left_column))

        if isinstance(self.right_column, str):
            to_resolve = self.right_column
            self.right_column = self._resolve_column(to_resolve)
            logger.debug("Resolved {} to {}".format(to_resolve, self.right_column))

        return self

    # right-wing logic
    @property
    def our_column(self) -> 'md_column.Column':
        """
        Gets the local column this relationship refers to.
        """
        self.resolve()
        if issubclass(self.owner_table, self.left_column.table):
            return self.left_column

        return self.right_column

    @property
    def foreign_column(self) -> 'md_column.Column':
        """
        Gets the foreign column this relationship refers to.
        """
        self.resolve()
        if issubclass(self.owner_table, self.left_column.table):
            return self.right_column

        return self.left_column

    @property
    def foreign_table(self) -> 'typing.Type[md_table.Table]':
        """
        Gets the table on the other side of this relationship.
        """
        return self.foreign_column.table

    @property
    def join_columns(self) -> typing.Tuple['md_column.Column', 'md_column.Column']:
        """
        Gets the "join" columns of this relationship, i.e the columns that link the two tables.
        """
        return self.our_column, self.foreign_column

    @property
    def reverse(self) -> 'typing.Union[Relationship, None]':
        """
        Gets the relationship on the foreign table that joins over the same columns in the other
        direction, or None if the foreign table does not declare one.
        """
        our_column, foreign_column = self.join_columns
        for relationship in self.foreign_table.iter_relationships():
            if relationship is self:
                continue

            if relationship.our_column is foreign_column \
                    and relationship.foreign_column is our_column:
                return relationship

        return None

    def get_instance(self, row: 'md_table.Table') -> 'BaseRelationshipAccessor':
        """
        Gets a new "relationship accessor" for a row.
        """
        if self.use_iter:
            return OneToManyAccessor(self, row)

        return ManyToOneAccessor(self, row)


class ManyToMany(object):
    """
    Represents a many-to-many accessor, which goes through a link relationship on this table and
    then a relationship on the link table.

    .. code-block:: python3

        class Cd(Table):
            cdid = Column(Integer, primary_key=True)
            cd_tracks = Relationship(left="Cd.cdid", right="CdTrackJoin.cdid")
            tracks = ManyToMany("cd_tracks", "track")

    The declarative form is equivalent to calling :meth:`.Table.many_to_many` after the class
    body, and goes through that classmethod.
    """

    def __init__(self, link_relationship: str, foreign_relationship: str, attrs: dict = None):
        """
        :param link_relationship: The name of the one-to-many relationship to the link table.
        :param foreign_relationship: The name of the relationship on the link table that points \
            at the foreign table.
        :param attrs: Free-form attributes for this accessor.
        """
        self.link_relationship = link_relationship
        self.foreign_relationship = foreign_relationship
        self.attrs = attrs

        self.owner_table = None
        self._name = None

    def __set_name__(self, owner, name):
        self.owner_table = owner
        self._name = name

    def __repr__(self):
        return "<ManyToMany '{}' via '{}' -> '{}'>".format(self._name, self.link_relationship,
                                                         self.foreign_relationship)

    @property
    def name(self) -> str:
        return self._name

    @property
    def link(self) -> Relationship:
        """
        :return: The :class:`.Relationship` from the owner table to the link table.
        """
        relationship = self.owner_table.get_relationship(self.link_relationship)
        if relationship is None:
            raise SchemaError("No such relationship '{}' on table {} (from many to many '{}')"
                              .format(self.link_relationship, self.owner_table.__name__,
                                      self._name))

        return relationship

    @property
    def foreign(self) -> Relationship:
        """
        :return: The :class:`.Relationship` from the link table to the foreign table.
        """
        link_table = self.link.foreign_table
        relationship = link_table.get_relationship(self.foreign_relationship)
        if relationship is None:
            raise SchemaError("No such relationship '{}' on table {} (from many to many '{}')"
                              .format(self.foreign_relationship, link_table.__name__, self._name))

        return relationship

    def get_instance(self, row: 'md_table.Table') -> 'ManyToManyAccessor':
        return ManyToManyAccessor(self, row)


# Accessor types produced for rows.
class BaseRelationshipAccessor(object):
    """
    Provides some common methods for specific relationship accessor subclasses.
    """

    def __init__(self, rel: 'Relationship', row: 'md_table.Table'):
        """
        :param rel: The :class:`.Relationship` that lies underneath this object.
        :param row: The :class:`.Table` row this is being loaded from.
        """
        self.relationship = rel
        self.row = row

    @property
    def _stored_rows(self) -> 'typing.List[md_table.Table]':
        return self.row._relationship_mapping[self.relationship]

    def _contains(self, row: 'md_table.Table') -> bool:
        # rows compare by primary key, so unsaved rows would all be equal
        return any(stored is row for stored in self._stored_rows)

    def count(self) -> int:
        """
        :return: The number of rows in this relationship.
        """
        raise NotImplementedError


class OneToManyAccessor(BaseRelationshipAccessor):
    """
    Represents the rows on the "many" side of a one to many relationship.
    """

    def __repr__(self):
        return "<OneToManyAccessor {}>".format(repr(self._stored_rows))

    def __iter__(self):
        return iter(list(self._stored_rows))

    def __len__(self):
        return len(self._stored_rows)

    def count(self) -> int:
        return len(self._stored_rows)

    def first(self) -> 'typing.Union[md_table.Table, None]':
        """
        :return: The first row in this relationship, or None if it is empty.
        """
        try:
            return self._stored_rows[0]
        except IndexError:
            return None

    def add(self, row: 'md_table.Table') -> 'md_table.Table':
        """
        Adds a row to this relationship.

        The value of our join column is copied into the foreign column of the row, and the reverse
        relationship of the row (if any) is pointed back at us. A row that belonged to another
        parent through the reverse relationship is moved, not shared.

        :param row: The row to add to this relationship.
        """
        our_column, f_column = self.relationship.join_columns
        reverse = self.relationship.reverse

        if reverse is not None:
            for previous in row._relationship_mapping[reverse]:
                if previous is self.row:
                    continue

                previous._relationship_mapping[self.relationship] = [
                    stored for stored in previous._relationship_mapping[self.relationship]
                    if stored is not row
                ]

        row.store_column_value(f_column, self.row.get_column_value(our_column))

        if not self._contains(row):
            self._stored_rows.append(row)

        if reverse is not None:
            row._relationship_mapping[reverse] = [self.row]

        return row

    def remove(self, row: 'md_table.Table') -> 'md_table.Table':
        """
        Removes a row from this relationship, clearing its foreign column.

        :param row: The row to remove from this relationship.
        """
        if not self._contains(row):
            raise ValueError("The row '{}' is not in this relationship".format(row))

        self.row._relationship_mapping[self.relationship] = [
            stored for stored in self._stored_rows if stored is not row
        ]
        row.store_column_value(self.relationship.foreign_column, None)

        reverse = self.relationship.reverse
        if reverse is not None:
            row._relationship_mapping[reverse] = []

        return row


class ManyToOneAccessor(BaseRelationshipAccessor):
    """
    Represents the single row on the "one" side of a relationship.

    Attribute access is proxied to the related row.
    """

    def __repr__(self):
        return "<ManyToOneAccessor row='{}'>".format(self.get())

    def __bool__(self):
        return self.get() is not None

    def __getattr__(self, item):
        if item.startswith("_"):
            raise AttributeError(item)

        row = self.get()
        if row is None:
            raise AttributeError("Cannot load '{}' from empty relationship '{}'"
                                 .format(item, self.relationship.name))

        return getattr(row, item)

    def get(self) -> 'typing.Union[md_table.Table, None]':
        """
        :return: The related row, or None.
        """
        stored = self._stored_rows
        if not stored:
            return None

        return stored[0]

    def count(self) -> int:
        return 0 if self.get() is None else 1

    def set(self, row: 'typing.Union[md_table.Table, None]'):
        """
        Sets the row for this relationship, copying its join value into our column.

        :param row: The row to set, or None to clear the relationship.
        """
        our_column, f_column = self.relationship.join_columns
        reverse = self.relationship.reverse

        previous = self.get()
        if previous is not None and previous is not row and reverse is not None:
            previous._relationship_mapping[reverse] = [
                stored for stored in previous._relationship_mapping[reverse]
                if stored is not self.row
            ]

        if row is None:
            self.row.store_column_value(our_column, None)
            self.row._relationship_mapping[self.relationship] = []
            return None

        self.row.store_column_value(our_column, row.get_column_value(f_column))
        self.row._relationship_mapping[self.relationship] = [row]

        if reverse is not None and reverse.use_iter:
            siblings = row._relationship_mapping[reverse]
            if not any(stored is self.row for stored in siblings):
                siblings.append(self.row)

        return row


class ManyToManyAccessor(object):
    """
    Represents the rows reached through a :class:`.ManyToMany` accessor.
    """

    def __init__(self, m2m: 'ManyToMany', row: 'md_table.Table'):
        self.many_to_many = m2m
        self.row = row

    def __repr__(self):
        return "<ManyToManyAccessor {}>".format(list(self))

    def _links(self) -> 'OneToManyAccessor':
        return self.row.get_relationship_instance(self.many_to_many.link_relationship)

    def _targets(self, link_row: 'md_table.Table') -> 'typing.List[md_table.Table]':
        accessor = link_row.get_relationship_instance(self.many_to_many.foreign_relationship)
        if isinstance(accessor, ManyToOneAccessor):
            target = accessor.get()
            return [] if target is None else [target]

        return list(accessor)

    def __iter__(self):
        for link_row in self._links():
            yield from self._targets(link_row)

    def count(self) -> int:
        """
        :return: The number of rows reached through the link table.
        """
        return sum(1 for _ in self)

    def add(self, row: 'md_table.Table', **link_values) -> 'md_table.Table':
        """
        Links a row to this row by creating a new row in the link table.

        :param row: The foreign row to link to.
        :param link_values: Extra column values for the new link row.
        :return: The new link row.
        """
        link_table = self.many_to_many.link.foreign_table
        link_row = link_table(**link_values)
        self._links().add(link_row)
        link_row.get_relationship_instance(self.many_to_many.foreign_relationship).set(row)
        return link_row

    def remove(self, row: 'md_table.Table') -> 'md_table.Table':
        """
        Unlinks a row, removing the link row that points at it.

        :param row: The foreign row to unlink.
        :return: The removed link row.
        """
        links = self._links()
        for link_row in links:
            if any(target is row for target in self._targets(link_row)):
                links.remove(link_row)
                accessor = link_row.get_relationship_instance(self.many_to_many.foreign_relationship)
                if isinstance(accessor, ManyToOneAccessor):
                    accessor.set(None)
                return link_row

        raise ValueError("The row '{}' is not in this relationship".format(row))

"""
Table objects.
"""

import collections
import logging
import typing
from collections import OrderedDict

from ormhelpers.exc import NoSuchColumnError, NoSuchRelationshipError, SchemaError
from ormhelpers.orm.schema import column as md_column, relationship as md_relationship
from ormhelpers.sentinels import NO_DEFAULT, NO_VALUE

logger = logging.getLogger(__name__)


class TableMetadata(object):
    """
    The root class for table metadata.
    This stores a registry of tables, and is responsible for resolving relationships etc.

    .. code-block:: python3

        meta = TableMetadata()
        Table = table_base(meta=meta)

    """

    def __init__(self):
        #: A registry of table name -> table object for this metadata.
        self.tables = {}

    def register_table(self, tbl: 'TableMeta') -> 'TableMeta':
        """
        Registers a new table object.

        :param tbl: The table to register.
        """
        tbl.metadata = self
        self.tables[tbl.__tablename__] = tbl
        return tbl

    def get_table(self, table_name: str) -> 'typing.Type[Table]':
        """
        Gets a table from the current metadata.

        :param table_name: The name of the table to get, or the name of its class.
        :return: A :class:`.Table` object, or None if no such table is registered.
        """
        try:
            return self.tables[table_name]
        except KeyError:
            # we can load this from the name instead
            for table in self.tables.values():
                if table.__name__ == table_name:
                    return table
            else:
                return None

    def setup_tables(self):
        """
        Sets up the tables for usage in the ORM.

        This should be called once every table has been defined; before that, relationships and
        foreign keys that name tables by string may not be resolvable.

        :raises SchemaError: If a relationship, foreign key or many to many accessor refers to a
            table, column or relationship that does not exist.
        """
        self.resolve_floating_relationships()
        self.validate_many_to_many()

    def resolve_floating_relationships(self):
        """
        Resolves any "floating" relationships - i.e any relationship/foreign keys that don't
        directly reference a column object.
        """
        for tbl in self.tables.values():
            for column in tbl._columns.values():
                foreignkey = column.foreign_key
                if foreignkey is None or foreignkey.foreign_column is not None:
                    continue

                table, _, column_name = foreignkey._f_name.partition(".")
                table_obb = self.get_table(table)
                if table_obb is None:
                    raise SchemaError("No such table '{}' exists in FK {}"
                                      .format(table, foreignkey))

                col = table_obb.get_column(column_name)
                if col is None:
                    raise SchemaError("No such column '{}' exists on table '{}' "
                                      "(from FK {})".format(column_name, table, foreignkey))

                foreignkey.foreign_column = col
                logger.debug("Resolved {} to {}".format(foreignkey._f_name, col))

            for relation in tbl._relationships.values():
                relation.resolve()

    def validate_many_to_many(self):
        """
        Checks that the relationships named by every many to many accessor exist.
        """
        for tbl in self.tables.values():
            for m2m in tbl._many_to_many.values():
                # both properties raise SchemaError on a bad name
                m2m.foreign.resolve()


def merge_over_mro(tbl: 'TableMeta', attribute: str) -> OrderedDict:
    """
    Merges a per-class mapping over the MRO of a table, parents first, so that entries of a
    subclass take precedence over the entries of its bases.
    """
    merged = OrderedDict()
    for klass in reversed(tbl.__mro__):
        merged.update(klass.__dict__.get(attribute, {}))

    return merged


class TableMeta(type):
    """
    The metaclass for a table object. This represents the "type" of a table class.
    """

    def __prepare__(*args, **kwargs):
        # this is required so that columns are ordered.
        return OrderedDict()

    def __new__(mcs, name: str, bases: tuple, class_body: dict,
                register: bool = True, *args, **kwargs):
        # usually a cloned class
        # so we just skip it directly
        if register is False:
            return type.__new__(mcs, name, bases, class_body)

        # pull the schema objects out of the class body
        # and keep them in our own internal data structures
        columns = OrderedDict()
        relationships = OrderedDict()
        many_to_many = OrderedDict()
        for attr_name, value in class_body.copy().items():
            if isinstance(value, md_column.Column):
                columns[attr_name] = value
                class_body.pop(attr_name)
            elif isinstance(value, md_relationship.Relationship):
                relationships[attr_name] = value
                class_body.pop(attr_name)
            elif isinstance(value, md_relationship.ManyToMany):
                many_to_many[attr_name] = value
                class_body.pop(attr_name)

        class_body["_columns"] = columns
        class_body["_relationships"] = relationships
        # filled through many_to_many() once the class exists
        class_body["_many_to_many"] = OrderedDict()
        class_body["_declared_many_to_many"] = many_to_many
        # relationship name -> RelationshipInfo, for this class only
        class_body["_relationship_info"] = {}

        try:
            class_body["__tablename__"] = kwargs["table_name"]
        except KeyError:
            class_body["__tablename__"] = name.lower()

        return type.__new__(mcs, name, bases, class_body)

    def __init__(self, tblname: str, tblbases: tuple, class_body: dict, register: bool = True,
                 *args, **kwargs):
        """
        Creates a new Table instance.

        :param register: Should this table be registered in the TableMetadata?
        :param table_name: The name for this table.
        """
        super().__init__(tblname, tblbases, class_body)

        if register is False:
            return
        elif not hasattr(self, "metadata"):
            raise TypeError("Table {} has been created but has no metadata - did you subclass Table"
                            " directly instead of a clone?".format(tblname))

        for name, value in self.__dict__["_columns"].items():
            value.__set_name__(self, name)

        for name, value in self.__dict__["_relationships"].items():
            value.__set_name__(self, name)

        #: The primary key for this table.
        #: This should be a :class:`.PrimaryKey`.
        self._primary_key = self._calculate_primary_key()

        logger.debug("Registered new table {}".format(tblname))
        self.metadata.register_table(self)

        # go through the classmethod so that mixins can intercept declarative accessors
        declared = self.__dict__["_declared_many_to_many"]
        for name, m2m in declared.items():
            self.many_to_many(name, m2m.link_relationship, m2m.foreign_relationship, m2m.attrs)

    def __getattr__(self, item):
        if item.startswith("_"):
            raise AttributeError("'{}' object has no attribute {}".format(self.__name__, item))

        col = self.get_column(item)
        if col is not None:
            return col

        relationship = self.get_relationship(item)
        if relationship is not None:
            return relationship

        m2m = self.get_many_to_many(item)
        if m2m is not None:
            return m2m

        raise AttributeError("'{}' object has no attribute {}".format(self.__name__, item))

    def __repr__(self):
        try:
            return "<Table object='{}' name='{}'>".format(self.__name__, self.__tablename__)
        except AttributeError:
            return super().__repr__()

    def _calculate_primary_key(self) -> typing.Union['PrimaryKey', None]:
        """
        Calculates the current primary key for a table, given all the columns.

        If no columns are marked as a primary key, the key will not be generated.
        """
        pk_cols = [col for col in self.iter_columns() if col.primary_key is True]

        if pk_cols:
            pk = PrimaryKey(*pk_cols)
            pk.table = self
            logger.debug("Calculated new primary key {}".format(pk))
            return pk

        return None

    @property
    def primary_key(self) -> 'PrimaryKey':
        """
        :getter: The :class:`.PrimaryKey` for this table.
        :setter: A new :class:`.PrimaryKey` for this table.

        .. note::

            A primary key will automatically be calculated from columns at define time, if any
            columns have ``primary_key`` set to True.
        """
        return self._primary_key

    @primary_key.setter
    def primary_key(self, key: 'PrimaryKey'):
        key.table = self
        self._primary_key = key


class Table(metaclass=TableMeta, register=False):
    """
    The "base" class for all tables. This class is not actually directly used; instead
    :meth:`.table_base` should be called to get a fresh clone.

    Instances of a table are rows:

    .. code-block:: python3

        cd = Cd(cdid=1, title="Mezzanine")
    """

    def __init__(self, **kwargs):
        #: The actual table that this object is an instance of.
        self.table = type(self)  # type: TableMeta

        #: A mapping of relationship -> related rows for this row.
        self._relationship_mapping = collections.defaultdict(list)

        #: A mapping of Column -> Current value for this row.
        self._values = {}

        if kwargs:
            self._init_row(**kwargs)

    # Class methods
    @classmethod
    def iter_columns(cls) -> 'typing.Generator[md_column.Column, None, None]':
        """
        :return: A generator that yields :class:`.Column` objects for this table, including the
            columns of parent tables.
        """
        yield from merge_over_mro(cls, "_columns").values()

    @classmethod
    def iter_relationships(cls) -> 'typing.Generator[md_relationship.Relationship, None, None]':
        """
        :return: A generator that yields :class:`.Relationship` objects for this table, including
            the relationships of parent tables.
        """
        yield from merge_over_mro(cls, "_relationships").values()

    @classmethod
    def iter_many_to_many(cls) -> 'typing.Generator[md_relationship.ManyToMany, None, None]':
        """
        :return: A generator that yields :class:`.ManyToMany` accessors for this table.
        """
        yield from merge_over_mro(cls, "_many_to_many").values()

    @classmethod
    def relationships(cls) -> typing.List[str]:
        """
        :return: The names of every relationship declared on this table.
        """
        return list(merge_over_mro(cls, "_relationships"))

    @classmethod
    def get_column(cls, column_name: str) -> 'typing.Union[md_column.Column, None]':
        """
        Gets a column by name.

        :param column_name: The column name to lookup.
        :return: The :class:`.Column` associated with that name, or None if no column was found.
        """
        return merge_over_mro(cls, "_columns").get(column_name)

    @classmethod
    def get_relationship(cls, relationship_name: str) \
            -> 'typing.Union[md_relationship.Relationship, None]':
        """
        Gets a relationship by name.

        :param relationship_name: The name of the relationship to get.
        :return: The :class:`.Relationship` associated with that name, or None if it doesn't exist.
        """
        return merge_over_mro(cls, "_relationships").get(relationship_name)

    @classmethod
    def get_many_to_many(cls, name: str) -> 'typing.Union[md_relationship.ManyToMany, None]':
        """
        Gets a many to many accessor by its method name.
        """
        return merge_over_mro(cls, "_many_to_many").get(name)

    @classmethod
    def add_relationship(cls, name: str,
                         relationship: 'md_relationship.Relationship') \
            -> 'md_relationship.Relationship':
        """
        Adds a relationship to this table after the class body has been evaluated.

        Unlike class body attributes, relationships added this way may share their name with a
        column; the relationship accessor then takes precedence on rows, and the column value is
        available through :meth:`.Table.get_column_value`.

        :param name: The name of the relationship.
        :param relationship: The :class:`.Relationship` to add.
        """
        relationship.__set_name__(cls, name)
        cls.__dict__["_relationships"][name] = relationship
        logger.debug("Added relationship {} to {}".format(relationship, cls.__name__))
        return relationship

    @classmethod
    def has_many(cls, name: str, foreign_table: 'typing.Union[typing.Type[Table], str]',
                 foreign_column: str, *, attrs: dict = None) -> 'md_relationship.Relationship':
        """
        Declares a one to many relationship from our primary key to a column of another table.

        .. code-block:: python3

            Cd.has_many("cd_tracks", "CdTrackJoin", "cdid")

        :param name: The name of the relationship.
        :param foreign_table: The foreign table, or its name.
        :param foreign_column: The name of the column on the foreign table referencing us.
        :param attrs: Free-form attributes for the relationship.
        """
        if cls.primary_key is None or len(cls.primary_key.columns) != 1:
            raise SchemaError("has_many() on {} needs a single column primary key"
                              .format(cls.__name__))

        if not isinstance(foreign_table, str):
            foreign_table = foreign_table.__name__

        rel = md_relationship.Relationship(cls.primary_key.columns[0],
                                           "{}.{}".format(foreign_table, foreign_column),
                                           attrs=attrs)
        return cls.add_relationship(name, rel)

    @classmethod
    def belongs_to(cls, name: str,
                   foreign_table: 'typing.Union[typing.Type[Table], str]' = None, *,
                   column: str = None, attrs: dict = None) -> 'md_relationship.Relationship':
        """
        Declares a many to one relationship from one of our columns to the primary key of another
        table.

        .. code-block:: python3

            # column "cdid" references the primary key of Cd
            CdTrackJoin.belongs_to("cdid", "Cd")

        :param name: The name of the relationship.
        :param foreign_table: The foreign table, or its name. If not passed, the foreign key of the
            column is used.
        :param column: The name of our column. Defaults to the relationship name.
        :param attrs: Free-form attributes for the relationship.
        """
        our_column = cls.get_column(column or name)
        if our_column is None:
            raise NoSuchColumnError("No such column '{}' on table {}"
                                    .format(column or name, cls.__name__))

        if foreign_table is None:
            if our_column.foreign_key is None:
                raise SchemaError("Column {} has no foreign key and no foreign table was passed"
                                  .format(our_column))
            reference = our_column.foreign_key.reference
        elif isinstance(foreign_table, str):
            reference = foreign_table
        else:
            reference = foreign_table.__name__

        rel = md_relationship.Relationship(our_column, reference, use_iter=False, attrs=attrs)
        return cls.add_relationship(name, rel)

    @classmethod
    def many_to_many(cls, method_name: str, link_relationship: str, foreign_relationship: str,
                     attrs: dict = None) -> 'md_relationship.ManyToMany':
        """
        Declares a many to many accessor named ``method_name``, which goes through the
        ``link_relationship`` relationship on this table and then the ``foreign_relationship``
        relationship on the link table.

        .. code-block:: python3

            Cd.many_to_many("tracks", "cd_tracks", "trackid")

        :param method_name: The name of the accessor on rows.
        :param link_relationship: The name of the one to many relationship to the link table.
        :param foreign_relationship: The name of the relationship on the link table.
        :param attrs: Free-form attributes for the accessor.
        """
        m2m = md_relationship.ManyToMany(link_relationship, foreign_relationship, attrs)
        m2m.__set_name__(cls, method_name)
        cls.__dict__["_many_to_many"][method_name] = m2m
        logger.debug("Declared many to many {} on {}".format(m2m, cls.__name__))
        return m2m

    @classmethod
    def relationship_info(cls, relationship_name: str) -> 'md_relationship.RelationshipInfo':
        """
        Gets the descriptor of a relationship, as seen from this table.

        Descriptors belong to the table they are looked up on: a subclass that inherits a
        relationship gets its own descriptor, so data cached on it (such as
        :attr:`.RelationshipInfo.m2m`) never shows up on the parent table.

        :param relationship_name: The name of the relationship.
        :return: The :class:`.RelationshipInfo` of the relationship.
        :raises NoSuchRelationshipError: If this table has no such relationship.
        """
        relationship = cls.get_relationship(relationship_name)
        if relationship is None:
            raise NoSuchRelationshipError("No such relationship '{}' on table {}"
                                          .format(relationship_name, cls.__name__))

        descriptors = cls.__dict__["_relationship_info"]
        info = descriptors.get(relationship_name)
        # rebuilt if the relationship was replaced with add_relationship()
        if info is None or info.relationship is not relationship:
            info = md_relationship.RelationshipInfo(relationship, cls)
            descriptors[relationship_name] = info

        return info

    def _init_row(self, **values):
        """
        Initializes the rows for this table, setting the values of the object.

        :param values: The values to pass into this column.
        """
        for name, value in values.items():
            column = self.table.get_column(name)
            if column is None:
                raise TypeError("Unexpected row parameter: '{}'".format(name))

            column.type.on_set(self, value)

        return self

    def __repr__(self):
        gen = ("{}={}".format(col.name, self.get_column_value(col))
               for col in self.table.iter_columns())
        return "<{} {}>".format(self.table.__name__, " ".join(gen))

    def __eq__(self, other):
        if not isinstance(other, Table):
            return NotImplemented

        if other.table != self.table:
            raise ValueError("Rows to compare must be on the same table")

        return self.primary_key == other.primary_key

    __hash__ = object.__hash__

    def __setattr__(self, key, value):
        # ensure we're not doing stupid shit until we get _values
        try:
            object.__getattribute__(self, "_values")
        except AttributeError:
            return super().__setattr__(key, value)

        # if it's in our __dict__, it's not a column
        if key in self.__dict__:
            return super().__setattr__(key, value)

        col = self.table.get_column(key)
        if col is None:
            return super().__setattr__(key, value)

        # call on_set for the column
        return col.type.on_set(self, value)

    def __getattr__(self, item: str):
        if item.startswith("_"):
            raise AttributeError("'{}' object has no attribute {}".format(type(self).__name__,
                                                                          item))

        return self._resolve_item(item)

    @property
    def primary_key(self) -> typing.Union[typing.Any, typing.Iterable[typing.Any]]:
        """
        Gets the primary key for this row.

        If this table only has one primary key column, this property will be a single value.
        If this table has multiple columns in a primary key, this property will be a tuple.
        """
        pk = self.table.primary_key  # type: PrimaryKey
        if pk is None:
            raise SchemaError("Table {} has no primary key".format(self.table.__name__))

        result = [self.get_column_value(col) for col in pk.columns]

        if len(result) == 1:
            return result[0]

        return tuple(result)

    # value loading methods
    def _resolve_item(self, name: str):
        """
        Resolves an item on this row.

        This will check:

            - Relationships
            - Many to many accessors
            - Columns

        :param name: The name to resolve.
        :return: The object returned, if applicable.
        """
        try:
            return self.get_relationship_instance(name)
        except ValueError:
            pass

        m2m = self.table.get_many_to_many(name)
        if m2m is not None:
            return m2m.get_instance(self)

        col = self.table.get_column(name)
        if col is None:
            raise AttributeError("{} was not a function or attribute on the associated table, "
                                 "and was not a column".format(name)) from None

        return col.type.on_get(self)

    def get_column_value(self, column: 'typing.Union[md_column.Column, str]',
                         return_default: bool = True):
        """
        Gets the value from the specified column in this row.

        :param column: The column, or its name.
        :param return_default: If this should return the column default, or NO_VALUE.
        """
        if isinstance(column, str):
            name = column
            column = self.table.get_column(name)
            if column is None:
                raise NoSuchColumnError("No such column '{}' on table {}"
                                        .format(name, self.table.__name__))

        if not issubclass(self.table, column.table):
            raise ValueError("Column table must match row table")

        try:
            return self._values[column]
        except KeyError:
            if not return_default:
                return NO_VALUE

            if column.default is NO_DEFAULT:
                return None

            return column.default

    def store_column_value(self, column: 'md_column.Column', value: typing.Any):
        """
        Updates the value of a column in this row, without type validation.

        .. warning::

            This method should not be used by user code; it is for types and relationship
            accessors to interface with only.

        :param column: The column to store.
        :param value: The value to store in the column.
        """
        if not issubclass(self.table, column.table):
            raise ValueError("Column table must match row table")

        self._values[column] = value
        return self

    def get_relationship_instance(self, relation_name: str):
        """
        Gets a 'relationship accessor' for this row.

        :param relation_name: The name of the relationship to load.
        :raises ValueError: If there is no such relationship.
        """
        relation = self.table.get_relationship(relation_name)
        if relation is None:
            raise ValueError("No such relationship '{}'".format(relation_name))

        return relation.get_instance(self)

    def to_dict(self) -> dict:
        """
        Converts this row to a dict, indexed by Column.
        """
        return {col: self.get_column_value(col) for col in self.table.iter_columns()}


def table_base(name: str = "Table", meta: 'TableMetadata' = None):
    """
    Gets a new base object to use for OO-style tables.
    This object is the parent of all tables created in the object-oriented style; it provides the
    :class:`.TableMetadata` that relationships are resolved against.

    .. code-block:: python3

        Table = table_base()

        class Cd(Table):
            ...

        # once every table is defined
        Table.metadata.setup_tables()

    :param name: The name of the new class to produce. By default, it is ``Table``.
    :param meta: The :class:`.TableMetadata` to use as metadata.
    :return: A new Table class that can be used for OO tables.
    """
    if meta is None:
        meta = TableMetadata()

    # This is the best way of cloning the Table object, instead of using `type()`.
    clone = TableMeta.__new__(TableMeta, name, (Table,), {"metadata": meta}, register=False)
    return clone


class PrimaryKey(object):
    """
    Represents the primary key of a table.

    A primary key can be on any 1 to N columns in a table.

    .. code-block:: python3

        class CdTrackJoin(Table):
            trackid = Column(Integer, primary_key=True)
            cdid = Column(Integer, primary_key=True)

        print(CdTrackJoin.primary_key)

    """

    def __init__(self, *cols: 'md_column.Column'):
        #: A list of :class:`.Column` that this primary key encompasses.
        self.columns = list(cols)  # type: typing.List[md_column.Column]

        #: The table this primary key is bound to.
        self.table = None

    def __repr__(self):
        return "<PrimaryKey table='{}' columns='{}'>".format(
            getattr(self.table, "__name__", None), [col.name for col in self.columns])

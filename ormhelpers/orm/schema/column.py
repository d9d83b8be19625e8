import logging
import typing

from ormhelpers.orm.schema import relationship as md_relationship, table as md_table, \
    types as md_types
from ormhelpers.sentinels import NO_DEFAULT

logger = logging.getLogger(__name__)


class Column(object):
    """
    Represents a column in a table.

    .. code-block:: python3

        class Cd(Table):
            cdid = Column(Integer, primary_key=True)
            title = Column(String(128))

    The ``cdid`` column mirrors the ID of rows in the table, and can be set on a row.

    .. code-block:: python3

        cd = Cd(cdid=2, title="Mezzanine")
        print(cd.cdid)  # 2

    """

    def __init__(self, type_: 'typing.Union[md_types.ColumnType, typing.Type[md_types.ColumnType]]',
                 *,
                 primary_key: bool = False,
                 nullable: bool = True,
                 default: typing.Any = NO_DEFAULT,
                 foreign_key: 'md_relationship.ForeignKey' = None):
        """
        :param type_:
            The :class:`.ColumnType` that represents the type of this column.

        :param primary_key:
            Is this column part of the table's Primary Key?

        :param nullable:
            Can this column be set to None? Enforced by the column type on every set.

        :param default:
            The client-side default for this column, returned when a row has no value stored.

        :param foreign_key:
            The :class:`.ForeignKey` associated with this column.
        """
        #: The name of the column.
        #: This is set automatically when the column is set on a table.
        self.name = None  # type: str

        #: The :class:`.Table` this Column is associated with.
        self.table = None

        #: The :class:`.ColumnType` that represents the type of this column.
        self.type = type_  # type: md_types.ColumnType
        if not isinstance(self.type, md_types.ColumnType):
            # assume we need to create the "default" type
            self.type = self.type.create_default()  # type: md_types.ColumnType
        self.type.column = self

        #: The default for this column.
        self.default = default

        #: If this Column is a primary key.
        self.primary_key = primary_key

        #: If this Column is nullable.
        self.nullable = nullable

        #: The foreign key associated with this column.
        self.foreign_key = foreign_key  # type: md_relationship.ForeignKey
        if self.foreign_key is not None:
            self.foreign_key.column = self

    def __repr__(self):
        return "<Column table={} name={} type={!r}>".format(self.table_name, self.name, self.type)

    def __set_name__(self, owner, name):
        """
        Called to update the table and the name of this Column.

        :param owner: The :class:`.Table` this Column is on.
        :param name: The str name of this column.
        """
        logger.debug("Column created with name {} on {}".format(name, owner))
        self.name = name
        self.table = owner

    @property
    def table_name(self) -> typing.Optional[str]:
        """
        :return: The name of the table this column belongs to, if it is bound.
        """
        if self.table is None:
            return None

        return self.table.__tablename__

    @property
    def foreign_column(self) -> 'Column':
        """
        :return: The foreign :class:`.Column` this is associated with, or None otherwise.
        """
        if self.foreign_key is None:
            return None

        return self.foreign_key.foreign_column

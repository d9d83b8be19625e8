"""
Column types.

A column type sits between a row's value storage and user code: every assignment to a column
goes through :meth:`.ColumnType.on_set`, every read through :meth:`.ColumnType.on_get`.
"""
import abc
import typing

from ormhelpers.exc import DatabaseException
from ormhelpers.orm.schema import column as md_column, table as md_table


class ColumnValidationError(DatabaseException):
    """
    Raised when a value is refused by the type of its column.
    """


class ColumnType(abc.ABC):
    """
    Base class for column types. Children implement :meth:`.ColumnType.validate_set`.

    .. code-block:: python3

        class Cd(Table):
            cdid = Column(Integer, primary_key=True)
            title = Column(String(128), nullable=False)

        cd = Cd(cdid=1)
        cd.cdid = "one"  # ColumnValidationError
        cd.title = None  # ColumnValidationError, the column is not nullable

    """
    __slots__ = ("column",)

    def __init__(self):
        #: The column this type is bound to.
        self.column = None  # type: md_column.Column

    @abc.abstractmethod
    def validate_set(self, row: 'md_table.Table', value: typing.Any) -> bool:
        """
        Checks a non-None value before it is stored.

        :param row: The row the value is set on.
        :param value: The value being set.
        :return: If the value can be stored.
        """

    def store_value(self, row: 'md_table.Table', value: typing.Any):
        row.store_column_value(self.column, value)

    def on_set(self, row: 'md_table.Table', value: typing.Any):
        """
        Called when a value is set on this column.

        :raises ColumnValidationError: If the value is None on a column that is not nullable, or
            if :meth:`.ColumnType.validate_set` refuses it.
        """
        if value is None:
            if not self.column.nullable:
                raise ColumnValidationError("Column {} is not nullable".format(self.column.name))
        elif not self.validate_set(row, value):
            raise ColumnValidationError("{!r} is not a valid {} for column {}"
                                        .format(value, type(self).__name__, self.column.name))

        self.store_value(row, value)

    def on_get(self, row: 'md_table.Table') -> typing.Any:
        return row.get_column_value(self.column)

    @classmethod
    def create_default(cls) -> 'ColumnType':
        """
        Creates the instance used when a column is given the type class itself.
        """
        return cls()


class String(ColumnType):
    """
    A string of at most ``size`` characters. A negative size means no limit.
    """

    def __init__(self, size: int = -1):
        super().__init__()
        self.size = size

    def __repr__(self):
        return "String({})".format(self.size) if self.size >= 0 else "String"

    def validate_set(self, row, value: typing.Any):
        if not isinstance(value, str):
            return False

        if 0 <= self.size < len(value):
            raise ColumnValidationError("{!r} is longer than {} characters"
                                        .format(value, self.size))

        return True


class Integer(ColumnType):
    """
    A signed integer of ``bits`` bits (32 by default). Booleans are refused.
    """

    def __init__(self, bits: int = 32):
        super().__init__()
        self.bits = bits

    def __repr__(self):
        return "Integer({})".format(self.bits)

    def validate_set(self, row, value: typing.Any):
        if not isinstance(value, int) or isinstance(value, bool):
            return False

        limit = 2 ** (self.bits - 1)
        return -limit <= value < limit

"""
Exceptions for ormhelpers.
"""


class DatabaseException(Exception):
    """
    The base class for ALL exceptions.

    Catch this if you wish to catch any custom exception raised inside the lib.
    """


class SchemaError(DatabaseException):
    """
    Raised when there is an error in the database schema.
    """


class NoSuchColumnError(DatabaseException):
    """
    Raised when a non-existing column is requested.
    """


class NoSuchRelationshipError(SchemaError, KeyError):
    """
    Raised when a relationship that does not exist on a table is requested.
    """

    def __str__(self):
        # KeyError quotes its argument, which makes the message unreadable
        return Exception.__str__(self)


class DuplicateRelation(SchemaError):
    """
    Raised when many-to-many metadata is registered twice for the same link relationship.
    """


class MissingArgument(DatabaseException, TypeError):
    """
    Raised when a required identifier (a relationship name, a page size) was not passed.
    """


class InvalidPageSize(DatabaseException, ValueError):
    """
    Raised when a page size is not a positive integer.
    """

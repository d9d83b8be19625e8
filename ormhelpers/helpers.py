"""
Compatibility helpers for tables.

:class:`.RDBOHelpers` is a mixin for table classes that adds a handful of convenience methods
(counting related rows, pagination counts, URI-escaped primary keys) and makes many to many
metadata introspectable: the link table, both join columns and the foreign table are available
from :meth:`.RDBOHelpers.relationship_info` once every table has been defined.

.. code-block:: python3

    Table = table_base()

    class Cd(RDBOHelpers, Table):
        cdid = Column(Integer, primary_key=True)
        title = Column(String(128))

    Cd.has_many("cd_tracks", "CdTrackJoin", "cdid")
    Cd.many_to_many("tracks", "cd_tracks", "trackid")

    ...

    info = Cd.relationship_info("cd_tracks")
    print(info.m2m.foreign_class)  # <Table object='Track' name='track'>

The mixin has to be listed before the table base, so that its classmethods run before the
native ones.
"""
import collections
import logging
import re
import typing

from ormhelpers.exc import DuplicateRelation, InvalidPageSize, MissingArgument
from ormhelpers.orm import inspection as md_inspection
from ormhelpers.orm.schema import relationship as md_relationship, table as md_table

logger = logging.getLogger(__name__)

_NON_DIGIT = re.compile(r"\D")

#: What is known about a many to many accessor when it is declared.
#: ``rel_name`` is the link relationship, ``map_to`` the relationship on the link table.
ManyToManyRecord = collections.namedtuple(
    "ManyToManyRecord", ("table", "method_name", "rel_name", "map_to", "attrs")
)


class ManyToManyInfo(object):
    """
    Resolved many to many metadata, stored as :attr:`.RelationshipInfo.m2m` on the descriptor of
    the link relationship.

    Fields that could not be resolved are left as None.
    """

    def __init__(self, record: ManyToManyRecord, map_class: 'typing.Type[md_table.Table]'):
        #: The table the many to many accessor was declared on.
        self.table = record.table

        #: The name of the many to many accessor.
        self.method_name = record.method_name

        #: The name of the one to many link relationship.
        self.rel_name = record.rel_name

        #: The name of the relationship on the link table pointing at the foreign table.
        self.map_to = record.map_to

        #: The attributes passed at declaration, or None if none were passed.
        self.attrs = record.attrs

        #: The link table.
        self.map_class = map_class

        #: The name of the relationship on the link table pointing back at our table.
        self.map_from = None  # type: str

        #: Our join column, as named by the link table's relationship back to us.
        self.class_column = None  # type: str

        #: The table on the other side of the link table.
        self.foreign_class = None

        #: The join column of the foreign table.
        self.foreign_column = None  # type: str

    def __repr__(self):
        return "<ManyToManyInfo method_name='{}' map_class={} map_from='{}' map_to='{}' " \
               "foreign_class={}>".format(self.method_name, self.map_class, self.map_from,
                                          self.map_to, self.foreign_class)

    @property
    def is_resolved(self) -> bool:
        """
        :return: If both sides of the link table were found.
        """
        return self.map_from is not None and self.foreign_class is not None

    def to_dict(self) -> dict:
        return {
            "table": self.table,
            "method_name": self.method_name,
            "rel_name": self.rel_name,
            "map_to": self.map_to,
            "attrs": self.attrs,
            "map_class": self.map_class,
            "map_from": self.map_from,
            "class_column": self.class_column,
            "foreign_class": self.foreign_class,
            "foreign_column": self.foreign_column,
        }


class RDBOHelpers(object):
    """
    Mixin adding compatibility helpers to a table. See the module documentation.
    """

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        mro = cls.__mro__
        if md_table.Table in mro and mro.index(RDBOHelpers) > mro.index(md_table.Table):
            raise TypeError("RDBOHelpers must come before the table base in the bases of {}"
                            .format(cls.__name__))

        #: Link relationship name -> :class:`.ManyToManyRecord`, for this class only.
        cls._m2m_metadata = {}

    # many to many metadata
    @classmethod
    def _m2m_store(cls) -> 'typing.Dict[str, ManyToManyRecord]':
        return md_table.merge_over_mro(cls, "_m2m_metadata")

    @classmethod
    def many_to_many_names(cls) -> typing.List[str]:
        """
        :return: The link relationship names of every many to many accessor registered on this
            table or its parents.
        """
        return list(cls._m2m_store())

    @classmethod
    def many_to_many(cls, method_name: str, link_relationship: str, foreign_relationship: str,
                     attrs: dict = None) -> 'md_relationship.ManyToMany':
        """
        Records the many to many metadata, then declares the accessor like
        :meth:`.Table.many_to_many`.

        :param method_name: The name of the accessor on rows.
        :param link_relationship: The name of the one to many relationship to the link table.
        :param foreign_relationship: The name of the relationship on the link table.
        :param attrs: Free-form attributes for the accessor.
        :raises DuplicateRelation: If metadata for ``link_relationship`` already exists.
        """
        for arg, value in (("method name", method_name),
                           ("link relationship name", link_relationship),
                           ("foreign relationship name", foreign_relationship)):
            if not value:
                raise MissingArgument("need {}".format(arg))

        if link_relationship in cls._m2m_store():
            raise DuplicateRelation("many_to_many metadata for {} already exists on {}"
                                    .format(link_relationship, cls.__name__))

        record = ManyToManyRecord(cls, method_name, link_relationship, foreign_relationship, attrs)
        cls.__dict__["_m2m_metadata"][link_relationship] = record
        logger.debug("Registered many to many {} on {}".format(record, cls.__name__))

        return super().many_to_many(method_name, link_relationship, foreign_relationship, attrs)

    @classmethod
    def relationship_info(cls, relationship_name: str) -> 'md_relationship.RelationshipInfo':
        """
        Gets the descriptor of a relationship, like :meth:`.Table.relationship_info`.

        If the relationship is the link relationship of a many to many accessor, the descriptor
        also carries the resolved metadata as ``m2m`` (a :class:`.ManyToManyInfo`). It is
        resolved on the first lookup and kept on the descriptor afterwards.
        """
        info = super().relationship_info(relationship_name)

        store = cls._m2m_store()
        if relationship_name not in store:
            return info

        # already set up
        if info.m2m is not None:
            return info

        info.m2m = cls._resolve_many_to_many(store[relationship_name], info)
        return info

    @classmethod
    def _resolve_many_to_many(cls, record: ManyToManyRecord,
                              info: 'md_relationship.RelationshipInfo') -> ManyToManyInfo:
        m2m = ManyToManyInfo(record, info.foreign_table)
        map_class = m2m.map_class

        for map_rel in map_class.relationships():
            map_rel_info = map_class.relationship_info(map_rel)

            # concrete tables can be subclasses of the table the link table refers to
            if issubclass(cls, map_rel_info.foreign_table):
                # only the first column pair is used
                for foreign, local in map_rel_info.iter_cond():
                    m2m.class_column = local
                    m2m.map_from = map_rel
                    break
            else:
                m2m.foreign_class = map_rel_info.foreign_table
                for foreign, local in map_rel_info.iter_cond():
                    m2m.foreign_column = local
                    break

        if not m2m.is_resolved:
            logger.debug("Many to many {} on {} is only partially resolved"
                         .format(record.method_name, cls.__name__))
        else:
            logger.debug("Resolved many to many {}".format(m2m))

        return m2m

    # row helpers
    def has_related(self, relationship_name: str) -> int:
        """
        Gets the number of rows behind an accessor.

        For a many to many accessor this must be the accessor (method) name, not the link
        relationship name.

        .. code-block:: python3

            if cd.has_related("tracks"):
                ...
        """
        return md_inspection.get_accessor(self, relationship_name).count()

    def has_related_pages(self, relationship_name: str = None, page_size: int = None) -> int:
        """
        Gets the number of pages of ``page_size`` rows needed to show the rows behind an
        accessor. Useful for pagers.

        :param relationship_name: The name of the relationship or many to many accessor.
        :param page_size: The number of rows on a page.
        :raises MissingArgument: If either argument is missing.
        :raises InvalidPageSize: If ``page_size`` is not a positive integer.
        """
        if not relationship_name:
            raise MissingArgument("need relationship name")

        if not page_size:
            raise MissingArgument("need page_size")

        if _NON_DIGIT.search(str(page_size)):
            raise InvalidPageSize("page_size must be an integer")

        page_size = int(page_size)
        if page_size == 0:
            raise InvalidPageSize("page_size must be greater than zero")

        count = self.has_related(relationship_name)
        if not count:
            return 0

        pages, remainder = divmod(count, page_size)
        if remainder:
            return pages + 1

        return pages

    def primary_key_value(self) -> typing.Union[typing.Any, typing.List[typing.Any]]:
        """
        :return: The value of the primary key column, or a list of the values of the primary key
            columns when there is more than one.
        """
        values = list(md_inspection.get_pk(self, as_tuple=True))
        if len(values) > 1:
            return values

        return values[0]

    def primary_key_uri_escaped(self) -> typing.Union[str, int]:
        """
        Gets the primary key as a string that is safe to put in a URI.

        Multiple column values are joined with ``;;``, and any ``;`` in a value is escaped as
        ``%3B``. If no primary key column has a value, returns ``0``.
        """
        escaped = []
        for value in md_inspection.get_pk(self, as_tuple=True):
            if value is None:
                value = ""

            escaped.append(str(value).replace(";", "%3B"))

        if not any(escaped):
            return 0

        return ";;".join(escaped)

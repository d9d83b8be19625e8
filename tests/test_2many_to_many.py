"""
Tests many to many metadata registration and resolution.
"""

import pytest

from conftest import make_music_schema
from ormhelpers.exc import DuplicateRelation, MissingArgument, NoSuchRelationshipError
from ormhelpers.helpers import ManyToManyInfo, ManyToManyRecord, RDBOHelpers
from ormhelpers.orm.inspection import get_m2m_info
from ormhelpers.orm.schema.column import Column
from ormhelpers.orm.schema.relationship import ForeignKey, ManyToMany, Relationship
from ormhelpers.orm.schema.table import table_base
from ormhelpers.orm.schema.types import Integer


def test_registration(schema):
    assert schema.Cd.many_to_many_names() == ["cd_tracks"]
    assert schema.Track.many_to_many_names() == ["track_cds"]
    assert schema.CdTrackJoin.many_to_many_names() == []

    record = schema.Cd._m2m_store()["cd_tracks"]
    assert record == ManyToManyRecord(schema.Cd, "tracks", "cd_tracks", "trackid", None)

    # the native accessor is still declared
    assert schema.Cd.get_many_to_many("tracks").link_relationship == "cd_tracks"


def test_duplicate_registration(schema):
    with pytest.raises(DuplicateRelation):
        schema.Cd.many_to_many("tracks_again", "cd_tracks", "trackid")

    # nothing was declared for the failed call
    assert schema.Cd.get_many_to_many("tracks_again") is None


def test_distinct_registrations(schema):
    schema.Cd.many_to_many("bonus_tracks", "cd_bonus_tracks", "trackid", {"order_by": "pos"})
    assert schema.Cd.many_to_many_names() == ["cd_tracks", "cd_bonus_tracks"]
    assert schema.Cd._m2m_store()["cd_bonus_tracks"].attrs == {"order_by": "pos"}

    # same link relationship name on another table is fine
    schema.Artist.many_to_many("tracks", "cd_tracks", "trackid")


def test_missing_arguments(schema):
    with pytest.raises(MissingArgument):
        schema.Cd.many_to_many("tracks_again", "", "trackid")

    with pytest.raises(MissingArgument):
        schema.Cd.many_to_many("", "cd_more_tracks", "trackid")


def test_resolve_cd(schema):
    info = schema.Cd.relationship_info("cd_tracks")
    m2m = info.m2m
    assert isinstance(m2m, ManyToManyInfo)
    assert m2m.table is schema.Cd
    assert m2m.method_name == "tracks"
    assert m2m.rel_name == "cd_tracks"
    assert m2m.map_class is schema.CdTrackJoin
    assert m2m.map_from == "cdid"
    assert m2m.map_to == "trackid"
    assert m2m.class_column == "cdid"
    assert m2m.foreign_class is schema.Track
    assert m2m.foreign_column == "trackid"
    assert m2m.attrs is None
    assert m2m.is_resolved


def test_resolve_track(schema):
    m2m = schema.Track.relationship_info("track_cds").m2m
    assert m2m.method_name == "cds"
    assert m2m.map_class is schema.CdTrackJoin
    assert m2m.map_from == "trackid"
    assert m2m.map_to == "cdid"
    assert m2m.foreign_class is schema.Cd
    assert m2m.foreign_column == "cdid"


def test_resolve_is_symmetric(schema):
    cd_side = schema.Cd.relationship_info("cd_tracks").m2m
    track_side = schema.Track.relationship_info("track_cds").m2m

    assert cd_side.foreign_class is schema.Track
    assert track_side.foreign_class is schema.Cd
    assert cd_side.map_class is track_side.map_class


def test_resolve_once(schema):
    first = schema.Cd.relationship_info("cd_tracks")
    second = schema.Cd.relationship_info("cd_tracks")

    assert first is second
    assert first.m2m is second.m2m
    assert first.m2m.to_dict() == second.m2m.to_dict()


def test_resolve_leaves_registry_alone(schema):
    before = dict(schema.Cd._m2m_store())
    schema.Cd.relationship_info("cd_tracks")
    after = schema.Cd._m2m_store()

    assert before == after
    assert before["cd_tracks"] is after["cd_tracks"]


def test_unregistered_passthrough(schema):
    assert schema.Cd.relationship_info("artist").m2m is None
    assert schema.CdTrackJoin.relationship_info("cdid").m2m is None
    assert get_m2m_info(schema.Artist, "cds") is None


def test_unknown_relationship(schema):
    with pytest.raises(NoSuchRelationshipError):
        schema.Cd.relationship_info("tracks")


def test_lookup_before_setup():
    # relationships are resolved on demand, setup_tables() is not required
    schema = make_music_schema(setup=False)
    m2m = get_m2m_info(schema.Cd, "cd_tracks")
    assert m2m.foreign_class is schema.Track


def test_subclass_resolution():
    schema = make_music_schema()

    class LimitedCd(schema.Cd):
        pass

    assert LimitedCd.many_to_many_names() == ["cd_tracks"]

    m2m = LimitedCd.relationship_info("cd_tracks").m2m
    assert m2m.map_from == "cdid"
    assert m2m.class_column == "cdid"
    assert m2m.foreign_class is schema.Track

    limited = LimitedCd(cdid=9)
    limited.tracks.add(schema.Track(trackid=1))
    assert limited.has_related("tracks") == 1


def test_subclass_registration_leaves_parent_alone():
    Table = table_base()

    class Disc(RDBOHelpers, Table):
        discid = Column(Integer, primary_key=True)

    class Song(RDBOHelpers, Table):
        songid = Column(Integer, primary_key=True)

    class DiscSong(RDBOHelpers, Table, table_name="disc_song"):
        discid = Column(Integer, primary_key=True, foreign_key=ForeignKey("Disc.discid"))
        songid = Column(Integer, primary_key=True, foreign_key=ForeignKey("Song.songid"))

    Disc.has_many("disc_songs", DiscSong, "discid")
    DiscSong.belongs_to("discid", "Disc")
    DiscSong.belongs_to("songid", "Song")

    class BoxSet(Disc):
        pass

    BoxSet.many_to_many("songs", "disc_songs", "songid")
    Table.metadata.setup_tables()

    m2m = BoxSet.relationship_info("disc_songs").m2m
    assert m2m.table is BoxSet
    assert m2m.map_from == "discid"
    assert m2m.foreign_class is Song

    # registrations on a subclass do not reach the parent
    assert Disc.many_to_many_names() == []
    parent_info = Disc.relationship_info("disc_songs")
    assert parent_info.m2m is None
    assert parent_info is not BoxSet.relationship_info("disc_songs")
    assert parent_info.relationship is BoxSet.get_relationship("disc_songs")
    assert get_m2m_info(Disc, "disc_songs") is None

    # and the subclass keeps its own resolved descriptor
    assert BoxSet.relationship_info("disc_songs").m2m is m2m


def test_subclass_resolution_is_per_table():
    schema = make_music_schema()

    class LimitedCd(schema.Cd):
        pass

    # resolving on the parent first does not decide the subclass's descriptor
    parent = schema.Cd.relationship_info("cd_tracks")
    child = LimitedCd.relationship_info("cd_tracks")
    assert parent is not child
    assert parent.table is schema.Cd
    assert child.table is LimitedCd
    assert parent.m2m is not child.m2m
    assert parent.m2m.to_dict() == child.m2m.to_dict()


def test_subclass_duplicate():
    schema = make_music_schema()

    class LimitedCd(schema.Cd):
        pass

    with pytest.raises(DuplicateRelation):
        LimitedCd.many_to_many("tracks", "cd_tracks", "trackid")


def test_partial_resolution():
    Table = table_base()

    class Node(RDBOHelpers, Table):
        id = Column(Integer(), primary_key=True)
        node_edges = Relationship("Node.id", "Edge.source_id")
        targets = ManyToMany("node_edges", "target")

    class Edge(Table):
        source_id = Column(Integer(), primary_key=True, foreign_key=ForeignKey("Node.id"))
        target_id = Column(Integer(), primary_key=True, foreign_key=ForeignKey("Node.id"))
        source = Relationship("Edge.source_id", "Node.id", use_iter=False)
        target = Relationship("Edge.target_id", "Node.id", use_iter=False)

    # both link relationships point back at Node, so there is no foreign side
    m2m = Node.relationship_info("node_edges").m2m
    assert m2m.map_from == "target"
    assert m2m.foreign_class is None
    assert m2m.foreign_column is None
    assert not m2m.is_resolved


def test_declarative():
    Table = table_base()

    class Author(RDBOHelpers, Table):
        id = Column(Integer(), primary_key=True)
        author_books = Relationship("Author.id", "AuthorBook.author_id")
        books = ManyToMany("author_books", "book", attrs={"order_by": "title"})

    class Book(RDBOHelpers, Table):
        id = Column(Integer(), primary_key=True)
        book_authors = Relationship("Book.id", "AuthorBook.book_id")
        authors = ManyToMany("book_authors", "author")

    class AuthorBook(Table, table_name="author_book"):
        author_id = Column(Integer(), primary_key=True, foreign_key=ForeignKey("Author.id"))
        book_id = Column(Integer(), primary_key=True, foreign_key=ForeignKey("Book.id"))
        author = Relationship("AuthorBook.author_id", "Author.id", use_iter=False)
        book = Relationship("AuthorBook.book_id", "Book.id", use_iter=False)

    Table.metadata.setup_tables()

    assert Author.many_to_many_names() == ["author_books"]

    m2m = Author.relationship_info("author_books").m2m
    assert m2m.method_name == "books"
    assert m2m.attrs == {"order_by": "title"}
    assert m2m.map_class is AuthorBook
    assert m2m.map_from == "author"
    assert m2m.class_column == "author_id"
    assert m2m.map_to == "book"
    assert m2m.foreign_class is Book
    # the local side of the link table's condition is used
    assert m2m.foreign_column == "book_id"

    author = Author(id=1)
    book = Book(id=2)
    author.books.add(book)
    assert list(book.authors) == [author]


def test_mixin_order():
    Table = table_base()

    with pytest.raises(TypeError):
        class Wrong(Table, RDBOHelpers):
            id = Column(Integer(), primary_key=True)

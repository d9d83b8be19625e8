"""
Tests the row helpers of RDBOHelpers.
"""

import pytest

from ormhelpers.exc import InvalidPageSize, MissingArgument, NoSuchRelationshipError
from ormhelpers.helpers import RDBOHelpers
from ormhelpers.orm.schema.table import table_base


def test_has_related_many_to_many(cd_with_tracks):
    cd = cd_with_tracks(3)
    assert cd.has_related("tracks") == 3
    # the link relationship counts link rows
    assert cd.has_related("cd_tracks") == 3


def test_has_related_one_to_many(schema):
    artist = schema.Artist(artistid=1, name="massive attack")
    assert artist.has_related("cds") == 0

    artist.cds.add(schema.Cd(cdid=1, title="mezzanine"))
    artist.cds.add(schema.Cd(cdid=2, title="protection"))
    assert artist.has_related("cds") == 2


def test_has_related_after_moving_child(schema):
    first = schema.Artist(artistid=1)
    second = schema.Artist(artistid=2)
    cd = schema.Cd(cdid=1)

    first.cds.add(cd)
    second.cds.add(cd)

    assert first.has_related("cds") == 0
    assert second.has_related("cds") == 1
    assert cd.get_column_value("artist") == 2
    assert cd.artist.get() is second

    # adding to the same parent twice keeps one entry
    second.cds.add(cd)
    assert second.has_related("cds") == 1


def test_has_related_many_to_one(schema):
    cd = schema.Cd(cdid=1)
    assert cd.has_related("artist") == 0

    cd.artist.set(schema.Artist(artistid=5))
    assert cd.has_related("artist") == 1
    assert cd.get_column_value("artist") == 5


def test_has_related_reverse_side(cd_with_tracks, schema):
    cd = cd_with_tracks(2)
    track = next(iter(cd.tracks))
    assert track.has_related("cds") == 1
    assert list(track.cds) == [cd]


def test_has_related_unknown(schema):
    with pytest.raises(NoSuchRelationshipError):
        schema.Cd(cdid=1).has_related("title")


@pytest.mark.parametrize("count, page_size, pages", [
    (0, 1, 0),
    (0, 5, 0),
    (10, 5, 2),
    (11, 5, 3),
    (1, 5, 1),
    (5, 1, 5),
    (11, "5", 3),
])
def test_has_related_pages(cd_with_tracks, count, page_size, pages):
    cd = cd_with_tracks(count)
    assert cd.has_related_pages("tracks", page_size) == pages


@pytest.mark.parametrize("page_size", ["5a", "five", -5, 2.5])
def test_has_related_pages_bad_size(cd_with_tracks, page_size):
    cd = cd_with_tracks(3)
    with pytest.raises(InvalidPageSize):
        cd.has_related_pages("tracks", page_size)


@pytest.mark.parametrize("page_size", ["", 0, None])
def test_has_related_pages_empty_size(cd_with_tracks, page_size):
    cd = cd_with_tracks(3)
    with pytest.raises(MissingArgument):
        cd.has_related_pages("tracks", page_size)


def test_has_related_pages_invalid_is_value_error(cd_with_tracks):
    cd = cd_with_tracks(3)
    with pytest.raises(InvalidPageSize):
        cd.has_related_pages("tracks", "5a")

    with pytest.raises(ValueError):
        cd.has_related_pages("tracks", -5)

    with pytest.raises(InvalidPageSize):
        cd.has_related_pages("tracks", "0")


def test_has_related_pages_missing_arguments(cd_with_tracks):
    cd = cd_with_tracks(3)
    with pytest.raises(MissingArgument):
        cd.has_related_pages()

    with pytest.raises(MissingArgument):
        cd.has_related_pages("tracks")

    with pytest.raises(MissingArgument):
        cd.has_related_pages(None, 5)


def test_primary_key_value(schema):
    assert schema.Cd(cdid=7).primary_key_value() == 7
    assert schema.Cd().primary_key_value() is None
    assert schema.CdTrackJoin(trackid=3, cdid=7).primary_key_value() == [3, 7]


def test_primary_key_uri_escaped(schema):
    assert schema.Cd(cdid=7).primary_key_uri_escaped() == "7"
    assert schema.CdTrackJoin(trackid=3, cdid=7).primary_key_uri_escaped() == "3;;7"
    assert schema.CdTrackJoin(trackid=3).primary_key_uri_escaped() == "3;;"


def test_primary_key_uri_escaped_empty(schema):
    assert schema.Cd().primary_key_uri_escaped() == 0
    assert schema.CdTrackJoin().primary_key_uri_escaped() == 0


def test_primary_key_uri_escaped_semicolons():
    from ormhelpers.orm.schema.column import Column
    from ormhelpers.orm.schema.types import String

    Table = table_base()

    class Tag(RDBOHelpers, Table):
        namespace = Column(String(), primary_key=True)
        name = Column(String(), primary_key=True)

    tag = Tag(namespace="a;b", name="c")
    assert tag.primary_key_uri_escaped() == "a%3Bb;;c"
    assert tag.primary_key_value() == ["a;b", "c"]

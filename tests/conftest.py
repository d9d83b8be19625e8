"""
py.test configuration
"""
import types

import pytest

from ormhelpers.helpers import RDBOHelpers
from ormhelpers.orm.schema.column import Column
from ormhelpers.orm.schema.relationship import ForeignKey
from ormhelpers.orm.schema.table import table_base
from ormhelpers.orm.schema.types import Integer, String


def make_music_schema(setup: bool = True) -> types.SimpleNamespace:
    """
    Builds a fresh Artist / Cd / Track / CdTrackJoin schema on its own metadata.
    """
    Table = table_base()

    class Artist(RDBOHelpers, Table):
        artistid = Column(Integer, primary_key=True)
        name = Column(String(128))

    class Cd(RDBOHelpers, Table):
        cdid = Column(Integer, primary_key=True)
        artist = Column(Integer, foreign_key=ForeignKey("Artist.artistid"))
        title = Column(String(128))

    class Track(RDBOHelpers, Table):
        trackid = Column(Integer, primary_key=True)
        title = Column(String(128))

    class CdTrackJoin(RDBOHelpers, Table, table_name="cd_track_join"):
        trackid = Column(Integer, primary_key=True, foreign_key=ForeignKey("Track.trackid"))
        cdid = Column(Integer, primary_key=True, foreign_key=ForeignKey("Cd.cdid"))

    Artist.has_many("cds", Cd, "artist")

    Cd.belongs_to("artist")
    Cd.has_many("cd_tracks", CdTrackJoin, "cdid")
    Cd.many_to_many("tracks", "cd_tracks", "trackid")

    Track.has_many("track_cds", CdTrackJoin, "trackid")
    Track.many_to_many("cds", "track_cds", "cdid")

    CdTrackJoin.belongs_to("cdid", "Cd")
    CdTrackJoin.belongs_to("trackid", "Track")

    if setup:
        Table.metadata.setup_tables()

    return types.SimpleNamespace(Table=Table, Artist=Artist, Cd=Cd, Track=Track,
                                 CdTrackJoin=CdTrackJoin)


@pytest.fixture()
def schema() -> types.SimpleNamespace:
    return make_music_schema()


@pytest.fixture()
def cd_with_tracks(schema):
    """
    Returns a factory that builds a cd linked to ``count`` new tracks.
    """
    def _make(count: int, cdid: int = 1):
        cd = schema.Cd(cdid=cdid, title="cd {}".format(cdid))
        for i in range(count):
            cd.tracks.add(schema.Track(trackid=i + 1, title="track {}".format(i + 1)))
        return cd

    return _make

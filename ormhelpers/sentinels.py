"""
Sentinel values used to tell "nothing was passed" apart from ``None``.
"""


class Sentinel(object):
    """
    A named marker object.
    """

    def __init__(self, name: str):
        self.name = name

    def __repr__(self):
        return "<{}>".format(self.name)

    def __bool__(self):
        return False


#: No default was given for a column.
NO_DEFAULT = Sentinel("NO_DEFAULT")

#: No value is stored for a column in a row.
NO_VALUE = Sentinel("NO_VALUE")

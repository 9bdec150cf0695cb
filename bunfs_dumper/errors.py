"""
Exceptions raised while locating, parsing and writing a standalone bundle.
"""


class FormatError(ValueError):
    """Base class for every structural problem with the input executable."""


class InputFormatError(FormatError):
    """The file is not a recognized container, or a header field is invalid."""


class BoundsError(FormatError):
    """A decoded offset or length would read outside its buffer."""


class PathSafetyError(FormatError):
    """A reconstructed module path would escape the output directory."""

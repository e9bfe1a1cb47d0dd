"""
Exceptions and warnings raised by the alignment and normalization routines.
"""


class AlignmentError(Exception):
    """
    Base class for errors that abort the alignment of a single spectrum.

    Parameters
    ----------
    message : str
        Human readable description.

    sample : str, optional
        Sample identifier the error belongs to.

    label : str, optional
        Landmark label involved, if any.
    """

    def __init__(self, message, sample=None, label=None):
        super().__init__(message)
        self.sample = sample
        self.label = label


class DegenerateSegment(AlignmentError):
    """Both control points of a segment share the same observed time."""


class MissingLandmark(AlignmentError):
    """A landmark is absent for a sample or its boundary index can not be found."""


class InsufficientSamplesWarning(UserWarning):
    """Too few samples for a reliable column-wise median in PQN."""


class SingleSampleWarning(UserWarning):
    """Only one sample was given to PQN, dilution correction is skipped."""

"""
Exceptions raised by the reconstruction code. All hard errors derive from the builtin exceptions
(ValueError or RuntimeError), so callers which only catch those keep working.
"""


class ConfigurationError(ValueError):
    """
    Persisted parameters are missing, incomplete, or refer to unknown names
    """
    pass


class DimensionMismatchError(ValueError):
    """
    Image, band or stack sizes are not compatible with each other
    """
    pass


class InvalidParameterError(ValueError):
    """
    A parameter is out of range, e.g. a band index, a negative frequency, or the OTF vector pixel size
    was not set before generating vectors
    """
    pass


class NumericalDegeneracy(RuntimeError):
    """
    Band separation matrix cannot be inverted
    """
    pass

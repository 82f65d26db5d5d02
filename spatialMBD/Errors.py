import numpy as np

class SimEngineError(Exception):
    """Base class for errors raised by spatialMBD"""

class ConfigurationError(SimEngineError, ValueError):
    """
    The model or the solver settings are invalid: bad mass/inertia, non-unit quaternion,
    unknown body, over-constrained or redundant constraint set, ...
    Detected before or at the start of a run; not retried.
    """

class SingularSystemError(SimEngineError, np.linalg.LinAlgError):
    """The constrained equations of motion could not be solved (singular or ill-conditioned)"""

class NumericalError(SimEngineError, ArithmeticError):
    """NaN/Inf showed up in the right-hand side, the solution or the integrated state"""

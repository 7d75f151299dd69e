"""
Error and warning taxonomy

Fatal conditions are exceptions raised before the engine is touched.
Recoverable conditions are warning categories: the caller keeps going
and the warning ends up in the run log via ``logging.captureWarnings``.
"""


class VanetSimError(Exception):
    """Base class for fatal harness errors"""


class ConfigurationError(VanetSimError):
    """Missing/empty trace directory, bad option values, unreadable source"""


class CapacityError(VanetSimError):
    """More vehicles than the address block can hold"""


class ParseWarning(UserWarning):
    """A trace line was not a ``time x y`` triple and was skipped"""


class EmptyTraceWarning(UserWarning):
    """A trace source produced no waypoints; the vehicle stays put"""


class ArithmeticGuard(RuntimeWarning):
    """A metric would have been undefined and a fallback value was used"""

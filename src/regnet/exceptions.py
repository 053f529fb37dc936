"""Error and warning types raised by regnet.

- InvalidInputError: malformed arguments, always raised before any fitting
- IncompatibleOptionWarning: an option that does not apply to the response
  is ignored and fitting continues
- ConvergenceWarning: scikit-learn's warning class, reused so that callers
  filtering it for scikit-learn estimators also catch ours
"""
from sklearn.exceptions import ConvergenceWarning


class InvalidInputError(ValueError):
    """Raised when an argument of a fit or cross-validation call is invalid."""


class IncompatibleOptionWarning(UserWarning):
    """Issued when an option is not available for the requested response."""


__all__ = ["InvalidInputError", "IncompatibleOptionWarning", "ConvergenceWarning"]

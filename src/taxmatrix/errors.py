"""
Error types for taxmatrix.

Two classes of failure are raised by the library itself:

- ConfigurationError: malformed policy data (unknown rule kind, a threshold
  missing from the shared basis, mismatched bracket arrays). Raised while a
  plan is being built, never while a batch is running.
- ContractViolationError: a caller handed the engine buffers or arrays that do
  not agree with the batch size. Raised before any computation starts, so a
  batch never leaves partial output behind.

Numeric drift between the matrix path and the reference path is not an
exception; it is reported by taxmatrix.validation.
"""


class TaxMatrixError(Exception):
    """Base class for all taxmatrix errors."""


class ConfigurationError(TaxMatrixError, ValueError):
    """Policy data is malformed or internally inconsistent."""


class ContractViolationError(TaxMatrixError, ValueError):
    """Input or output buffers do not match the declared batch shape."""

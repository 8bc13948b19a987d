"""
Error taxonomy for ensemble prediction.

  ConfigurationError      — the ensemble, dataset, folds or class count do not
                            fit together. Raised before any inference call.
  InferenceEngineError    — the underlying booster failed or returned output
                            of the wrong shape. Fatal for the whole call.
  PartitionOverlapWarning — fold index sets share rows and the caller opted
                            into last-writer-wins (``overlap_policy="warn"``).

Nothing here is retried; retries belong to the inference engine itself.
"""

from __future__ import annotations


class ConfigurationError(ValueError):
    """Inputs to ``predict_ensemble()`` are inconsistent with each other."""


class InferenceEngineError(RuntimeError):
    """A submodel prediction call failed or returned a malformed result.

    Attributes:
        forest_index:   1-based position of the forest being predicted.
        submodel_index: 1-based position of the submodel inside that forest.
    """

    def __init__(
        self,
        message: str,
        forest_index: int | None = None,
        submodel_index: int | None = None,
    ) -> None:
        super().__init__(message)
        self.forest_index = forest_index
        self.submodel_index = submodel_index


class PartitionOverlapWarning(UserWarning):
    """Fold index sets overlap; later folds overwrite earlier predictions."""

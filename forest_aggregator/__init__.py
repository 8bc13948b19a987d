"""
forest_aggregator: prediction assembly for forest-of-forests boosted ensembles.

    >>> from forest_aggregator import predict_ensemble
    >>> preds = predict_ensemble(ensemble, data, return_list=False, collapse=True)
"""

from forest_aggregator.errors import (
    ConfigurationError,
    InferenceEngineError,
    PartitionOverlapWarning,
)
from forest_aggregator.ml.predictor import predict_ensemble
from forest_aggregator.models.ensemble import (
    BinaryMode,
    Ensemble,
    FoldPartition,
    Forest,
    MulticlassMode,
    class_mode_for,
)

__version__ = "1.0.0"

__all__ = [
    "__version__",
    "predict_ensemble",
    "Ensemble",
    "Forest",
    "FoldPartition",
    "BinaryMode",
    "MulticlassMode",
    "class_mode_for",
    "ConfigurationError",
    "InferenceEngineError",
    "PartitionOverlapWarning",
]

"""
Ensemble prediction entry point: ``predict_ensemble()``.

Prediction flow
---------------
1. Validate everything that can be checked without running a model:
   class mode, forest feature subsets, base-margin shape, fold partition
   (count, bounds, overlap policy).
2. For each forest, in order:
   a. Project the dataset onto the forest's feature subset.
   b. Accumulate (DIRECT) or scatter (OUT_OF_FOLD) submodel predictions.
   c. Label the container (Forest_<i> or Forest_<i>_<c>).
3. Assemble the labelled containers per ``return_list`` / ``collapse``.

Class-count resolution
----------------------
  explicit ``class_count`` argument  >  ``Ensemble.class_mode``  >  asking
  the inference engine for the first submodel of every forest.
The engine answers must agree; otherwise the call fails before inference.

Overlap policy
--------------
  "error" (default) — overlapping folds are a ConfigurationError.
  "warn"            — PartitionOverlapWarning; later folds overwrite earlier
                      rows (last writer wins).
"""

from __future__ import annotations

import logging
import warnings
from typing import Sequence

import numpy as np
import pandas as pd

from forest_aggregator.errors import ConfigurationError, PartitionOverlapWarning
from forest_aggregator.ml.accumulator import accumulate_forest, select_mode
from forest_aggregator.ml.assembler import AggregatedOutput, assemble_output
from forest_aggregator.ml.engine import InferenceEngine, LightGBMInferenceEngine
from forest_aggregator.ml.frames import FrameOps, PandasFrameOps, project_features, resolve_features
from forest_aggregator.ml.naming import reshape_output
from forest_aggregator.models.ensemble import ClassMode, Ensemble, FoldPartition, class_mode_for

logger = logging.getLogger(__name__)

VALID_OVERLAP_POLICIES = frozenset({"error", "warn"})


def predict_ensemble(
    ensemble: Ensemble,
    data: pd.DataFrame,
    *,
    folds: FoldPartition | Sequence[Sequence[int]] | None = None,
    base_margin: Sequence[float] | np.ndarray | None = None,
    class_count: int | None = None,
    return_list: bool = True,
    collapse: bool = False,
    engine: InferenceEngine | None = None,
    frame_ops: FrameOps | None = None,
    overlap_policy: str = "error",
) -> AggregatedOutput:
    """Predict ``data`` with every forest and assemble the result.

    Args:
        ensemble:       Forests to run.
        data:           Dataset to predict; never modified.
        folds:          Out-of-fold partition (zero-based row positions per
                        fold) when ``data`` is the training set, else None.
        base_margin:    Initial prediction offset per row, or None.
        class_count:    Declared class count; None resolves it from the
                        ensemble or the engine.
        return_list:    Return a dict of per-forest predictions.
        collapse:       Average across forests; overrides ``return_list``.
        engine:         Inference backend (defaults to LightGBM).
        frame_ops:      Tabular helpers (defaults to pandas).
        overlap_policy: "error" or "warn"; see module docstring.

    Returns:
        dict, DataFrame or Series as described in ``assembler``.

    Raises:
        ConfigurationError:   Inputs are inconsistent (raised before any
                              submodel is called).
        InferenceEngineError: A submodel call failed.
    """
    engine = engine or LightGBMInferenceEngine()
    ops = frame_ops or PandasFrameOps()

    if ensemble.n_forests == 0:
        raise ConfigurationError("Ensemble contains no forests.")
    for i, forest in enumerate(ensemble.forests, start=1):
        if forest.n_submodels == 0:
            raise ConfigurationError(f"Forest {i} contains no submodels.")

    class_mode = resolve_class_mode(ensemble, engine, class_count)
    feature_columns = [resolve_features(data, f.features) for f in ensemble.forests]
    n_rows = len(data)

    margin = None
    if base_margin is not None:
        margin = np.atleast_1d(np.asarray(base_margin, dtype=np.float64))
        if margin.shape[0] != n_rows:
            raise ConfigurationError(
                f"base_margin has {margin.shape[0]} rows but the dataset has {n_rows}."
            )
        margin_width = class_mode.class_count if class_mode.is_multiclass else 1
        if margin.ndim > 2 or (margin.ndim == 2 and margin.shape[1] != margin_width):
            raise ConfigurationError(
                f"base_margin has shape {margin.shape}; expected ({n_rows},) or "
                f"({n_rows}, {margin_width})."
            )

    partition = None
    if folds is not None:
        partition = folds if isinstance(folds, FoldPartition) else FoldPartition.from_lists(folds)
        _validate_partition(partition, ensemble, n_rows, overlap_policy)

    logger.info(
        "Predicting %d rows with %d forests (mode=%s, classes=%d)",
        n_rows, ensemble.n_forests, select_mode(partition).value, class_mode.class_count,
    )

    outputs = []
    for i, (forest, columns) in enumerate(zip(ensemble.forests, feature_columns), start=1):
        projected = project_features(data, columns, ops)
        container = accumulate_forest(
            forest, i, projected, class_mode, engine,
            folds=partition, base_margin=margin, ops=ops,
        )
        outputs.append(reshape_output(container, i, ensemble.n_forests, class_mode, data.index))
        logger.debug(
            "Forest %d/%d done: %d submodels, %d features",
            i, ensemble.n_forests, forest.n_submodels, len(columns),
        )

    return assemble_output(outputs, class_mode, return_list=return_list, collapse=collapse, ops=ops)


def resolve_class_mode(
    ensemble: Ensemble,
    engine: InferenceEngine,
    class_count: int | None = None,
) -> ClassMode:
    """Decide the binary/multiclass mode for one prediction call.

    Raises:
        ConfigurationError: No explicit count, no mode on the ensemble, and
            the engine cannot report a single consistent class count.
    """
    if class_count is not None:
        return class_mode_for(class_count)
    if ensemble.class_mode is not None:
        return ensemble.class_mode

    counts = {engine.num_classes(forest.submodels[0]) for forest in ensemble.forests}
    if None in counts:
        raise ConfigurationError(
            "Class count could not be read from the submodels; pass class_count explicitly."
        )
    if len(counts) > 1:
        raise ConfigurationError(
            f"Forests disagree on class count {sorted(counts)}; pass class_count explicitly."
        )
    return class_mode_for(counts.pop())


def _validate_partition(
    partition: FoldPartition,
    ensemble: Ensemble,
    n_rows: int,
    overlap_policy: str,
) -> None:
    if overlap_policy not in VALID_OVERLAP_POLICIES:
        raise ConfigurationError(
            f"overlap_policy must be one of {sorted(VALID_OVERLAP_POLICIES)}, "
            f"got '{overlap_policy}'."
        )

    for i, forest in enumerate(ensemble.forests, start=1):
        try:
            partition.validate(n_rows, forest.n_submodels)
        except ConfigurationError as exc:
            raise ConfigurationError(f"Forest {i}: {exc}") from exc

    overlap = partition.overlapping_rows()
    if overlap.size:
        msg = (
            f"{overlap.size} row(s) appear in more than one fold "
            f"(first: {overlap[:5].tolist()})"
        )
        if overlap_policy == "error":
            raise ConfigurationError(msg + ".")
        warnings.warn(msg + "; later folds overwrite earlier ones.", PartitionOverlapWarning, stacklevel=3)
        logger.warning("%s; later folds overwrite earlier ones.", msg)

    uncovered = partition.uncovered_rows(n_rows)
    if uncovered.size:
        logger.warning(
            "%d row(s) are in no fold and keep a prediction of 0.0 (first: %s)",
            uncovered.size, uncovered[:5].tolist(),
        )

"""
Per-forest prediction accumulation.

Two inference modes, chosen once per call
-----------------------------------------
DIRECT (no fold partition — new data)
    Every submodel predicts every row. Each output is divided by the
    submodel count and added into the container, so the finished container
    is the mean over submodels without a separate normalisation pass.

OUT_OF_FOLD (fold partition given — the training data)
    Submodel j predicts only the rows of fold j, i.e. the rows it never saw
    during training, and its output is scattered into exactly those rows.
    Nothing is averaged. If folds overlap (only possible under the "warn"
    overlap policy) the later fold's value is the one kept.

Container shape follows the ClassMode: a float vector [rows] for binary /
regression, a float matrix [rows × classes] for multiclass. Each container
is created here, written only by this forest's pass, and handed back to the
caller.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

import numpy as np
import pandas as pd

from forest_aggregator.errors import InferenceEngineError
from forest_aggregator.ml.engine import InferenceEngine
from forest_aggregator.ml.frames import FrameOps, PandasFrameOps
from forest_aggregator.models.ensemble import ClassMode, Forest, FoldPartition

logger = logging.getLogger(__name__)


class InferenceMode(str, Enum):
    DIRECT = "direct"
    OUT_OF_FOLD = "out_of_fold"


def select_mode(folds: FoldPartition | None) -> InferenceMode:
    """DIRECT when no fold partition is supplied, OUT_OF_FOLD otherwise."""
    return InferenceMode.DIRECT if folds is None else InferenceMode.OUT_OF_FOLD


def new_container(n_rows: int, class_mode: ClassMode) -> np.ndarray:
    """Zero-filled prediction container for one forest."""
    if class_mode.is_multiclass:
        return np.zeros((n_rows, class_mode.class_count), dtype=np.float64)
    return np.zeros(n_rows, dtype=np.float64)


def accumulate_forest(
    forest: Forest,
    forest_index: int,
    projected: pd.DataFrame,
    class_mode: ClassMode,
    engine: InferenceEngine,
    folds: FoldPartition | None = None,
    base_margin: np.ndarray | None = None,
    ops: FrameOps | None = None,
) -> np.ndarray:
    """Run every submodel of ``forest`` and build its prediction container.

    Args:
        forest:       Forest whose submodels are run.
        forest_index: 1-based forest position (error messages only).
        projected:    Dataset already restricted to the forest's features.
        class_mode:   Shared binary/multiclass mode.
        engine:       Inference backend used to call each submodel.
        folds:        Fold partition for out-of-fold prediction, or None.
        base_margin:  Per-row initial prediction offset, or None.
        ops:          Row-selection helper (defaults to pandas).

    Returns:
        Vector [rows] or matrix [rows × classes].

    Raises:
        InferenceEngineError: A submodel call failed or returned a malformed
            result. No partial container is returned.
    """
    ops = ops or PandasFrameOps()
    n_rows = len(projected)
    container = new_container(n_rows, class_mode)
    mode = select_mode(folds)

    if mode is InferenceMode.DIRECT:
        for j, submodel in enumerate(forest.submodels, start=1):
            raw = _run_submodel(
                engine, submodel, projected, base_margin, class_mode, forest_index, j
            )
            container += raw / forest.n_submodels
    else:
        for j, (submodel, rows) in enumerate(zip(forest.submodels, folds.folds), start=1):
            if rows.size == 0:
                logger.debug("Forest %d fold %d is empty; skipped.", forest_index, j)
                continue
            fold_data = ops.take_rows(projected, rows)
            fold_margin = base_margin[rows] if base_margin is not None else None
            container[rows] = _run_submodel(
                engine, submodel, fold_data, fold_margin, class_mode, forest_index, j
            )

    return container


def _run_submodel(
    engine: InferenceEngine,
    submodel: Any,
    data: pd.DataFrame,
    base_margin: np.ndarray | None,
    class_mode: ClassMode,
    forest_index: int,
    submodel_index: int,
) -> np.ndarray:
    """Call the engine once and coerce the output to the container shape."""
    try:
        raw = engine.predict(submodel, data, base_margin)
    except Exception as exc:
        raise InferenceEngineError(
            f"Forest {forest_index}, submodel {submodel_index}: inference failed: {exc}",
            forest_index=forest_index,
            submodel_index=submodel_index,
        ) from exc

    out = np.asarray(raw, dtype=np.float64)
    n_rows = len(data)

    if class_mode.is_multiclass:
        n_classes = class_mode.class_count
        if out.shape == (n_rows, n_classes):
            return out
        if out.size == n_rows * n_classes:
            return out.reshape(n_rows, n_classes)
    elif out.size == n_rows:
        return out.reshape(n_rows)

    expected = (n_rows, class_mode.class_count) if class_mode.is_multiclass else (n_rows,)
    raise InferenceEngineError(
        f"Forest {forest_index}, submodel {submodel_index}: expected output of "
        f"shape {expected}, got {out.shape}.",
        forest_index=forest_index,
        submodel_index=submodel_index,
    )

"""
Inference engines: turn one submodel + a feature frame into raw predictions.

The aggregation layer treats every submodel as an opaque handle and calls it
through the ``InferenceEngine`` protocol:

  predict(submodel, data, base_margin) → ndarray
    ``data`` is the forest's projected feature frame (possibly restricted to
    one fold's rows). ``base_margin`` is None or aligned to ``data`` rows.
    Returns a vector [rows] or matrix [rows × classes].

  num_classes(submodel) → int | None
    Class count the submodel was trained for (2 for binary/regression), or
    None if the engine cannot tell.

Backends
--------
LightGBMInferenceEngine
    ``lightgbm.Booster`` has no native base-margin input at predict time, so
    with a margin we predict raw scores, add the margin, and re-apply the
    objective's link function (sigmoid, softmax, exp or identity). Without a
    margin the booster's own ``predict()`` is used unchanged.

XGBoostInferenceEngine
    ``xgboost.DMatrix`` takes ``base_margin`` directly. A per-row margin is
    broadcast across classes for multiclass boosters.

Both backends lazy-import their library so only the one in use needs to be
installed.
"""

from __future__ import annotations

import json
from typing import Any, Protocol, runtime_checkable

import numpy as np
import pandas as pd

VALID_BACKENDS = frozenset({"lightgbm", "xgboost"})


@runtime_checkable
class InferenceEngine(Protocol):
    """Protocol for submodel inference backends."""

    def predict(
        self,
        submodel: Any,
        data: pd.DataFrame,
        base_margin: np.ndarray | None = None,
    ) -> np.ndarray:
        """Raw predictions for every row of ``data``."""
        ...

    def num_classes(self, submodel: Any) -> int | None:
        """Class count ``submodel`` was trained for, if known."""
        ...


def broadcast_margin(base_margin: np.ndarray, n_rows: int, class_count: int) -> np.ndarray:
    """Shape a base margin to [rows] or [rows × classes].

    A per-row vector is repeated across classes when ``class_count`` > 2.
    """
    margin = np.asarray(base_margin, dtype=np.float64)
    if class_count <= 2:
        return margin.reshape(n_rows)
    if margin.ndim == 1 and margin.shape[0] == n_rows:
        return np.repeat(margin[:, None], class_count, axis=1)
    return margin.reshape(n_rows, class_count)


# ── LightGBM ──────────────────────────────────────────────────────────────────

# Objectives whose prediction is the raw score itself.
_IDENTITY_OBJECTIVES = frozenset({
    "regression", "regression_l1", "huber", "fair", "quantile", "mape",
    "lambdarank", "rank_xendcg",
})
_EXP_OBJECTIVES = frozenset({"poisson", "gamma", "tweedie"})


def _sigmoid(x: np.ndarray, scale: float = 1.0) -> np.ndarray:
    return 1.0 / (1.0 + np.exp(-scale * x))


def _softmax(x: np.ndarray) -> np.ndarray:
    shifted = x - x.max(axis=1, keepdims=True)
    e = np.exp(shifted)
    return e / e.sum(axis=1, keepdims=True)


def _parse_objective(objective: str) -> tuple[str, dict[str, str]]:
    """Split a dumped objective such as ``"binary sigmoid:1"`` into name + args."""
    parts = objective.split()
    name = parts[0] if parts else "regression"
    args: dict[str, str] = {}
    for part in parts[1:]:
        if ":" in part:
            key, val = part.split(":", 1)
            args[key] = val
    return name, args


class LightGBMInferenceEngine:
    """Run ``lightgbm.Booster`` submodels.

    Attributes:
        raw_score: Return untransformed margins instead of probabilities /
                   response-scale predictions.
    """

    def __init__(self, raw_score: bool = False) -> None:
        self.raw_score = raw_score

    def predict(
        self,
        submodel: Any,
        data: pd.DataFrame,
        base_margin: np.ndarray | None = None,
    ) -> np.ndarray:
        X = data.to_numpy(dtype=np.float64)
        if base_margin is None:
            return np.asarray(submodel.predict(X, raw_score=self.raw_score))

        raw = np.asarray(submodel.predict(X, raw_score=True), dtype=np.float64)
        class_count = raw.shape[1] if raw.ndim == 2 else 2
        raw = raw + broadcast_margin(base_margin, X.shape[0], class_count)
        if self.raw_score:
            return raw
        return self._apply_link(submodel, raw)

    def num_classes(self, submodel: Any) -> int | None:
        try:
            num_class = int(submodel.dump_model(num_iteration=1)["num_class"])
        except (AttributeError, KeyError, TypeError, ValueError):
            return None
        return num_class if num_class > 2 else 2

    def _apply_link(self, submodel: Any, raw: np.ndarray) -> np.ndarray:
        objective = str(submodel.dump_model(num_iteration=1).get("objective", "regression"))
        name, args = _parse_objective(objective)
        if name in ("binary", "multiclassova"):
            return _sigmoid(raw, float(args.get("sigmoid", 1.0)))
        if name in ("cross_entropy", "xentropy"):
            return _sigmoid(raw)
        if name in ("multiclass", "softmax"):
            return _softmax(raw)
        if name in _EXP_OBJECTIVES:
            return np.exp(raw)
        if name in _IDENTITY_OBJECTIVES:
            return raw
        raise ValueError(
            f"Cannot apply a base margin for LightGBM objective '{objective}'; "
            "use raw_score=True instead."
        )


# ── XGBoost ───────────────────────────────────────────────────────────────────


class XGBoostInferenceEngine:
    """Run ``xgboost.Booster`` submodels with native base-margin support.

    Attributes:
        raw_score: Passed to ``Booster.predict(output_margin=...)``.
    """

    def __init__(self, raw_score: bool = False) -> None:
        self.raw_score = raw_score

    def predict(
        self,
        submodel: Any,
        data: pd.DataFrame,
        base_margin: np.ndarray | None = None,
    ) -> np.ndarray:
        import xgboost as xgb

        # Boosters trained on plain arrays carry no feature names and reject
        # a named DMatrix.
        features = data if submodel.feature_names is not None else data.to_numpy(dtype=np.float64)
        margin = None
        if base_margin is not None:
            margin = broadcast_margin(
                base_margin, len(data), self.num_classes(submodel) or 2
            )
        dmatrix = xgb.DMatrix(features, base_margin=margin)
        return np.asarray(submodel.predict(dmatrix, output_margin=self.raw_score))

    def num_classes(self, submodel: Any) -> int | None:
        try:
            config = json.loads(submodel.save_config())
            num_class = int(config["learner"]["learner_model_param"]["num_class"])
        except (AttributeError, KeyError, TypeError, ValueError):
            return None
        return num_class if num_class > 2 else 2


def build_engine(backend: str, raw_score: bool = False) -> InferenceEngine:
    """Construct the inference engine named by ``backend``.

    Raises:
        ValueError: Unknown backend.
    """
    if backend == "lightgbm":
        return LightGBMInferenceEngine(raw_score=raw_score)
    if backend == "xgboost":
        return XGBoostInferenceEngine(raw_score=raw_score)
    raise ValueError(
        f"Unknown inference backend '{backend}'; expected one of {sorted(VALID_BACKENDS)}."
    )

"""
Domain types for a forest-of-forests ensemble.

Model hierarchy
---------------
  Ensemble
    ├── Forest            — submodels (one per CV fold) + training feature subset
    └── ClassMode         — BinaryMode | MulticlassMode(class_count)

  FoldPartition           — zero-based row positions held out by each submodel

Submodels are opaque handles (``lightgbm.Booster``, ``xgboost.Booster``, or
anything an ``InferenceEngine`` knows how to call). They are never inspected
here, which is why these types are frozen dataclasses rather than pydantic
models.

Class mode
----------
The binary/multiclass decision is made once, when the class count is known,
and the resulting variant is threaded through accumulation, naming and
assembly. A declared class count of 1 or 2 means one output per row
(regression or binary); anything above 2 means one output column per class.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence, Union

import numpy as np

from forest_aggregator.errors import ConfigurationError


# ── Class mode ────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class BinaryMode:
    """One prediction per row (binary classification or regression)."""

    is_multiclass = False

    @property
    def class_count(self) -> int:
        return 2


@dataclass(frozen=True)
class MulticlassMode:
    """One prediction per row and class.

    Attributes:
        class_count: Number of classes; always > 2.
    """

    class_count: int
    is_multiclass = True

    def __post_init__(self) -> None:
        if self.class_count <= 2:
            raise ConfigurationError(
                f"MulticlassMode needs class_count > 2, got {self.class_count}. "
                "Use BinaryMode for binary or regression ensembles."
            )


ClassMode = Union[BinaryMode, MulticlassMode]


def class_mode_for(class_count: int) -> ClassMode:
    """Map a declared class count to its ``ClassMode`` variant.

    Raises:
        ConfigurationError: If ``class_count`` < 1.
    """
    if class_count < 1:
        raise ConfigurationError(f"class_count must be >= 1, got {class_count}.")
    if class_count > 2:
        return MulticlassMode(class_count=int(class_count))
    return BinaryMode()


# ── Forest / Ensemble ─────────────────────────────────────────────────────────

FeatureRef = Union[int, str]


@dataclass(frozen=True, eq=False)
class Forest:
    """A group of boosted-tree submodels sharing one feature subset.

    Attributes:
        submodels: One fitted model per cross-validation fold, in fold order.
        features:  Column positions (int) or column names (str) the forest
                   was trained on, in training order.
    """

    submodels: Sequence[Any]
    features: Sequence[FeatureRef]

    def __post_init__(self) -> None:
        object.__setattr__(self, "submodels", tuple(self.submodels))
        object.__setattr__(self, "features", tuple(self.features))

    @property
    def n_submodels(self) -> int:
        return len(self.submodels)


@dataclass(frozen=True, eq=False)
class Ensemble:
    """Ordered collection of forests.

    Attributes:
        forests:    Forests in label order (Forest_1, Forest_2, ...).
        class_mode: Shared binary/multiclass mode, or None to resolve it from
                    the inference engine at prediction time.
        metadata:   Free-form provenance (training date, dataset name, ...).
    """

    forests: Sequence[Forest]
    class_mode: ClassMode | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "forests", tuple(self.forests))

    @property
    def n_forests(self) -> int:
        return len(self.forests)


# ── Fold partition ────────────────────────────────────────────────────────────


@dataclass(frozen=True, eq=False)
class FoldPartition:
    """Held-out row positions for each fold.

    ``folds[j]`` lists the zero-based row positions submodel ``j`` of every
    forest must predict. Rows are expected to appear in exactly one fold;
    see ``overlapping_rows()``.
    """

    folds: tuple[np.ndarray, ...]

    @classmethod
    def from_lists(cls, folds: Sequence[Sequence[int]]) -> "FoldPartition":
        """Build a partition from plain Python lists of row positions."""
        arrays = []
        for j, fold in enumerate(folds):
            arr = np.asarray(fold)
            if arr.size and not np.issubdtype(arr.dtype, np.integer):
                raise ConfigurationError(
                    f"Fold {j + 1} must contain integer row positions, got dtype {arr.dtype}."
                )
            arrays.append(arr.astype(np.intp).reshape(-1))
        return cls(folds=tuple(arrays))

    def __len__(self) -> int:
        return len(self.folds)

    def validate(self, n_rows: int, n_submodels: int) -> None:
        """Check fold count and row bounds.

        Raises:
            ConfigurationError: Fold count differs from ``n_submodels`` or a
                row position falls outside ``[0, n_rows)``.
        """
        if len(self.folds) != n_submodels:
            raise ConfigurationError(
                f"Fold partition has {len(self.folds)} folds but forests have "
                f"{n_submodels} submodels each."
            )
        for j, fold in enumerate(self.folds):
            if fold.size and (fold.min() < 0 or fold.max() >= n_rows):
                raise ConfigurationError(
                    f"Fold {j + 1} references rows outside [0, {n_rows})."
                )

    def overlapping_rows(self) -> np.ndarray:
        """Row positions that appear in more than one fold (sorted)."""
        if not self.folds:
            return np.array([], dtype=np.intp)
        rows = np.concatenate(self.folds)
        unique, counts = np.unique(rows, return_counts=True)
        return unique[counts > 1]

    def uncovered_rows(self, n_rows: int) -> np.ndarray:
        """Row positions in ``[0, n_rows)`` that no fold covers."""
        covered = np.zeros(n_rows, dtype=bool)
        for fold in self.folds:
            covered[fold] = True
        return np.flatnonzero(~covered)

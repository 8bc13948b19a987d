"""
Tabular helpers: column projection, row selection and horizontal binding.

The aggregation code never touches pandas directly for these operations; it
goes through a ``FrameOps`` object so tests can substitute a recording fake.
``PandasFrameOps`` is the default and never mutates its inputs.

Feature references
------------------
A forest's feature subset may name columns by position (int, zero-based) or
by label (str). Both are resolved to column labels up front by
``resolve_features()``; an unresolvable reference is a ConfigurationError.
"""

from __future__ import annotations

from typing import Protocol, Sequence

import numpy as np
import pandas as pd

from forest_aggregator.errors import ConfigurationError
from forest_aggregator.models.ensemble import FeatureRef


class FrameOps(Protocol):
    """Column/row utilities consumed by the aggregation engine."""

    def select_columns(self, data: pd.DataFrame, columns: Sequence[str]) -> pd.DataFrame:
        """Return ``data`` restricted to ``columns`` without mutating it."""
        ...

    def copy(self, data: pd.DataFrame) -> pd.DataFrame:
        """Return an independent copy of ``data``."""
        ...

    def take_rows(self, data: pd.DataFrame, rows: np.ndarray) -> pd.DataFrame:
        """Return the rows at zero-based positions ``rows``."""
        ...

    def concat(self, frames: Sequence[pd.DataFrame | pd.Series]) -> pd.DataFrame:
        """Bind same-length frames column-wise."""
        ...


class PandasFrameOps:
    """Default ``FrameOps`` backed by pandas."""

    def select_columns(self, data: pd.DataFrame, columns: Sequence[str]) -> pd.DataFrame:
        return data.loc[:, list(columns)].copy()

    def copy(self, data: pd.DataFrame) -> pd.DataFrame:
        return data.copy()

    def take_rows(self, data: pd.DataFrame, rows: np.ndarray) -> pd.DataFrame:
        return data.iloc[rows]

    def concat(self, frames: Sequence[pd.DataFrame | pd.Series]) -> pd.DataFrame:
        return pd.concat(list(frames), axis=1)


def resolve_features(data: pd.DataFrame, features: Sequence[FeatureRef]) -> list[str]:
    """Translate a forest's feature references into column labels.

    Args:
        data:     The dataset being predicted.
        features: Zero-based column positions and/or column names.

    Returns:
        Column labels in the order given by ``features``.

    Raises:
        ConfigurationError: Empty subset, a position out of range, or a name
            not present in ``data``.
    """
    if len(features) == 0:
        raise ConfigurationError("Forest feature subset is empty.")

    columns = list(data.columns)
    resolved: list[str] = []
    for ref in features:
        if isinstance(ref, (int, np.integer)) and not isinstance(ref, bool):
            if not 0 <= ref < len(columns):
                raise ConfigurationError(
                    f"Feature position {ref} is out of range for a dataset "
                    f"with {len(columns)} columns."
                )
            resolved.append(columns[int(ref)])
        elif ref in data.columns:
            resolved.append(ref)
        else:
            raise ConfigurationError(f"Feature column '{ref}' not found in dataset.")
    return resolved


def project_features(
    data: pd.DataFrame,
    columns: Sequence[str],
    ops: FrameOps | None = None,
) -> pd.DataFrame:
    """Restrict ``data`` to the resolved feature ``columns``.

    A subset equal to every column in order yields a plain copy, so later
    projections never alias the caller's frame.
    """
    ops = ops or PandasFrameOps()
    if list(columns) == list(data.columns):
        return ops.copy(data)
    return ops.select_columns(data, columns)

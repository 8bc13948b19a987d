"""
Output labelling and shape normalisation.

Label scheme (1-based indices, zero-padded to a fixed width)
------------------------------------------------------------
  width(n)              = floor(log10(n)) + 1
  forest label          = Forest_<i>          e.g. Forest_01 .. Forest_12
  forest × class column = Forest_<i>_<c>      e.g. Forest_3_1 .. Forest_3_4
  collapsed class       = Label_<c>           e.g. Label_1 .. Label_4

Downstream consumers key on these names, so the format is fixed. Padding makes
the labels sort lexicographically in index order.
"""

from __future__ import annotations

import math

import numpy as np
import pandas as pd

from forest_aggregator.models.ensemble import ClassMode


def pad_width(count: int) -> int:
    """Digits needed to print ``count``: floor(log10(count)) + 1."""
    if count < 1:
        raise ValueError(f"pad_width() needs count >= 1, got {count}.")
    return int(math.floor(math.log10(count))) + 1


def forest_label(index: int, n_forests: int) -> str:
    """Label for the 1-based forest ``index`` out of ``n_forests``."""
    return f"Forest_{index:0{pad_width(n_forests)}d}"


def class_labels(index: int, n_forests: int, class_count: int) -> list[str]:
    """Per-class column names for the 1-based forest ``index``."""
    prefix = forest_label(index, n_forests)
    width = pad_width(class_count)
    return [f"{prefix}_{c:0{width}d}" for c in range(1, class_count + 1)]


def collapsed_labels(class_count: int) -> list[str]:
    """Column names of a collapsed multiclass prediction."""
    width = pad_width(class_count)
    return [f"Label_{c:0{width}d}" for c in range(1, class_count + 1)]


def reshape_output(
    container: np.ndarray,
    index: int,
    n_forests: int,
    class_mode: ClassMode,
    row_index: pd.Index,
) -> pd.Series | pd.DataFrame:
    """Wrap one forest's prediction container in a labelled pandas object.

    Binary/regression containers become a Series named ``Forest_<i>``;
    multiclass containers become a DataFrame with ``Forest_<i>_<c>`` columns.
    """
    if class_mode.is_multiclass:
        return pd.DataFrame(
            container,
            index=row_index,
            columns=class_labels(index, n_forests, class_mode.class_count),
        )
    return pd.Series(container, index=row_index, name=forest_label(index, n_forests))

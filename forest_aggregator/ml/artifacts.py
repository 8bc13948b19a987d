"""
Ensemble persistence.

An ensemble artifact is a single joblib pickle holding every forest's
submodels and feature subset plus the class mode and free-form metadata.
``write_metadata()`` adds a JSON sidecar describing the artifact without
needing to unpickle it.
"""

from __future__ import annotations

import json
import logging
from datetime import date
from pathlib import Path
from typing import Any

from forest_aggregator.models.ensemble import Ensemble, Forest, class_mode_for

logger = logging.getLogger(__name__)

ARTIFACT_VERSION = "v1.0.0"


def save_ensemble(ensemble: Ensemble, artifact_path: Path) -> None:
    """Serialize ``ensemble`` to a joblib pickle file.

    Args:
        ensemble:      Ensemble to persist.
        artifact_path: Target .pkl path. Parent directories are created.

    Raises:
        ValueError: If the ensemble has no forests.
    """
    if ensemble.n_forests == 0:
        raise ValueError("Cannot save an ensemble with no forests.")

    import joblib

    artifact_path = Path(artifact_path)
    artifact_path.parent.mkdir(parents=True, exist_ok=True)
    class_mode = ensemble.class_mode
    joblib.dump(
        {
            "forests": [
                {"submodels": list(f.submodels), "features": list(f.features)}
                for f in ensemble.forests
            ],
            "class_count":      class_mode.class_count if class_mode is not None else None,
            "metadata":         ensemble.metadata,
            "artifact_version": ARTIFACT_VERSION,
            "saved_at":         date.today().isoformat(),
        },
        artifact_path,
    )
    logger.info("Ensemble artifact saved: %s (%d forests)", artifact_path, ensemble.n_forests)


def load_ensemble(artifact_path: Path) -> Ensemble:
    """Load an ensemble written by ``save_ensemble()``.

    Raises:
        FileNotFoundError: If ``artifact_path`` does not exist.
        ValueError:        If the file is not an ensemble artifact.
    """
    import joblib

    artifact_path = Path(artifact_path)
    if not artifact_path.exists():
        raise FileNotFoundError(f"Ensemble artifact not found: {artifact_path}")

    state = joblib.load(artifact_path)
    if not isinstance(state, dict) or "forests" not in state:
        raise ValueError(f"Not an ensemble artifact: {artifact_path}")

    class_count = state.get("class_count")
    ensemble = Ensemble(
        forests=[Forest(submodels=f["submodels"], features=f["features"]) for f in state["forests"]],
        class_mode=class_mode_for(class_count) if class_count is not None else None,
        metadata=state.get("metadata", {}),
    )
    logger.info(
        "Ensemble artifact loaded: %s (%d forests, saved=%s)",
        artifact_path, ensemble.n_forests, state.get("saved_at", ""),
    )
    return ensemble


def describe_ensemble(ensemble: Ensemble) -> dict[str, Any]:
    """Summary dict used by the metadata sidecar and ``inspect-model``."""
    class_mode = ensemble.class_mode
    return {
        "artifact_version":     ARTIFACT_VERSION,
        "n_forests":            ensemble.n_forests,
        "submodels_per_forest": [f.n_submodels for f in ensemble.forests],
        "features_per_forest":  [len(f.features) for f in ensemble.forests],
        "class_count":          class_mode.class_count if class_mode is not None else None,
        "multiclass":           class_mode.is_multiclass if class_mode is not None else None,
        "metadata":             ensemble.metadata,
    }


def write_metadata(ensemble: Ensemble, meta_path: Path) -> None:
    """Write a JSON metadata sidecar alongside an ensemble artifact."""
    meta_path = Path(meta_path)
    meta_path.parent.mkdir(parents=True, exist_ok=True)
    meta_path.write_text(json.dumps(describe_ensemble(ensemble), indent=2, default=str))
    logger.debug("Ensemble metadata written: %s", meta_path)

"""
Forest Aggregator — CLI entry point.

All commands follow this pattern:
  1. Load ``AppConfig`` via ``load_config()``.
  2. Configure logging.
  3. Validate inputs.
  4. Execute the action.
  5. Report the result to stdout; errors go to stderr with exit code 1.

Install and run::

    pip install -e .
    forest-aggregator --help
    forest-aggregator validate-config
    forest-aggregator inspect-model data/models/ensemble.pkl
    forest-aggregator predict data/models/ensemble.pkl data/test.parquet --out preds.csv
    forest-aggregator predict data/models/ensemble.pkl data/train.csv --folds folds.json
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer

app = typer.Typer(
    name="forest-aggregator",
    help="Assemble predictions from forest-of-forests boosted ensembles.",
    add_completion=False,
)

_SUPPORTED_SUFFIXES = (".csv", ".parquet")


# ── Helpers ───────────────────────────────────────────────────────────────────

def _load_config_or_exit(config_path: Optional[str] = None):
    """Load AppConfig, printing a friendly error and exiting on failure."""
    from pydantic import ValidationError

    from forest_aggregator.config import load_config

    try:
        return load_config(Path(config_path) if config_path else None)
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except (ValidationError, ValueError) as exc:
        typer.echo(f"[ERROR] Config validation failed: {exc}", err=True)
        raise typer.Exit(code=1)


def _configure_logging(config):
    """Set up logging from config."""
    from forest_aggregator.utils.logging import configure_logging
    configure_logging(config.logging)


def _load_ensemble_or_exit(model_path: Path):
    from forest_aggregator.ml.artifacts import load_ensemble

    try:
        return load_ensemble(model_path)
    except (FileNotFoundError, ValueError) as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)


def _read_table(path: Path):
    import pandas as pd

    if path.suffix.lower() == ".parquet":
        return pd.read_parquet(path)
    return pd.read_csv(path)


def _write_table(frame, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.suffix.lower() == ".parquet":
        frame.to_parquet(path, index=False)
    else:
        frame.to_csv(path, index=False)


def _read_folds(path: Path) -> list[list[int]]:
    """Parse a JSON array of arrays of zero-based row positions."""
    with open(path, encoding="utf-8") as f:
        folds = json.load(f)
    if not isinstance(folds, list) or not all(isinstance(fold, list) for fold in folds):
        raise ValueError("Folds file must contain a JSON array of arrays of row positions.")
    return folds


# ── Commands ──────────────────────────────────────────────────────────────────

@app.command("validate-config")
def validate_config(
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file (default: config/default.toml).",
    ),
    show_full: bool = typer.Option(
        False,
        "--full",
        help="Print full config including all fields.",
    ),
) -> None:
    """Validate the configuration file and print parsed values."""
    config = _load_config_or_exit(config_path)

    typer.echo("Configuration validated successfully.")
    typer.echo("")
    typer.echo(f"  Inference backend: {config.engine.backend}")
    typer.echo(f"  Raw scores:        {config.engine.raw_score}")
    typer.echo(f"  Collapse:          {config.prediction.collapse}")
    typer.echo(f"  Return list:       {config.prediction.return_list}")
    typer.echo(f"  Overlap policy:    {config.prediction.overlap_policy}")
    typer.echo(f"  Log level:         {config.logging.level}")

    if show_full:
        typer.echo("")
        typer.echo("Full config (JSON):")
        typer.echo(json.dumps(config.model_dump(), indent=2, default=str))

    typer.echo("")
    typer.echo("[OK] Config valid.")


@app.command("inspect-model")
def inspect_model(
    model_path: Path = typer.Argument(..., help="Ensemble artifact (.pkl)."),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Print the structure of a saved ensemble."""
    from forest_aggregator.ml.artifacts import describe_ensemble

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    summary = describe_ensemble(_load_ensemble_or_exit(model_path))

    typer.echo(f"Ensemble: {model_path}")
    typer.echo(f"  Forests:              {summary['n_forests']}")
    typer.echo(f"  Submodels per forest: {summary['submodels_per_forest']}")
    typer.echo(f"  Features per forest:  {summary['features_per_forest']}")
    class_count = summary["class_count"]
    typer.echo(f"  Class count:          {class_count if class_count is not None else 'unresolved'}")


@app.command("predict")
def predict(
    model_path: Path = typer.Argument(..., help="Ensemble artifact (.pkl)."),
    data_path: Path = typer.Argument(..., help="Dataset to predict (.csv or .parquet)."),
    folds_path: Optional[Path] = typer.Option(
        None,
        "--folds",
        help="JSON array of zero-based row positions per fold (out-of-fold mode).",
    ),
    base_margin_col: Optional[str] = typer.Option(
        None,
        "--base-margin-col",
        help="Column holding the per-row base margin; removed from the features.",
    ),
    class_count: Optional[int] = typer.Option(
        None,
        "--class-count",
        help="Declared class count (default: config, then the artifact).",
    ),
    collapse: Optional[bool] = typer.Option(
        None,
        "--collapse/--no-collapse",
        help="Average across forests (default: config.prediction.collapse).",
    ),
    out_path: Optional[Path] = typer.Option(
        None,
        "--out",
        "-o",
        help="Output file (.csv or .parquet). Defaults to config.data.output_dir.",
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
) -> None:
    """Predict a dataset with a saved ensemble and write the result.

    \b
    Without --folds every submodel predicts every row and forests average
    their submodels. With --folds each row is predicted only by the
    submodel that held it out during training.
    """
    from forest_aggregator.errors import ConfigurationError, InferenceEngineError
    from forest_aggregator.ml.engine import build_engine
    from forest_aggregator.ml.predictor import predict_ensemble

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    for path in (data_path,) + ((out_path,) if out_path else ()):
        if path.suffix.lower() not in _SUPPORTED_SUFFIXES:
            typer.echo(
                f"[ERROR] Unsupported file format '{path.suffix}'. Use .csv or .parquet.",
                err=True,
            )
            raise typer.Exit(code=1)

    if not data_path.exists():
        typer.echo(f"[ERROR] Dataset not found: {data_path}", err=True)
        raise typer.Exit(code=1)

    ensemble = _load_ensemble_or_exit(model_path)
    data = _read_table(data_path)

    base_margin = None
    if base_margin_col is not None:
        if base_margin_col not in data.columns:
            typer.echo(f"[ERROR] Base margin column '{base_margin_col}' not in dataset.", err=True)
            raise typer.Exit(code=1)
        base_margin = data[base_margin_col].to_numpy()
        data = data.drop(columns=[base_margin_col])

    folds = None
    if folds_path is not None:
        try:
            folds = _read_folds(folds_path)
        except (OSError, json.JSONDecodeError, ValueError) as exc:
            typer.echo(f"[ERROR] Could not read folds: {exc}", err=True)
            raise typer.Exit(code=1)

    do_collapse = config.prediction.collapse if collapse is None else collapse
    typer.echo(
        f"Predicting {len(data)} rows with {ensemble.n_forests} forests "
        f"({'out-of-fold' if folds is not None else 'direct'}, "
        f"{'collapsed' if do_collapse else 'per forest'})"
    )

    try:
        result = predict_ensemble(
            ensemble,
            data,
            folds=folds,
            base_margin=base_margin,
            class_count=class_count if class_count is not None else config.prediction.class_count,
            return_list=config.prediction.return_list,
            collapse=do_collapse,
            engine=build_engine(config.engine.backend, raw_score=config.engine.raw_score),
            overlap_policy=config.prediction.overlap_policy,
        )
    except ConfigurationError as exc:
        typer.echo(f"[ERROR] Invalid prediction inputs: {exc}", err=True)
        raise typer.Exit(code=1)
    except InferenceEngineError as exc:
        typer.echo(f"[ERROR] Inference failed: {exc}", err=True)
        raise typer.Exit(code=1)

    if out_path is None:
        out_path = Path(config.data.output_dir) / f"{model_path.stem}_predictions.csv"

    if isinstance(result, dict):
        for label, frame in result.items():
            forest_path = out_path.with_name(f"{out_path.stem}_{label}{out_path.suffix}")
            _write_table(frame.to_frame() if frame.ndim == 1 else frame, forest_path)
        typer.echo(f"  Wrote {len(result)} per-forest files next to {out_path}")
    else:
        table = result.to_frame(name="prediction") if result.ndim == 1 else result
        _write_table(table, out_path)
        typer.echo(f"  Wrote {len(table.columns)} column(s) to {out_path}")

    typer.echo("[OK] Prediction complete.")


if __name__ == "__main__":
    app()

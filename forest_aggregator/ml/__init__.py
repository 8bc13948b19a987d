"""
Prediction aggregation layer for forest-of-forests ensembles.

Modules
-------
engine       : InferenceEngine protocol; LightGBM and XGBoost backends.
frames       : FrameOps protocol, pandas implementation, feature projection.
accumulator  : Direct (averaging) vs out-of-fold (scatter) per-forest passes.
naming       : Forest_<i> / Forest_<i>_<c> / Label_<c> labels and reshaping.
assembler    : Per-forest outputs → dict, flat table, or collapsed blend.
predictor    : predict_ensemble() — validation + orchestration entry point.
artifacts    : save_ensemble() / load_ensemble() / write_metadata().
"""

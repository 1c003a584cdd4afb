"""
FruitLab Model Lifecycle
========================

Everything needed to take a folder of labelled fruit photos to a served,
exportable classifier:

1. Ingest a dataset (label folders on disk, or a batch of uploads).
2. Train a small CNN with Keras.
3. Persist the model together with its label set and metadata.
4. Serve predictions from the current model.
5. Stream the persisted model as a zip archive.

Package layout
--------------
config.py     – ``LifecycleConfig`` dataclass, paths, hyperparameter defaults.
errors.py     – Typed error taxonomy shared by every component.
preprocess.py – Image bytes → normalised 64×64 RGB tensor.
data.py       – Dataset loading: label folders / uploads → ``Dataset``.
train.py      – ``KerasEngine``: architecture, compile, fit, predict, save/load.
evaluate.py   – Per-class validation report (scikit-learn).
storage.py    – ``ArtifactStore``: persisted layout, atomic swap, recovery.
scope.py      – ``TensorScope``: releases intermediate buffers on exit.
manager.py    – ``ModelLifecycleManager`` state machine (the orchestrator).
inference.py  – ``InferenceService``: classify one image.
export.py     – ``ArtifactExporter``: streamed, deterministic zip archive.
tasks.py      – Background thread launchers for initialise / train.
"""

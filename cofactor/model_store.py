"""Artifact store for trained recommenders.

Keeps file naming in one place so the training and inference scripts agree:

    save_model(recommender, 'cofactor')              # -> models/cofactor.joblib
    load_model(CofactorRecommender, 'cofactor')

The engine itself never writes to disk; persistence happens only here, on
the fitted recommender wrapper.
"""

import os

import joblib

ARTIFACT_SUFFIX = '.joblib'

# <project_root>/models, two levels up from this file (cofactor/ -> root)
_PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__))
DEFAULT_MODELS_DIR = os.path.join(os.path.dirname(_PACKAGE_DIR), 'models')


def get_model_path(model_name, models_dir=None):
    """Path of the artifact for `model_name` inside `models_dir`."""
    return os.path.join(models_dir or DEFAULT_MODELS_DIR, model_name + ARTIFACT_SUFFIX)


def save_model(model, model_name, models_dir=None):
    """Write `model` to <models_dir>/<model_name>.joblib and return the path.

    Uses model.save(path) when the model defines it, joblib.dump otherwise.
    """
    models_dir = models_dir or DEFAULT_MODELS_DIR
    os.makedirs(models_dir, exist_ok=True)
    path = get_model_path(model_name, models_dir)

    save = getattr(model, 'save', None)
    if callable(save):
        save(path)
    else:
        joblib.dump(model, path)
    print(f"Saved '{model_name}' -> {path}")
    return path


def load_model(model_class, model_name, models_dir=None):
    """Read the artifact for `model_name` back as an instance of `model_class`.

    Raises:
        FileNotFoundError: no artifact exists for `model_name`.
        TypeError: the artifact holds an object of another class.
    """
    path = get_model_path(model_name, models_dir)
    if not os.path.exists(path):
        raise FileNotFoundError(
            f"No saved artifact for '{model_name}' at {path}. "
            "Run scripts/train_cofactor.py first."
        )

    load = getattr(model_class, 'load', None)
    model = load(path) if callable(load) else joblib.load(path)
    if not isinstance(model, model_class):
        raise TypeError(
            f"Artifact '{model_name}' holds a {type(model).__name__}, "
            f"expected {model_class.__name__}"
        )
    print(f"Loaded '{model_name}' from {path}")
    return model


def list_saved_models(models_dir=None):
    """Names (file stems) of every artifact in `models_dir`, sorted."""
    models_dir = models_dir or DEFAULT_MODELS_DIR
    if not os.path.isdir(models_dir):
        return []
    return [
        name[:-len(ARTIFACT_SUFFIX)]
        for name in sorted(os.listdir(models_dir))
        if name.endswith(ARTIFACT_SUFFIX)
    ]

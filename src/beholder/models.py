"""
Resolve model files, downloading them from the Hugging Face Hub if needed.

Usage:
    from beholder.models import resolve_model

    path = resolve_model("models", "east.onnx")                      # local only
    path = resolve_model("models", "east.onnx", repo_id="org/repo")  # with download

When no ``repo_id`` is passed, ``$BEHOLDER_MODEL_REPO`` is used if set.
"""

import logging
import os
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

MODEL_REPO_ENV_VAR = "BEHOLDER_MODEL_REPO"


def resolve_model(
    model_path: Union[str, Path],
    model: str,
    repo_id: Optional[str] = None,
    **kwargs,
) -> Path:
    """Return the local path of a model file.

    Args:
        model_path: Directory holding the model
        model: Model file name; also the file name inside the repo
        repo_id: Hugging Face repo to download from when the file is missing
        **kwargs: Passed to ``hf_hub_download`` (revision, cache_dir, ...)

    Returns:
        Resolved Path to the model file on disk.

    Raises:
        FileNotFoundError: the file is missing and there is no repo to get it from
    """
    full_path = Path(model_path) / model
    if full_path.is_file():
        return full_path

    if repo_id is None:
        repo_id = os.environ.get(MODEL_REPO_ENV_VAR) or None
    if repo_id is None:
        raise FileNotFoundError(f"Model not found: {full_path}")

    from huggingface_hub import hf_hub_download

    logger.info("downloading %s from %s", model, repo_id)
    return Path(hf_hub_download(repo_id, model, **kwargs))

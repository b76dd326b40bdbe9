"""
Embedding model module.

Loads the InsightFace model that turns camera frames into embeddings for
live sessions. The HTTP API never needs it.
"""

from typing import Sequence, Tuple

from insightface.app import FaceAnalysis

from .config import MODEL_PRESETS, Config
from .logging_config import get_logger

logger = get_logger(__name__)

# Presets that InsightFace can load; the rest describe client-side models
INSIGHTFACE_MODELS = ('buffalo_l',)


def detection_size(config: Config) -> Tuple[int, int]:
    """Detector input size, capped by the capture resolution (multiples of 32)."""
    width, height = config.capture.resolution
    side = min(640, width, height)
    side -= side % 32
    return side, side


def initialize_face_app(
    config: Config,
    providers: Sequence[str] = ('CPUExecutionProvider',),
) -> FaceAnalysis:
    """
    Load and prepare the face analysis model named by EMBEDDING_MODEL.

    Args:
        config: Service configuration
        providers: ONNX Runtime execution providers

    Returns:
        Prepared FaceAnalysis instance

    Raises:
        ValueError: If the model cannot run in-process or EMBEDDING_DIM
            does not match it
    """
    model_name = config.embedding_model
    if model_name not in INSIGHTFACE_MODELS:
        raise ValueError(
            f'EMBEDDING_MODEL={model_name} is computed by the client; '
            f'live sessions need one of {", ".join(INSIGHTFACE_MODELS)}'
        )

    model_dim = MODEL_PRESETS[model_name].embedding_dim
    if config.embedding_dim != model_dim:
        raise ValueError(
            f'EMBEDDING_DIM={config.embedding_dim}, but {model_name} produces '
            f'{model_dim}-dimensional embeddings'
        )

    det_size = detection_size(config)
    logger.info(
        f'Loading {model_name} (det_size={det_size}, '
        f'threshold={config.match_threshold:.2f})...'
    )

    face_app = FaceAnalysis(name=model_name, providers=list(providers))
    face_app.prepare(ctx_id=0, det_size=det_size)

    logger.info(f'✅ {model_name} ready')
    return face_app

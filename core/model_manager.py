"""Skin model registry and local weight storage."""

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from core.utils import get_models_dir


@dataclass
class ModelInfo:
    """Metadata about an available skin lesion model."""
    name: str
    display_name: str
    architecture: str
    size_mb: float
    description: str
    accuracy: str = ""


MODEL_REGISTRY: List[ModelInfo] = [
    ModelInfo(
        name="skin-efficientnet-b0",
        display_name="EfficientNet-B0 (Skin Lesion)",
        architecture="efficientnet_b0",
        size_mb=16.0,
        description="Five-way lesion classification: melanoma, BCC, SCC, benign, unknown.",
        accuracy="85-90% (HAM10000 hold-out)",
    ),
    ModelInfo(
        name="skin-mobilenet-v3",
        display_name="MobileNetV3-Large (Skin Lesion)",
        architecture="mobilenet_v3_large",
        size_mb=17.0,
        description="Lighter five-way lesion classifier for slower machines.",
        accuracy="82-87% (HAM10000 hold-out)",
    ),
]


class ModelManager:
    """Locates skin model weights on disk."""

    def __init__(self):
        self._models_dir = get_models_dir()

    def get_registry(self) -> List[ModelInfo]:
        return MODEL_REGISTRY

    def get_model_info(self, model_name: str) -> Optional[ModelInfo]:
        """Get info for a specific model."""
        for model in MODEL_REGISTRY:
            if model.name == model_name:
                return model
        return None

    def get_model_path(self, model_name: str) -> Path:
        """Get the local path for a model's weights file."""
        return self._models_dir / model_name / "model.pth"

    def is_model_available(self, model_name: str) -> bool:
        """A model is available when it is registered and its weights exist."""
        if self.get_model_info(model_name) is None:
            return False
        return self.get_model_path(model_name).exists()


# Module-level singleton
_model_manager: Optional[ModelManager] = None


def get_model_manager() -> ModelManager:
    """Get the global ModelManager instance."""
    global _model_manager
    if _model_manager is None:
        _model_manager = ModelManager()
    return _model_manager

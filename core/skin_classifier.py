"""Skin lesion classifier networks built on torchvision backbones."""

import logging
from pathlib import Path
from typing import Optional

import torch
import torch.nn as nn
from torchvision import models

from core.model_manager import ModelInfo
from core.utils import CLASS_ORDER

logger = logging.getLogger(__name__)

NUM_CLASSES = len(CLASS_ORDER)


def build_model(architecture: str = "efficientnet_b0", num_classes: int = NUM_CLASSES) -> nn.Module:
    """Create an untrained backbone with a lesion classification head."""
    if architecture == "efficientnet_b0":
        model = models.efficientnet_b0(weights=None)
        in_features = model.classifier[1].in_features
        model.classifier[1] = nn.Linear(in_features, num_classes)
    elif architecture == "mobilenet_v3_large":
        model = models.mobilenet_v3_large(weights=None)
        in_features = model.classifier[3].in_features
        model.classifier[3] = nn.Linear(in_features, num_classes)
    else:
        raise ValueError(f"Unknown architecture: {architecture}")
    return model


def load_model(info: ModelInfo, weights_path: Optional[Path] = None) -> nn.Module:
    """Build the registry model and load trained weights if they exist."""
    model = build_model(info.architecture)

    if weights_path is not None and weights_path.exists():
        state_dict = torch.load(str(weights_path), map_location="cpu", weights_only=True)
        model.load_state_dict(state_dict)
        logger.info("Loaded weights for %s from %s", info.name, weights_path)
    else:
        logger.warning("No trained weights for %s; using an untrained head", info.name)

    model.eval()
    return model

"""Serialized access to one loaded skin classifier.

The underlying model runtime is not reentrant, so ``classify`` calls run one
at a time. ``close`` drains in-flight calls before the model is released.
"""

import logging
import math
import threading
from typing import Optional

from core.errors import BusyError, ClosedResourceError, InferenceError
from core.model_manager import ModelManager, get_model_manager
from core.utils import CLASS_ORDER, RawScores

logger = logging.getLogger(__name__)


class InferenceEngine:
    """Owns a loaded model and produces per-class probabilities."""

    def __init__(
        self,
        model_name: str = "skin-efficientnet-b0",
        model=None,
        model_manager: Optional[ModelManager] = None,
    ):
        self._model_name = model_name
        self._injected_model = model
        self._model_manager = model_manager
        self._model = None

        self._run_lock = threading.Lock()
        self._state = threading.Condition()
        self._in_flight = 0
        self._open = False
        self._closing = False

    # --- Lifecycle ---

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def is_open(self) -> bool:
        with self._state:
            return self._open and not self._closing

    @property
    def in_flight(self) -> int:
        with self._state:
            return self._in_flight

    def open(self) -> "InferenceEngine":
        """Load the model. Calling open on an open engine is a no-op."""
        with self._state:
            if self._open:
                return self
            self._model = self._load_model()
            self._open = True
            self._closing = False
            logger.info("Inference engine opened with %s", self._model_name)
        return self

    def close(self, timeout: Optional[float] = None):
        """Release the model once all in-flight calls have finished.

        New calls are refused as soon as close starts. If the drain does not
        finish within ``timeout`` seconds, BusyError is raised and the engine
        stays open.
        """
        with self._state:
            if not self._open:
                return
            self._closing = True
            drained = self._state.wait_for(lambda: self._in_flight == 0, timeout=timeout)
            if not drained:
                self._closing = False
                raise BusyError(
                    f"Cannot close engine: {self._in_flight} classify call(s) still running"
                )
            self._model = None
            self._open = False
            self._closing = False
            logger.info("Inference engine closed")

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # --- Inference ---

    def classify(self, tensor, blocking: bool = True) -> RawScores:
        """Run the model on a preprocessed tensor.

        Blocking calls queue behind the running one; with ``blocking=False``
        a concurrent call fails with BusyError instead.
        """
        with self._state:
            if not self._open or self._closing:
                raise ClosedResourceError("Inference engine is closed")
            self._in_flight += 1
            model = self._model

        try:
            if not self._run_lock.acquire(blocking=blocking):
                raise BusyError("Inference engine is busy with another image")
            try:
                return self._run(model, tensor)
            finally:
                self._run_lock.release()
        finally:
            with self._state:
                self._in_flight -= 1
                self._state.notify_all()

    def _run(self, model, tensor) -> RawScores:
        import torch

        try:
            with torch.inference_mode():
                outputs = model(tensor)
                if outputs.ndim != 2 or outputs.shape[1] != len(CLASS_ORDER):
                    raise InferenceError(
                        f"Model returned shape {tuple(outputs.shape)}, "
                        f"expected (N, {len(CLASS_ORDER)})"
                    )
                probabilities = torch.nn.functional.softmax(outputs, dim=1)
                probs = probabilities.cpu().numpy()[0]
        except InferenceError:
            raise
        except Exception as e:
            logger.warning("Inference backend failed: %s", e)
            raise InferenceError(f"Inference backend failed: {e}") from e

        if not all(math.isfinite(float(p)) for p in probs):
            raise InferenceError("Model produced non-finite scores")

        return {cancer_type: float(probs[i]) for i, cancer_type in enumerate(CLASS_ORDER)}

    def _load_model(self):
        if self._injected_model is not None:
            self._injected_model.eval()
            return self._injected_model

        from core.skin_classifier import load_model

        manager = self._model_manager or get_model_manager()
        info = manager.get_model_info(self._model_name)
        if info is None:
            raise InferenceError(f"Unknown model: {self._model_name}")
        try:
            return load_model(info, manager.get_model_path(self._model_name))
        except Exception as e:
            raise InferenceError(f"Failed to load {self._model_name}: {e}") from e

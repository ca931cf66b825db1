"""Fake inference backends used across the test suite."""

import math
import threading
import time

import torch

from core.utils import CLASS_ORDER, CancerType


class FixedScoresModel(torch.nn.Module):
    """Returns logits whose softmax equals the given class probabilities."""

    def __init__(self, probabilities):
        super().__init__()
        logits = [math.log(p) for p in probabilities]
        self.register_buffer("logits", torch.tensor([logits], dtype=torch.float32))

    def forward(self, x):
        return self.logits.expand(x.shape[0], -1)


class SlowModel(FixedScoresModel):
    """Sleeps during forward and records how many calls overlapped."""

    def __init__(self, probabilities, delay=0.2):
        super().__init__(probabilities)
        self.delay = delay
        self.active = 0
        self.max_active = 0
        self.calls = 0
        self.started = threading.Event()
        self._counter_lock = threading.Lock()

    def forward(self, x):
        with self._counter_lock:
            self.active += 1
            self.calls += 1
            self.max_active = max(self.max_active, self.active)
        self.started.set()
        time.sleep(self.delay)
        with self._counter_lock:
            self.active -= 1
        return super().forward(x)


class FailingModel(torch.nn.Module):
    def forward(self, x):
        raise RuntimeError("backend exploded")


def probabilities_for(cancer_type: CancerType, confidence: float):
    """Class probabilities with ``confidence`` on one class and the rest spread evenly."""
    rest = (1.0 - confidence) / (len(CLASS_ORDER) - 1)
    return [confidence if c == cancer_type else rest for c in CLASS_ORDER]

"""Audio helpers."""

from __future__ import annotations

from typing import List

import numpy as np


def to_float32(chunk: np.ndarray) -> np.ndarray:
    data = np.asarray(chunk)
    if data.dtype == np.int16:
        return data.astype(np.float32) / 32768.0
    return data.astype(np.float32, copy=False)


def chunk_level(chunk: np.ndarray) -> float:
    """RMS level of a capture block, scaled to 0.0-1.0."""
    data = to_float32(chunk)
    if data.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(data**2)))


def to_mono(chunks: List[np.ndarray]) -> np.ndarray:
    if not chunks:
        return np.zeros(0, dtype=np.float32)
    data = np.concatenate([to_float32(chunk) for chunk in chunks], axis=0)
    if data.ndim == 2:
        if data.shape[1] > 1:
            return data.mean(axis=1)
        return data[:, 0]
    return data


def resample(samples: np.ndarray, from_rate: int, to_rate: int) -> np.ndarray:
    if from_rate == to_rate or samples.size == 0:
        return samples
    duration = samples.shape[0] / float(from_rate)
    target_len = max(1, int(round(duration * to_rate)))
    source_x = np.linspace(0.0, duration, num=samples.shape[0], endpoint=False)
    target_x = np.linspace(0.0, duration, num=target_len, endpoint=False)
    return np.interp(target_x, source_x, samples).astype(np.float32)

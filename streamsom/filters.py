"""
Running-mean filters and append-only time series for streaming statistics
"""

import math
from abc import ABC, abstractmethod
from typing import Iterator, List, NamedTuple

import numpy as np
import pandas as pd

from .validation import require_greater_equal


class RunningMeanFilter(ABC):
    """Base class for filters that smooth a stream of scalar values"""

    def __init__(self, name: str, window_size: int):
        if name is None:
            raise ValueError("name must not be None")
        require_greater_equal(window_size, "window_size", 1)
        self.name = name
        self.window_size = int(window_size)

    @abstractmethod
    def filter(self, value: float) -> float:
        """Feed ``value`` and return the filtered output"""

    @property
    @abstractmethod
    def last_output(self) -> float:
        pass


class SimpleRunningMeanFilter(RunningMeanFilter):
    """
    Mean of the last ``window_size`` values.

    The buffer starts zero-filled and the sum is always divided by the full
    window length, so outputs ramp up until the window has been filled once.
    """

    def __init__(self, name: str, window_size: int):
        super().__init__(name, window_size)
        self._buffer = np.zeros(self.window_size)
        self._index = 0
        self._sum = 0.0
        self._last_output = 0.0

    def filter(self, value: float) -> float:
        self._sum -= self._buffer[self._index]
        self._sum += value
        self._buffer[self._index] = value
        self._index = (self._index + 1) % self.window_size
        self._last_output = self._sum / self.window_size
        return self._last_output

    @property
    def last_output(self) -> float:
        return self._last_output


class TripleCascadedMeanFilter(RunningMeanFilter):
    """
    Three cascaded simple running means approximating a gaussian filter.

    Window sizes follow ``N_k = round(N / CONSTANT / WINDOW_RATIO**k)`` for
    k = 1, 2, 3, so their combined span matches ``window_size``.
    """

    WINDOW_RATIO = 1.2067
    CONSTANT = 2.08458

    def __init__(self, name: str, window_size: int):
        super().__init__(name, window_size)
        self._stages = [
            SimpleRunningMeanFilter(f"Cascaded Filter {i + 1}", size)
            for i, size in enumerate(self.window_sizes(self.window_size))
        ]

    @classmethod
    def window_sizes(cls, window_size: int) -> List[int]:
        m = window_size / cls.CONSTANT
        # Round half up, never below one sample
        return [
            max(1, int(math.floor(m / cls.WINDOW_RATIO**k + 0.5))) for k in (1, 2, 3)
        ]

    def filter(self, value: float) -> float:
        for stage in self._stages:
            value = stage.filter(value)
        return value

    @property
    def last_output(self) -> float:
        return self._stages[-1].last_output


class TimeValue(NamedTuple):
    time: int
    value: float


class TimeSeries:
    """Append-only, chronologically ordered series of (time, value) pairs"""

    def __init__(self, name: str):
        self.name = name
        self._series: List[TimeValue] = []

    def append(self, time: int, value: float) -> None:
        if self._series and time <= self._series[-1].time:
            raise ValueError(
                f"Invalid time ({time}) when last appended was "
                f"({self._series[-1].time}). Must be in increasing order."
            )
        self._series.append(TimeValue(time, float(value)))

    def __len__(self) -> int:
        return len(self._series)

    def __iter__(self) -> Iterator[TimeValue]:
        return iter(self._series)

    def __getitem__(self, index: int) -> TimeValue:
        return self._series[index]

    def is_empty(self) -> bool:
        return not self._series

    def clear(self) -> None:
        self._series.clear()

    def to_frame(self) -> pd.DataFrame:
        """Series as a DataFrame with ``time`` and ``value`` columns"""
        return pd.DataFrame(self._series, columns=["time", "value"])

    def to_csv(self, path: str, separator: str = ",") -> None:
        try:
            self.to_frame().to_csv(path, sep=separator, index=False)
        except (IOError, OSError) as e:
            raise IOError(f"Failed to export time series to {path}: {e}")

    def __repr__(self) -> str:
        return f"TimeSeries(name={self.name!r}, size={len(self._series)})"

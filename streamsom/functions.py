"""
Decay schedules and neighborhood kernels used by the learning rules
"""

import numpy as np

from .config import DecaySchedule, NeighborhoodKernel
from .validation import require_non_negative


class DecayFunction:
    """Parameter schedules interpolating from ``pi`` (t = 0) to ``pf`` (t >= T)"""

    @staticmethod
    def exponential(pi: float, pf: float, t: int, T: int) -> float:
        """
        Decreasing exponential decay.

        Args:
            pi: initial value
            pf: final value
            t: current iteration
            T: total iterations

        Returns:
            ``pi * (pf / pi) ** (t / T)``, or ``pf`` once ``t >= T``
        """
        require_non_negative(t, "t")
        require_non_negative(T, "T")
        require_non_negative(pi, "pi")
        require_non_negative(pf, "pf")
        if t >= T:
            return pf
        if pi == 0:
            return pi
        return pi * (pf / pi) ** (t / T)

    @staticmethod
    def linear(pi: float, pf: float, t: int, T: int) -> float:
        """Linear interpolation between ``pi`` and ``pf``, saturating at ``pf``"""
        require_non_negative(t, "t")
        require_non_negative(T, "T")
        if t >= T:
            return pf
        return pi + (pf - pi) * t / T

    @staticmethod
    def inverse_time(pi: float, pf: float, C: float, t: int, T: int) -> float:
        """
        Inverse-time decay ``(pi - pf) / (1 + (T / C) * t) + pf``.

        Higher values of ``C`` yield slower decays; it must be estimated
        empirically for the chosen ``T``.
        """
        require_non_negative(t, "t")
        require_non_negative(T, "T")
        require_non_negative(C, "C")
        if C == 0:
            return pf if t > 0 else pi
        c = T / C
        return ((pi - pf) / (1 + c * t)) + pf


def decay(
    schedule: DecaySchedule, pi: float, pf: float, t: int, T: int, C: float = 1.0
) -> float:
    """Evaluate ``schedule`` at iteration ``t`` of ``T``"""
    if schedule == DecaySchedule.LINEAR:
        return DecayFunction.linear(pi, pf, t, T)
    elif schedule == DecaySchedule.INVERSE_TIME:
        return DecayFunction.inverse_time(pi, pf, C, t, T)
    else:  # EXPONENTIAL
        return DecayFunction.exponential(pi, pf, t, T)


class NeighboringFunction:
    """
    Neighborhood kernels over lattice distance.

    All kernels accept scalars or numpy arrays for ``dist``.
    """

    @staticmethod
    def gaussian(dist, sigma: float):
        """``exp(-dist^2 / sigma^2)``; non-finite when sigma is 0 at dist 0"""
        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            return np.exp(-(np.square(dist)) / (sigma * sigma))

    @staticmethod
    def bubble(dist, sigma: float):
        """1 inside the radius ``sigma``, 0 outside"""
        return np.where(np.asarray(dist) <= sigma, 1.0, 0.0)

    @staticmethod
    def pyramid(dist, sigma: float):
        """Triangle kernel, linearly decreasing inside the radius ``sigma``"""
        dist = np.asarray(dist, dtype=np.float64)
        return np.where(dist <= sigma, 1.0 - dist / (sigma + 1), 0.0)


def neighborhood(kernel: NeighborhoodKernel, dist, sigma: float):
    """Evaluate ``kernel`` over lattice distances"""
    if kernel == NeighborhoodKernel.BUBBLE:
        return NeighboringFunction.bubble(dist, sigma)
    elif kernel == NeighborhoodKernel.PYRAMID:
        return NeighboringFunction.pyramid(dist, sigma)
    else:  # GAUSSIAN
        return NeighboringFunction.gaussian(dist, sigma)


# Kernel values below this leave the neuron untouched
NEIGHBORHOOD_CUTOFF = 0.01


def updatable(neigh: np.ndarray) -> np.ndarray:
    """Mask of kernel values that drive an update: finite and within [0.01, 1]"""
    neigh = np.asarray(neigh)
    with np.errstate(invalid="ignore"):
        return np.isfinite(neigh) & (neigh >= NEIGHBORHOOD_CUTOFF) & (neigh <= 1)

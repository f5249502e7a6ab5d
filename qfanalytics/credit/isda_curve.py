"""
================================================================================
ISDA-COMPLIANT CURVES
================================================================================
A curve is a set of knots t_i with values r_i t_i, where r_i is the
continuously compounded zero rate (yield curve) or the average hazard rate
(credit curve). Between knots r(t) t is linear in t, so the instantaneous
forward rate (or hazard rate) is piecewise constant:

    P(t)  = exp(-r(t) t)                  discount factor / survival probability
    f(t)  = d(r t)/dt                     forward rate / hazard rate

Before the first knot r(t) = r_0 (flat); after the last knot the final
segment of r t is extrapolated linearly.

Times are year fractions from the valuation date.
================================================================================
"""

from typing import Sequence

import numpy as np


class IsdaCompliantCurve:
    """
    Piecewise-linear r(t) t curve.

    Parameters
    ----------
    t : array-like
        Strictly increasing, positive knot times.
    r : array-like
        Zero rates at the knots (same length as ``t``).
    """

    def __init__(self, t: Sequence[float], r: Sequence[float]):
        t = np.asarray(t, dtype=float)
        r = np.asarray(r, dtype=float)
        if t.ndim != 1 or len(t) == 0:
            raise ValueError("at least one knot is required")
        if r.shape != t.shape:
            raise ValueError(f"t ({len(t)}) and r ({len(r)}) must have the same length")
        if not t[0] > 0.0:
            raise ValueError(f"first knot must be positive, got {t[0]}")
        if np.any(np.diff(t) <= 0.0):
            raise ValueError("knot times must be strictly increasing")
        self._t = t
        # no check that rt is ascending; negative forwards are allowed
        self._rt = r * t

    @classmethod
    def from_rt(cls, t, rt):
        """Build directly from knot values of r(t) t."""
        t = np.asarray(t, dtype=float)
        rt = np.asarray(rt, dtype=float)
        return cls(t, rt / t)

    @classmethod
    def from_forward_rates(cls, t, forward_rates):
        """Build from piecewise-constant forward rates, one per segment (0, t_0], (t_0, t_1], ..."""
        t = np.asarray(t, dtype=float)
        fwd = np.asarray(forward_rates, dtype=float)
        if fwd.shape != t.shape:
            raise ValueError(f"t ({len(t)}) and forward rates ({len(fwd)}) must have the same length")
        dt = np.diff(np.concatenate([[0.0], t]))
        return cls.from_rt(t, np.cumsum(fwd * dt))

    # ------------------------------------------------------------------
    # Knots
    # ------------------------------------------------------------------
    @property
    def knot_times(self) -> np.ndarray:
        return self._t.copy()

    @property
    def knot_rt(self) -> np.ndarray:
        return self._rt.copy()

    @property
    def knot_zero_rates(self) -> np.ndarray:
        return self._rt / self._t

    @property
    def number_of_knots(self) -> int:
        return len(self._t)

    def time_at_index(self, index: int) -> float:
        return float(self._t[index])

    def zero_rate_at_index(self, index: int) -> float:
        return float(self._rt[index] / self._t[index])

    # ------------------------------------------------------------------
    # Interpolation
    # ------------------------------------------------------------------
    def _segment(self, time: float) -> int:
        """Index i of the knot closing the segment (t_{i-1}, t_i] that holds ``time``."""
        n = len(self._t)
        idx = int(np.searchsorted(self._t, time, side="left"))
        return min(idx, n - 1)

    def rt(self, time: float) -> float:
        """r(t) t at an arbitrary time."""
        t = self._t
        if time <= t[0] or len(t) == 1:
            return float(self._rt[0] * time / t[0])
        i = self._segment(time)
        if t[i] == time:
            return float(self._rt[i])
        t1, t2 = t[i - 1], t[i]
        return float(((t2 - time) * self._rt[i - 1] + (time - t1) * self._rt[i]) / (t2 - t1))

    def zero_rate(self, time: float) -> float:
        if time <= self._t[0]:
            return float(self._rt[0] / self._t[0])
        return self.rt(time) / time

    def discount_factor(self, time: float) -> float:
        return float(np.exp(-self.rt(time)))

    def forward_rate(self, time: float) -> float:
        """Instantaneous forward rate, constant on each segment."""
        t = self._t
        if time <= t[0] or len(t) == 1:
            return float(self._rt[0] / t[0])
        i = self._segment(time)
        return float((self._rt[i] - self._rt[i - 1]) / (t[i] - t[i - 1]))

    # ------------------------------------------------------------------
    # Node sensitivities
    # ------------------------------------------------------------------
    def single_node_rt_sensitivity(self, time: float, node_index: int) -> float:
        """d(r(t) t) / d(r_node)."""
        t = self._t
        n = len(t)
        if not 0 <= node_index < n:
            raise IndexError(f"node index {node_index} outside [0, {n})")
        if time <= t[0] or n == 1:
            return time if node_index == 0 else 0.0
        i = self._segment(time)
        if t[i] == time:
            return time if node_index == i else 0.0
        if node_index not in (i - 1, i):
            return 0.0
        t1, t2 = t[i - 1], t[i]
        if node_index == i:
            return float(t2 * (time - t1) / (t2 - t1))
        return float(t1 * (t2 - time) / (t2 - t1))

    def single_node_sensitivity(self, time: float, node_index: int) -> float:
        """d(zero rate at t) / d(r_node)."""
        if time <= self._t[0]:
            return 1.0 if node_index == 0 else 0.0
        return self.single_node_rt_sensitivity(time, node_index) / time

    def node_sensitivity(self, time: float) -> np.ndarray:
        """Vector of zero-rate sensitivities to every node."""
        return np.array([self.single_node_sensitivity(time, i)
                         for i in range(self.number_of_knots)])

    def single_node_discount_factor_sensitivity(self, time: float, node_index: int) -> float:
        return -self.single_node_rt_sensitivity(time, node_index) * self.discount_factor(time)

    # ------------------------------------------------------------------
    # Copies
    # ------------------------------------------------------------------
    def with_rates(self, r):
        """Same knots, new zero rates."""
        return type(self)(self._t, r)

    def with_rate(self, rate: float, index: int):
        """Same curve with the zero rate at one knot replaced."""
        r = self.knot_zero_rates
        r[index] = rate
        return type(self)(self._t, r)

    def with_discount_factor(self, discount_factor: float, index: int):
        return self.with_rate(-np.log(discount_factor) / self._t[index], index)

    def __repr__(self):
        return (f"{type(self).__name__}(t={np.round(self._t, 6).tolist()}, "
                f"r={np.round(self.knot_zero_rates, 8).tolist()})")


class IsdaCompliantYieldCurve(IsdaCompliantCurve):
    """Risk-free discount curve."""


class IsdaCompliantCreditCurve(IsdaCompliantCurve):
    """
    Credit curve: r(t) is the average hazard rate to t and the forward rate
    is the (piecewise-constant) hazard rate.
    """

    @classmethod
    def from_hazard_rates(cls, t, hazard_rates) -> "IsdaCompliantCreditCurve":
        return cls.from_forward_rates(t, hazard_rates)

    def survival_probability(self, time: float) -> float:
        return self.discount_factor(time)

    def hazard_rate(self, time: float) -> float:
        return self.forward_rate(time)

    def default_probability(self, time: float) -> float:
        return 1.0 - self.survival_probability(time)

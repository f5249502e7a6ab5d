"""
================================================================================
CDS CONTRACT DESCRIPTION FOR ANALYTIC PRICING
================================================================================
A CDS reduced to the numbers the ISDA standard model needs, all expressed as
year fractions from the trade date:

    step-in        protection (and accrued premium) starts the day after trade
    cash settle    upfront amount paid, typically T+3 business days
    accrual start  start of the current premium period (previous IMM date)
    maturity       end of protection

Premium accrues on an ACT/360 basis while curve time is ACT/365F, so each
coupon carries its own year fraction together with the ratio of that year
fraction to its length in curve time.

With protection from the start of day, the effective start and end of each
period (and of protection) are moved one day earlier.
================================================================================
"""

from dataclasses import dataclass, replace
from typing import Tuple

import numpy as np

ONE_DAY = 1.0 / 365.0
ACT_360_RATIO = 365.0 / 360.0


@dataclass(frozen=True)
class CdsCoupon:
    """
    One premium period.

    Attributes:
        effective_start: Start of the period's protection (curve time)
        effective_end: End of the period's protection (curve time)
        payment_time: Payment time of the coupon
        year_frac: Accrual year fraction of the period (premium basis)
        yf_ratio: year_frac / (effective_end - effective_start)
    """
    effective_start: float
    effective_end: float
    payment_time: float
    year_frac: float
    yf_ratio: float

    @classmethod
    def make(cls, accrual_start: float, accrual_end: float, payment_time: float,
             protection_from_start: bool = True,
             accrual_ratio: float = ACT_360_RATIO) -> "CdsCoupon":
        if not accrual_end > accrual_start:
            raise ValueError(
                f"accrual end ({accrual_end}) must be after accrual start ({accrual_start})")
        shift = ONE_DAY if protection_from_start else 0.0
        eff_start = accrual_start - shift
        eff_end = accrual_end - shift
        year_frac = (accrual_end - accrual_start) * accrual_ratio
        return cls(eff_start, eff_end, payment_time, year_frac,
                   year_frac / (eff_end - eff_start))


@dataclass(frozen=True)
class CdsAnalytic:
    """
    Analytic representation of a single-name or index CDS.

    Build with :meth:`make`; fields are derived from the schedule and should
    not normally be set by hand.
    """
    coupons: Tuple[CdsCoupon, ...]
    accrual_start: float
    effective_protection_start: float
    protection_end: float
    cash_settle_time: float
    accrued_year_fraction: float
    lgd: float
    pay_acc_on_default: bool = True

    @classmethod
    def make(cls, step_in_time: float, cash_settle_time: float,
             accrual_start_time: float, maturity: float,
             payment_interval: float = 0.25, recovery_rate: float = 0.4,
             pay_acc_on_default: bool = True, protection_from_start: bool = True,
             accrual_ratio: float = ACT_360_RATIO) -> "CdsAnalytic":
        """
        Build the coupon schedule and protection window of a CDS.

        Args:
            step_in_time: Protection start (usually trade date + 1 day)
            cash_settle_time: Time of the upfront payment (>= 0)
            accrual_start_time: Start of the first accrual period; at or
                before the step-in for a spot-start CDS
            maturity: Protection end
            payment_interval: Premium period length (0.25 for quarterly)
            recovery_rate: Expected recovery in [0, 1]
            pay_acc_on_default: Whether the premium accrued at default is paid
            protection_from_start: Protection starts at the beginning of
                the day, shifting effective times one day earlier
            accrual_ratio: Premium day count over curve day count

        Returns:
            CdsAnalytic
        """
        if not cash_settle_time >= 0.0:
            raise ValueError(f"cash_settle_time must be non-negative, got {cash_settle_time}")
        if not maturity > accrual_start_time:
            raise ValueError(
                f"maturity ({maturity}) must be after the accrual start ({accrual_start_time})")
        if not payment_interval > 0.0:
            raise ValueError(f"payment_interval must be positive, got {payment_interval}")
        if not 0.0 <= recovery_rate <= 1.0:
            raise ValueError(f"recovery_rate must be in [0, 1], got {recovery_rate}")

        n_periods = max(1, int(np.ceil((maturity - accrual_start_time) / payment_interval - 1e-9)))
        ends = accrual_start_time + payment_interval * np.arange(1, n_periods + 1)
        ends[-1] = maturity
        starts = np.concatenate([[accrual_start_time], ends[:-1]])
        # the final period accrues through the maturity date; the same
        # one-day shift moves the protection start to the start of step-in day
        shift = ONE_DAY if protection_from_start else 0.0

        coupons = []
        for k, (a, b) in enumerate(zip(starts, ends)):
            last = k == n_periods - 1
            if not last and b <= step_in_time:
                continue
            coupons.append(CdsCoupon.make(a, b + shift if last else b, b,
                                          protection_from_start, accrual_ratio))
        acc_start = float(starts[n_periods - len(coupons)])

        eff_prot_start = max(step_in_time - shift, 0.0)
        accrued = max(0.0, (step_in_time - acc_start) * accrual_ratio)

        return cls(coupons=tuple(coupons), accrual_start=acc_start,
                   effective_protection_start=eff_prot_start,
                   protection_end=float(maturity),
                   cash_settle_time=float(cash_settle_time),
                   accrued_year_fraction=accrued, lgd=1.0 - recovery_rate,
                   pay_acc_on_default=pay_acc_on_default)

    @property
    def num_payments(self) -> int:
        return len(self.coupons)

    def coupon(self, index: int) -> CdsCoupon:
        return self.coupons[index]

    @property
    def recovery_rate(self) -> float:
        return 1.0 - self.lgd

    def with_recovery_rate(self, recovery_rate: float) -> "CdsAnalytic":
        if not 0.0 <= recovery_rate <= 1.0:
            raise ValueError(f"recovery_rate must be in [0, 1], got {recovery_rate}")
        return replace(self, lgd=1.0 - recovery_rate)

    def accrued_premium(self, fractional_spread: float) -> float:
        """Accrued premium per unit notional at step-in."""
        return self.accrued_year_fraction * fractional_spread

    def is_expired(self) -> bool:
        return self.protection_end <= 0.0

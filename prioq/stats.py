from collections import namedtuple
from typing import Optional, Sequence

import numpy as np
import scipy.stats


Interval = namedtuple('Interval', ['lower', 'mean', 'upper', 'precision'])


def unbiased_variance(samples: Sequence[float],
                      mean: Optional[float] = None) -> float:
    """
    Compute unbiased variance estimation `sum((x - mean)^2) / (n - 1)`.

    Parameters
    ----------
    samples : 1D array_like
    mean : float, optional
        mean value the deviations are taken around. If omitted, the sample
        mean is used.

    Returns
    -------
    variance : float
        zero, if less than two samples given
    """
    values = np.asarray(samples, dtype=float)
    n = len(values)
    if n < 2:
        return 0.0
    if mean is None:
        mean = values.mean()
    return float(np.sum((values - mean)**2) / (n - 1))


def interval_precision(lower: float, upper: float) -> float:
    """
    Get relative precision of the interval: half-width divided by center.
    """
    total = upper + lower
    if total == 0:
        return 0.0
    return (upper - lower) / total


def mean_interval(mean: float, variance: float, n: int,
                  confidence: float = 0.95) -> Interval:
    """
    Build confidence interval for the mean of `n` independent estimations.

    Interval is `mean +/- t * sqrt(variance / n)`, where `t` is the
    `(1 + confidence) / 2` quantile of Student's distribution with
    `n - 1` degrees of freedom.

    Parameters
    ----------
    mean : float
        average of the estimations
    variance : float
        unbiased variance of the estimations
    n : int
        number of estimations, at least 2
    confidence : float, optional
        confidence level (default: 0.95)

    Returns
    -------
    interval : Interval
    """
    if n < 2:
        raise ValueError(f"at least two estimations expected, but {n} found")
    quantile = scipy.stats.t.ppf((1 + confidence) / 2, n - 1)
    half_width = quantile * (variance / n)**0.5
    lower, upper = mean - half_width, mean + half_width
    return Interval(lower=lower, mean=mean, upper=upper,
                    precision=interval_precision(lower, upper))


def variance_interval(variance: float, precision: float) -> Interval:
    """
    Build interval for the variance estimation with the given precision.

    Parameters
    ----------
    variance : float
    precision : float
        relative half-width of the interval

    Returns
    -------
    interval : Interval
    """
    lower = variance * (1 - precision)
    upper = variance * (1 + precision)
    return Interval(lower=lower, mean=variance, upper=upper,
                    precision=interval_precision(lower, upper))

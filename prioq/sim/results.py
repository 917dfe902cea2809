from collections import OrderedDict
from typing import Optional, Sequence

import numpy as np
from tabulate import tabulate

from prioq.config import Params
from prioq.sim.rounds import Round, ESTIMATORS, LABELS, MEAN_ESTIMATORS, \
    VARIANCE_ESTIMATORS
from prioq.stats import Interval, mean_interval, unbiased_variance, \
    variance_interval


class Results:
    """
    Results of the batch means simulation.

    Built from the closed measured rounds (transient round excluded). For
    each mean estimator (waiting times, sojourn times and queue sizes) a
    confidence interval is built from the spread of per-round values.
    Variance estimators get an interval of the fixed relative precision
    given in parameters.

    To pretty print the results one can make use of `tabulate()` method.
    """
    def __init__(self, rounds: Sequence[Round], params: Params,
                 transient: Optional[Round] = None, real_time: float = 0.0):
        """
        Create results.

        Parameters
        ----------
        rounds : sequence of Round
            closed measured rounds in order
        params : Params
        transient : Round, optional
        real_time : float, optional
            wall-clock duration of the simulation, seconds
        """
        self.rounds = list(rounds)
        self.params = params
        self.transient = transient
        self.real_time = real_time
        self.intervals: 'OrderedDict[str, Interval]' = OrderedDict()

        n = self.num_rounds
        if n == 0:
            return

        for name in MEAN_ESTIMATORS:
            values = self.get_values(name)
            mean = float(values.mean())
            if n > 1:
                self.intervals[name] = mean_interval(
                    mean, unbiased_variance(values, mean), n,
                    confidence=params.confidence)
            else:
                self.intervals[name] = Interval(
                    lower=np.nan, mean=mean, upper=np.nan, precision=np.nan)

        for name in VARIANCE_ESTIMATORS:
            mean = float(self.get_values(name).mean())
            self.intervals[name] = variance_interval(
                mean, params.variance_precision)

    @property
    def num_rounds(self) -> int:
        return len(self.rounds)

    def get_values(self, name: str) -> np.ndarray:
        """
        Get per-round values of the estimator.

        Parameters
        ----------
        name : str
            estimator attribute name, e.g. 'E_W1' or 'V_W2'

        Returns
        -------
        values : np.ndarray
        """
        if name not in ESTIMATORS:
            raise KeyError(f"unknown estimator {name}")
        return np.asarray([getattr(r, name) for r in self.rounds])

    def __getitem__(self, name: str) -> Interval:
        return self.intervals[name]

    def tabulate(self) -> str:
        """
        Build a pretty formatted table with intervals of all estimators.
        """
        items = [
            (LABELS[name], iv.lower, iv.mean, iv.upper,
             f'{iv.precision * 100:.2f}%')
            for name, iv in self.intervals.items()
        ]
        return tabulate(
            items, headers=('Param', 'Lower', 'Mean', 'Upper', 'Precision'),
            floatfmt='.6f')

    def tabulate_rounds(self) -> str:
        """
        Build a table with estimators of each measured round.
        """
        items = [
            [r.index] + list(r.estimators.values()) for r in self.rounds
        ]
        headers = ['Round'] + [LABELS[name] for name in ESTIMATORS]
        return tabulate(items, headers=headers, floatfmt='.6f')

    def __repr__(self):
        return f"(Results: rounds={self.num_rounds}, " \
               f"real_time={self.real_time:.3f})"

from collections import OrderedDict
from typing import List, Optional

from prioq.errors import RoundError
from prioq.sim.helpers import TimeIntegral
from prioq.stats import unbiased_variance


# Estimator attribute names in report order, and their printable labels.
ESTIMATORS = (
    'E_W1', 'E_T1', 'E_Nq1', 'E_N1',
    'E_W2', 'E_T2', 'E_Nq2', 'E_N2',
    'V_W1', 'V_W2',
)
MEAN_ESTIMATORS = ESTIMATORS[:8]
VARIANCE_ESTIMATORS = ESTIMATORS[8:]
LABELS = {name: f"{name[0]}[{name[2:]}]" for name in ESTIMATORS}


class Round:
    """
    One batch of observations (a round of the batch means method).

    While the round is open, it accumulates sums of waiting and sojourn
    times of the customers arrived in it, and time integrals of the queue
    sizes observed while it was the current round. Rounds are linked
    with `next` into an append-only sequence, the first of which is the
    transient round.

    When all `quota` customers of the round depart, the round is closed:
    sums are divided by the number of customers, integrals by the round
    duration, and variances of waiting times are computed from the
    per-customer samples. Closed round is immutable.

    Per-customer waiting time samples are recorded for non-transient
    rounds only. Stage 1 sample is overwritten on service start, since a
    customer starts stage 1 service exactly once. Stage 2 sample is
    accumulated, since stage 2 service may be preempted and restarted.
    """
    def __init__(self, index: int, start: float, quota: int,
                 transient: bool = False):
        """
        Create a round.

        Parameters
        ----------
        index : int
            round number, zero for the transient round
        start : float
            time when the round was opened
        quota : int
            number of customers in the round
        transient : bool, optional
            whether the round is the transient one (default: False)
        """
        self.index = index
        self.start = start
        self.quota = quota
        self.transient = transient
        self.next: Optional['Round'] = None

        self.num_arrivals = 0
        self.num_departures = 0
        self.closed = False

        # Sums of waiting and sojourn times:
        self._w1_sum = 0.0
        self._t1_sum = 0.0
        self._w2_sum = 0.0
        self._t2_sum = 0.0

        # Queue sizes integrals:
        self.nq1 = TimeIntegral(start)
        self.n1 = TimeIntegral(start)
        self.nq2 = TimeIntegral(start)
        self.n2 = TimeIntegral(start)

        # Per-customer waiting times, indexed by round-local index:
        self.w1: List[float] = []
        self.w2: List[float] = []

        # Estimators, valid after close():
        self.E_W1 = 0.0
        self.E_T1 = 0.0
        self.E_Nq1 = 0.0
        self.E_N1 = 0.0
        self.E_W2 = 0.0
        self.E_T2 = 0.0
        self.E_Nq2 = 0.0
        self.E_N2 = 0.0
        self.V_W1 = 0.0
        self.V_W2 = 0.0

    @property
    def quota_reached(self) -> bool:
        """
        Check whether all customers of the round have arrived.
        """
        return self.num_arrivals == self.quota

    @property
    def completed(self) -> bool:
        """
        Check whether all customers of the round have departed.
        """
        return self.num_departures == self.quota

    @property
    def duration(self) -> float:
        if self.next is None:
            raise RoundError("next round not started", self.index)
        return self.next.start - self.start

    def _check_open(self):
        if self.closed:
            raise RoundError("round is closed", self.index)

    def register_arrival(self) -> int:
        """
        Count a new customer arrival and get its index in the round.
        """
        self._check_open()
        if self.num_arrivals >= self.quota:
            raise RoundError(f"arrivals quota {self.quota} exceeded",
                             self.index)
        index = self.num_arrivals
        self.num_arrivals += 1
        if not self.transient:
            self.w1.append(0.0)
            self.w2.append(0.0)
        return index

    def register_departure(self) -> None:
        """
        Count a departure of the customer arrived in this round.
        """
        self._check_open()
        if self.num_departures >= self.num_arrivals:
            raise RoundError(
                f"departure #{self.num_departures + 1} without arrival, "
                f"only {self.num_arrivals} arrived", self.index)
        self.num_departures += 1

    def add_wait1(self, index: int, delay: float) -> None:
        self._check_open()
        self._w1_sum += delay
        if not self.transient:
            self.w1[index] = delay

    def add_wait2(self, index: int, delay: float) -> None:
        self._check_open()
        self._w2_sum += delay
        if not self.transient:
            self.w2[index] += delay

    def add_sojourn1(self, delay: float) -> None:
        self._check_open()
        self._t1_sum += delay

    def add_sojourn2(self, delay: float) -> None:
        self._check_open()
        self._t2_sum += delay

    def freeze(self, time: float, nq1: int, n1: int, nq2: int,
               n2: int) -> None:
        """
        Make the last update of all queue size integrals.

        Called when the round stops being the current one, so the integrals
        cover the whole round duration, from its start till the next round
        start.
        """
        self._check_open()
        self.nq1.update(time, nq1)
        self.n1.update(time, n1)
        self.nq2.update(time, nq2)
        self.n2.update(time, n2)

    def close(self) -> None:
        """
        Turn accumulated sums into estimators.

        Raises
        ------
        RoundError
            if the round is already closed, some customers have not
            departed yet, next round does not exist or round duration is zero
        """
        self._check_open()
        if not self.completed:
            raise RoundError(
                f"can not close with {self.num_departures} departures "
                f"of {self.quota}", self.index)
        duration = self.duration
        if duration <= 0:
            raise RoundError(f"non-positive duration {duration}", self.index)

        n = self.num_arrivals
        self.E_W1 = self._w1_sum / n
        self.E_T1 = self._t1_sum / n
        self.E_W2 = self._w2_sum / n
        self.E_T2 = self._t2_sum / n
        self.E_Nq1 = self.nq1.value / duration
        self.E_N1 = self.n1.value / duration
        self.E_Nq2 = self.nq2.value / duration
        self.E_N2 = self.n2.value / duration
        self.V_W1 = unbiased_variance(self.w1, self.E_W1)
        self.V_W2 = unbiased_variance(self.w2, self.E_W2)
        self.closed = True

    @property
    def estimators(self) -> 'OrderedDict[str, float]':
        """
        Get estimators in report order, keyed by attribute names.
        """
        return OrderedDict((name, getattr(self, name)) for name in ESTIMATORS)

    def __repr__(self):
        kind = 'transient' if self.transient else 'regular'
        return f"(Round: index={self.index}, {kind}, " \
               f"start={self.start:g}, arrivals={self.num_arrivals}, " \
               f"departures={self.num_departures}, closed={self.closed})"

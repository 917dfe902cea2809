from functools import lru_cache, cached_property
from math import factorial, log
from typing import Callable, Optional, Union

import numpy as np


class RandomSource:
    """
    A single pseudo-random stream.

    All stochastic timings of one simulation run are drawn from one source,
    so the whole run is reproducible from the seed the source was created
    with. The source is backed by NumPy `Generator` (PCG64).
    """
    def __init__(self, seed: Optional[int] = None):
        self._seed = seed
        self._rng = np.random.default_rng(seed)

    @property
    def seed(self) -> Optional[int]:
        return self._seed

    def uniform(self) -> float:
        """
        Draw a sample from the open interval (0, 1).

        NumPy generator yields values from [0, 1), so zero is redrawn: it
        would turn an exponential sample into infinity.
        """
        u = self._rng.random()
        while u <= 0.0:
            u = self._rng.random()
        return u

    def exponential(self, rate: float) -> float:
        """
        Draw an exponential sample with the given rate.

        The sample is computed with inverse CDF transform: `-ln(U) / rate`.

        Parameters
        ----------
        rate : float
            positive rate of the exponential distribution

        Returns
        -------
        value : float
        """
        if rate <= 0.0:
            raise ValueError(f"positive rate expected, but {rate} found")
        return -log(self.uniform()) / rate

    def __repr__(self):
        return f"(RandomSource: seed={self._seed})"


default_random_source = RandomSource()


class Distribution:
    """
    Base class for continuous distributions sampled from a `RandomSource`.
    """
    def __init__(self, source: Optional[RandomSource] = None):
        self._source = source or default_random_source

    @property
    def source(self) -> RandomSource:
        return self._source

    @cached_property
    def mean(self) -> float:
        """
        Get mean value of the random variable.
        """
        return self._moment(1)

    @cached_property
    def var(self) -> float:
        """
        Get variance (dispersion) of the random variable.
        """
        return self._moment(2) - self._moment(1)**2

    @cached_property
    def std(self) -> float:
        """
        Get standard deviation of the random variable.
        """
        return self.var ** 0.5

    def moment(self, n: int) -> float:
        """
        Get n-th moment of the random variable.

        Parameters
        ----------
        n : int
            moment degree, for n=1 it is mean value

        Returns
        -------
        value : float

        Raises
        ------
        ValueError
            raised if n is not an integer or is non-positive
        """
        if n < 0 or (n - np.floor(n)) > 0:
            raise ValueError(f'positive integer expected, but {n} found')
        if n == 0:
            return 1
        return self._moment(n)

    def _moment(self, n: int) -> float:
        raise NotImplementedError

    def _eval(self) -> float:
        raise NotImplementedError

    def __call__(self, size: int = 1) -> Union[float, np.ndarray]:
        """
        Generate random samples of the random variable with this distribution.

        Parameters
        ----------
        size : int, optional
            number of values to generate (default: 1)

        Returns
        -------
        value : float or ndarray
            if size > 1, then returns a 1D array, otherwise a float scalar
        """
        if size == 1:
            return self._eval()
        return np.asarray([self._eval() for _ in range(size)])

    def copy(self) -> 'Distribution':
        raise NotImplementedError


class Exponential(Distribution):
    """
    Exponential random distribution.
    """
    def __init__(self, rate: float, source: Optional[RandomSource] = None):
        super().__init__(source)
        if rate <= 0.0:
            raise ValueError("exponential parameter must be positive")
        self._rate = rate

    @property
    def rate(self) -> float:
        return self._rate

    @lru_cache
    def _moment(self, n: int) -> float:
        return factorial(n) / (self._rate**n)

    @cached_property
    def pdf(self) -> Callable[[float], float]:
        r = self._rate
        base = np.e ** -r
        return lambda x: r * base**x if x >= 0 else 0.0

    @cached_property
    def cdf(self) -> Callable[[float], float]:
        r = self._rate
        base = np.e ** -r
        return lambda x: 1 - base**x if x >= 0 else 0.0

    def _eval(self) -> float:
        return self._source.exponential(self._rate)

    def __str__(self):
        return f"(Exp: rate={self._rate:g})"

    def copy(self) -> 'Exponential':
        return Exponential(self._rate, self._source)

    @staticmethod
    def fit(avg: float, source: Optional[RandomSource] = None) \
            -> 'Exponential':
        """
        Build a distribution for a given average.

        Parameters
        ----------
        avg : float
        source : RandomSource, optional

        Returns
        -------
        distribution : Exponential
        """
        return Exponential(1 / avg, source)

from .random import RandomSource, Distribution, Exponential, \
    default_random_source

from .errors import SimulationError, EmptyEventQueueError, ScheduleError, \
    CancelError, RoundError

from .stats import Interval, unbiased_variance, mean_interval, \
    variance_interval, interval_precision

from .config import Params, PRESETS, DEFAULT_SEED

from .sim import simulate, Results, Round, System

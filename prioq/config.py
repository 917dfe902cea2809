from dataclasses import dataclass
from typing import Dict, Tuple


DEFAULT_SEED = 358141284

# Batch sizes (K, K_t) per utilization, chosen so that all estimations
# reach about 5% precision with 4000 rounds.
PRESETS: Dict[float, Tuple[int, int]] = {
    0.2: (40, 40),
    0.4: (70, 120),
    0.6: (150, 300),
    0.8: (800, 900),
    0.9: (7000, 9000),
}


@dataclass
class Params:
    """
    Model parameters: service rate, utilization, batch sizes and limits.

    Arrival rate is derived from utilization: each customer brings two
    services of mean `1 / mu` to the single server, so
    `rho = 2 * lambda / mu` and `lambda = rho * mu / 2`.
    """
    service_rate: float = 1.0
    utilization: float = 0.6
    batch_size: int = 150
    transient_size: int = 300
    num_rounds: int = 4000
    seed: int = DEFAULT_SEED
    variance_precision: float = 0.044
    confidence: float = 0.95

    def __post_init__(self):
        if self.service_rate <= 0:
            raise ValueError(f"service rate must be positive, "
                             f"but {self.service_rate} found")
        if not 0 < self.utilization < 1:
            raise ValueError(f"utilization must be in (0, 1), "
                             f"but {self.utilization} found")
        if self.batch_size < 1:
            raise ValueError(f"batch size must be positive, "
                             f"but {self.batch_size} found")
        if self.transient_size < 1:
            raise ValueError(f"transient batch size must be positive, "
                             f"but {self.transient_size} found")
        if self.num_rounds < 1:
            raise ValueError(f"number of rounds must be positive, "
                             f"but {self.num_rounds} found")
        if self.variance_precision < 0:
            raise ValueError(f"precision must be non-negative, "
                             f"but {self.variance_precision} found")
        if not 0 < self.confidence < 1:
            raise ValueError(f"confidence must be in (0, 1), "
                             f"but {self.confidence} found")

    @property
    def arrival_rate(self) -> float:
        return self.utilization * self.service_rate / 2

    @staticmethod
    def for_utilization(utilization: float, **kwargs) -> 'Params':
        """
        Build parameters with batch sizes taken from the presets table.

        Parameters
        ----------
        utilization : float
            one of `PRESETS` keys
        kwargs
            any other `Params` fields

        Returns
        -------
        params : Params
        """
        try:
            batch_size, transient_size = PRESETS[utilization]
        except KeyError:
            known = ', '.join(f'{rho:g}' for rho in PRESETS)
            raise ValueError(f"no preset for utilization {utilization}, "
                             f"known: {known}") from None
        kwargs.setdefault('batch_size', batch_size)
        kwargs.setdefault('transient_size', transient_size)
        return Params(utilization=utilization, **kwargs)

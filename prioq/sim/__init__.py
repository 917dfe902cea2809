from .helpers import Event, EventQueue, FifoQueue, TimeIntegral
from .rounds import Round, ESTIMATORS, LABELS
from .results import Results
from .network import Customer, EventKind, System, simulate, step

"""
Two-stage single-server queueing network with preemptive priority.

Each customer is served twice by the same server: first at stage 1, then
at stage 2. The server always prefers stage 1 customers: when a stage 1
customer needs the server, stage 2 service is interrupted. Service times
are exponential, so the interrupted customer does not need to remember
the remaining service time: when restarted, it just gets a new one.

Customers stay in the stage queue while being served, so the head of each
queue is the customer in service, preempted, or about to be served.
"""
import dataclasses
import logging
from enum import Enum
from time import perf_counter
from typing import Callable, Dict, List, Optional

from prioq.config import Params
from prioq.errors import SimulationError, RoundError
from prioq.random import Exponential, RandomSource
from prioq.sim.helpers import Event, EventQueue, FifoQueue
from prioq.sim.results import Results
from prioq.sim.rounds import Round


logger = logging.getLogger(__name__)


class EventKind(Enum):
    ARRIVAL_1 = 0
    ARRIVAL_2 = 1
    DEPARTURE = 2


class Customer:
    """
    Customer traversing the network.

    Stores the round the customer arrived in, its index in this round
    (assigned on arrival), and two timestamps: when the customer entered
    its current state (waiting or service at some stage) and when it
    entered its current stage queue.
    """
    __slots__ = ('round', 'index', 'state_entered_at', 'queue_entered_at')

    def __init__(self, round_: Round):
        self.round = round_
        self.index: Optional[int] = None
        self.state_entered_at = 0.0
        self.queue_entered_at = 0.0

    def __repr__(self):
        return f"(Customer: round={self.round.index}, index={self.index})"


class System:
    """
    System state representation.

    This object owns both stage queues, the event queue, the rounds
    sequence and the pointer to the current round, that is the round new
    arrivals are attributed to. Queue size integrals are always recorded
    to the current round.
    """
    def __init__(self, params: Params, source: Optional[RandomSource] = None):
        """
        Constructor.

        Parameters
        ----------
        params : Params
            Model parameters
        source : RandomSource, optional
            Random stream. If omitted, a new one seeded with `params.seed`
            is created.
        """
        self.params = params
        self.source = source or RandomSource(params.seed)
        self.arrival = Exponential(params.arrival_rate, self.source)
        self.service = Exponential(params.service_rate, self.source)

        self.queue1: FifoQueue[Customer] = FifoQueue()
        self.queue2: FifoQueue[Customer] = FifoQueue()
        self.events = EventQueue()

        self.transient = Round(0, 0.0, params.transient_size, transient=True)
        self.current = self.transient
        self.rounds: List[Round] = [self.transient]
        self.num_closed = 0

        self.num_arrived = 0
        self.num_departed = 0
        self.num_preemptions = 0
        self.num_events = 0
        self.departure: Optional[Event] = None
        self._started = False

    @property
    def time(self) -> float:
        return self.events.time

    @property
    def finished(self) -> bool:
        """
        Check whether the transient and all measured rounds are closed.
        """
        return self.num_closed >= self.params.num_rounds + 1

    def get_nq1(self) -> int:
        """
        Get the number of customers waiting at stage 1.
        """
        size = self.queue1.size
        return size - 1 if size > 0 else 0

    def get_n1(self) -> int:
        """
        Get the number of customers at stage 1, including the one in service.
        """
        return self.queue1.size

    def get_nq2(self) -> int:
        """
        Get the number of customers waiting at stage 2.

        If stage 1 is not empty, stage 2 head is preempted and waits too.
        """
        size = self.queue2.size
        if self.queue1.size > 0:
            return size
        return size - 1 if size > 0 else 0

    def get_n2(self) -> int:
        """
        Get the number of customers at stage 2, including the one in service.
        """
        return self.queue2.size

    def start(self) -> None:
        """
        Schedule the first arrival. Must be called once before any step.
        """
        if self._started:
            raise SimulationError("system already started")
        self._started = True
        self.events.schedule(
            self.arrival(), EventKind.ARRIVAL_1, Customer(self.current))

    def open_round(self) -> Round:
        """
        Start a new round and make it current.

        Queue size integrals of the previous round get their last update,
        so they cover the whole previous round duration.
        """
        now = self.time
        prev_round = self.current
        prev_round.freeze(now, self.get_nq1(), self.get_n1(),
                          self.get_nq2(), self.get_n2())
        new_round = Round(len(self.rounds), now, self.params.batch_size)
        prev_round.next = new_round
        self.rounds.append(new_round)
        self.current = new_round
        logger.debug("round %d opened at %g", new_round.index, now)
        return new_round

    def close_round(self, round_: Round) -> None:
        """
        Close the round whose customers have all departed.
        """
        if round_.index != self.num_closed:
            raise RoundError(f"closed out of order, expected round "
                             f"{self.num_closed}", round_.index)
        round_.close()
        self.num_closed += 1
        if logger.isEnabledFor(logging.DEBUG):
            values = ', '.join(
                f"{name}={value:.6f}"
                for name, value in round_.estimators.items())
            logger.debug("round %d closed at %g: %s",
                         round_.index, self.time, values)

    def __repr__(self):
        return f"(System: t={self.time:g}, queue1={self.queue1.size}, " \
               f"queue2={self.queue2.size}, round={self.current.index}, " \
               f"closed={self.num_closed})"


def simulate(
        params: Optional[Params] = None,
        source: Optional[RandomSource] = None,
        **kwargs
) -> Results:
    """
    Run simulation of the two-stage network with preemptive priority.

    Simulation goes on until the transient round and `num_rounds` measured
    rounds are closed. Then confidence intervals are computed from the
    measured rounds estimators.

    Parameters
    ----------
    params : Params, optional
        Model parameters. If omitted, default parameters are used.
    source : RandomSource, optional
        Random stream. If omitted, it is created from `params.seed`.
    kwargs
        `Params` fields overriding the given (or default) ones,
        e.g. `simulate(utilization=0.4, num_rounds=100)`

    Returns
    -------
    results : Results
        Simulation results.
    """
    if params is None:
        params = Params(**kwargs)
    elif kwargs:
        params = dataclasses.replace(params, **kwargs)

    logger.info("simulation started: rho=%g, mu=%g, K=%d, K_t=%d, N=%d, "
                "seed=%s", params.utilization, params.service_rate,
                params.batch_size, params.transient_size, params.num_rounds,
                params.seed)
    t_start = perf_counter()

    system = System(params, source)
    system.start()
    while not system.finished:
        step(system)

    real_time = perf_counter() - t_start
    logger.info("simulation finished in %.3f s: %d events, model time %g",
                real_time, system.num_events,
                system.time)

    measured = system.rounds[1:params.num_rounds + 1]
    return Results(measured, params, transient=system.transient,
                   real_time=real_time)


def step(system: System) -> Event:
    """
    Extract the earliest event and process it.

    Parameters
    ----------
    system : System

    Returns
    -------
    event : Event
        the processed event
    """
    event = system.events.next()
    system.num_events += 1
    _HANDLERS[event.kind](system, event.customer)
    return event


def _handle_arrival_1(system: System, customer: Customer):
    """
    Handle new customer arrival at stage 1.

    The customer is counted in its round. If the round quota is reached,
    a new round is opened before the next arrival is scheduled, so the
    next customer belongs to the new round. If stage 1 was empty, the
    customer starts service immediately, preempting stage 2 service.

    Parameters
    ----------
    system : System
    customer : Customer
    """
    now = system.time
    current = system.current

    current.n1.update(now, system.get_n1())
    if system.get_n1() > 0:
        current.nq1.update(now, system.get_nq1())
    if system.get_n2() > 0:
        current.nq2.update(now, system.get_nq2())

    system.queue1.push(customer)
    customer.state_entered_at = now
    customer.queue_entered_at = now
    customer.index = customer.round.register_arrival()
    system.num_arrived += 1

    if customer.round.quota_reached:
        system.open_round()

    if system.queue1.size == 1:
        _start_service_1(system)

    system.events.schedule(
        now + system.arrival(), EventKind.ARRIVAL_1, Customer(system.current))


def _handle_arrival_2(system: System, customer: Customer):
    """
    Handle stage 1 service end: the customer moves to stage 2.

    After that, the server takes the next stage 1 customer, if any.
    Otherwise, it serves stage 2 head (which may be not this customer).

    Parameters
    ----------
    system : System
    customer : Customer
    """
    now = system.time
    customer.round.add_sojourn1(now - customer.queue_entered_at)
    customer.queue_entered_at = now
    customer.state_entered_at = now

    current = system.current
    current.n1.update(now, system.get_n1())
    current.n2.update(now, system.get_n2())
    current.nq2.update(now, system.get_nq2())
    if system.get_nq1() > 0:
        current.nq1.update(now, system.get_nq1())

    if system.queue1.pop() is not customer:
        raise SimulationError(f"{customer} finished stage 1 service, "
                              f"but it is not stage 1 head")
    system.queue2.push(customer)

    if not system.queue1.empty:
        _start_service_1(system)
    else:
        _start_service_2(system)


def _handle_departure(system: System, customer: Customer):
    """
    Handle stage 2 service end: the customer leaves the network.

    If it was the last customer of its round, the round is closed.
    Stage 1 is always empty here, otherwise the departure would have been
    cancelled, so the server takes the next stage 2 customer, if any.

    Parameters
    ----------
    system : System
    customer : Customer
    """
    now = system.time
    system.departure = None

    round_ = customer.round
    round_.add_sojourn2(now - customer.queue_entered_at)
    round_.register_departure()
    if round_.completed:
        system.close_round(round_)

    current = system.current
    current.n2.update(now, system.get_n2())
    if system.get_nq2() > 0:
        current.nq2.update(now, system.get_nq2())

    if system.queue2.pop() is not customer:
        raise SimulationError(f"{customer} departed, "
                              f"but it is not stage 2 head")
    system.num_departed += 1

    if not system.queue2.empty:
        _start_service_2(system)


def _start_service_1(system: System):
    """
    Start serving stage 1 head, interrupting stage 2 service if needed.

    Parameters
    ----------
    system : System
    """
    now = system.time
    customer = system.queue1.head
    customer.round.add_wait1(customer.index, now - customer.state_entered_at)
    customer.state_entered_at = now

    _preempt_service_2(system)

    system.events.schedule(
        now + system.service(), EventKind.ARRIVAL_2, customer)


def _start_service_2(system: System):
    """
    Start (or restart after preemption) serving stage 2 head.

    Waiting time is added, not assigned, since the customer could have
    been preempted and waited again since its previous service start.

    Parameters
    ----------
    system : System
    """
    now = system.time
    customer = system.queue2.head
    customer.round.add_wait2(customer.index, now - customer.state_entered_at)
    customer.state_entered_at = now

    system.departure = system.events.schedule(
        now + system.service(), EventKind.DEPARTURE, customer)


def _preempt_service_2(system: System):
    """
    Interrupt stage 2 service, if there is one.

    Departure of the customer being served is cancelled and the customer
    starts waiting again. Remaining service time is not stored: it is
    exponential, so a new service time is drawn on restart.

    Parameters
    ----------
    system : System
    """
    if system.departure is None:
        return
    customer = system.departure.customer
    system.events.cancel(system.departure)
    system.departure = None
    customer.state_entered_at = system.time
    system.num_preemptions += 1


_HANDLERS: Dict[EventKind, Callable[[System, Customer], None]] = {
    EventKind.ARRIVAL_1: _handle_arrival_1,
    EventKind.ARRIVAL_2: _handle_arrival_2,
    EventKind.DEPARTURE: _handle_departure,
}

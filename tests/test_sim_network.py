import logging
from dataclasses import dataclass

import numpy as np
import pytest
from numpy.testing import assert_allclose

from prioq.config import Params
from prioq.errors import SimulationError
from prioq.random import RandomSource
from prioq.sim.network import EventKind, System, simulate, step
from prioq.sim.rounds import ESTIMATORS


class ScriptedSource(RandomSource):
    """
    Random source returning predefined exponential samples in order.
    """
    def __init__(self, values):
        super().__init__(0)
        self.values = list(values)

    def exponential(self, rate: float) -> float:
        return self.values.pop(0)


def _run_checked(system: System):
    """
    Run the system till the end, checking invariants after each event.
    """
    system.start()
    prev_time = 0.0
    while not system.finished:
        event = step(system)

        # Events are processed in time order:
        assert event.time >= prev_time
        prev_time = event.time

        # Conservation: everyone who arrived and didn't depart is queued.
        assert system.queue1.size + system.queue2.size == \
            system.num_arrived - system.num_departed

        # Priority: no stage 2 service while stage 1 is busy.
        pending = list(system.events)
        departures = [e for e in pending if e.kind == EventKind.DEPARTURE]
        if not system.queue1.empty:
            assert departures == []
            assert system.departure is None
        else:
            assert len(departures) == (0 if system.queue2.empty else 1)

        # Exactly one exogenous arrival is always pending, at most one
        # stage 1 service.
        kinds = [e.kind for e in pending]
        assert kinds.count(EventKind.ARRIVAL_1) == 1
        assert kinds.count(EventKind.ARRIVAL_2) == \
            (0 if system.queue1.empty else 1)

        # Queue sizes:
        assert system.get_n1() >= system.get_nq1() >= 0
        assert system.get_n2() >= system.get_nq2() >= 0


# ###########################################################################
# INVARIANTS
# ###########################################################################
@pytest.mark.parametrize('seed', [1, 2, 358141284])
@pytest.mark.parametrize('rho', [0.2, 0.6, 0.95])
def test_invariants_hold_along_the_run(seed, rho):
    params = Params(utilization=rho, batch_size=3, transient_size=5,
                    num_rounds=30, seed=seed)
    system = System(params)
    _run_checked(system)
    assert system.num_closed == params.num_rounds + 1


@pytest.mark.parametrize('k, k_t, n', [(3, 3, 10), (5, 8, 20), (20, 7, 5)])
def test_rounds_close_after_quota(k, k_t, n):
    """
    Validate that the transient round closes after K_t departures, others
    after K departures, rounds close in order and all departed customers
    of a closed round belong to it.
    """
    params = Params(batch_size=k, transient_size=k_t, num_rounds=n, seed=7)
    system = System(params)
    system.start()
    while not system.finished:
        event = step(system)
        if event.kind == EventKind.DEPARTURE:
            round_ = event.customer.round
            assert round_.closed == (round_.num_departures == round_.quota)

    transient = system.rounds[0]
    assert transient is system.transient
    assert transient.transient
    assert (transient.num_arrivals, transient.num_departures) == (k_t, k_t)
    assert transient.closed

    assert len(system.rounds) >= n + 2
    for i, round_ in enumerate(system.rounds[1:n + 1]):
        assert round_.index == i + 1
        assert not round_.transient
        assert (round_.num_arrivals, round_.num_departures) == (k, k)
        assert round_.closed
        assert round_.start > system.rounds[i].start
        assert round_.next is system.rounds[i + 2]
        assert len(round_.w1) == len(round_.w2) == k
    for round_ in system.rounds[n + 1:]:
        assert not round_.closed


@pytest.mark.parametrize('seed', [3, 4, 5])
def test_estimators_are_consistent(seed):
    """
    Validate variances are non-negative and populations include waiting.
    """
    ret = simulate(utilization=0.8, batch_size=10, transient_size=10,
                   num_rounds=50, seed=seed)
    assert ret.num_rounds == 50
    for round_ in ret.rounds:
        assert round_.V_W1 >= 0
        assert round_.V_W2 >= 0
        assert round_.E_N1 >= round_.E_Nq1 >= 0
        assert round_.E_N2 >= round_.E_Nq2 - 1e-9
        assert round_.E_T1 >= round_.E_W1 >= 0
        assert round_.E_T2 >= round_.E_W2 >= 0


def test_simulation_is_deterministic():
    params = Params(utilization=0.6, batch_size=5, transient_size=10,
                    num_rounds=20, seed=123)
    ret1 = simulate(params)
    ret2 = simulate(params)
    for name in ESTIMATORS:
        np.testing.assert_array_equal(ret1.get_values(name),
                                      ret2.get_values(name))

    ret3 = simulate(params, seed=124)
    assert not np.array_equal(ret1.get_values('E_T2'),
                              ret3.get_values('E_T2'))


def test_simulate_keywords_override_params():
    params = Params(batch_size=4, transient_size=4, num_rounds=3)
    ret = simulate(params, num_rounds=5)
    assert ret.num_rounds == 5
    assert ret.params.batch_size == 4
    assert ret.transient.closed
    assert ret.real_time >= 0


# ###########################################################################
# SCENARIOS
# ###########################################################################
def test_transient_round_of_three_customers():
    """
    With K = K_t = 3, the third arrival opens the next round, while the
    transient round is closed only on its third customer departure.
    """
    params = Params(service_rate=1.0, utilization=0.6, batch_size=3,
                    transient_size=3, num_rounds=5, seed=358141284)
    assert_allclose(params.arrival_rate, 0.3)
    system = System(params)
    transient = system.transient
    system.start()

    num_transient_departed = 0
    while not system.finished:
        event = step(system)
        customer = event.customer
        if event.kind == EventKind.ARRIVAL_1 and customer.round is transient:
            if customer.index == 2:
                assert len(system.rounds) == 2
                assert system.current is system.rounds[1]
                assert system.rounds[1].start == event.time
            else:
                assert system.current is transient
        if event.kind == EventKind.DEPARTURE and customer.round is transient:
            num_transient_departed += 1
        assert transient.closed == (num_transient_departed == 3)

    for round_ in system.rounds[:params.num_rounds + 1]:
        assert round_.E_N1 >= round_.E_Nq1
        assert round_.E_N2 >= round_.E_Nq2 - 1e-9


def test_single_customer_without_contention():
    """
    Customers arrive into the empty network, so they never wait.

    Draws: first arrival at 10; service 1 takes 1 (till 11); next arrival in
    100 (at 110); service 2 takes 2 (till 13); second customer service 1
    takes 1.5 (till 111.5); next arrival in 50; service 2 takes 0.5.
    """
    source = ScriptedSource([10.0, 1.0, 100.0, 2.0, 1.5, 50.0, 0.5])
    params = Params(batch_size=1, transient_size=1, num_rounds=1)
    ret = simulate(params, source=source)
    assert source.values == []

    transient = ret.transient
    assert transient.closed
    assert transient.start == 0.0
    assert transient.E_W1 == 0.0
    assert transient.E_W2 == 0.0
    assert_allclose(transient.E_T1, 1.0)
    assert_allclose(transient.E_T2, 2.0)
    # Nobody was in the network before the first round was opened:
    assert transient.E_N1 == transient.E_N2 == 0.0

    round_ = ret.rounds[0]
    assert round_.start == 10.0
    assert round_.next.start == 110.0
    assert round_.w1 == [0.0]
    assert round_.w2 == [0.0]
    assert round_.E_W1 == 0.0
    assert round_.E_W2 == 0.0
    assert_allclose(round_.E_T1, 1.5)
    assert_allclose(round_.E_T2, 0.5)
    assert_allclose(round_.E_N1, 1.0 / 100)
    assert_allclose(round_.E_N2, 2.0 / 100)
    assert round_.E_Nq1 == 0.0
    assert round_.E_Nq2 == 0.0
    assert round_.V_W1 == round_.V_W2 == 0.0


def test_stage2_service_is_preempted():
    """
    Customer A enters stage 2 at 2 with service till 7. Customer B arrives
    at 2.5 and preempts A. B moves to stage 2 at 3.5, then A restarts and
    departs at 4.5, then B is served till 6.5.
    """
    source = ScriptedSource([1.0, 1.0, 1.5, 5.0, 1.0, 100.0, 1.0, 2.0])
    params = Params(batch_size=2, transient_size=2, num_rounds=1)
    system = System(params, source)
    system.start()

    step(system)    # A arrives at 1
    step(system)    # A enters stage 2 at 2
    assert system.departure is not None
    assert system.departure.time == 7.0
    a_departure = system.departure

    step(system)    # B arrives at 2.5
    assert system.num_preemptions == 1
    assert system.departure is None
    assert not a_departure.pending
    assert system.get_nq2() == 1
    assert [e.kind for e in system.events] == \
           [EventKind.ARRIVAL_2, EventKind.ARRIVAL_1]

    event = step(system)    # B enters stage 2 at 3.5, A restarts
    assert event.time == 3.5
    assert system.departure.time == 4.5

    event = step(system)    # A departs at 4.5
    assert event.kind == EventKind.DEPARTURE
    assert event.time == 4.5
    event = step(system)    # B departs at 6.5
    assert event.time == 6.5
    assert source.values == []

    transient = system.transient
    assert transient.closed
    assert transient.E_W1 == 0.0
    assert_allclose(transient.E_T1, 1.0)
    # A waited 1 (preempted during B service), B waited 1 behind A:
    assert_allclose(transient.E_W2, 1.0)
    assert_allclose(transient.E_T2, (2.5 + 3.0) / 2)
    # Transient round lasted till B arrival at 2.5:
    assert_allclose(transient.E_N1, 1.0 / 2.5)
    assert_allclose(transient.E_N2, 0.5 / 2.5)
    assert transient.E_Nq1 == 0.0
    assert transient.E_Nq2 == 0.0


def test_system_can_not_start_twice():
    system = System(Params(num_rounds=1))
    system.start()
    with pytest.raises(SimulationError):
        system.start()


def test_system_repr():
    system = System(Params(num_rounds=1))
    assert str(system) == \
        "(System: t=0, queue1=0, queue2=0, round=0, closed=0)"


# ###########################################################################
# STEADY-STATE VALUES
# ###########################################################################
@dataclass
class Stage1Props:
    utilization: float
    wait_time: float
    sojourn_time: float
    queue_size: float
    system_size: float
    tol: float = 0.1


@pytest.mark.parametrize('props', [
    # Stage 1 is not affected by stage 2, so it is M/M/1 with
    # lambda = rho * mu / 2, mu = 1:
    Stage1Props(utilization=0.6, wait_time=0.3/0.7, sojourn_time=1/0.7,
                queue_size=0.09/0.7, system_size=0.3/0.7),
    Stage1Props(utilization=0.4, wait_time=0.2/0.8, sojourn_time=1/0.8,
                queue_size=0.04/0.8, system_size=0.2/0.8),
])
def test_stage1_is_mm1(props):
    ret = simulate(utilization=props.utilization, batch_size=500,
                   transient_size=1000, num_rounds=40, seed=1)
    tol = props.tol
    assert_allclose(ret['E_W1'].mean, props.wait_time, rtol=tol)
    assert_allclose(ret['E_T1'].mean, props.sojourn_time, rtol=tol)
    assert_allclose(ret['E_Nq1'].mean, props.queue_size, rtol=2 * tol)
    assert_allclose(ret['E_N1'].mean, props.system_size, rtol=tol)

    # Little's law holds for both stages:
    lam = ret.params.arrival_rate
    assert_allclose(ret['E_N1'].mean, lam * ret['E_T1'].mean, rtol=tol)
    assert_allclose(ret['E_N2'].mean, lam * ret['E_T2'].mean, rtol=tol)
    assert_allclose(ret['E_Nq2'].mean, lam * ret['E_W2'].mean, rtol=tol)


def test_rounds_are_logged(caplog):
    caplog.set_level(logging.DEBUG, logger='prioq.sim.network')
    simulate(batch_size=3, transient_size=3, num_rounds=2, seed=1)
    assert "round 1 opened" in caplog.text
    assert "round 2 closed" in caplog.text
    assert "E_W1=" in caplog.text
    assert "simulation finished" in caplog.text

import pytest
from numpy.testing import assert_allclose

from prioq.config import Params, PRESETS, DEFAULT_SEED


def test_default_params():
    params = Params()
    assert params.service_rate == 1.0
    assert params.utilization == 0.6
    assert params.batch_size == 150
    assert params.transient_size == 300
    assert params.num_rounds == 4000
    assert params.seed == DEFAULT_SEED
    assert_allclose(params.arrival_rate, 0.3)


@pytest.mark.parametrize('mu, rho, expected', [
    (1.0, 0.2, 0.1),
    (2.0, 0.9, 0.9),
    (0.5, 0.4, 0.1),
])
def test_arrival_rate(mu, rho, expected):
    assert_allclose(
        Params(service_rate=mu, utilization=rho).arrival_rate, expected)


@pytest.mark.parametrize('kwargs', [
    dict(service_rate=0.0),
    dict(utilization=0.0),
    dict(utilization=1.0),
    dict(utilization=-0.2),
    dict(batch_size=0),
    dict(transient_size=0),
    dict(num_rounds=0),
    dict(variance_precision=-0.1),
    dict(confidence=1.0),
])
def test_invalid_params_raise(kwargs):
    with pytest.raises(ValueError):
        Params(**kwargs)


@pytest.mark.parametrize('rho', list(PRESETS))
def test_params_for_utilization(rho):
    params = Params.for_utilization(rho, num_rounds=10)
    assert params.utilization == rho
    assert (params.batch_size, params.transient_size) == PRESETS[rho]
    assert params.num_rounds == 10


def test_params_for_utilization_explicit_batch_size():
    params = Params.for_utilization(0.8, batch_size=5)
    assert params.batch_size == 5
    assert params.transient_size == 900


def test_params_for_unknown_utilization_raises():
    with pytest.raises(ValueError):
        Params.for_utilization(0.5)

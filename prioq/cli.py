import logging

import click
from tabulate import tabulate

from prioq.config import Params, PRESETS, DEFAULT_SEED
from prioq.sim.network import simulate
from prioq.sim.rounds import LABELS
from prioq.utils.text import TextColor, fmt_precision, highlight, pluralize


MAX_PRECISION = .05


@click.group()
def cli():
    pass


# noinspection PyTypeChecker
@cli.command()
@click.option('--rho', 'utilization', default=0.6, show_default=True,
              help='server utilization, in (0, 1)')
@click.option('--mu', 'service_rate', default=1.0, show_default=True,
              help='service rate at both stages')
@click.option('--batch-size', '-k', type=int, default=None,
              help='number of customers per round (default: 150, or '
                   'taken from presets with --preset)')
@click.option('--transient-size', type=int, default=None,
              help='number of customers in the transient round (default: '
                   '300, or taken from presets with --preset)')
@click.option('--num-rounds', '-n', default=4000, show_default=True,
              help='number of measured rounds')
@click.option('--seed', default=DEFAULT_SEED, show_default=True,
              help='random generator seed')
@click.option('--precision', 'variance_precision', default=0.044,
              show_default=True, help='precision of variance intervals')
@click.option('--confidence', default=0.95, show_default=True,
              help='confidence level of mean intervals')
@click.option('--preset', is_flag=True, default=False,
              help='take batch sizes from presets table for given rho')
@click.option('--show-rounds', is_flag=True, default=False,
              help='print estimators of each round')
@click.option('--verbose', '-v', count=True,
              help='-v for progress, -vv for rounds details')
def run(utilization, service_rate, batch_size, transient_size, num_rounds,
        seed, variance_precision, confidence, preset, show_rounds, verbose):
    """Simulate the network and print confidence intervals.
    """
    _setup_logging(verbose)
    kwargs = dict(
        service_rate=service_rate,
        num_rounds=num_rounds,
        seed=seed,
        variance_precision=variance_precision,
        confidence=confidence,
    )
    if batch_size is not None:
        kwargs['batch_size'] = batch_size
    if transient_size is not None:
        kwargs['transient_size'] = transient_size
    try:
        if preset:
            params = Params.for_utilization(utilization, **kwargs)
        else:
            params = Params(utilization=utilization, **kwargs)
    except ValueError as ex:
        raise click.UsageError(str(ex)) from ex

    ret = simulate(params)

    if show_rounds:
        click.echo(ret.tabulate_rounds())
        click.echo()
    click.echo(ret.tabulate())
    click.echo()

    for name, interval in ret.intervals.items():
        if interval.precision > MAX_PRECISION:
            click.echo(f"{highlight(LABELS[name], TextColor.BOLD)} precision "
                       f"{fmt_precision(interval.precision, MAX_PRECISION)}")

    seconds = round(ret.real_time)
    click.echo(f"Simulation took {ret.real_time:.3f} "
               f"second{pluralize(seconds)}.")


@cli.command()
def presets():
    """Print batch sizes used for each utilization.
    """
    items = [(rho, k, k_t) for rho, (k, k_t) in PRESETS.items()]
    click.echo(tabulate(items, headers=('rho', 'K', 'K_t')))


def _setup_logging(verbose: int):
    if verbose <= 0:
        return
    level = logging.INFO if verbose == 1 else logging.DEBUG
    logging.basicConfig(
        level=level, format='%(asctime)s %(levelname)s %(name)s: %(message)s')


if __name__ == '__main__':
    cli()

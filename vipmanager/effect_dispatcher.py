"""Effect dispatchers for the VIP manager."""

from effect import ComposedDispatcher, base_dispatcher

from txeffect import make_twisted_dispatcher

from .execution import get_engine_dispatcher
from .inventory import get_inventory_dispatcher
from .log.intents import get_log_dispatcher, get_msg_time_dispatcher


def get_simple_dispatcher(reactor):
    """
    Get an Effect dispatcher that can handle the generic effects: constants,
    errors, functions, delays and parallel effects. Note that this does NOT
    handle inventory or logging intents.
    """
    return ComposedDispatcher([
        base_dispatcher,
        make_twisted_dispatcher(reactor),
    ])


def get_full_dispatcher(reactor, inventory, pool, log):
    """
    Return a dispatcher that can perform all of the VIP manager's effects.

    :param reactor: provider of ``IReactorTime``
    :param inventory: :obj:`IInventory` provider
    :param pool: :obj:`WorkerPool` that applies operations
    :param log: bound log that logging intents are written to
    """
    return ComposedDispatcher([
        get_inventory_dispatcher(inventory),
        get_engine_dispatcher(pool),
        get_msg_time_dispatcher(reactor),
        get_log_dispatcher(log, {}),
        get_simple_dispatcher(reactor),
    ])

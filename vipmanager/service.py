"""
VIP manager service

The top-level entry-points into this module are :func:`make_service` and
:obj:`VIPManagerService`.
"""

# # Note [Management cycles]
#
# A cycle runs the grow pass and then the shrink pass (see note [Balancing
# addresses] in vipmanager.planning). If any node was changed, the group is
# probably not balanced yet (a shrink frees addresses that only the next
# grow hands out), so the next cycle starts right away. When a cycle changes
# nothing, the service sleeps before checking again, since the group can
# still change under us as nodes come and go.
#
# Nothing that goes wrong in a cycle stops the service: a failed read or
# write just means the next cycle sees the group as it is and plans again.
#
# Only one service may manage a given address pool and group at a time.
# Two services would plan against each other; the fingerprints on writes
# keep them from corrupting a node, but they would keep moving addresses
# around.

import uuid

from effect import Effect, Func
from effect.do import do, do_return

from twisted.application.service import Service

from txeffect import perform

from vipmanager.effect_dispatcher import get_full_dispatcher
from vipmanager.execution import WorkerPool
from vipmanager.inventory import get_snapshot
from vipmanager.log import log as default_log
from vipmanager.log.intents import err, msg, msg_with_time, with_log
from vipmanager.planning import allocate_ips, reduce_ips


@do
def converge_once(pool):
    """
    Run one cycle: hand out spare addresses, then take addresses from nodes
    that have too many.

    :param pool: sequence of address strings under management
    :return: Effect of the number of node changes made
    """
    grown = yield allocate_ips(pool)
    reduced = yield reduce_ips(pool)
    changes = grown + reduced
    yield msg('converge-cycle', changes=changes)
    yield do_return(changes)


@do
def describe_nodes():
    """
    Log the addresses each node currently has.
    """
    try:
        nodes = yield get_snapshot()
    except Exception:
        yield err(None, 'node-state-error')
        yield do_return(None)
    for node_id in sorted(nodes):
        yield msg('node-state', node_id=node_id,
                  addresses=list(nodes[node_id].addresses))


class VIPManagerService(Service):
    """
    A service that keeps the address pool balanced across the group, forever.

    :ivar config: :obj:`ManagerConfig`
    :ivar dispatcher: dispatcher that performs all of the effects
    :ivar pool: :obj:`WorkerPool` used by the dispatcher to apply operations
    :ivar clock: provider of ``IReactorTime`` used to schedule cycles
    """

    name = 'vip-manager'

    def __init__(self, config, dispatcher, pool, clock, log=default_log,
                 converge_once=converge_once):
        """
        :param callable converge_once: like :func:`converge_once`, to be used
            for test injection only
        """
        self.config = config
        self.dispatcher = dispatcher
        self.pool = pool
        self.clock = clock
        self.log = log.bind(vipmanager_service='vip-manager')
        self._converge_once = converge_once
        self._call = None

    def startService(self):
        """
        Start the workers and the first cycle.
        """
        Service.startService(self)
        self.log.msg('vip-manager-config', num_vips=len(self.config.vips),
                     vips=list(self.config.vips),
                     workers=self.pool.size, sleep=self.config.sleep,
                     wait=self.config.wait, group=self.config.group,
                     alias_range=self.config.alias_range)
        self.pool.start()
        d = perform(self.dispatcher, describe_nodes())
        d.addErrback(self.log.err, 'node-state-error')
        self._schedule(0)

    def stopService(self):
        """
        Cancel the next cycle and stop the workers.

        :return: Deferred that fires when the workers are done
        """
        Service.stopService(self)
        if self._call is not None and self._call.active():
            self._call.cancel()
        self._call = None
        self.log.msg('vip-manager-stopped')
        return self.pool.stop()

    def _schedule(self, delay):
        self._call = self.clock.callLater(delay, self.cycle)

    def _cycle_effect(self):
        """
        Effect of one cycle, logging the node state if anything changed, and
        bound with a unique ``cycle_id`` log field.
        """
        def describe_if_changed(changes):
            if changes > 0:
                return describe_nodes().on(lambda _: changes)
            return changes

        eff = msg_with_time(
            'converge-cycle-time',
            self._converge_once(self.config.vips)).on(describe_if_changed)
        return Effect(Func(uuid.uuid4)).on(str).on(
            lambda cycle_id: with_log(eff, cycle_id=cycle_id))

    def _cycle_failed(self, failure):
        self.log.err(failure, 'converge-cycle-error')
        return 0

    def _cycle_done(self, changes):
        if self.running:
            self._schedule(0 if changes > 0 else self.config.sleep)
        return changes

    def cycle(self):
        """
        Run one cycle and schedule the next one: right away if something
        changed, after sleeping otherwise.

        :return: Deferred firing with the number of node changes made
        """
        self._call = None
        d = perform(self.dispatcher, self._cycle_effect())
        d.addErrback(self._cycle_failed)
        return d.addCallback(self._cycle_done)


def make_service(config, inventory, reactor=None, log=default_log):
    """
    Build the service that manages ``config.vips`` across the nodes of
    ``inventory``.

    :param config: :obj:`ManagerConfig`
    :param inventory: :obj:`IInventory` provider
    """
    if reactor is None:  # pragma: no cover
        from twisted.internet import reactor

    pool = WorkerPool(config.workers, config.wait, log, reactor)
    dispatcher = get_full_dispatcher(reactor, inventory, pool, log)
    return VIPManagerService(config, dispatcher, pool, reactor, log)

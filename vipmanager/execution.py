"""
Code related to applying planned operations to nodes: a pool of workers that
updates nodes concurrently, each update followed by a wait for it to show up
in the inventory.
"""

import time

import attr

from effect import Delay, Effect, Func, TypeDispatcher
from effect.do import do, do_return

from toolz.itertoolz import unique

from twisted.internet.defer import (
    DeferredList, DeferredQueue, gatherResults, inlineCallbacks)

from txeffect import deferred_performer, perform

from vipmanager.constants import (
    CONVERGENCE_INTERVALS,
    CONVERGENCE_INTERVAL_MAX,
    DEFAULT_WAIT_SECONDS,
    DEFAULT_WORKERS)
from vipmanager.inventory import (
    FingerprintConflictError, get_node, set_addresses)
from vipmanager.log import log as default_log
from vipmanager.log.intents import err, msg, with_log
from vipmanager.model import ConvergenceOutcome, OperationType


def desired_addresses(operation, node):
    """
    Compute the complete list of addresses ``node`` should have after
    ``operation``, without duplicates. Addresses the node already has keep
    their order.

    :param operation: :obj:`Operation` to apply
    :param node: :obj:`Node` as freshly read from the inventory

    :rtype: ``list``
    """
    current = list(unique(node.addresses))
    if operation.type == OperationType.ADD:
        return list(unique(current + list(operation.addresses)))
    removed = set(operation.addresses)
    return [address for address in current if address not in removed]


def convergence_interval(elapsed):
    """
    Seconds to sleep before polling a node again, given the seconds elapsed
    since the wait started: 1 below 5, 2 below 15, 5 below 60 and 10 after
    that.
    """
    for threshold, interval in CONVERGENCE_INTERVALS:
        if elapsed < threshold:
            return interval
    return CONVERGENCE_INTERVAL_MAX


@do
def wait_for_convergence(node_id, expected_count, max_wait, seconds=time.time):
    """
    Poll a node until it reports ``expected_count`` addresses or
    ``max_wait`` seconds have passed. Giving up is not an error: the update
    was accepted and will most likely be applied eventually.

    :param seconds: 0-argument callable returning the current time, in the
        same timeline as the delays between polls
    :return: Effect of a :obj:`ConvergenceOutcome` constant
    """
    start = yield Effect(Func(seconds))
    elapsed = 0
    while elapsed < max_wait:
        try:
            node = yield get_node(node_id)
        except Exception:
            yield err(None, 'converge-wait-error')
            yield do_return(ConvergenceOutcome.ERROR)
        if len(node.addresses) == expected_count:
            yield msg('converge-wait-success', seconds_taken=elapsed)
            yield do_return(ConvergenceOutcome.CONVERGED)
        yield Effect(Delay(convergence_interval(elapsed)))
        now = yield Effect(Func(seconds))
        elapsed = now - start
    yield msg('converge-wait-gave-up', seconds_taken=elapsed)
    yield do_return(ConvergenceOutcome.TIMED_OUT)


@do
def execute_operation(operation, max_wait, seconds=time.time):
    """
    Apply one operation to the current state of its node.

    The node is read again, since it may have changed after planning. The
    complete desired address list is then written along with the node's
    fingerprint, so the write is rejected if the node changes in between.

    :param operation: :obj:`Operation` to apply
    :param max_wait: seconds to wait for the update to show up
    :param seconds: see :func:`wait_for_convergence`

    :return: Effect of 1 if the node was updated, 0 otherwise
    """
    try:
        node = yield get_node(operation.node_id)
    except Exception:
        yield err(None, 'execute-get-node-error')
        yield do_return(0)

    desired = desired_addresses(operation, node)
    if set(desired) == set(node.addresses):
        yield msg('execute-noop')
        yield do_return(0)

    try:
        yield set_addresses(node, desired)
    except FingerprintConflictError:
        yield msg('execute-conflict', fingerprint=node.fingerprint)
        yield do_return(0)
    except Exception:
        yield err(None, 'execute-write-error')
        yield do_return(0)

    yield wait_for_convergence(node.id, len(desired), max_wait, seconds)
    yield do_return(1)


_STOP = object()


class WorkerPool(object):
    """
    A fixed number of workers applying operations concurrently.

    Operations go to the workers through a work queue and each worker puts
    the number of changes it made on a results queue. Workers share nothing
    but the queues; each reads its own copy of the node it updates.

    :ivar int size: number of workers
    :ivar max_wait: seconds each worker waits for its update to show up
    :ivar seconds: returns the time the waits are measured with; the
        ``seconds`` method of the given ``IReactorTime`` provider, or the
        system time if there is none
    """

    def __init__(self, size=DEFAULT_WORKERS, max_wait=DEFAULT_WAIT_SECONDS,
                 log=default_log, clock=None):
        self.size = max(1, size)
        self.max_wait = max_wait
        self.seconds = time.time if clock is None else clock.seconds
        self.log = log
        self._work = DeferredQueue()
        self._results = DeferredQueue()
        self._workers = []

    @property
    def running(self):
        """Whether the workers have been started and not stopped."""
        return bool(self._workers)

    def start(self):
        """
        Start the workers.
        """
        if not self._workers:
            self._workers = [self._worker(index)
                             for index in range(self.size)]

    def stop(self):
        """
        Stop the workers once they're done with the operations already
        queued.

        :return: Deferred that fires when all workers have stopped
        """
        workers, self._workers = self._workers, []
        for _ in workers:
            self._work.put(_STOP)
        return DeferredList(workers)

    @inlineCallbacks
    def _worker(self, index):
        while True:
            item = yield self._work.get()
            if item is _STOP:
                break
            dispatcher, operation = item
            eff = with_log(execute_operation(operation, self.max_wait,
                                             self.seconds),
                           node_id=operation.node_id,
                           operation=operation.type.name)
            try:
                changes = yield perform(dispatcher, eff)
            except Exception:
                self.log.err(None, 'execute-worker-error',
                             node_id=operation.node_id, worker=index)
                changes = 0
            self._results.put(changes)

    def apply(self, dispatcher, operations):
        """
        Queue operations for the workers and collect their results.

        :param dispatcher: dispatcher the workers perform effects with
        :param operations: :obj:`Operation` instances. Those without addresses
            are not queued.

        :return: Deferred firing with the number of operations that changed a
            node, once every queued operation is done.
        """
        submitted = 0
        for operation in operations:
            if len(operation.addresses) > 0:
                self._work.put((dispatcher, operation))
                submitted += 1
        results = [self._results.get() for _ in range(submitted)]
        return gatherResults(results).addCallback(sum)


@attr.s
class ApplyOperations(object):
    """
    Intent to apply operations to nodes with the worker pool.
    """
    operations = attr.ib()


@do
def apply_operations(operations):
    """
    Apply operations that have addresses to add or remove, logging each.

    :return: Effect of the number of nodes that were changed
    """
    operations = [op for op in operations if len(op.addresses) > 0]
    if not operations:
        yield do_return(0)
    for op in operations:
        yield msg('submit-operation', node_id=op.node_id,
                  operation=op.type.name, addresses=list(op.addresses))
    changes = yield Effect(ApplyOperations(operations))
    yield do_return(changes)


def get_engine_dispatcher(pool):
    """
    Get a dispatcher that performs :obj:`ApplyOperations` with the given
    :obj:`WorkerPool`.
    """
    @deferred_performer
    def perform_apply_operations(dispatcher, intent):
        return pool.apply(dispatcher, intent.operations)

    return TypeDispatcher({ApplyOperations: perform_apply_operations})

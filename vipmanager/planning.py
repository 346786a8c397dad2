"""Code related to planning how addresses are spread across nodes."""

# # Note [Balancing addresses]
#
# Each cycle runs two independent passes, each on a freshly fetched snapshot
# of the group:
#
# 1. Grow: every address of the pool that no node has is handed, one at a
#    time, to the node with the fewest addresses (counting the ones handed
#    out earlier in the same pass).
# 2. Shrink: the current counts are smoothed "Robin Hood" style (take one
#    from a node with the most, give one to a node with the least) until
#    the most and the least differ by at most one. Nodes above their target
#    give up addresses. The addresses freed this way are spares for the next
#    grow pass, which hands them to the nodes below their target.
#
# Nodes are always scanned in sorted id order, so for a given snapshot the
# plan is the same every time. Which addresses a node gives up is not
# significant: any subset of the right size keeps the counts balanced. We
# take the first ones the inventory reports.

from effect.do import do, do_return

from pyrsistent import pmap, pvector

from vipmanager.execution import apply_operations
from vipmanager.inventory import get_snapshot
from vipmanager.log.intents import err, msg
from vipmanager.model import Operation, OperationType, address_counts


def get_spare_addresses(pool, nodes):
    """
    Get the addresses of the pool that aren't assigned to any node.

    :param pool: sequence of address strings under management
    :param nodes: mapping of node id to :obj:`Node`

    :return: ``list`` of spare addresses, in pool order
    """
    used = set()
    for node in nodes.values():
        used.update(node.addresses)
    return [address for address in pool if address not in used]


def _least_loaded(counts):
    """
    The id of a node with the fewest addresses; the smallest such id.
    """
    return min(sorted(counts), key=counts.get)


def _most_loaded(counts):
    """
    The id of a node with the most addresses; the smallest such id.
    """
    return max(sorted(counts), key=counts.get)


def allocate_spares(spares, nodes):
    """
    Decide which node gets each spare address. Each address goes to the node
    with the fewest addresses, counting the ones it got earlier in the same
    allocation.

    :param spares: sequence of spare addresses
    :param nodes: mapping of node id to :obj:`Node`

    :return: ``pmap`` of node id to ``pvector`` of addresses to add. Nodes
        that get nothing are left out.
    """
    if not nodes:
        return pmap()
    counts = address_counts(nodes)
    staged = {}
    for address in spares:
        node_id = _least_loaded(counts)
        staged.setdefault(node_id, []).append(address)
        counts[node_id] += 1
    return pmap({node_id: pvector(addresses)
                 for node_id, addresses in staged.items()})


def balance_targets(counts):
    """
    Compute balanced address counts from the current ones by repeatedly
    moving one from a node with the most to a node with the least, until the
    most and the least differ by at most one. The total is unchanged.

    :param counts: mapping of node id to current number of addresses
    :return: ``pmap`` of node id to target number of addresses
    """
    targets = dict(counts)
    if not targets:
        return pmap()
    while True:
        richest = _most_loaded(targets)
        poorest = _least_loaded(targets)
        if targets[richest] - targets[poorest] <= 1:
            break
        targets[richest] -= 1
        targets[poorest] += 1
    return pmap(targets)


def plan_grow(spares, nodes):
    """
    Plan the operations that hand out spare addresses.

    :return: ``list`` of :obj:`Operation` of type ``ADD``, ordered by node id
    """
    staged = allocate_spares(spares, nodes)
    return [Operation(type=OperationType.ADD, node_id=node_id,
                      addresses=staged[node_id])
            for node_id in sorted(staged)]


def plan_shrink(nodes):
    """
    Plan the operations that take addresses away from nodes that have more
    than their balanced share.

    :return: ``list`` of :obj:`Operation` of type ``REMOVE``, ordered by node
        id
    """
    targets = balance_targets(address_counts(nodes))
    operations = []
    for node_id in sorted(nodes):
        addresses = nodes[node_id].addresses
        reduction = len(addresses) - targets[node_id]
        if reduction > 0:
            operations.append(
                Operation(type=OperationType.REMOVE, node_id=node_id,
                          addresses=addresses[:reduction]))
    return operations


@do
def _get_snapshot_or_nothing():
    """
    Get the snapshot, or an empty one after logging the error if it can't be
    fetched.
    """
    try:
        nodes = yield get_snapshot()
    except Exception:
        yield err(None, 'snapshot-error')
        yield do_return(pmap())
    yield do_return(nodes)


@do
def allocate_ips(pool):
    """
    Hand out the addresses of the pool that no node has.

    :param pool: sequence of address strings under management
    :return: Effect of the number of nodes that were changed
    """
    nodes = yield _get_snapshot_or_nothing()
    if not nodes:
        yield do_return(0)
    spares = get_spare_addresses(pool, nodes)
    if not spares:
        yield do_return(0)
    yield msg('spare-addresses', addresses=spares)
    changes = yield apply_operations(plan_grow(spares, nodes))
    yield do_return(changes)


@do
def reduce_ips(pool):
    """
    Take addresses away from nodes that have more than their balanced share,
    so they can be handed to the others.

    :param pool: sequence of address strings under management. Shrinking only
        looks at what nodes have, so it is unused; it is accepted for symmetry
        with :func:`allocate_ips`.
    :return: Effect of the number of nodes that were changed
    """
    nodes = yield _get_snapshot_or_nothing()
    if not nodes:
        yield do_return(0)
    for node_id in sorted(nodes):
        if len(nodes[node_id].addresses) == 0:
            yield msg('new-node-detected', node_id=node_id)
    changes = yield apply_operations(plan_shrink(nodes))
    yield do_return(changes)

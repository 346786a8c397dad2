"""
Intents for reading and changing the inventory of nodes in the managed group,
and the interface an inventory client provides to perform them.
"""
from functools import partial

import attr

from effect import Effect, TypeDispatcher, parallel
from effect.do import do, do_return

from pyrsistent import pmap

from txeffect import deferred_performer

from zope.interface import Interface

from vipmanager.log.intents import err_exc, msg


class NoSuchNodeError(Exception):
    """
    Raised when a node is not (or no longer) a member of the group.
    """
    def __init__(self, node_id):
        super(NoSuchNodeError, self).__init__(
            'No such node: {0}'.format(node_id))
        self.node_id = node_id


class FingerprintConflictError(Exception):
    """
    Raised when a write is rejected because the node's network attachment
    changed since its fingerprint was read.
    """
    def __init__(self, node_id, fingerprint):
        super(FingerprintConflictError, self).__init__(
            'Fingerprint {0!r} of node {1} is stale'.format(
                fingerprint, node_id))
        self.node_id = node_id
        self.fingerprint = fingerprint


class AddressInUseError(Exception):
    """
    Raised when a write would assign an address that another node holds.
    """
    def __init__(self, node_id, address, owner):
        super(AddressInUseError, self).__init__(
            'Address {0} requested by node {1} is assigned to node {2}'
            .format(address, node_id, owner))
        self.node_id = node_id
        self.address = address
        self.owner = owner


class IInventory(Interface):
    """
    Client of the system that owns the group membership and the addresses
    assigned to each node.
    """

    def list_nodes():
        """
        :return: Deferred firing with a collection of ids of the running
            nodes of the group.
        """

    def get_node(node_id):
        """
        :return: Deferred firing with the :obj:`Node`, or failing with
            :obj:`NoSuchNodeError`.
        """

    def set_addresses(node_id, attachment_id, addresses, fingerprint,
                      other_ranges):
        """
        Replace the whole set of managed addresses of the node's attachment.

        :param addresses: every address the node should have afterwards
        :param fingerprint: the fingerprint the node had when it was read
        :param other_ranges: unmanaged ``(range_name, cidr)`` pairs that must
            be kept

        :return: Deferred firing with None once the write is accepted, or
            failing with :obj:`FingerprintConflictError` if the fingerprint
            is stale. Accepted writes may take a while to be reflected by
            :meth:`get_node`.
        """


@attr.s
class ListNodes(object):
    """
    Intent to get the ids of the nodes currently in the group.
    """


@attr.s
class GetNode(object):
    """
    Intent to get the current state of one node.
    """
    node_id = attr.ib()


@attr.s
class SetAddresses(object):
    """
    Intent to replace the managed addresses of a node, guarded by its
    fingerprint.
    """
    node_id = attr.ib()
    attachment_id = attr.ib()
    addresses = attr.ib()
    fingerprint = attr.ib()
    other_ranges = attr.ib(default=())


def get_node(node_id):
    """Return Effect of :obj:`GetNode`."""
    return Effect(GetNode(node_id))


def set_addresses(node, addresses):
    """
    Return Effect of :obj:`SetAddresses` writing ``addresses`` on the
    attachment of ``node``, using the fingerprint ``node`` was read with.

    :param node: the :obj:`Node` as most recently read
    :param addresses: the complete desired list of addresses
    """
    return Effect(SetAddresses(node_id=node.id,
                               attachment_id=node.attachment_id,
                               addresses=list(addresses),
                               fingerprint=node.fingerprint,
                               other_ranges=list(node.other_ranges)))


def _get_node_or_none(node_id):
    return get_node(node_id).on(
        error=lambda exc: err_exc(
            'snapshot-node-error', exc, node_id=node_id).on(
                lambda _: None))


@do
def get_snapshot():
    """
    Get the current state of every node in the group. Nodes are fetched in
    parallel; a node that can't be fetched is logged and left out. Failing
    to list the nodes fails the whole effect.

    :return: Effect of ``pmap`` of node id to :obj:`Node`
    """
    node_ids = sorted((yield Effect(ListNodes())))
    nodes = yield parallel([_get_node_or_none(node_id)
                            for node_id in node_ids])
    snapshot = pmap({node_id: node for node_id, node in zip(node_ids, nodes)
                     if node is not None})
    yield msg('gather-snapshot', num_nodes=len(snapshot))
    yield do_return(snapshot)


@deferred_performer
def perform_list_nodes(inventory, dispatcher, intent):
    """Perform :obj:`ListNodes` with an :obj:`IInventory` provider."""
    return inventory.list_nodes()


@deferred_performer
def perform_get_node(inventory, dispatcher, intent):
    """Perform :obj:`GetNode` with an :obj:`IInventory` provider."""
    return inventory.get_node(intent.node_id)


@deferred_performer
def perform_set_addresses(inventory, dispatcher, intent):
    """Perform :obj:`SetAddresses` with an :obj:`IInventory` provider."""
    return inventory.set_addresses(
        intent.node_id, intent.attachment_id, intent.addresses,
        intent.fingerprint, intent.other_ranges)


def get_inventory_dispatcher(inventory):
    """
    Get a dispatcher that performs the inventory intents with the given
    :obj:`IInventory` provider.
    """
    return TypeDispatcher({
        ListNodes: partial(perform_list_nodes, inventory),
        GetNode: partial(perform_get_node, inventory),
        SetAddresses: partial(perform_set_addresses, inventory),
    })

"""
Data classes for representing bits of information that need to share a
representation across the different phases of address management.
"""
import attr
from attr.validators import instance_of

from constantly import NamedConstant, Names

from pyrsistent import PVector, freeze, pvector


class OperationType(Names):
    """
    Constants representing the kind of change an :obj:`Operation` makes to a
    node's addresses.
    """

    ADD = NamedConstant()
    """
    The addresses are added to the ones the node already has.
    """

    REMOVE = NamedConstant()
    """
    The addresses are taken away from the node.
    """


class ConvergenceOutcome(Names):
    """
    Constants representing the result of waiting for a node update to be
    reflected by the inventory.
    """

    CONVERGED = NamedConstant()
    """
    The node reported the expected number of addresses.
    """

    TIMED_OUT = NamedConstant()
    """
    The maximum wait elapsed first. The update is still presumed applied.
    """

    ERROR = NamedConstant()
    """
    Polling the node failed. The update is still presumed applied.
    """


def _to_pvector(value):
    return freeze(list(value))


@attr.s(frozen=True)
class Node(object):
    """
    Information about a node that was retrieved from the inventory.

    Nodes are re-fetched whenever a fresh view is needed and are never
    patched in place.

    :ivar str id: The node id.
    :ivar PVector addresses: The managed virtual addresses currently assigned
        to the node, in the order the inventory reports them.
    :ivar str attachment_id: Identifier of the network attachment (interface)
        that carries the addresses.
    :ivar str fingerprint: Concurrency token of the attachment. A write
        made with a stale fingerprint is rejected.
    :ivar PVector other_ranges: ``(range_name, cidr)`` pairs of alias ranges
        on the same attachment that are not managed here. Writes carry them
        unchanged.
    """
    id = attr.ib()
    addresses = attr.ib(default=pvector(), converter=_to_pvector,
                        validator=instance_of(PVector))
    attachment_id = attr.ib(default=None)
    fingerprint = attr.ib(default=None)
    other_ranges = attr.ib(default=pvector(), converter=_to_pvector,
                           validator=instance_of(PVector))


def _validate_type(_1, _2, value):
    """
    Assert that a value is in OperationType
    """
    if value not in OperationType.iterconstants():
        raise AssertionError("{0} is not an OperationType".format(value))


@attr.s(frozen=True)
class Operation(object):
    """
    A change to be made to a single node.

    :ivar type: A member of :class:`OperationType`
    :ivar str node_id: The node to change.
    :ivar PVector addresses: The addresses to add or remove.
    """
    type = attr.ib(validator=_validate_type)
    node_id = attr.ib()
    addresses = attr.ib(converter=_to_pvector,
                        validator=instance_of(PVector))


def address_counts(nodes):
    """
    :param nodes: mapping of node id to :obj:`Node`
    :return: ``dict`` of node id to number of assigned addresses
    """
    return {node_id: len(node.addresses) for node_id, node in nodes.items()}

"""
In-memory implementation of the inventory interface.
"""
from toolz.itertoolz import mapcat

from twisted.internet import defer

from zope.interface import implementer

from vipmanager.addresses import address_to_cidr, cidr_to_addresses
from vipmanager.inventory import (
    AddressInUseError,
    FingerprintConflictError,
    IInventory,
    NoSuchNodeError)
from vipmanager.model import Node


class _NodeRecord(object):
    """
    Mutable state of a node in :obj:`InMemoryInventory`. The managed alias
    range is kept as single-address CIDRs, as the inventory reports it.
    """
    def __init__(self, node_id, addresses, attachment_id, other_ranges):
        self.node_id = node_id
        self.ranges = list(map(address_to_cidr, addresses))
        self.attachment_id = attachment_id
        self.other_ranges = list(other_ranges)
        self.generation = 0
        # (reads left before visible, ranges) of an accepted write
        self.pending = None

    @property
    def fingerprint(self):
        return '{0}-{1}'.format(self.node_id, self.generation)

    @property
    def addresses(self):
        return list(mapcat(cidr_to_addresses, self.ranges))

    def claimed(self):
        """Addresses this node holds or is about to hold."""
        if self.pending is not None:
            return set(self.addresses).union(
                mapcat(cidr_to_addresses, self.pending[1]))
        return set(self.addresses)


@implementer(IInventory)
class InMemoryInventory(object):
    """
    Keeps nodes in memory and behaves like the external inventory: writes
    are guarded by fingerprints, an address can't be given to two nodes, and
    an accepted write can take a number of reads before it shows up.

    :param int apply_after: number of :meth:`get_node` calls for a node that
        return the old addresses after a write is accepted.
    """

    def __init__(self, apply_after=0):
        self.apply_after = apply_after
        self.nodes = {}
        self.writes = []

    def add_node(self, node_id, addresses=(), attachment_id='nic0',
                 other_ranges=()):
        """
        Add a node to the group.
        """
        self.nodes[node_id] = _NodeRecord(node_id, addresses, attachment_id,
                                          other_ranges)

    def remove_node(self, node_id):
        """
        Remove a node from the group, freeing its addresses.
        """
        del self.nodes[node_id]

    def addresses_of(self, node_id):
        """
        :return: the addresses currently visible on the node
        """
        return list(self.nodes[node_id].addresses)

    def _record(self, node_id):
        try:
            return self.nodes[node_id]
        except KeyError:
            raise NoSuchNodeError(node_id)

    def list_nodes(self):
        """
        See :meth:`IInventory.list_nodes`
        """
        return defer.succeed(set(self.nodes))

    def get_node(self, node_id):
        """
        See :meth:`IInventory.get_node`
        """
        try:
            record = self._record(node_id)
        except NoSuchNodeError:
            return defer.fail()
        if record.pending is not None:
            reads_left, ranges = record.pending
            if reads_left <= 0:
                record.ranges = ranges
                record.pending = None
            else:
                record.pending = (reads_left - 1, ranges)
        return defer.succeed(Node(id=node_id,
                                  addresses=record.addresses,
                                  attachment_id=record.attachment_id,
                                  fingerprint=record.fingerprint,
                                  other_ranges=record.other_ranges))

    def set_addresses(self, node_id, attachment_id, addresses, fingerprint,
                      other_ranges):
        """
        See :meth:`IInventory.set_addresses`
        """
        try:
            record = self._record(node_id)
            if fingerprint != record.fingerprint:
                raise FingerprintConflictError(node_id, fingerprint)
            ranges = list(map(address_to_cidr, addresses))
            for other in self.nodes.values():
                if other is record:
                    continue
                taken = other.claimed().intersection(addresses)
                if taken:
                    raise AddressInUseError(node_id, sorted(taken)[0],
                                            other.node_id)
        except Exception:
            return defer.fail()

        self.writes.append((node_id, list(addresses)))
        record.generation += 1
        record.other_ranges = list(other_ranges)
        if self.apply_after > 0:
            record.pending = (self.apply_after, ranges)
        else:
            record.ranges = ranges
        return defer.succeed(None)

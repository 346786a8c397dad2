"""
Mixins and utilities to be used for testing.
"""
import json
from functools import partial
from operator import attrgetter

from effect import ComposedDispatcher, Effect, base_dispatcher, raise_
from effect.testing import parallel_sequence, perform_sequence

import mock

from testtools.matchers import MatchesException, Mismatch

from toolz.functoolz import compose

from twisted.internet.task import Clock
from twisted.python.failure import Failure

from txeffect import make_twisted_dispatcher

from vipmanager.inventory import GetNode, ListNodes
from vipmanager.log.bound import BoundLog, bound_log_kwargs
from vipmanager.log.intents import Log
from vipmanager.model import Node
from vipmanager.util.config import set_config_data


class matches(object):
    """
    A helper for using `testtools matchers
    <http://testtools.readthedocs.org/en/latest/for-test-authors.html#matchers>`_
    with mock.

    It allows testtools matchers to be used in places where comparisons for
    equality would normally be used, such as the ``mock.Mock.assert_*``
    methods.

    :param matcher: A testtools matcher that will be matched when this object
        is compared to another object.
    """
    def __init__(self, matcher):
        self._matcher = matcher
        self._last_match = None

    def __eq__(self, other):
        self._last_match = self._matcher.match(other)
        return self._last_match is None

    def __ne__(self, other):
        return not self == other

    def __str__(self):
        return str(self._matcher)

    def __repr__(self):
        if self._last_match:
            return 'matches({}): <mismatch: {}>'.format(
                self._matcher, self._last_match.describe())
        else:
            return 'matches({0!s})'.format(self._matcher)


class IsBoundWith(object):
    """
    Match if BoundLog is bound with given args
    """
    def __init__(self, **kwargs):
        self.kwargs = kwargs

    def __str__(self):
        return 'IsBoundWith {}'.format(self.kwargs)

    def match(self, log):
        """
        Return None if log is bound with given kwargs. Otherwise return
        Mismatch
        """
        if not isinstance(log, BoundLog):
            return Mismatch('log is not a BoundLog')
        kwargs = bound_log_kwargs(log)
        if self.kwargs == kwargs:
            return None
        return Mismatch(
            'Expected kwargs {} but got {} instead'.format(self.kwargs,
                                                           kwargs))


class CheckFailure(object):
    """
    Class that can be passed to an `assertEqual` or `assert_called_with` -
    shortens checking whether a `twisted.python.failure.Failure` wraps an
    Exception of a particular type.
    """
    def __init__(self, exception_type):
        self.exception_type = exception_type

    def __repr__(self):
        return "CheckFailure(%r)" % (self.exception_type,)

    def __eq__(self, other):
        return isinstance(other, Failure) and other.check(
            self.exception_type) is not None

    def __ne__(self, other):
        return not self == other


class CheckFailureValue(object):
    """
    Class whose instances compare equal to a Failure wrapping an equivalent
    exception, based on :obj:`MatchesException`.
    """
    def __init__(self, exception):
        self.exception = exception

    def __repr__(self):
        return "CheckFailureValue(%r)" % (self.exception,)

    def __eq__(self, other):
        matcher = MatchesException(self.exception)
        return (
            isinstance(other, Failure) and
            other.check(type(self.exception)) is not None and
            matcher.match((type(other.value), other.value, None)) is None)

    def __ne__(self, other):
        return not self == other


class SameJSON(object):
    """
    Compares equal to a JSON string that decodes to the given data.
    """
    def __init__(self, expected):
        self._expected = expected

    def __eq__(self, other):
        return json.loads(other) == self._expected

    def __ne__(self, other):
        return not self == other

    def __repr__(self):
        return 'SameJSON({0!r})'.format(self._expected)


def mock_log(*args, **kwargs):
    """
    Returns a BoundLog whose msg and err methods are mocks.  Makes it easier
    to test logging, since instead of making a mock object and testing::

        log.bind.return_value.msg.assert_called_with(...)

    This can be done instead::

        log.msg.assert_called_with(mock.ANY, bound_value1="val", ...)
    """
    msg = mock.Mock(spec=[])
    msg.return_value = None
    err = mock.Mock(spec=[])
    err.return_value = None
    return BoundLog(msg, err)


class DummyException(Exception):
    """
    Fake exception
    """


def set_config_for_test(testcase, data):
    """
    Set config data for test. Will reset to {} after test is run
    """
    set_config_data(data)
    testcase.addCleanup(set_config_data, {})


def nested_sequence(seq, get_effect=attrgetter('effect'),
                    fallback_dispatcher=base_dispatcher):
    """
    Return a function of Intent -> a that performs an effect retrieved from the
    intent (by accessing its `effect` attribute, by default) with the given
    intent-sequence.

    A demonstration is best::

        SequenceDispatcher([
            (BoundFields(effect=mock.ANY, fields={...}),
             nested_sequence([(GetNode('n1'), const(node))]))
        ])

    :param seq: sequence of intents like :obj:`SequenceDispatcher` takes
    :param get_effect: callable to get the inner effect from the wrapper
        intent.
    :param fallback_dispatcher: an optional dispatcher to compose onto the
        sequence dispatcher.
    """
    return compose(
        partial(perform_sequence, seq,
                fallback_dispatcher=fallback_dispatcher),
        get_effect)


def simple_test_dispatcher(disp=None, clock=None):
    """
    Dispatcher of the basic intents, plus delays and parallel effects
    performed with ``clock``.
    """
    disps = [
        base_dispatcher,
        make_twisted_dispatcher(clock or Clock()),
    ]
    if disp is not None:
        disps.append(disp)
    return ComposedDispatcher(disps)


def noop(_):
    """Ignore input and return None."""
    pass


def const(v):
    """
    Return function that takes an argument but always return given `v`.
    Useful with `SequenceDispatcher`. For example,

    >>> SequenceDispatcher([(GetNode('n1'), const(node))])
    """
    return lambda i: v


def conste(e):
    """
    Like ``const`` but takes and exception and returns function that raises
    the exception
    """
    return lambda i: raise_(e)


def intent_func(fname):
    """
    Return function that returns Effect of tuple of fname and its args. Useful
    in writing tests that expect intent based on args
    """
    return lambda *a: Effect((fname,) + a)


def node(node_id, addresses=(), fingerprint=None, attachment_id='nic0',
         other_ranges=()):
    """
    Make a :obj:`Node`; the fingerprint defaults to ``<node_id>-0``.
    """
    if fingerprint is None:
        fingerprint = '{0}-0'.format(node_id)
    return Node(id=node_id, addresses=addresses, attachment_id=attachment_id,
                fingerprint=fingerprint, other_ranges=other_ranges)


def addrs(count, start=1):
    """
    ``count`` distinct addresses in 10.0.0.0/24, starting at ``10.0.0.start``
    """
    return ['10.0.0.{0}'.format(i) for i in range(start, start + count)]


def snapshot_sequence(nodes):
    """
    Return the intent sequence performed by
    :func:`vipmanager.inventory.get_snapshot` when every node in ``nodes``
    is fetched successfully.

    :param nodes: ``list`` of :obj:`Node`
    """
    by_id = {n.id: n for n in nodes}
    return [
        (ListNodes(), const(list(by_id))),
        parallel_sequence([[(GetNode(node_id), const(by_id[node_id]))]
                           for node_id in sorted(by_id)]),
        (Log('gather-snapshot', {'num_nodes': len(nodes)}), noop),
    ]


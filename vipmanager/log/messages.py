"""
Expand logged message types into readable messages
"""
import math

from toolz.curried import assoc
from toolz.functoolz import compose, curry

from twisted.python.failure import Failure


@curry
def split_address_messages(format_message, var_length_key, event,
                           separator=', ', max_length=1000):
    """
    Try to split log events out into multiple events if the message is too
    long (the variable-length variable would cause the message to be too
    long.) Large prefixes expand to many addresses, so operations and node
    states can get big.

    :param str format_message: The format string to use to format the event
    :param str var_length_key: The key in the event dictionary that contains
        the variable-length part of the formatted message.
    :param dict event: The event dictionary
    :param str separator: The separator to use to join the various elements
        that should be varied.  (e.g. if the elements in "var_length_key" are
        ["1", "2", "3"] and the separator is "; ", "var_length_key" will be
        represented as "1; 2; 3")
    :param int max_length: The maximum length of the formatted message.

    :return: `list` of `tuple` of (event dictionary, format string) with the
        split event field rendered.
    """
    def length_calc(e):
        return len(format_message.format(**e))

    render = compose(assoc(event, var_length_key), separator.join,
                     curry(map, str))

    elements = list(event[var_length_key])
    rendered = render(elements)
    if length_calc(rendered) <= max_length:
        return [(rendered, format_message)]

    events = split(render, elements, max_length, length_calc)
    return [(e, format_message) for e in events]


# mapping from msg type -> message
msg_types = {
    # Keep these in alphabetical order so merges can be deterministic
    # These can be callables as well with the following type:
    # event -> [(event, format_str)]
    "converge-cycle": "Convergence cycle made {changes} changes",
    "converge-cycle-error": "Unexpected error in convergence cycle",
    "converge-cycle-time": "Convergence cycle took {seconds_taken} seconds",
    "converge-wait-error": (
        "Error waiting for node {node_id} to be updated. Ignoring"),
    "converge-wait-gave-up": (
        "Waited {seconds_taken} seconds for node {node_id} to be updated, "
        "then gave up"),
    "converge-wait-success": (
        "Node {node_id} updated in {seconds_taken} seconds"),
    "execute-conflict": (
        "Node {node_id} changed since it was read. Not updating it"),
    "execute-get-node-error": (
        "Error getting node {node_id} before updating it"),
    "execute-noop": "Node {node_id} already has the desired addresses",
    "execute-worker-error": (
        "Unexpected error while updating node {node_id}"),
    "execute-write-error": "Error updating addresses of node {node_id}",
    "gather-snapshot": "Fetched {num_nodes} nodes",
    "new-node-detected": "Detected new node {node_id}",
    "node-state": split_address_messages(
        "Node {node_id} addresses: {addresses}", "addresses"),
    "node-state-error": "Error getting current state of nodes",
    "snapshot-error": "Error getting nodes",
    "snapshot-node-error": "Error getting node {node_id}. Skipping it",
    "spare-addresses": split_address_messages(
        "Spare addresses: {addresses}", "addresses"),
    "submit-operation": split_address_messages(
        "Node {node_id} {operation} addresses: {addresses}", "addresses"),
    "vip-manager-config": (
        "Managing {num_vips} virtual addresses with {workers} workers, "
        "sleeping {sleep} seconds when idle and waiting up to {wait} "
        "seconds per update"),
    "vip-manager-stopped": "Stopped managing virtual addresses",
}


def halve(l):
    """
    Split a sequence in half, biased to the left (if the number of elements
    is odd, the left sub-list has one more element than the right sub-list.)

    :param list l: The sequence to split
    :return: a `tuple` containing both halves of the sequence.
    """
    half_index = int(math.ceil(len(l) / 2.0))
    return (l[:half_index], l[half_index:])


def split(render, elements, max_len, calculate_len=len):
    """
    Split given elements into sub-lists, ensuring that length (as calculated by
    ``calculate_len``) of each rendered sub-list is less than ``max_len``, and
    transform each sublist using the ``render`` callable.

    Messages longer than the max that are rendered from individual elements
    will still be returned, so ``max_len`` mustn't be assumed to be a hard
    constraint.

    :param callable render: A callable that takes list of elements and returns
        an object whose length is calculated by ``calculate_len``.
    :param list elements: A list of elements that should be potentially split.
    :param int max_len: Maximum length of the rendered object.
    :param callable calculate_len: A callable that takes the rendered object
        and calculates the length.

    :return: a `list` of rendered elements
    """
    m = render(elements)
    if len(elements) > 1 and calculate_len(m) > max_len:
        left, right = halve(elements)
        return (split(render, left, max_len, calculate_len) +
                split(render, right, max_len, calculate_len))
    else:
        return [m]


def error_event(event, failure, why):
    """
    Convert event to error with failure and why
    """
    return {"isError": True, "failure": failure,
            "why": why, "original_event": event, "message": ()}


class MsgTypeNotFound(Exception):
    """
    Raised when msg_type is not found
    """


def try_msg_types(event, table, tries):
    """
    Try series of msg_types
    """
    for msg_type in tries:
        if msg_type in table:
            formatter = table[msg_type]
            if callable(formatter):
                events = formatter(event)
            else:
                events = [(event, formatter)]

            return events, msg_type
    raise MsgTypeNotFound(tries)


def get_validated_event(event, table=msg_types):
    """
    Expand event's message as per msg_types

    :return: A list of validated events.
    :raises: `ValueError` or `TypeError` if `event_dict` is not valid
    """
    try:
        # message is tuple of strings
        message = ''.join(event.get("message", []))
        error = event.get('isError', False)

        events_and_messages, msg_type = try_msg_types(
            event, table,
            [event.get("why", None), message] if error else [message])

        for i, (e, m) in enumerate(events_and_messages):
            e["vipmanager_msg_type"] = msg_type
            if error:
                e['why'] = m

            if not error or message:
                e['message'] = (m,)

            if len(events_and_messages) > 1:
                e['split_message'] = "{0} of {1}".format(
                    i + 1, len(events_and_messages))

        return [e for e, _ in events_and_messages]
    except MsgTypeNotFound:
        return [event]


def MessageTypeObserverWrapper(observer,
                               get_validated_event=get_validated_event):
    """
    Return observer that expands messages based on the message types table
    and delegates to given observer.

    Messages are expected to be logged like

    >>> log.msg("submit-operation", node_id="n1", operation="ADD",
    ...         addresses=["10.0.0.1"])

    where "submit-operation" is message type that will be expanded based on
    entry in msg_types. For errors, the string should be provided in
    "why" field like:

    >>> log.err(f, "execute-write-error", node_id="n1")
    """
    def validating_observer(event_dict):
        try:
            speced_events = get_validated_event(event_dict)
        except (ValueError, TypeError, KeyError):
            speced_events = [error_event(
                event_dict, Failure(), "Error validating event")]
        for event in speced_events:
            observer(event)

    return validating_observer

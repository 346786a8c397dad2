"""
Logging intents and performing functions
"""

from functools import partial

import attr

from effect import (
    ComposedDispatcher, Effect, TypeDispatcher, perform, sync_performer)

from toolz.dicttoolz import merge
from toolz.functoolz import curry

from twisted.python.failure import Failure


@attr.s
class Log(object):
    """
    Intent to log message
    """
    msg = attr.ib()
    fields = attr.ib()


@attr.s(init=False)
class LogErr(object):
    """
    Intent to log error
    """
    failure = attr.ib()
    msg = attr.ib()
    fields = attr.ib()

    def __init__(self, failure, msg, fields):
        # `failure` being `None` means "get the exception from context".
        # The exception context is gone by the time the intent is performed,
        # so the Failure is captured here.
        if failure is None:
            failure = Failure()
        elif isinstance(failure, BaseException):
            failure = Failure(failure)
        self.failure = failure
        self.msg = msg
        self.fields = fields


@attr.s
class BoundFields(object):
    """
    Intent that binds log fields to an effect. Any log or err effect
    found when performing given effect will be expanded with these fields
    """
    effect = attr.ib()
    fields = attr.ib()


def with_log(effect, **fields):
    """
    Return Effect of BoundFields used to wrap effect with fields passed as
    keyword arguments
    """
    return Effect(BoundFields(effect, fields))


def msg(msg, **fields):
    """
    Return Effect of Log
    """
    return Effect(Log(msg, fields))


def err(failure, msg, **fields):
    """
    Return Effect of LogErr
    """
    return Effect(LogErr(failure, msg, fields))


@curry
def err_exc(msg, exc, **fields):
    """
    Return Effect of LogErr with the exception wrapped in a failure. This
    function provides msg first and is curried to use it as effect error
    handler:

    >>> effect_returning_function().on(error=err_exc("ferr", f1="a"))
    """
    return err(Failure(exc), msg, **fields)


def perform_logging(log, fields, log_func, disp, intent, box):
    """ Perform logging related intents """
    all_fields = merge(fields, intent.fields)
    log_func(log, all_fields, disp, intent, box)


def log_msg(log, all_fields, disp, intent, box):
    """ Perform Log intent """
    log.msg(intent.msg, **all_fields)
    box.succeed(None)


def log_err(log, all_fields, disp, intent, box):
    """ Perform LogErr intent """
    log.err(intent.failure, intent.msg, **all_fields)
    box.succeed(None)


def bound_log(log, all_fields, disp, intent, box):
    """ Perform BoundFields intent """
    new_disp = ComposedDispatcher(
        [get_log_dispatcher(log, all_fields), disp])
    perform(new_disp, intent.effect.on(box.succeed, box.fail))


def get_log_dispatcher(log, fields):
    """
    Get dispatcher containing performers for logging intents that
    use given logger and are bound with given fields
    """
    return TypeDispatcher({
        BoundFields: partial(perform_logging, log, fields, bound_log),
        Log: partial(perform_logging, log, fields, log_msg),
        LogErr: partial(perform_logging, log, fields, log_err),
    })


@attr.s
class MsgWithTime(object):
    """
    Intent to log message with time taken to complete a given effect
    """
    msg = attr.ib()
    effect = attr.ib()


def msg_with_time(msg, eff):
    """
    Return Effect of MsgWithTime
    """
    return Effect(MsgWithTime(msg, eff))


@sync_performer
def perform_msg_time(reactor, disp, intent):
    """
    Perform `MsgWithTime` intent
    """
    start = reactor.seconds()

    def log_msg_time(result):
        meff = msg(intent.msg, seconds_taken=(reactor.seconds() - start))
        return meff.on(lambda _: result)

    return intent.effect.on(log_msg_time)


def get_msg_time_dispatcher(reactor):
    """
    Return dispatcher with performer of MsgWithTime in it
    """
    return TypeDispatcher({
        MsgWithTime: partial(perform_msg_time, reactor)
    })

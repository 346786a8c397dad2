"""
Package for all vipmanager specific logging functionality.
"""

from twisted.python.log import err, msg

from vipmanager.log.bound import BoundLog
from vipmanager.log.setup import observer_factory, observer_factory_debug


log = BoundLog(msg, err).bind(system='vipmanager')


__all__ = ['observer_factory', 'observer_factory_debug', 'log']

"""
Settings of the VIP manager, read from the global configuration.
"""
import attr

from vipmanager.addresses import InvalidAddressError, parse_vips
from vipmanager.constants import (
    DEFAULT_SLEEP_SECONDS, DEFAULT_WAIT_SECONDS, DEFAULT_WORKERS)
from vipmanager.util.config import config_value


class ConfigurationError(Exception):
    """
    Raised when the configuration is missing a required value or has an
    invalid one.
    """


def _non_negative(name, value, default):
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(
            '{0} must be a number, got {1!r}'.format(name, value))
    if value < 0:
        raise ConfigurationError(
            '{0} must not be negative, got {1!r}'.format(name, value))
    return value


@attr.s(frozen=True)
class ManagerConfig(object):
    """
    Everything the control loop needs to know.

    :ivar tuple vips: the managed address pool
    :ivar int workers: number of nodes updated concurrently
    :ivar sleep: seconds to sleep after a cycle that changed nothing
    :ivar wait: seconds to wait for each node update to show up
    :ivar group: name of the node group, for information only
    :ivar alias_range: name of the managed alias range, for information only
    """
    vips = attr.ib(converter=tuple)
    workers = attr.ib(default=DEFAULT_WORKERS)
    sleep = attr.ib(default=DEFAULT_SLEEP_SECONDS)
    wait = attr.ib(default=DEFAULT_WAIT_SECONDS)
    group = attr.ib(default=None)
    alias_range = attr.ib(default=None)

    @classmethod
    def from_config(cls, config_value=config_value):
        """
        Build the settings from configuration values.

        ``vips`` is required and may be a string or list of addresses and
        network prefixes. ``workers`` of 0 is taken as 1.

        :param callable config_value: like
            :func:`vipmanager.util.config.config_value`
        :raises: :obj:`ConfigurationError`
        """
        raw_vips = config_value('vips')
        if not raw_vips:
            raise ConfigurationError('vips must be specified')
        try:
            vips = parse_vips(raw_vips)
        except InvalidAddressError as e:
            raise ConfigurationError(str(e))
        if not vips:
            raise ConfigurationError('vips must be specified')

        workers = int(_non_negative('workers', config_value('workers'),
                                    DEFAULT_WORKERS))
        return cls(
            vips=vips,
            workers=max(1, workers),
            sleep=_non_negative('sleep', config_value('sleep'),
                                DEFAULT_SLEEP_SECONDS),
            wait=_non_negative('wait', config_value('wait'),
                               DEFAULT_WAIT_SECONDS),
            group=config_value('group'),
            alias_range=config_value('alias_range'))

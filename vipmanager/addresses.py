"""
Parsing of the managed address pool and conversions between single
addresses and the alias ranges the inventory reports.
"""
import ipaddress
import re

from toolz.itertoolz import mapcat, unique


class InvalidAddressError(ValueError):
    """
    Raised when a configured address or prefix cannot be parsed.
    """
    def __init__(self, token):
        super(InvalidAddressError, self).__init__(
            'Invalid address or network prefix: {0!r}'.format(token))
        self.token = token


_SEPARATORS = re.compile(r'[,\s]+')


def expand_prefix(cidr):
    """
    Expand a network prefix like ``10.0.0.0/30`` to every address it
    contains, network and broadcast addresses included.  Host bits are
    masked off first, so ``10.0.0.5/30`` expands like ``10.0.0.4/30``.

    :param str cidr: network prefix
    :return: `list` of :class:`ipaddress.IPv4Address` or
        :class:`ipaddress.IPv6Address`
    :raises: :obj:`InvalidAddressError`
    """
    try:
        network = ipaddress.ip_network(cidr, strict=False)
    except ValueError:
        raise InvalidAddressError(cidr)
    return list(network)


def _parse_token(token):
    try:
        return [ipaddress.ip_address(token)]
    except ValueError:
        return expand_prefix(token)


def _tokens(vips):
    if isinstance(vips, str):
        vips = [vips]
    elif not isinstance(vips, (list, tuple)):
        raise InvalidAddressError(vips)
    tokens = []
    for item in vips:
        if not isinstance(item, str):
            raise InvalidAddressError(item)
        tokens.extend(token for token in _SEPARATORS.split(item.strip())
                      if token)
    return tokens


def parse_vips(vips):
    """
    Parse the configured virtual addresses.

    :param vips: A string of addresses and/or network prefixes separated by
        commas or whitespace, or a list of such strings.

    :return: `tuple` of address strings, de-duplicated and sorted by address
    :raises: :obj:`InvalidAddressError` if any token is neither an address
        nor a prefix
    """
    addrs = unique(mapcat(_parse_token, _tokens(vips)))
    return tuple(
        str(addr) for addr in sorted(addrs, key=lambda a: (a.version, a)))


def cidr_to_addresses(cidr):
    """
    Get the address strings covered by an alias range as reported by the
    inventory, e.g. ``10.0.0.5/32``.  A bare address is accepted too.
    """
    return [str(addr) for addr in _parse_token(cidr)]


def address_to_cidr(address):
    """
    Get the single-address alias range for an address, e.g. ``10.0.0.5`` ->
    ``10.0.0.5/32``.
    """
    addr = ipaddress.ip_address(address)
    return '{0}/{1}'.format(addr, addr.max_prefixlen)

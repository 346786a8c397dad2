"""
Implement a global configuration API.
"""
import json

from toolz.dicttoolz import get_in

_config_data = {}


def set_config_data(data):
    """
    Set the global configuration data.

    :param dict data: The configuration data, probably loaded from some JSON.
    """
    global _config_data
    _config_data = data


def config_value(name):
    """
    :param str name: Name is a . separated path to a configuration value
        stored in a nested dictionary.

    :returns: The value specificed in the configuration file, or None.
    """
    return get_in(name.split('.'), _config_data)


def load_config_file(path):
    """
    Read JSON configuration from ``path`` and make it the global
    configuration data.

    :return: the loaded ``dict``
    """
    with open(path) as f:
        data = json.load(f)
    set_config_data(data)
    return data

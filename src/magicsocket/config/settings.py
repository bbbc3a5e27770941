import os

from magicsocket.config.config import apply
from magicsocket.support.retry_strategy import retry_strategy_factory

config_name = 'magicsocket'
config_directory = os.path.dirname(__file__)


class SupervisorSettings:
    """ The settings used to build a ConnectionSupervisor. See magicsocket.schema.cfg for descriptions. """

    def __init__(self):
        self.service_type = 'magicsocket'
        self.protocol = 'tcp'
        self.domain = ''
        self.scheme = 'http'
        self.logging_enabled = True
        self.compression_enabled = True
        self.reconnection_delay = 1.0
        self.resolve_timeout = 3000
        self.resolve_retry_period = 0
        self.override_url = ''

    def resolve_retry_factory(self):
        return retry_strategy_factory(self.resolve_retry_period)


def load_settings(directory=config_directory, name=config_name, user_directory='~', **overrides):
    """
    Loads the [supervisor] section of the named configuration into a new SupervisorSettings.
    Keyword arguments that are not None override the configured values.
    """
    settings = apply(SupervisorSettings(), 'supervisor', name, directory, user_directory)
    for k, v in overrides.items():
        if v is not None:
            setattr(settings, k, v)
    return settings

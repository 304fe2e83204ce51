# Make this directory a package for route modules

from .event_routes import init_event_routes  # noqa: F401
from .instance_routes import init_instance_routes  # noqa: F401

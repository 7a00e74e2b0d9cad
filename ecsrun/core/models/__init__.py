from .abstract import *  # noqa:F401,F403
from .cloudwatchlogs import *  # noqa:F401,F403
from .ecs import *  # noqa:F401,F403

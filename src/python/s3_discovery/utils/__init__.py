from .key_util import KeyUtil
from .time_util import TimeUtil

__all__ = [
    "KeyUtil",
    "TimeUtil"
]

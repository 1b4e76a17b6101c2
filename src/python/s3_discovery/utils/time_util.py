import time


class TimeUtil:

    @staticmethod
    def now_millis() -> int:
        return time.time_ns() // 1_000_000

    @staticmethod
    def seconds_to_millis(seconds: float) -> int:
        return int(seconds * 1000)

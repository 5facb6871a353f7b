import time


def now_ms() -> float:
    return time.time() * 1000


def humanize_ms(ms: int | float) -> str:
    seconds = ms / 1000
    if seconds == int(seconds):
        return f"{int(seconds)}s"
    return f"{round(seconds, 1)}s"

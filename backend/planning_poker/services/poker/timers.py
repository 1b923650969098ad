"""Countdown timer transitions.

The server never ticks: it records the remaining duration and the start time,
and clients compute ``duration - (serverTime - startedAt) / 1000`` locally.
"""
import time
from typing import Optional

from planning_poker.models import TimerState


def now_ms() -> int:
    return int(time.time() * 1000)


def start(timer: TimerState, now: int, duration: Optional[int] = None) -> TimerState:
    # A new duration replaces the stored one even while running
    if duration is not None:
        timer.duration = duration
    timer.running = True
    timer.started_at = now
    return timer


def pause(timer: TimerState, now: int) -> TimerState:
    if timer.started_at is not None:
        elapsed = max(0, now - timer.started_at) // 1000
        timer.duration = max(0, timer.duration - elapsed)
    timer.running = False
    timer.started_at = None
    return timer


def reset(timer: TimerState, duration: Optional[int] = None) -> TimerState:
    if duration is not None:
        timer.duration = duration
    timer.running = False
    timer.started_at = None
    return timer

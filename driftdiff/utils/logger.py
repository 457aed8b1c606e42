# -*- coding: utf-8 -*-
"""
Timestamped console logger for workflows, the CLI and the continuation loop.

Messages go to stdout (info/debug) or stderr (warn/error). `debug` prints only
when the caller passes enabled=True, so solver loops can forward their own
verbose flag without branching.
"""
import sys, time

__all__ = ["info", "warn", "error", "debug"]


def _stamp() -> str:
    return time.strftime('%H:%M:%S')

def info(msg: str):  print(f"[{_stamp()}] {msg}", file=sys.stdout)
def warn(msg: str):  print(f"[{_stamp()}] WARNING: {msg}", file=sys.stderr)
def error(msg: str): print(f"[{_stamp()}] ERROR: {msg}", file=sys.stderr)

def debug(msg: str, enabled: bool = True):
    if enabled:
        print(f"[{_stamp()}] DEBUG: {msg}", file=sys.stdout)

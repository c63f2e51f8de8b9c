"""
redprobe - single-shot HTTP probe with per-phase timings and expression checks.

One request in, one diagnostic Outcome out: DNS, connect, TLS, TTFB and
transfer timings, response metadata, and the results of user assertions.
"""

from .exceptions import RedProbeConfigError, RedProbeError, RedProbeOutputError

__all__ = [
    "__version__",
    "RedProbeConfigError",
    "RedProbeError",
    "RedProbeOutputError",
]

__version__ = "1.0.0"

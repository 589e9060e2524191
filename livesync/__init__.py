"""Live-metrics synchronization engine.

Keeps the latest snapshot and a bounded history per metric stream fresh from
an external data source and serves consistent reads to polling displays.
"""

__version__ = "0.1.0"

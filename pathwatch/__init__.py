"""
pathwatch: watch a growing list of paths read from stdin.

Paths arrive one per line on the control stream; every change to a watched
path is reported on stdout as ``PATH<TAB>FLAGS``. Provides both a CLI and a
library API built around a single-threaded event loop.
"""

__version__ = "0.1.0"

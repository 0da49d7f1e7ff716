"""
pipecascade -- decomposes data-processing pipelines into dependent units of work
and schedules whole pipelines against each other via the resources they share
"""

from .version import __version__

__all__ = ["__version__"]

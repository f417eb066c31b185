"""Magic Actions - AI-backed content transformations.

An asynchronous job engine that runs AI actions (titles, tags, alt text,
transcriptions) against CMS entries and assets and tracks them for polling.
"""

__version__ = "0.1.0"

"""worker-inline: inline module-relative Web Workers into their owner files."""

__version__ = "0.1.0"

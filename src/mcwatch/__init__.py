"""mcwatch: detect competing and silent multicast sources on a live interface."""

__version__ = "0.1.0"

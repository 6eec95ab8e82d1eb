"""Built-in sub-commands: ``generate``, ``inspect`` and ``init``."""

"""ursa-save: versioned save persistence for the Ursa game runtime.

Named slots with rollback history, quick save with startup recovery, and
import/export of save files, all over a small key-value storage capability.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]

"""
Domain models — Pydantic types for box.

All models are re-exported here for convenient access:

    from boxpm.core.models import Action, Receipt, ModuleMetadata, InstalledModule
"""

from boxpm.core.models.action import Action, Receipt
from boxpm.core.models.module import (
    GitSource,
    InstalledModule,
    ModuleMetadata,
    VersionMetadata,
)

__all__ = [
    # action.py
    "Action",
    "Receipt",
    # module.py
    "GitSource",
    "InstalledModule",
    "ModuleMetadata",
    "VersionMetadata",
]

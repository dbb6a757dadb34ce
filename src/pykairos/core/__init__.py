"""
Core types for the pykairos scheduler.

This module contains the leaf types everything else builds on:
- Token / ActiveFlag / TokenAllocator: wake-source identity and readiness
- Interest: read/write interest for registrations
- SuspensionDescriptor: the wake condition a task yields (plus builders)
- RuntimeConfig: scheduling policy
- Error taxonomy
"""

from pykairos.core.config import RuntimeConfig
from pykairos.core.descriptor import (
    SuspensionDescriptor,
    again,
    any_of,
    later,
    merge_all,
    monotonic,
    never,
)
from pykairos.core.errors import (
    ComputationFailure,
    ConfigurationFault,
    KairosError,
    PolledAfterCompletionError,
    ReactorError,
    ResourceRegistrationError,
)
from pykairos.core.interest import Interest
from pykairos.core.token import ActiveFlag, Token, TokenAllocator

__all__ = [
    "ActiveFlag",
    "Token",
    "TokenAllocator",
    "Interest",
    "SuspensionDescriptor",
    "never",
    "later",
    "again",
    "any_of",
    "merge_all",
    "monotonic",
    "RuntimeConfig",
    "KairosError",
    "ResourceRegistrationError",
    "ComputationFailure",
    "ConfigurationFault",
    "PolledAfterCompletionError",
    "ReactorError",
]

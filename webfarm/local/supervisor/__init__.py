"""
The Supervisor package.
Manages the lifecycle of the background workers deployed with each site.

This package contains the central BackgroundWorkerService class and its helper
modules, which together handle discovering, staging, launching, restarting
and tearing down the workers of every site.
"""
from .errors import (
    AlreadyStagedError,
    DuplicateUnitError,
    InvalidStateError,
    NotStagedError,
    TeardownError,
    WorkerError,
)
from .executable import Executable
from .discovery import ExecutableFinder
from .registry import SiteRegistry
from .supervisor import BackgroundWorkerService, UnitFailure

__all__ = [
    'AlreadyStagedError',
    'BackgroundWorkerService',
    'DuplicateUnitError',
    'Executable',
    'ExecutableFinder',
    'InvalidStateError',
    'NotStagedError',
    'SiteRegistry',
    'TeardownError',
    'UnitFailure',
    'WorkerError',
]

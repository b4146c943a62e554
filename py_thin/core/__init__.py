"""
Core thinning functionality.
"""

from .exceptions import (
    ThinningError, ConfigurationError, CollaboratorError, UnknownPointError, PermutationError
)
from .population import InputPopulation, WorkingSet
from .traversal import TraversalOrder, TraversalSequence, build_traversal_sequence
from .protection import ProtectedSet
from .engine import (
    ThinningEngine, ThinningOptions, ThinningResult, EngineState, PointStore, thin_store
)
from .point_store import ArrayPointStore

__all__ = ['ThinningError', 'ConfigurationError', 'CollaboratorError', 'UnknownPointError',
           'PermutationError', 'InputPopulation', 'WorkingSet',
           'TraversalOrder', 'TraversalSequence', 'build_traversal_sequence',
           'ProtectedSet', 'ThinningEngine', 'ThinningOptions', 'ThinningResult',
           'EngineState', 'PointStore', 'thin_store', 'ArrayPointStore']

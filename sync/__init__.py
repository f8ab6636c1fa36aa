from .batch_executor import BatchExecutor, BatchSummary
from .change_cache import ChangeDetectionCache, ChangeKind
from .checkpoint import Checkpoint, CheckpointStore
from .config import SyncConfig
from .diff_engine import MembershipAction, MembershipDelta, apply_delta, compute_delta
from .exceptions import ConfigurationError, SyncError, SyncItemError
from .group_rules import GroupDefinition, TargetGroup, build_target_groups, register_predicate
from .lifecycle import AccountState, LifecycleStage, LifecycleStateMachine, Transition
from .report import ReportNotifier, SyncReport
from .runner import SyncRunner
from .storage import JsonFileStore, KeyValueStore, SqlKeyValueStore, StorageError, create_store

__all__ = [
    'AccountState',
    'BatchExecutor',
    'BatchSummary',
    'ChangeDetectionCache',
    'ChangeKind',
    'Checkpoint',
    'CheckpointStore',
    'ConfigurationError',
    'GroupDefinition',
    'JsonFileStore',
    'KeyValueStore',
    'LifecycleStage',
    'LifecycleStateMachine',
    'MembershipAction',
    'MembershipDelta',
    'ReportNotifier',
    'SqlKeyValueStore',
    'StorageError',
    'SyncConfig',
    'SyncError',
    'SyncItemError',
    'SyncReport',
    'SyncRunner',
    'TargetGroup',
    'Transition',
    'apply_delta',
    'build_target_groups',
    'compute_delta',
    'create_store',
    'register_predicate',
]

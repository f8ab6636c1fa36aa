from .base_job import BaseSyncJob, DirectoryAccounts
from .group_sync import GroupSyncJob
from .lifecycle_sync import LifecycleJob
from .member_sync import MemberSyncJob

__all__ = [
    'BaseSyncJob',
    'DirectoryAccounts',
    'GroupSyncJob',
    'LifecycleJob',
    'MemberSyncJob',
]

from .directory_api import DirectoryAPI
from .group_api import GroupAPI
from .member_api import MemberAPI
from .user_api import UserAPI

__all__ = [
    'DirectoryAPI',
    'GroupAPI',
    'MemberAPI',
    'UserAPI',
]

from typing import Any, Dict, List, Optional

from .directory_api import DirectoryAPI


class MemberAPI(DirectoryAPI):
    def list_members(self, group_key: str) -> List[Dict[str, Any]]:
        return self._list_all(
            self.service.members().list,
            "members",
            f"list members of {group_key}",
            groupKey=group_key,
        )

    def add_member(self, group_key: str, email: str, role: str = "MEMBER") -> Optional[Dict[str, Any]]:
        body = {"email": email, "role": role}
        return self._mutate(
            lambda: self.service.members().insert(groupKey=group_key, body=body),
            f"add {email} to {group_key}",
        )

    def remove_member(self, group_key: str, email: str) -> None:
        self._mutate(
            lambda: self.service.members().delete(groupKey=group_key, memberKey=email),
            f"remove {email} from {group_key}",
        )

from typing import Any, Dict, List, Optional

from .directory_api import DirectoryAPI


class GroupAPI(DirectoryAPI):
    def list_groups(self, domain: Optional[str] = None) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"domain": domain} if domain else {"customer": self.customer_id}
        return self._list_all(self.service.groups().list, "groups", "list groups", **params)

    def get_group(self, group_key: str) -> Dict[str, Any]:
        return self._execute(self.service.groups().get(groupKey=group_key), f"get group {group_key}")

    def create_group(self, email: str, name: str, description: str = "") -> Optional[Dict[str, Any]]:
        body = {"email": email, "name": name, "description": description}
        return self._mutate(lambda: self.service.groups().insert(body=body), f"create group {email}")

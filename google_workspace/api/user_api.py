from typing import Any, Dict, List, Optional

from .directory_api import DirectoryAPI


class UserAPI(DirectoryAPI):
    def list_users(self, domain: Optional[str] = None, query: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        List every user account, across all pages.

        Args:
            domain: Restrict to one domain; defaults to the whole customer.
            query: Optional Directory API search query.
        """
        params: Dict[str, Any] = {"projection": "full"}
        if domain:
            params["domain"] = domain
        else:
            params["customer"] = self.customer_id
        if query:
            params["query"] = query
        return self._list_all(self.service.users().list, "users", "list users", **params)

    def get_user(self, user_key: str) -> Dict[str, Any]:
        return self._execute(self.service.users().get(userKey=user_key, projection="full"), f"get user {user_key}")

    def create_user(self, body: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return self._mutate(
            lambda: self.service.users().insert(body=body),
            f"create user {body.get('primaryEmail')}",
        )

    def update_user(self, user_key: str, body: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return self._mutate(
            lambda: self.service.users().update(userKey=user_key, body=body),
            f"update user {user_key}",
        )

    def suspend_user(self, user_key: str) -> Optional[Dict[str, Any]]:
        return self._mutate(
            lambda: self.service.users().update(userKey=user_key, body={"suspended": True}),
            f"suspend user {user_key}",
        )

    def archive_user(self, user_key: str) -> Optional[Dict[str, Any]]:
        return self._mutate(
            lambda: self.service.users().update(userKey=user_key, body={"archived": True}),
            f"archive user {user_key}",
        )

    def reactivate_user(self, user_key: str) -> Optional[Dict[str, Any]]:
        return self._mutate(
            lambda: self.service.users().update(
                userKey=user_key, body={"suspended": False, "archived": False}
            ),
            f"reactivate user {user_key}",
        )

    def delete_user(self, user_key: str) -> None:
        self._mutate(lambda: self.service.users().delete(userKey=user_key), f"delete user {user_key}")

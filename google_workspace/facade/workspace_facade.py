"""
Google Workspace Facade

Composes the user, group and membership APIs around a single Directory API
service object, following the adapter-facade pattern used across the project.
"""

import logging
from typing import Any, Callable, Optional

from google.oauth2 import service_account
from googleapiclient.discovery import build

from ..api.group_api import GroupAPI
from ..api.member_api import MemberAPI
from ..api.user_api import UserAPI
from ..retry import RetryPolicy

logger = logging.getLogger(__name__)

DIRECTORY_SCOPES = [
    "https://www.googleapis.com/auth/admin.directory.user",
    "https://www.googleapis.com/auth/admin.directory.group",
    "https://www.googleapis.com/auth/admin.directory.group.member",
]


class GoogleWorkspaceFacade:
    """
    Facade over the Admin SDK Directory API.

    Attributes:
        users (UserAPI): Account operations.
        groups (GroupAPI): Group operations.
        members (MemberAPI): Group membership operations.
        domain (str): Primary domain used for new accounts and groups.
    """

    def __init__(
        self,
        service: Any,
        domain: str,
        customer_id: str = "my_customer",
        retry_policy: Optional[RetryPolicy] = None,
        page_size: int = 200,
        dry_run: bool = False,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self.service = service
        self.domain = domain
        self.customer_id = customer_id
        self.dry_run = dry_run

        api_args = {
            "customer_id": customer_id,
            "retry_policy": retry_policy,
            "page_size": page_size,
            "dry_run": dry_run,
            "sleep": sleep,
        }
        self.users = UserAPI(service, **api_args)
        self.groups = GroupAPI(service, **api_args)
        self.members = MemberAPI(service, **api_args)

    @classmethod
    def from_service_account(
        cls,
        service_account_file: str,
        admin_subject: str,
        domain: str,
        **kwargs: Any,
    ) -> "GoogleWorkspaceFacade":
        """
        Build a facade from a service-account key with domain-wide delegation.

        Args:
            service_account_file: Path to the JSON key file.
            admin_subject: Administrator address the service account impersonates.
            domain: Primary Workspace domain.
            **kwargs: Passed through to the constructor.
        """
        credentials = service_account.Credentials.from_service_account_file(
            service_account_file, scopes=DIRECTORY_SCOPES
        ).with_subject(admin_subject)
        service = build("admin", "directory_v1", credentials=credentials, cache_discovery=False)
        logger.info(f"Directory API service initialized for {domain} as {admin_subject}")
        return cls(service, domain, **kwargs)

    def verify_access(self) -> None:
        """
        Probe the directory with a minimal read.

        Raises:
            FatalDirectoryError: If credentials or authorization are invalid.
        """
        request = self.service.users().list(customer=self.customer_id, maxResults=1)
        self.users._execute(request, "verify directory access")
        logger.info("✅ Directory access verified")

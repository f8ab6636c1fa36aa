import logging
from typing import Any, Callable, Dict, List, Optional

from ..retry import RetryPolicy, with_retry

logger = logging.getLogger(__name__)


class DirectoryAPI:
    """
    Base class for interacting with the Google Workspace Admin SDK Directory API.

    This class owns the single code path through which requests are executed
    (``_execute``), so every read and every mutation gets the same retry and
    error classification behavior.

    Attributes:
        service: A ``googleapiclient`` resource built for ``admin``/``directory_v1``.
        customer_id (str): Workspace customer id (``my_customer`` for the caller's own).
        retry_policy (RetryPolicy): Retry settings applied to every request.
        page_size (int): ``maxResults`` used for paginated listing.
        dry_run (bool): If True, mutations are logged and skipped.
    """

    def __init__(
        self,
        service: Any,
        customer_id: str = "my_customer",
        retry_policy: Optional[RetryPolicy] = None,
        page_size: int = 200,
        dry_run: bool = False,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self.service = service
        self.customer_id = customer_id
        self.retry_policy = retry_policy or RetryPolicy()
        self.page_size = page_size
        self.dry_run = dry_run
        self._sleep = sleep

    def _execute(self, request: Any, description: str) -> Any:
        """
        Execute a prepared API request through the retry wrapper.

        Args:
            request: A ``googleapiclient`` HttpRequest.
            description: Label for logs and errors (e.g. ``"insert member x into y"``).

        Returns:
            The decoded JSON response (``None`` for empty bodies).
        """
        kwargs = {"policy": self.retry_policy, "description": description}
        if self._sleep is not None:
            kwargs["sleep"] = self._sleep
        return with_retry(request.execute, **kwargs)

    def _mutate(self, build_request: Callable[[], Any], description: str) -> Any:
        """Execute a mutating request unless running in dry-run mode."""
        if self.dry_run:
            logger.info(f"[DRY RUN] Would {description}")
            return None
        return self._execute(build_request(), description)

    def _list_all(
        self,
        list_method: Callable[..., Any],
        items_key: str,
        description: str,
        **params: Any,
    ) -> List[Dict[str, Any]]:
        """
        Collect every page of a list endpoint, following ``nextPageToken``.

        Args:
            list_method: Bound ``list`` method of a Directory resource.
            items_key: Response key holding the page's items (``users``, ``members``...).
            description: Label for logs and errors.
            **params: Extra request parameters.

        Returns:
            All items across pages, in API order.
        """
        items: List[Dict[str, Any]] = []
        page_token = None
        page = 0

        while True:
            request_params = dict(params, maxResults=self.page_size)
            if page_token:
                request_params["pageToken"] = page_token

            response = self._execute(list_method(**request_params), f"{description} (page {page + 1})") or {}
            items.extend(response.get(items_key, []))
            page += 1

            page_token = response.get("nextPageToken")
            if not page_token:
                break

        logger.debug(f"{description}: {len(items)} items across {page} page(s)")
        return items

import logging
import os
from datetime import datetime
from typing import Any, Iterable, Mapping, Optional
from urllib.parse import urljoin

import requests
from dotenv import load_dotenv

from ..db.utils import dt_iso
from ..draw.errors import UpstreamUnavailableError
from ..models.participant import DEFAULT_DONATION_PERCENTAGE
from .directory import ParticipantStanding

logger = logging.getLogger(__name__)


class AccountsClient:
    """:class:`AccountDirectory` backed by the account-management REST service."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ):
        load_dotenv()
        url = base_url or os.getenv("ACCOUNTS_API_BASE_URL")
        if not url:
            raise ValueError("Environment variable 'ACCOUNTS_API_BASE_URL' is not set")
        key = api_key or os.getenv("ACCOUNTS_API_KEY")
        if not key:
            raise ValueError("Environment variable 'ACCOUNTS_API_KEY' is not set")

        self.base_url = url.rstrip("/")
        self._api_key = key
        self.session = session or requests.Session()
        self.timeout = timeout

    # -------- headers --------
    @property
    def auth_headers(self) -> Mapping[str, str]:
        return {"Accept": "application/json", "Authorization": f"Bearer {self._api_key}"}

    # -------- core request --------
    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict] = None,
        json: Optional[dict] = None,
    ) -> Any:
        url = urljoin(self.base_url + "/", path.lstrip("/"))
        try:
            r = self.session.request(
                method=method.upper(),
                url=url,
                headers=self.auth_headers,
                params=params,
                json=json,
                timeout=self.timeout,
            )
            r.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Account service request {method.upper()} {path} failed: {e}")
            raise UpstreamUnavailableError(f"Account service unavailable: {e}") from e
        return r.json() if r.content else None

    # -------- API callers --------
    def eligible_subscriber_count(self, at: datetime) -> int:
        payload = self._request(
            "GET", "/api/v1/subscribers/eligible-count", params={"at": dt_iso(at)}
        )
        return int(payload["count"])

    def standings(
        self, participant_ids: Iterable[int], at: datetime
    ) -> dict[int, ParticipantStanding]:
        ids = sorted(set(participant_ids))
        if not ids:
            return {}
        payload = self._request(
            "POST",
            "/api/v1/participants/standing",
            json={"participant_ids": ids, "at": dt_iso(at)},
        )
        result: dict[int, ParticipantStanding] = {}
        for row in payload.get("participants", []):
            donation = row.get("donation_percentage")
            standing = ParticipantStanding(
                participant_id=int(row["id"]),
                eligible=bool(row.get("eligible", False)),
                donation_percentage=(
                    DEFAULT_DONATION_PERCENTAGE if donation is None else int(donation)
                ),
                charity_id=row.get("charity_id"),
                full_name=row.get("full_name"),
                email=row.get("email"),
            )
            result[standing.participant_id] = standing
        logger.debug(f"Fetched standing for {len(result)} of {len(ids)} participants")
        return result

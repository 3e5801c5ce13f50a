"""
Purchase evidence upload to Google Drive.

Evidence is attached after the contribution has been committed. Upload
problems are reported to the caller as a warning; the contribution itself
is never rolled back because of them.

Components:
    EvidenceSession: owns the Drive access token (acquire / token / invalidate)
    check_readiness: async bounded wait until a probe reports the store usable
    DriveEvidenceStore: validates links, uploads files
    attach_evidence: upload + store the URL on the contribution
"""

import asyncio
import inspect
import json
import logging
import re
from enum import Enum
from typing import Optional

import requests
from asgiref.sync import async_to_sync, sync_to_async
from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import URLValidator
from django.utils import timezone

from .contribution_writer import get_contribution, update_contribution
from .exceptions import UploadError

logger = logging.getLogger(__name__)

TOKEN_URL = "https://oauth2.googleapis.com/token"
UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3/files"

_DRIVE_FILE_PATTERN = re.compile(r"drive\.google\.com/file/d/([A-Za-z0-9_-]+)")
_DRIVE_OPEN_PATTERN = re.compile(r"drive\.google\.com/(?:open|uc)\?(?:.*&)?id=([A-Za-z0-9_-]+)")


def drive_view_url(file_id):
    return f"https://drive.google.com/file/d/{file_id}/view"


def normalize_evidence_link(link):
    """
    Validate an evidence link and rewrite Drive share links to a view URL.

    Raises:
        UploadError: If the link is not a valid http(s) URL
    """
    link = (link or '').strip()
    try:
        URLValidator(schemes=['http', 'https'])(link)
    except DjangoValidationError:
        raise UploadError(f"Invalid evidence link: {link!r}")

    for pattern in (_DRIVE_FILE_PATTERN, _DRIVE_OPEN_PATTERN):
        match = pattern.search(link)
        if match:
            return drive_view_url(match.group(1))
    return link


class EvidenceSession:
    """
    Access token for the evidence store.

    The token is obtained with the OAuth2 refresh-token grant and kept on
    the instance until ``invalidate()`` is called (e.g. after a 401).
    """

    def __init__(self, *, client_id=None, client_secret=None, refresh_token=None,
                 timeout=None):
        self.client_id = client_id if client_id is not None else settings.GOOGLE_DRIVE_CLIENT_ID
        self.client_secret = (
            client_secret if client_secret is not None else settings.GOOGLE_DRIVE_CLIENT_SECRET
        )
        self.refresh_token = (
            refresh_token if refresh_token is not None else settings.GOOGLE_DRIVE_REFRESH_TOKEN
        )
        self.timeout = timeout or settings.EVIDENCE_HTTP_TIMEOUT
        self._access_token = None

    @property
    def is_configured(self):
        return bool(self.client_id and self.client_secret and self.refresh_token)

    @property
    def token(self) -> Optional[str]:
        return self._access_token

    def acquire(self) -> str:
        """
        Return the current token, requesting a new one if there is none.

        Raises:
            UploadError: If credentials are missing or the grant is refused
        """
        if self._access_token:
            return self._access_token

        if not self.is_configured:
            raise UploadError("Google Drive credentials are not configured")

        try:
            response = requests.post(
                TOKEN_URL,
                data={
                    'client_id': self.client_id,
                    'client_secret': self.client_secret,
                    'refresh_token': self.refresh_token,
                    'grant_type': 'refresh_token',
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise UploadError(f"Could not reach the token endpoint: {e}") from e

        if response.status_code != 200:
            raise UploadError(f"Token request refused ({response.status_code})")

        token = response.json().get('access_token')
        if not token:
            raise UploadError("Token response did not contain an access token")

        self._access_token = token
        return token

    def invalidate(self):
        self._access_token = None


class Readiness(Enum):
    READY = 'ready'
    FAILED = 'failed'


async def check_readiness(probe, *, attempts=3, interval=0.5) -> Readiness:
    """
    Call ``probe`` until it returns a truthy value, at most ``attempts`` times.

    ``probe`` may be a plain callable or a coroutine function; plain
    callables are run through ``sync_to_async`` so blocking HTTP calls stay
    off the event loop. An UploadError raised by the probe counts as a failed attempt.
    """
    if not inspect.iscoroutinefunction(probe):
        probe = sync_to_async(probe)

    for attempt in range(1, attempts + 1):
        try:
            result = await probe()
            if result:
                return Readiness.READY
        except UploadError as e:
            logger.debug("Evidence store not ready (attempt %s/%s): %s", attempt, attempts, e)

        if attempt < attempts:
            await asyncio.sleep(interval)

    return Readiness.FAILED


class DriveEvidenceStore:
    """Stores purchase evidence in a Google Drive folder."""

    READINESS_ATTEMPTS = 3
    READINESS_INTERVAL_SECONDS = 0.5

    def __init__(self, *, folder_id=None, timeout=None):
        self.folder_id = folder_id if folder_id is not None else settings.GOOGLE_DRIVE_FOLDER_ID
        self.timeout = timeout or settings.EVIDENCE_HTTP_TIMEOUT

    def _wait_until_ready(self, session):
        readiness = async_to_sync(check_readiness)(
            session.acquire,
            attempts=self.READINESS_ATTEMPTS,
            interval=self.READINESS_INTERVAL_SECONDS,
        )
        if readiness is not Readiness.READY:
            raise UploadError("Google Drive is not available")

    def upload(self, file_or_link, contribution_id, kind, session) -> str:
        """
        Store evidence and return its URL.

        A string is treated as a link and only validated/normalised. Any
        other value must be a file object with ``name`` and ``read()``.

        Raises:
            UploadError: On invalid links, missing configuration or any
                failed HTTP call. A 401/403 also invalidates the session.
        """
        if isinstance(file_or_link, str):
            return normalize_evidence_link(file_or_link)

        if not self.folder_id:
            raise UploadError("Google Drive folder is not configured")

        self._wait_until_ready(session)

        original_name = getattr(file_or_link, 'name', '') or 'evidence'
        extension = original_name.rsplit('.', 1)[-1] if '.' in original_name else 'bin'
        filename = f"{kind}_{contribution_id}_{timezone.now():%Y%m%d%H%M%S}.{extension}"
        content_type = getattr(file_or_link, 'content_type', None) or 'application/octet-stream'

        metadata = {'name': filename, 'parents': [self.folder_id]}

        try:
            response = requests.post(
                UPLOAD_URL,
                params={'uploadType': 'multipart', 'fields': 'id,webViewLink'},
                headers={'Authorization': f"Bearer {session.token}"},
                files={
                    'metadata': (None, json.dumps(metadata), 'application/json; charset=UTF-8'),
                    'file': (filename, file_or_link.read(), content_type),
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise UploadError(f"Upload to Google Drive failed: {e}") from e

        if response.status_code in (401, 403):
            session.invalidate()
            raise UploadError(
                f"Google Drive rejected the credentials ({response.status_code})"
            )
        if response.status_code >= 400:
            raise UploadError(f"Upload to Google Drive failed ({response.status_code})")

        payload = response.json()
        if payload.get('webViewLink'):
            return payload['webViewLink']
        if payload.get('id'):
            return drive_view_url(payload['id'])
        raise UploadError("Google Drive response did not identify the uploaded file")


def attach_evidence(contribution_id, file_or_link, *, store=None, session=None, kind='purchase'):
    """
    Upload evidence for a committed contribution and store its URL.

    Returns:
        The stored URL, or None when the upload failed. Failures are logged
        and never undo the contribution.

    Raises:
        ContributionNotFoundError: If the contribution does not exist
    """
    get_contribution(contribution_id)

    store = store or DriveEvidenceStore()
    session = session or EvidenceSession()

    try:
        url = store.upload(file_or_link, contribution_id, kind, session)
    except UploadError as e:
        logger.warning("Evidence upload for contribution %s failed: %s", contribution_id, e)
        return None

    update_contribution(contribution_id, purchase_evidence_url=url)
    logger.info("Evidence attached to contribution %s", contribution_id)
    return url

# app/services/registry_client.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence

import requests

from app.core.config import Settings, get_settings
from app.core.errors import UpstreamFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InstitutionType:
    code: str
    label: str


@dataclass(frozen=True)
class RegistrySource:
    key: str
    base_url: str
    institution_types: Sequence[InstitutionType]


@dataclass(frozen=True)
class InstitutionRecord:
    external_id: str
    name: str
    registry_code: Optional[str] = None
    institution_type: Optional[str] = None
    region_code: Optional[str] = None
    city: Optional[str] = None
    address: Optional[str] = None
    legal_name: Optional[str] = None
    website: Optional[str] = None


# Upstream field spellings, first non-empty wins.
_ID_KEYS = ("id", "university_id", "universityId", "UNIVERSITY_ID", "universityID")
_NAME_KEYS = ("name", "university_name", "full_name", "university_full_name", "universityName", "NAME")
_CODE_KEYS = ("edrpou", "code_edrpou", "edrpou_code", "edrpouCode", "EDRPOU")
_REGION_KEYS = ("lc", "region_code", "regionCode", "region", "REGION")
_CITY_KEYS = ("city", "settlement", "town", "locality", "CITY")
_ADDRESS_KEYS = ("address", "postal_address", "location", "location_address", "ADDRESS")
_LEGAL_NAME_KEYS = ("legal_name", "legalName", "full_name", "university_full_name", "university_full", "FULL_NAME")
_WEBSITE_KEYS = ("website", "site", "url", "web", "SITE")


def _first(record: Mapping[str, Any], keys: Sequence[str]) -> Optional[str]:
    for k in keys:
        v = record.get(k)
        if v is None:
            continue
        s = str(v).strip()
        if s:
            return s
    return None


def normalize_record(record: Mapping[str, Any], type_label: str) -> Optional[InstitutionRecord]:
    """
    Map one upstream record onto InstitutionRecord.
    Records without an id or a name are dropped (None).
    """
    if not isinstance(record, Mapping):
        return None
    external_id = _first(record, _ID_KEYS)
    name = _first(record, _NAME_KEYS)
    if not external_id or not name:
        return None
    return InstitutionRecord(
        external_id=external_id,
        name=name,
        registry_code=_first(record, _CODE_KEYS),
        institution_type=type_label,
        region_code=_first(record, _REGION_KEYS),
        city=_first(record, _CITY_KEYS),
        address=_first(record, _ADDRESS_KEYS),
        legal_name=_first(record, _LEGAL_NAME_KEYS),
        website=_first(record, _WEBSITE_KEYS),
    )


def source_from_settings(settings: Optional[Settings] = None, key: Optional[str] = None) -> RegistrySource:
    settings = settings or get_settings()
    return RegistrySource(
        key=key or settings.registry_source_key,
        base_url=settings.registry_base_url,
        institution_types=[
            InstitutionType(code=code, label=label)
            for code, label in settings.institution_types().items()
        ],
    )


class RegistryClient:
    """
    Paginated puller for the external institution registry.

    GET <base_url>?ut=<type>&exp=json[&page=N&limit=M]
    The payload is either a JSON list or {"data": [...]}.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        *,
        timeout: Optional[float] = None,
        page_size: Optional[int] = None,
    ):
        settings = get_settings()
        self.session = session or requests.Session()
        self.timeout = timeout if timeout is not None else settings.registry_request_timeout_seconds
        self.page_size = page_size if page_size is not None else settings.registry_page_size

    def _get_page(self, url: str, params: Dict[str, Any]) -> List[Any]:
        try:
            r = self.session.get(url, params=params, timeout=self.timeout)
            r.raise_for_status()
            payload = r.json()
        except requests.RequestException as exc:
            raise UpstreamFailure(f"Registry request failed ({params.get('ut')}): {exc}") from exc
        except ValueError as exc:
            raise UpstreamFailure(f"Registry returned invalid JSON ({params.get('ut')}).") from exc

        if isinstance(payload, list):
            items = payload
        elif isinstance(payload, dict):
            items = payload.get("data")
        else:
            items = None
        if not isinstance(items, list):
            raise UpstreamFailure(f"Registry returned an unexpected payload ({params.get('ut')}).")
        return items

    def iter_pages(self, source: RegistrySource, itype: InstitutionType) -> Iterator[List[Any]]:
        params: Dict[str, Any] = {"ut": itype.code, "exp": "json"}
        if self.page_size <= 0:
            yield self._get_page(source.base_url, params)
            return

        page = 1
        while True:
            items = self._get_page(source.base_url, {**params, "page": page, "limit": self.page_size})
            if items:
                yield items
            if len(items) < self.page_size:
                return
            page += 1

    def iter_records(self, source: RegistrySource) -> Iterator[InstitutionRecord]:
        for itype in source.institution_types:
            fetched = 0
            for items in self.iter_pages(source, itype):
                for raw in items:
                    rec = normalize_record(raw, itype.label)
                    if rec is not None:
                        fetched += 1
                        yield rec
            logger.info(
                "registry type fetched",
                extra={"source": source.key, "type": itype.code, "records": fetched},
            )

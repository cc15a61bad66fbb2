# Module: src/agcoats/resources.py
# Description: Resource accessors for both AGCO ATS API families.

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from .api_client import ApiClient
from .config import ConfigStore

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 20
DEFAULT_READINGS_LIMIT = 100
DEFAULT_AREA_UNIT = "hectares"

TOKEN_KEYS = ("token", "Token", "access_token")


def unwrap_items(data: Any, plural_key: str) -> List[Any]:
    """
    Extracts the collection from a list response.

    Looks under 'items', then under the resource plural key; a bare list is
    returned unchanged and anything else yields an empty list.
    """
    if isinstance(data, dict):
        for key in ("items", plural_key):
            if isinstance(data.get(key), list):
                return data[key]
        return []
    if isinstance(data, list):
        return data
    return []


def encode_segment(value: Any) -> str:
    """Percent-encodes a user-supplied identifier for use as a path segment."""
    return quote(str(value), safe="")


def _compact(values: Dict[str, Any]) -> Dict[str, Any]:
    """Drops absent (None or empty) optional arguments."""
    return {k: v for k, v in values.items() if v is not None and v != ""}


class DataApi:
    """Equipment, fields and sensors (paginated CRUD API)."""

    def __init__(self, client: ApiClient):
        self.client = client

    # --- Equipment ---

    def list_equipment(
        self,
        page: int = DEFAULT_PAGE,
        page_size: int = DEFAULT_PAGE_SIZE,
        equipment_type: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[Any]:
        params = {"page": page, "pageSize": page_size}
        params.update(_compact({"type": equipment_type, "status": status}))
        data = self.client.request("GET", "/v1/equipment", params=params)
        return unwrap_items(data, "equipment")

    def get_equipment(self, equipment_id: str) -> Any:
        return self.client.request("GET", f"/v1/equipment/{encode_segment(equipment_id)}")

    def register_equipment(
        self,
        serial_number: str,
        model: str,
        equipment_type: str,
        manufacturer_date: Optional[str] = None,
        owner_id: Optional[str] = None,
    ) -> Any:
        body = {"serialNumber": serial_number, "model": model, "type": equipment_type}
        body.update(_compact({"manufacturerDate": manufacturer_date, "ownerId": owner_id}))
        return self.client.request("POST", "/v1/equipment", body=body)

    def update_equipment(self, equipment_id: str, updates: Dict[str, Any]) -> Any:
        return self.client.request(
            "PUT", f"/v1/equipment/{encode_segment(equipment_id)}", body=_compact(updates)
        )

    # --- Fields ---

    def list_fields(
        self,
        page: int = DEFAULT_PAGE,
        page_size: int = DEFAULT_PAGE_SIZE,
        farm_id: Optional[str] = None,
    ) -> List[Any]:
        params = {"page": page, "pageSize": page_size}
        params.update(_compact({"farmId": farm_id}))
        data = self.client.request("GET", "/v1/fields", params=params)
        return unwrap_items(data, "fields")

    def get_field(self, field_id: str) -> Any:
        return self.client.request("GET", f"/v1/fields/{encode_segment(field_id)}")

    def create_field(
        self,
        name: str,
        area: float,
        area_unit: str = DEFAULT_AREA_UNIT,
        farm_id: Optional[str] = None,
        boundaries: Optional[Any] = None,
        crop_type: Optional[str] = None,
    ) -> Any:
        body = {"name": name, "area": area, "areaUnit": area_unit or DEFAULT_AREA_UNIT}
        body.update(_compact({"farmId": farm_id, "boundaries": boundaries, "cropType": crop_type}))
        return self.client.request("POST", "/v1/fields", body=body)

    def update_field(self, field_id: str, updates: Dict[str, Any]) -> Any:
        return self.client.request(
            "PUT", f"/v1/fields/{encode_segment(field_id)}", body=_compact(updates)
        )

    # --- Sensors ---

    def list_sensors(
        self,
        page: int = DEFAULT_PAGE,
        page_size: int = DEFAULT_PAGE_SIZE,
        equipment_id: Optional[str] = None,
        field_id: Optional[str] = None,
        sensor_type: Optional[str] = None,
    ) -> List[Any]:
        params = {"page": page, "pageSize": page_size}
        params.update(_compact({"equipmentId": equipment_id, "fieldId": field_id, "type": sensor_type}))
        data = self.client.request("GET", "/v1/sensors", params=params)
        return unwrap_items(data, "sensors")

    def get_sensor(self, sensor_id: str) -> Any:
        return self.client.request("GET", f"/v1/sensors/{encode_segment(sensor_id)}")

    def get_sensor_readings(
        self,
        sensor_id: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        limit: int = DEFAULT_READINGS_LIMIT,
    ) -> List[Any]:
        params = {"limit": limit}
        params.update(_compact({"startDate": start_date, "endDate": end_date}))
        data = self.client.request(
            "GET", f"/v1/sensors/{encode_segment(sensor_id)}/readings", params=params
        )
        return unwrap_items(data, "readings")

    def get_latest_reading(self, sensor_id: str) -> Any:
        return self.client.request("GET", f"/v1/sensors/{encode_segment(sensor_id)}/readings/latest")


class ServicesApi:
    """Aftermarket services: connectivity, login, engines, certificates, brands, users."""

    def __init__(self, client: ApiClient, store: ConfigStore):
        self.client = client
        self.store = store

    def check_connectivity(self) -> Any:
        return self.client.request("GET", "/AftermarketServices/Hello", authenticated=False)

    def authenticate(self, username: str, password: str) -> Any:
        """
        Logs in and persists the returned session token.

        Returns:
            The raw authentication response.
        """
        data = self.client.request(
            "POST",
            "/Authentication",
            body={"username": username, "password": password},
            authenticated=False,
        )
        token = extract_token(data)
        if token:
            self.store.set("token", token)
            logger.info("Session token stored.")
        else:
            logger.warning("Authentication response did not contain a token.")
        return data

    def get_engine_iqa_codes(self, serial: str) -> Any:
        return self.client.request(
            "GET", f"/AftermarketServices/Engines/{encode_segment(serial)}/IQACodes"
        )

    def get_engine_production_data(self, serial: str) -> Any:
        return self.client.request(
            "GET", f"/AftermarketServices/Engines/{encode_segment(serial)}/ProductionData"
        )

    def get_certificates(self) -> Any:
        return self.client.request("GET", "/AftermarketServices/Certificates")

    def get_brands(self) -> Any:
        return self.client.request("GET", "/Brands")

    def get_current_user(self) -> Any:
        return self.client.request("GET", "/Users/Current")


def extract_token(data: Any) -> Optional[str]:
    if isinstance(data, dict):
        for key in TOKEN_KEYS:
            if data.get(key):
                return str(data[key])
    return None

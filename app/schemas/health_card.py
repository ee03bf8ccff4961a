from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Optional


class _CardPayload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EmergencyContactIn(_CardPayload):
    name: Optional[str] = ""
    phone: Optional[str] = ""


class HealthCardIn(_CardPayload):
    """Card details. Required fields are checked by the service so the
    client gets the storefront's message back."""
    name: Optional[str] = None
    id_card: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    date_of_birth: Optional[str] = None
    gender: Optional[str] = None
    address: Optional[str] = None
    blood_group: Optional[str] = None
    organization_name: Optional[str] = None
    employee_id: Optional[str] = None
    emergency_contact: Optional[EmergencyContactIn] = None
    medical_conditions: Optional[str] = None
    allergies: Optional[str] = None

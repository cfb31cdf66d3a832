from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class TwoFactorVerifyRequest(BaseModel):
    # Format is checked by the service so malformed and wrong codes read the same
    code: str


class TwoFactorEnableResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    provisioning_uri: str = Field(alias="provisioningUri")
    qr_code_data_url: Optional[str] = Field(default=None, alias="qrCodeDataUrl")


class TwoFactorVerifyResponse(BaseModel):
    verified: bool
    message: Optional[str] = None


class TwoFactorDisableResponse(BaseModel):
    enabled: bool


class TwoFactorStatusResponse(BaseModel):
    enabled: bool
    verified: bool

from .two_factor import (
    TwoFactorVerifyRequest,
    TwoFactorEnableResponse,
    TwoFactorVerifyResponse,
    TwoFactorDisableResponse,
    TwoFactorStatusResponse
)

"""Marketplace settings routes for mock backend"""

from fastapi import APIRouter, Depends, Request

from storefront.models import TaxSettings, TaxSettingsResponse

from ..security.auth import require_user

router = APIRouter(prefix="/api/admin", tags=["Settings"])


@router.get("/tax/current", response_model=TaxSettingsResponse, dependencies=[Depends(require_user)])
async def current_tax(request: Request):
    """The tax rate the backend prices carts with"""
    return TaxSettingsResponse(data=TaxSettings(tax_rate=request.app.state.settings.tax_rate))

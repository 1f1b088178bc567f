from fastapi import APIRouter
from simbank.routes import accounts, transactions, presets, admin

api_router = APIRouter()

api_router.include_router(accounts.router, prefix="/accounts", tags=["accounts"])
api_router.include_router(transactions.router, prefix="/transactions", tags=["transactions"])
api_router.include_router(presets.router, prefix="/presets", tags=["presets"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])

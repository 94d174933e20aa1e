import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from protean.integrations.fastapi import register_exception_handlers
from storefront.api import cart_router, negotiation_router, notification_router, order_router, refund_router
from storefront.errors import register_error_handlers


@pytest.fixture()
def client():
    app = FastAPI()
    for router in (cart_router, order_router, refund_router, negotiation_router, notification_router):
        app.include_router(router)
    register_exception_handlers(app)
    register_error_handlers(app)
    return TestClient(app)


@pytest.fixture()
def as_user(customer):
    return {"X-User-Id": str(customer.id)}


@pytest.fixture()
def as_admin():
    return {"X-User-Id": "admin-1", "X-User-Role": "admin"}

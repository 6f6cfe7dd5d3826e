from __future__ import annotations

from fastapi import FastAPI

from libs.errors import install_error_handlers
from libs.observability import instrument

from .routers import customer_orders, orders

SERVICE_NAME = "order-admin"


def create_app() -> FastAPI:
    app = FastAPI(title="Order Admin Service", version="0.1.0")
    instrument(app, service_name=SERVICE_NAME)
    install_error_handlers(app)
    app.include_router(orders.router)
    app.include_router(customer_orders.router)
    return app


app = create_app()

"""FastAPI application main module.

Defines the application instance, error handlers and the health and status
endpoints, and mounts the recommendation and customer routers.
"""

import logging
from typing import Dict

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from crmrec import __version__
from crmrec.api import dependencies
from crmrec.api.logging_config import RequestLoggingMiddleware
from crmrec.api.metrics import metrics_service
from crmrec.api.routes import customers, recommend
from crmrec.config import Settings
from crmrec.recommender.exceptions import CRMRecException
from crmrec.recommender.utils import check_dataset_exists

# Configure module logger
logger = logging.getLogger(__name__)

app = FastAPI(
    title="CRMRec API",
    description="Purchase-graph product recommendations with customer segmentation",
    version=__version__,
)

app.add_middleware(RequestLoggingMiddleware)
app.include_router(recommend.router)
app.include_router(customers.router)


@app.exception_handler(CRMRecException)
async def crmrec_exception_handler(request: Request, exc: CRMRecException) -> JSONResponse:
    logger.warning(
        "Request rejected",
        extra={"path": str(request.url.path), "error": exc.message, "status_code": exc.status_code},
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "details": exc.details},
    )


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": str(exc), "details": {}})


@app.get("/ping")
def ping() -> Dict[str, str]:
    """Health check endpoint.

    Example:
        >>> response = client.get("/ping")
        >>> assert response.json() == {"status": "ok"}
    """
    return {"status": "ok"}


@app.get("/status")
async def status() -> Dict:
    """Whether the dataset is loaded and how large it is."""
    if not dependencies.services_loaded():
        return {
            "dataset_loaded": False,
            "dataset_available": check_dataset_exists(Settings.from_env().data_dir),
            "num_products": 0,
            "num_orders": 0,
            "num_customers": 0,
        }

    services = dependencies.get_services()
    return {
        "dataset_loaded": True,
        "dataset_available": True,
        "num_products": await services.dataset.products.count(),
        "num_orders": len(services.dataset.orders),
        "num_customers": len(await services.dataset.customers.find_all()),
    }


@app.get("/metrics")
def metrics() -> Dict:
    """Call counts and latency per recommendation strategy."""
    return metrics_service.get_metrics()


if __name__ == "__main__":
    import uvicorn

    from crmrec.api.logging_config import setup_logging

    settings = Settings.from_env()
    setup_logging(settings.log_level)

    uvicorn.run(
        "crmrec.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )

"""Application lifespan — build the core collaborators once per process.

Startup:
  - data service: HttpDataService when DATA_SERVICE_URL is set,
    otherwise an InMemoryDataService (local development)
  - PlantRoutedRecordStore over that service and the configured plants
  - ApprovalWorkflow with the configured decision lock backend
Shutdown:
  - close the HTTP client and the Redis connection
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from plantops.config import settings
from plantops.plants import PlantRouter
from plantops.services.approval import ApprovalWorkflow
from plantops.services.data_service import HttpDataService, InMemoryDataService
from plantops.services.record_store import PlantRoutedRecordStore
from plantops.utils.locks import build_decision_lock, close_redis

logger = logging.getLogger("plantops.lifespan")


def build_data_service():
    if settings.data_service_url:
        return HttpDataService(settings.data_service_url, timeout=settings.data_service_timeout)
    logger.warning("DATA_SERVICE_URL not set, using in-memory data service")
    return InMemoryDataService()


async def build_services(service=None) -> tuple[PlantRoutedRecordStore, ApprovalWorkflow]:
    router = PlantRouter.from_settings()
    store = PlantRoutedRecordStore(service or build_data_service(), router)
    workflow = ApprovalWorkflow(store, lock=await build_decision_lock())
    return store, workflow


@asynccontextmanager
async def lifespan(app: FastAPI):
    """FastAPI lifespan: wire services on startup, release clients on shutdown."""
    store, workflow = await build_services()
    app.state.store = store
    app.state.workflow = workflow
    logger.info(
        "Record store ready: plants=%s base=%s backend=%s",
        ",".join(store.router.plants),
        store.router.base_plant,
        type(store.service).__name__,
    )
    try:
        yield
    finally:
        await store.service.aclose()
        await close_redis()
        logger.info("Record store closed")

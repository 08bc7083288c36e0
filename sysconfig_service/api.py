# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""REST API for configs, secrets and watch subscriptions."""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, FastAPI, Header, Query, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from . import __version__
from .bootstrap import ServiceContainer
from .errors import ConfigurationError, IntegrityError, InternalError, ServiceError
from .models import (
    Config,
    ConfigVersion,
    Secret,
    VersionDiff,
    WatchSubscription,
    resolve_actor,
)


class CreateConfigRequest(BaseModel):
    config_key: str
    value: Any
    environment: str
    tenant_id: str | None = None
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


class UpdateConfigRequest(BaseModel):
    value: Any
    reason: str = ""
    activate: bool = True


class RollbackRequest(BaseModel):
    target_version: int
    reason: str = ""


class CreateSecretRequest(BaseModel):
    secret_key: str
    value: str = Field(repr=False)
    environment: str
    tenant_id: str | None = None
    description: str = ""
    rotation_policy: str = "manual"
    rotation_days: int = 0
    expires_at: datetime | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class SecretValueRequest(BaseModel):
    value: str = Field(repr=False)


class SubscribeRequest(BaseModel):
    subscriber_id: str
    service_name: str = ""
    callback_url: str
    patterns: list[str]
    environments: list[str] = Field(default_factory=list)
    tenant_id: str | None = None


class UpdateSubscriptionRequest(BaseModel):
    service_name: str | None = None
    callback_url: str | None = None
    patterns: list[str] | None = None
    environments: list[str] | None = None
    tenant_id: str | None = None
    status: str | None = None


class TriggerRequest(BaseModel):
    config_key: str
    environment: str
    tenant_id: str | None = None


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


def get_actor(x_user_id: str | None = Header(default=None)) -> str:
    return resolve_actor(x_user_id)


def _page(items: list[Any], total: int, page: int, per_page: int) -> dict[str, Any]:
    return {"items": items, "total": total, "page": page, "per_page": per_page}


router = APIRouter(prefix="/api/v1")


# Configs


@router.post("/configs", status_code=201, response_model=Config)
def create_config(
    body: CreateConfigRequest,
    services: ServiceContainer = Depends(get_services),
    actor: str = Depends(get_actor),
) -> Config:
    return services.configs.create(
        config_key=body.config_key,
        value=body.value,
        environment=body.environment,
        tenant_id=body.tenant_id,
        actor=actor,
        description=body.description,
        tags=body.tags,
        metadata=body.metadata,
    )


@router.get("/configs")
def list_configs(
    tenant_id: str | None = None,
    environment: str | None = None,
    status: str | None = None,
    page: int = Query(1),
    per_page: int = Query(20),
    services: ServiceContainer = Depends(get_services),
) -> dict[str, Any]:
    items, total = services.configs.list_configs(tenant_id, environment, status, page, per_page)
    return _page([c.model_dump(mode="json") for c in items], total, page, per_page)


@router.get("/configs/by-key", response_model=Config)
def get_config_by_key(
    config_key: str,
    environment: str,
    tenant_id: str | None = None,
    services: ServiceContainer = Depends(get_services),
) -> Config:
    return services.configs.get_by_key(tenant_id, environment, config_key)


@router.get("/configs/{config_id}", response_model=Config)
def get_config(config_id: str, services: ServiceContainer = Depends(get_services)) -> Config:
    return services.configs.get(config_id)


@router.put("/configs/{config_id}", response_model=ConfigVersion)
def update_config(
    config_id: str,
    body: UpdateConfigRequest,
    services: ServiceContainer = Depends(get_services),
    actor: str = Depends(get_actor),
) -> ConfigVersion:
    return services.configs.update(
        config_id, body.value, actor=actor, reason=body.reason, activate=body.activate
    )


@router.delete("/configs/{config_id}", status_code=204)
def delete_config(
    config_id: str,
    services: ServiceContainer = Depends(get_services),
    actor: str = Depends(get_actor),
) -> Response:
    services.configs.delete(config_id, actor=actor)
    return Response(status_code=204)


@router.get("/configs/{config_id}/versions")
def get_config_history(
    config_id: str,
    limit: int = Query(50, ge=1, le=500),
    services: ServiceContainer = Depends(get_services),
) -> list[dict[str, Any]]:
    history = services.configs.get_history(config_id)
    versions = []
    for version in history:
        versions.append(version.model_dump(mode="json"))
        if len(versions) >= limit:
            break
    return versions


@router.post("/configs/{config_id}/versions/{version_number}/activate", response_model=Config)
def activate_version(
    config_id: str,
    version_number: int,
    services: ServiceContainer = Depends(get_services),
    actor: str = Depends(get_actor),
) -> Config:
    return services.configs.activate_version(config_id, version_number, actor=actor)


@router.post("/configs/{config_id}/rollback", response_model=ConfigVersion)
def rollback_config(
    config_id: str,
    body: RollbackRequest,
    services: ServiceContainer = Depends(get_services),
    actor: str = Depends(get_actor),
) -> ConfigVersion:
    return services.configs.rollback(config_id, body.target_version, actor=actor, reason=body.reason)


@router.get("/configs/{config_id}/compare", response_model=VersionDiff)
def compare_versions(
    config_id: str,
    v1: int,
    v2: int,
    services: ServiceContainer = Depends(get_services),
) -> VersionDiff:
    return services.configs.compare_versions(config_id, v1, v2)


@router.get("/configs/{config_id}/audit")
def get_config_audit_logs(
    config_id: str,
    page: int = Query(1),
    per_page: int = Query(20),
    services: ServiceContainer = Depends(get_services),
) -> dict[str, Any]:
    entries, total = services.configs.get_audit_logs(config_id, page, per_page)
    return _page([e.model_dump(mode="json") for e in entries], total, page, per_page)


# Secrets


@router.post("/secrets", status_code=201)
def create_secret(
    body: CreateSecretRequest,
    services: ServiceContainer = Depends(get_services),
    actor: str = Depends(get_actor),
) -> dict[str, Any]:
    secret = Secret(
        secret_key=body.secret_key,
        environment=body.environment,
        tenant_id=body.tenant_id,
        description=body.description,
        rotation_policy=body.rotation_policy,
        rotation_days=body.rotation_days,
        expires_at=body.expires_at,
        metadata=body.metadata,
    )
    return services.secrets.create(secret, body.value, actor=actor).masked()


@router.get("/secrets")
def list_secrets(
    tenant_id: str | None = None,
    environment: str | None = None,
    page: int = Query(1),
    per_page: int = Query(20),
    services: ServiceContainer = Depends(get_services),
) -> dict[str, Any]:
    items, total = services.secrets.list_secrets(tenant_id, environment, page, per_page)
    return _page([s.masked() for s in items], total, page, per_page)


@router.get("/secrets/by-key")
def get_secret_by_key(
    secret_key: str,
    environment: str,
    tenant_id: str | None = None,
    x_service_name: str | None = Header(default=None),
    services: ServiceContainer = Depends(get_services),
    actor: str = Depends(get_actor),
) -> dict[str, Any]:
    revealed = services.secrets.get_by_key(
        tenant_id, environment, secret_key, actor=actor, service_name=x_service_name or ""
    )
    view = revealed.secret.masked()
    view["value"] = revealed.value
    return view


@router.get("/secrets/rotation-due")
def get_secrets_needing_rotation(services: ServiceContainer = Depends(get_services)) -> list[dict[str, Any]]:
    return [s.masked() for s in services.secrets.get_secrets_needing_rotation()]


@router.get("/secrets/{secret_id}")
def get_secret(secret_id: str, services: ServiceContainer = Depends(get_services)) -> dict[str, Any]:
    return services.secrets.get(secret_id).masked()


@router.put("/secrets/{secret_id}")
def update_secret(
    secret_id: str,
    body: SecretValueRequest,
    services: ServiceContainer = Depends(get_services),
    actor: str = Depends(get_actor),
) -> dict[str, Any]:
    return services.secrets.update(secret_id, body.value, actor=actor).masked()


@router.post("/secrets/{secret_id}/rotate")
def rotate_secret(
    secret_id: str,
    body: SecretValueRequest,
    services: ServiceContainer = Depends(get_services),
    actor: str = Depends(get_actor),
) -> dict[str, Any]:
    return services.secrets.rotate(secret_id, body.value, actor=actor).masked()


@router.delete("/secrets/{secret_id}", status_code=204)
def delete_secret(
    secret_id: str,
    services: ServiceContainer = Depends(get_services),
    actor: str = Depends(get_actor),
) -> Response:
    services.secrets.delete(secret_id, actor=actor)
    return Response(status_code=204)


@router.get("/secrets/{secret_id}/access-logs")
def get_secret_access_logs(
    secret_id: str,
    page: int = Query(1),
    per_page: int = Query(20),
    services: ServiceContainer = Depends(get_services),
) -> dict[str, Any]:
    entries, total = services.secrets.get_access_logs(secret_id, page, per_page)
    return _page([e.model_dump(mode="json") for e in entries], total, page, per_page)


# Watch subscriptions


@router.post("/watch/subscriptions", status_code=201, response_model=WatchSubscription)
def subscribe(
    body: SubscribeRequest, services: ServiceContainer = Depends(get_services)
) -> WatchSubscription:
    return services.dispatcher.subscribe(WatchSubscription(**body.model_dump()))


@router.get("/watch/subscriptions")
def list_subscriptions(
    status: str | None = None,
    page: int = Query(1),
    per_page: int = Query(20),
    services: ServiceContainer = Depends(get_services),
) -> dict[str, Any]:
    items, total = services.dispatcher.list_subscriptions(status, page, per_page)
    return _page([s.model_dump(mode="json") for s in items], total, page, per_page)


@router.get("/watch/subscriptions/{subscriber_id}", response_model=WatchSubscription)
def get_subscription(
    subscriber_id: str, services: ServiceContainer = Depends(get_services)
) -> WatchSubscription:
    return services.dispatcher.get(subscriber_id)


@router.patch("/watch/subscriptions/{subscriber_id}", response_model=WatchSubscription)
def update_subscription(
    subscriber_id: str,
    body: UpdateSubscriptionRequest,
    services: ServiceContainer = Depends(get_services),
) -> WatchSubscription:
    return services.dispatcher.update_subscription(subscriber_id, body.model_dump(exclude_unset=True))


@router.delete("/watch/subscriptions/{subscriber_id}", status_code=204)
def unsubscribe(subscriber_id: str, services: ServiceContainer = Depends(get_services)) -> Response:
    services.dispatcher.unsubscribe(subscriber_id)
    return Response(status_code=204)


@router.get("/watch/matches")
def get_matching_subscriptions(
    config_key: str,
    environment: str,
    tenant_id: str | None = None,
    services: ServiceContainer = Depends(get_services),
) -> list[dict[str, Any]]:
    matches = services.dispatcher.get_matching_subscriptions(config_key, tenant_id, environment)
    return [s.model_dump(mode="json") for s in matches]


@router.post("/watch/trigger")
def trigger_notification(
    body: TriggerRequest,
    services: ServiceContainer = Depends(get_services),
    actor: str = Depends(get_actor),
) -> dict[str, Any]:
    result = services.dispatcher.trigger_notification(
        body.config_key, body.tenant_id, body.environment, actor=actor
    )
    summary = result.model_dump(mode="json")
    summary.update(delivered=result.delivered, failed=result.failed)
    return summary


def install_error_handlers(app: FastAPI) -> None:
    """Map service errors onto HTTP status codes."""

    @app.exception_handler(ServiceError)
    async def handle_service_error(request: Request, exc: ServiceError) -> JSONResponse:
        if isinstance(exc, (IntegrityError, InternalError, ConfigurationError)):
            services = getattr(request.app.state, "services", None)
            if services is not None:
                services.logger.error(
                    "request_failed",
                    path=request.url.path,
                    error_type=type(exc).__name__,
                    error=exc.message,
                )
            return JSONResponse(
                status_code=500,
                content={"error": "InternalError", "detail": "internal server error"},
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": type(exc).__name__, "detail": exc.message},
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"error": "ValidationError", "detail": jsonable_encoder(exc.errors())},
        )


def create_app(services: ServiceContainer | None = None, lifespan=None) -> FastAPI:
    """Build the FastAPI application.

    Pass ``services`` to serve an already-wired container (as tests do), or
    a ``lifespan`` that attaches one to ``app.state.services`` at startup.
    """
    app = FastAPI(
        title="System Config Service",
        version=__version__,
        description="Versioned configuration, encrypted secrets and change notifications",
        lifespan=lifespan,
    )
    if services is not None:
        app.state.services = services

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {
            "status": "healthy" if getattr(app.state, "services", None) else "starting",
            "service": "system-config",
            "version": __version__,
        }

    install_error_handlers(app)
    app.include_router(router)
    return app

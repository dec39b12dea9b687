"""FastAPI entrypoint exposing the upload, wardrobe, fitting room and shopping views."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable

from fastapi import Depends, FastAPI, File, HTTPException, Request, UploadFile, status
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app

from smartlook.capture import CaptureError, OpenCVVideoSource, VideoSource
from smartlook.config.settings import get_settings
from smartlook.controller import SessionController
from smartlook.gateway import AnalysisResult, TryOnResult
from smartlook.monitoring.logging import configure_logging
from smartlook.services import ShoppingResult
from smartlook.state_machine import InvalidTransitionError, PreconditionError
from smartlook.storage import ALL_CATEGORIES, GarmentEntry, category_counts

logger = logging.getLogger(__name__)


def _garment_payload(entry: GarmentEntry) -> dict[str, Any]:
    return {
        "id": entry.id,
        "category": entry.category.value,
        "description": entry.description,
        "created_at": entry.created_at,
        "image": entry.data_url,
    }


def _analysis_payload(result: AnalysisResult) -> dict[str, Any]:
    return {
        "category": result.category.value,
        "description": result.description,
        "styling_tips": result.styling_tips,
    }


def _tryon_payload(result: TryOnResult) -> dict[str, Any]:
    return {
        "image": result.image.data_url if result.image else None,
        "advice": result.advice,
        "text_only": not result.has_image,
    }


def _shopping_payload(result: ShoppingResult) -> dict[str, Any]:
    recommendation = result.recommendation
    return {
        "style_analysis": recommendation.style_analysis,
        "items": [
            {
                "brand": item.brand.value,
                "name": item.name,
                "category": item.category,
                "price": item.price,
                "reason": item.reason,
                "purchase_url": item.purchase_url,
            }
            for item in recommendation.items
        ],
        "total_price": result.total_price,
        "image": result.display_image_url,
        "generated": result.image is not None,
    }


def _oracle_failure(controller: SessionController) -> HTTPException:
    detail = _last_notice(controller, default="AI 忙碌中，請稍後再試")
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=detail)


def get_controller(request: Request) -> SessionController:
    return request.app.state.controller


def create_app(
    controller: SessionController | None = None,
    video_source_factory: Callable[[], VideoSource] | None = None,
) -> FastAPI:
    """Initialise the FastAPI application around a single session controller."""

    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging()
        yield
        await app.state.controller.close()

    app = FastAPI(
        title="SmartLook API",
        version="0.1.0",
        docs_url="/docs" if settings.environment != "prod" else None,
        redoc_url="/redoc" if settings.environment != "prod" else None,
        lifespan=lifespan,
    )
    app.state.controller = controller or SessionController()
    app.state.video_source_factory = video_source_factory or OpenCVVideoSource
    app.mount("/metrics", make_asgi_app())

    @app.exception_handler(InvalidTransitionError)
    async def _invalid_transition(_: Request, exc: InvalidTransitionError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)})

    @app.exception_handler(PreconditionError)
    async def _precondition(_: Request, exc: PreconditionError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content={"detail": str(exc)})

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Simple health endpoint used for readiness probes."""

        return {"status": "ok"}

    @app.get("/session", tags=["system"])
    async def session_state(ctrl: SessionController = Depends(get_controller)) -> dict[str, Any]:
        session = ctrl.session
        return {
            "tab": session.active_tab.value,
            "state": ctrl.state.value,
            "has_user_photo": session.user_photo is not None,
            "selection": session.selection.ordered(),
            "brands": [brand.value for brand in session.brands],
            "notices": [notice.message for notice in session.drain_notices()],
        }

    @app.post("/session/tab/{tab}", tags=["system"])
    async def switch_tab(tab: str, ctrl: SessionController = Depends(get_controller)) -> dict[str, str]:
        try:
            return {"tab": ctrl.switch_tab(tab).value}
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    @app.post("/upload/garment", tags=["upload"])
    async def upload_garment(
        file: UploadFile = File(...),
        ctrl: SessionController = Depends(get_controller),
    ) -> dict[str, Any]:
        try:
            image = ctrl.capture.from_upload(await file.read(), file.filename)
        except CaptureError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.notice) from exc
        result = await ctrl.submit_garment(image)
        if result is None:
            raise _oracle_failure(ctrl)
        return {"state": ctrl.state.value, "analysis": _analysis_payload(result)}

    @app.post("/upload/camera", tags=["upload"])
    async def upload_camera(
        target: str = "garment",
        ctrl: SessionController = Depends(get_controller),
    ) -> dict[str, Any]:
        source = app.state.video_source_factory()
        if target == "user_photo":
            photo = await ctrl.capture_user_photo_with_camera(source)
            if photo is None:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=_last_notice(ctrl))
            return {"state": ctrl.state.value, "user_photo": photo.data_url}
        if not await ctrl.open_camera(source):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=_last_notice(ctrl))
        result = await ctrl.take_snapshot()
        if not isinstance(result, AnalysisResult):
            notices = ctrl.session.drain_notices()
            if notices and notices[-1].source == "camera":
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=notices[-1].message)
            ctrl.session.notices.extend(notices)
            raise _oracle_failure(ctrl)
        return {"state": ctrl.state.value, "analysis": _analysis_payload(result)}

    @app.post("/upload/confirm", tags=["upload"])
    async def confirm_garment(ctrl: SessionController = Depends(get_controller)) -> dict[str, Any]:
        entry = ctrl.confirm_garment()
        return {"tab": ctrl.session.active_tab.value, "garment": _garment_payload(entry)}

    @app.post("/upload/retake", tags=["upload"])
    async def retake(ctrl: SessionController = Depends(get_controller)) -> dict[str, str]:
        ctrl.retake()
        return {"state": ctrl.state.value}

    @app.post("/photo", tags=["fitting", "shopping"])
    async def upload_user_photo(
        file: UploadFile = File(...),
        ctrl: SessionController = Depends(get_controller),
    ) -> dict[str, str]:
        photo = ctrl.set_user_photo_upload(await file.read(), file.filename)
        if photo is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=_last_notice(ctrl))
        return {"user_photo": photo.data_url}

    @app.get("/wardrobe", tags=["wardrobe"])
    async def wardrobe(
        category: str = ALL_CATEGORIES,
        ctrl: SessionController = Depends(get_controller),
    ) -> dict[str, Any]:
        try:
            view = ctrl.session.wardrobe.filter(category)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
        return {
            "category": category,
            "counts": category_counts(ctrl.session.wardrobe),
            "items": [_garment_payload(entry) for entry in view],
        }

    @app.post("/fitting/selection/{entry_id}", tags=["fitting"])
    async def toggle_selection(entry_id: str, ctrl: SessionController = Depends(get_controller)) -> dict[str, Any]:
        try:
            selected = ctrl.toggle_selection(entry_id)
        except KeyError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        return {"id": entry_id, "selected": selected, "selection": ctrl.session.selection.ordered()}

    @app.post("/fitting/generate", tags=["fitting"])
    async def generate_tryon(ctrl: SessionController = Depends(get_controller)) -> dict[str, Any]:
        result = await ctrl.generate_tryon()
        if result is None:
            raise _oracle_failure(ctrl)
        return _tryon_payload(result)

    @app.get("/fitting/result", tags=["fitting"])
    async def tryon_result(ctrl: SessionController = Depends(get_controller)) -> dict[str, Any]:
        result = ctrl.session.machine.tryon_result
        if result is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No try-on result to show.")
        return _tryon_payload(result)

    @app.delete("/fitting/result", tags=["fitting"])
    async def dismiss_tryon(ctrl: SessionController = Depends(get_controller)) -> dict[str, str]:
        ctrl.dismiss_tryon_result()
        return {"state": ctrl.state.value}

    @app.post("/shopping/brands/{brand}", tags=["shopping"])
    async def toggle_brand(brand: str, ctrl: SessionController = Depends(get_controller)) -> dict[str, Any]:
        try:
            selected = ctrl.toggle_brand(brand)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        return {"brand": brand, "selected": selected, "brands": [b.value for b in ctrl.session.brands]}

    @app.post("/shopping/recommend", tags=["shopping"])
    async def recommend(ctrl: SessionController = Depends(get_controller)) -> dict[str, Any]:
        result = await ctrl.recommend_shop()
        if result is None:
            raise _oracle_failure(ctrl)
        return _shopping_payload(result)

    return app


def _last_notice(controller: SessionController, default: str = "無法取得圖片。") -> str:
    notices = controller.session.drain_notices()
    return notices[-1].message if notices else default


app = create_app()

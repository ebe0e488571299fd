import base64
import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from catalog import CatalogService
from config import Settings
from dashboard import DashboardAggregator
from database import get_database
from errors import ShopError, UploadError
from hero_content import HeroContentService
from media_store import CloudinaryMediaStore
from orders import OrderIntakeService
from schemas import OrderPayload, OrderStatusUpdate
from uploads import stage_files

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"

# 1x1 transparent PNG uploaded to check the media store
TEST_PNG = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mNkYAAAAAYAAjCB0C8AAAAASUVORK5CYII="
)

WILAYAS = [
    "Adrar", "Chlef", "Laghouat", "Oum El Bouaghi", "Batna", "Béjaïa", "Biskra", "Béchar", "Blida", "Bouira",
    "Tamanrasset", "Tébessa", "Tlemcen", "Tiaret", "Tizi Ouzou", "Algiers", "Djelfa", "Jijel", "Sétif", "Saïda",
    "Skikda", "Sidi Bel Abbès", "Annaba", "Guelma", "Constantine", "Médéa", "Mostaganem", "M'Sila", "Mascara", "Ouargla",
    "Oran", "El Bayadh", "Illizi", "Bordj Bou Arréridj", "Boumerdès", "El Tarf", "Tindouf", "Tissemsilt", "El Oued", "Khenchela",
    "Souk Ahras", "Tipaza", "Mila", "Aïn Defla", "Naâma", "Aïn Témouchent", "Ghardaïa", "Relizane", "Timimoun", "Bordj Badji Mokhtar",
    "Ouled Djellal", "Béni Abbès", "In Salah", "In Guezzam", "Touggourt", "Djanet", "El M'Ghair", "El Menia",
]

router = APIRouter()


# -----------------------------
# Dependencies
# -----------------------------

def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_catalog(request: Request) -> CatalogService:
    return request.app.state.catalog


def get_hero_content(request: Request) -> HeroContentService:
    return request.app.state.hero_content


def get_orders(request: Request) -> OrderIntakeService:
    return request.app.state.orders


def get_dashboard(request: Request) -> DashboardAggregator:
    return request.app.state.dashboard


def _merge_files(*groups: Optional[List[UploadFile]]) -> List[UploadFile]:
    merged = []
    for group in groups:
        merged.extend(group or [])
    return merged


# -----------------------------
# Health
# -----------------------------

@router.get("/")
def read_root(request: Request):
    return {
        "message": "✅ MCA Shop API Running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": API_VERSION,
        "cloudinary": "Configured" if request.app.state.settings.media_store_configured else "Not Configured",
    }


@router.get("/test")
def test_database(request: Request):
    db = request.app.state.db
    settings = request.app.state.settings
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if settings.database_url else "❌ Not Set",
        "database_name": settings.database_name,
        "connection_status": "Not Connected",
        "collections": []
    }

    try:
        if db is not None:
            response["database"] = "✅ Available"
            response["connection_status"] = "Connected"
            try:
                collections = db.list_collection_names()
                response["collections"] = collections[:10]
                response["database"] = "✅ Connected & Working"
            except Exception as e:
                response["database"] = f"⚠️ Connected but Error: {str(e)[:50]}"
        else:
            response["database"] = "⚠️ Available but not initialized"
    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:50]}"

    return response


@router.get("/api/test-cloudinary")
def test_media_store(request: Request, settings: Settings = Depends(get_settings)):
    store = request.app.state.media_store
    os.makedirs(settings.uploads_dir, exist_ok=True)
    test_image_path = os.path.join(settings.uploads_dir, "test-image.png")
    try:
        store.ping()
        with open(test_image_path, "wb") as f:
            f.write(TEST_PNG)
        url = store.upload(test_image_path, "image")
    except UploadError as e:
        logger.error("Cloudinary test failed: %s", e)
        return JSONResponse(status_code=500, content={"success": False, "message": f"Cloudinary error: {e}"})
    finally:
        if os.path.exists(test_image_path):
            os.remove(test_image_path)

    return {"success": True, "message": "Cloudinary is working perfectly!", "imageUrl": url}


# -----------------------------
# Products
# -----------------------------

@router.get("/api/public/products")
def list_products(catalog: CatalogService = Depends(get_catalog)):
    return catalog.list_products()


@router.get("/api/public/products/{product_id}")
def get_product(product_id: str, catalog: CatalogService = Depends(get_catalog)):
    return catalog.get_product(product_id)


@router.post("/api/admin/products", status_code=201)
def create_product(
    background_tasks: BackgroundTasks,
    name: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    colors: Optional[str] = Form(None),
    sizes: Optional[str] = Form(None),
    photos: Optional[List[UploadFile]] = File(None),
    photos_list: Optional[List[UploadFile]] = File(None, alias="photos[]"),
    settings: Settings = Depends(get_settings),
    catalog: CatalogService = Depends(get_catalog),
    dashboard: DashboardAggregator = Depends(get_dashboard),
):
    staged = stage_files(_merge_files(photos, photos_list), settings)
    product = catalog.create_product(
        name=name,
        price=price,
        category=category,
        staged=staged,
        description=description,
        colors=colors,
        sizes=sizes,
    )
    background_tasks.add_task(dashboard.recompute)
    return product


@router.put("/api/admin/products/{product_id}")
def update_product(
    product_id: str,
    name: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    colors: Optional[str] = Form(None),
    sizes: Optional[str] = Form(None),
    photos: Optional[List[UploadFile]] = File(None),
    photos_list: Optional[List[UploadFile]] = File(None, alias="photos[]"),
    settings: Settings = Depends(get_settings),
    catalog: CatalogService = Depends(get_catalog),
):
    staged = stage_files(_merge_files(photos, photos_list), settings)
    return catalog.update_product(
        product_id,
        staged,
        name=name,
        price=price,
        category=category,
        description=description,
        colors=colors,
        sizes=sizes,
    )


@router.delete("/api/admin/products/{product_id}")
def delete_product(
    product_id: str,
    background_tasks: BackgroundTasks,
    catalog: CatalogService = Depends(get_catalog),
    dashboard: DashboardAggregator = Depends(get_dashboard),
):
    result = catalog.delete_product(product_id)
    background_tasks.add_task(dashboard.recompute)
    return result


# -----------------------------
# Hero content
# -----------------------------

@router.get("/api/public/hero-content")
def list_public_hero_content(hero: HeroContentService = Depends(get_hero_content)):
    return hero.list_active()


@router.get("/api/admin/hero-content")
def list_hero_content(hero: HeroContentService = Depends(get_hero_content)):
    return hero.list_all()


@router.get("/api/admin/hero-content/{hero_id}")
def get_hero_content_item(hero_id: str, hero: HeroContentService = Depends(get_hero_content)):
    return hero.get(hero_id)


@router.post("/api/admin/hero-content", status_code=201)
def create_hero_content(
    title: Optional[str] = Form(None),
    subtitle: Optional[str] = Form(None),
    button_text: Optional[str] = Form(None, alias="buttonText"),
    theme: Optional[str] = Form(None),
    order: Optional[str] = Form(None),
    is_active: Optional[str] = Form(None, alias="isActive"),
    media_type: Optional[str] = Form(None, alias="mediaType"),
    media: Optional[List[UploadFile]] = File(None),
    settings: Settings = Depends(get_settings),
    hero: HeroContentService = Depends(get_hero_content),
):
    staged = stage_files(media, settings, max_files=1)
    return hero.create(
        title=title,
        subtitle=subtitle,
        staged=staged[0] if staged else None,
        button_text=button_text,
        theme=theme,
        order=order,
        is_active=is_active,
        media_type=media_type,
    )


@router.put("/api/admin/hero-content/{hero_id}")
def update_hero_content(
    hero_id: str,
    title: Optional[str] = Form(None),
    subtitle: Optional[str] = Form(None),
    button_text: Optional[str] = Form(None, alias="buttonText"),
    theme: Optional[str] = Form(None),
    order: Optional[str] = Form(None),
    is_active: Optional[str] = Form(None, alias="isActive"),
    media_type: Optional[str] = Form(None, alias="mediaType"),
    media: Optional[List[UploadFile]] = File(None),
    settings: Settings = Depends(get_settings),
    hero: HeroContentService = Depends(get_hero_content),
):
    staged = stage_files(media, settings, max_files=1)
    return hero.update(
        hero_id,
        staged=staged[0] if staged else None,
        title=title,
        subtitle=subtitle,
        button_text=button_text,
        theme=theme,
        order=order,
        is_active=is_active,
        media_type=media_type,
    )


@router.delete("/api/admin/hero-content/{hero_id}")
def delete_hero_content(hero_id: str, hero: HeroContentService = Depends(get_hero_content)):
    return hero.delete(hero_id)


# -----------------------------
# Orders
# -----------------------------

@router.post("/api/public/orders", status_code=201)
def create_order(
    payload: OrderPayload,
    request: Request,
    background_tasks: BackgroundTasks,
    orders: OrderIntakeService = Depends(get_orders),
    dashboard: DashboardAggregator = Depends(get_dashboard),
):
    ip_address = request.client.host if request.client else None
    result = orders.place_order(payload, ip_address=ip_address, user_agent=request.headers.get("user-agent"))
    background_tasks.add_task(dashboard.recompute)
    return result


@router.get("/api/admin/orders")
def list_orders(orders: OrderIntakeService = Depends(get_orders)):
    return orders.list_orders()


@router.put("/api/admin/orders/{order_id}")
def update_order_status(
    order_id: str,
    payload: OrderStatusUpdate,
    background_tasks: BackgroundTasks,
    orders: OrderIntakeService = Depends(get_orders),
    dashboard: DashboardAggregator = Depends(get_dashboard),
):
    order = orders.update_status(order_id, payload.status)
    background_tasks.add_task(dashboard.recompute)
    return order


@router.delete("/api/admin/orders/{order_id}")
def delete_order(
    order_id: str,
    background_tasks: BackgroundTasks,
    orders: OrderIntakeService = Depends(get_orders),
    dashboard: DashboardAggregator = Depends(get_dashboard),
):
    result = orders.delete_order(order_id)
    background_tasks.add_task(dashboard.recompute)
    return result


# -----------------------------
# Dashboard
# -----------------------------

@router.get("/api/admin/dashboard/stats")
def dashboard_stats(dashboard: DashboardAggregator = Depends(get_dashboard)):
    return dashboard.get_view()


# -----------------------------
# Utility
# -----------------------------

@router.get("/api/wilayas")
def list_wilayas():
    return WILAYAS


# -----------------------------
# Error handlers
# -----------------------------

def register_error_handlers(app: FastAPI, settings: Settings):
    @app.exception_handler(ShopError)
    async def shop_error_handler(request: Request, exc: ShopError):
        if exc.status_code >= 500:
            logger.error("Server error on %s %s: %s", request.method, request.url.path, exc.__cause__ or exc)
        return JSONResponse(status_code=exc.status_code, content={"message": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = "Invalid request"
        if errors:
            first = errors[0]
            field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
            message = f"Invalid value for {field}: {first.get('msg')}" if field else first.get("msg", message)
        return JSONResponse(status_code=400, content={"message": message})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code in (404, 405) and exc.detail in ("Not Found", "Method Not Allowed"):
            return JSONResponse(
                status_code=404,
                content={"message": "Route not found", "path": request.url.path, "method": request.method},
            )
        return JSONResponse(status_code=exc.status_code, content={"message": exc.detail})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Server Error: %s", exc)
        content = {"message": "Something went wrong!"}
        if settings.is_development:
            content["error"] = str(exc)
        return JSONResponse(status_code=500, content=content)


# -----------------------------
# Application
# -----------------------------

def create_app(settings: Optional[Settings] = None, db=None, media_store=None) -> FastAPI:
    settings = settings or Settings.from_env()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    db = db if db is not None else get_database(settings)
    media_store = media_store or CloudinaryMediaStore(settings)
    dashboard = DashboardAggregator(db)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        media_store.log_status()
        dashboard.initialize()
        logger.info("MCA Shop server ready on port %s", settings.port)
        yield

    app = FastAPI(title="MCA Shop API", version=API_VERSION, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    app.state.settings = settings
    app.state.db = db
    app.state.media_store = media_store
    app.state.dashboard = dashboard
    app.state.catalog = CatalogService(db, media_store, settings)
    app.state.hero_content = HeroContentService(db, media_store, settings)
    app.state.orders = OrderIntakeService(db)

    register_error_handlers(app, settings)
    app.include_router(router)

    os.makedirs(settings.uploads_dir, exist_ok=True)
    app.mount("/uploads", StaticFiles(directory=settings.uploads_dir), name="uploads")
    return app


if __name__ == "__main__":
    import uvicorn
    settings = Settings.from_env()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)

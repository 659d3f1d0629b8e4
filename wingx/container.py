from dataclasses import dataclass

from wingx.application.auth import AuthService
from wingx.application.order_feed import LiveOrderFeed
from wingx.application.session import DashboardSession, SessionRegistry
from wingx.core_settings import Settings
from wingx.infrastructure.db import SessionLocal
from wingx.infrastructure.google import GoogleTokenVerifier
from wingx.infrastructure.imagekit import ImageKitUploader
from wingx.infrastructure.live_query import ChangeSignal
from wingx.infrastructure.repositories import OrderRepository, ProductRepository, UserRepository


@dataclass
class Services:
    settings: Settings
    signal: ChangeSignal
    orders: OrderRepository
    products: ProductRepository
    users: UserRepository
    auth: AuthService
    feed: LiveOrderFeed
    registry: SessionRegistry
    uploader: ImageKitUploader


def build_services(settings: Settings) -> Services:
    """Wire repositories, services and the session registry; the engine must be initialised first."""
    signal = ChangeSignal()
    orders = OrderRepository(SessionLocal, signal)
    products = ProductRepository(SessionLocal, signal)
    users = UserRepository(SessionLocal)
    google = GoogleTokenVerifier(
        settings.GOOGLE_TOKENINFO_URL,
        settings.GOOGLE_CLIENT_ID,
        timeout=settings.HTTP_TIMEOUT_SEC,
    )
    feed = LiveOrderFeed(orders, settings.FEED_POLL_INTERVAL_SEC)

    def new_session(session_id: str) -> DashboardSession:
        return DashboardSession(session_id, feed, orders, products, settings)

    return Services(
        settings=settings,
        signal=signal,
        orders=orders,
        products=products,
        users=users,
        auth=AuthService(users, google, settings),
        feed=feed,
        registry=SessionRegistry(new_session),
        uploader=ImageKitUploader(
            settings.IMAGEKIT_PUBLIC_KEY,
            settings.IMAGEKIT_UPLOAD_URL,
            settings.IMAGEKIT_AUTH_URL,
            folder=settings.IMAGEKIT_FOLDER,
            timeout=settings.HTTP_TIMEOUT_SEC,
        ),
    )

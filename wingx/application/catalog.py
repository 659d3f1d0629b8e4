"""
Store catalog: the "new product" form and its publication.

`ProductDraft` holds the form state of one operator session and enforces the
form rules (category/subcategory selection, five image maximum, cover image
tracking). `ProductPublisher` uploads images and persists finished drafts.
"""

import time
from decimal import Decimal, InvalidOperation
from typing import Optional, Protocol

from wingx.application.schemas import DraftRead, ProductCreate, ProductRead
from wingx.core import get_logger
from wingx.domain.errors import DraftValidationError
from wingx.infrastructure.repositories import ProductRepository

logger = get_logger(__name__)

PRODUCT_CATEGORIES: dict[str, list[str]] = {
    "Camisas": ["Franela", "Casual", "Formal", "Manga Larga", "Manga Corta", "Oversize", "Blusa"],
    "Pantalones": ["Vestir", "Mono", "Joggers", "Jeans", "Cargo", "Shorts", "Leggins"],
    "Conjuntos": ["Deportivo", "Casual", "Formal", "Verano", "Invierno"],
    "Trajes de baño": ["Enterizo", "Bikini", "Short"],
    "Abrigos": ["Poleron", "Chaqueta", "Sueter", "Chaleco", "Cortavientos", "Cardigan"],
    "Vestidos": ["Largo", "Corto", "Fiesta", "Casual"],
    "Accesorios": ["Gorras", "Medias", "Bolsos", "Lentes", "Joyeria", "Cinturones"],
    "Lenceria": ["Conjuntos", "Individuales", "Pijamas", "Batas"],
    "Otros": ["Varios"],
}
AVAILABLE_SIZES = ["XS", "S", "M", "L", "XL", "XXL", "Unica"]
GENDERS = ["Hombre", "Mujer", "Unisex"]
MAX_IMAGES = 5
CATALOG_PATH = "/tienda"


def parse_price(raw: str) -> Decimal:
    try:
        price = Decimal(str(raw).strip())
    except InvalidOperation:
        raise DraftValidationError("El precio debe ser un número.", field="price")
    if not price.is_finite() or price < 0:
        raise DraftValidationError("El precio no puede ser negativo.", field="price")
    return price


class ProductDraft:
    def __init__(self):
        self.reset()

    def reset(self) -> None:
        self.name = ""
        self.description = ""
        self.price = ""
        self.categories: list[str] = []
        self.image_url = ""
        self.images: list[str] = []
        self.sizes: list[str] = []
        self.gender = "Unisex"
        self.featured = False

    @property
    def main_category(self) -> Optional[str]:
        return self.categories[0] if self.categories else None

    def select_main_category(self, category: str) -> None:
        if category not in PRODUCT_CATEGORIES:
            raise DraftValidationError(f"Categoría desconocida: {category}", field="categories")
        # Picking a category that is already selected keeps the current subcategories
        if category not in self.categories:
            self.categories = [category]

    def toggle_subcategory(self, subcategory: str) -> None:
        main = self.main_category
        if main is None:
            raise DraftValidationError("Selecciona una categoría principal", field="categories")
        if subcategory not in PRODUCT_CATEGORIES[main]:
            raise DraftValidationError(f"{subcategory} no es subcategoría de {main}", field="categories")
        if subcategory in self.categories[1:]:
            self.categories = [main] + [c for c in self.categories[1:] if c != subcategory]
        else:
            self.categories = self.categories + [subcategory]

    def toggle_size(self, size: str) -> None:
        if size not in AVAILABLE_SIZES:
            raise DraftValidationError(f"Talla desconocida: {size}", field="sizes")
        if size in self.sizes:
            self.sizes = [s for s in self.sizes if s != size]
        else:
            self.sizes = self.sizes + [size]

    def ensure_image_slot(self) -> None:
        if len(self.images) >= MAX_IMAGES:
            raise DraftValidationError(f"Máximo {MAX_IMAGES} imágenes", field="images")

    def add_image(self, url: str) -> None:
        self.ensure_image_slot()
        self.images = self.images + [url]
        if not self.image_url:
            self.image_url = url

    def remove_image(self, url: str) -> None:
        self.images = [i for i in self.images if i != url]
        if not self.images:
            self.image_url = ""
        elif self.image_url == url:
            self.image_url = self.images[0]

    def set_cover(self, url: str) -> None:
        if url not in self.images:
            raise DraftValidationError("La portada debe ser una de las imágenes", field="image_url")
        self.image_url = url

    def update_fields(self, name=None, description=None, price=None, gender=None, featured=None) -> None:
        if name is not None:
            self.name = name
        if description is not None:
            self.description = description
        if price is not None:
            self.price = price
        if gender is not None:
            if gender not in GENDERS:
                raise DraftValidationError(f"Género desconocido: {gender}", field="gender")
            self.gender = gender
        if featured is not None:
            self.featured = featured

    @property
    def can_submit(self) -> bool:
        return bool(self.categories)

    def to_product(self) -> ProductCreate:
        if not self.name.strip():
            raise DraftValidationError("El nombre es obligatorio", field="name")
        if not self.description.strip():
            raise DraftValidationError("La descripción es obligatoria", field="description")
        if not str(self.price).strip():
            raise DraftValidationError("El precio es obligatorio", field="price")
        price = parse_price(self.price)
        if not self.categories:
            raise DraftValidationError("Selecciona una categoría principal", field="categories")
        return ProductCreate(
            name=self.name,
            description=self.description,
            price=float(price),
            categories=list(self.categories),
            image_url=self.image_url,
            images=list(self.images),
            sizes=list(self.sizes),
            gender=self.gender,
            featured=self.featured,
        )

    def read(self) -> DraftRead:
        main = self.main_category
        return DraftRead(
            name=self.name,
            description=self.description,
            price=self.price,
            categories=list(self.categories),
            image_url=self.image_url,
            images=list(self.images),
            sizes=list(self.sizes),
            gender=self.gender,
            featured=self.featured,
            can_submit=self.can_submit,
            available_subcategories=PRODUCT_CATEGORIES.get(main, []) if main else [],
        )


class Uploader(Protocol):
    async def upload(self, content: bytes, file_name: str, content_type: str = ...) -> str: ...


class ProductPublisher:
    def __init__(self, products: ProductRepository):
        self.products = products

    async def upload_image(self, draft: ProductDraft, uploader: Uploader, content: bytes,
                           content_type: str = "application/octet-stream") -> str:
        """Upload and append to the draft; on failure the draft is untouched."""
        draft.ensure_image_slot()
        url = await uploader.upload(content, f"product_{int(time.time() * 1000)}", content_type)
        draft.add_image(url)
        return url

    async def publish(self, draft: ProductDraft) -> ProductRead:
        """Persist and clear the draft; the form keeps its state when this raises."""
        product = await self.products.create(draft.to_product())
        draft.reset()
        logger.info(f"Published product {product.id}")
        return product

    def list(self) -> list[ProductRead]:
        return self.products.list()

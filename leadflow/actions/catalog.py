"""Catalog browsing actions rendered as WhatsApp interactive messages."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from ..constants import ALL_PRODUCTS
from ..contracts import WorkflowExecutionContext
from ..persistence.models import CategoryRecord, ProductRecord
from ..persistence.repository import Directory
from .base import BaseAction
from .send_message import SendMessageAction

logger = logging.getLogger(__name__)

# WhatsApp limits
MAX_LIST_ROWS = 10
MAX_PRODUCT_LIST_ITEMS = 30
MAX_ROW_TITLE = 24

_CATEGORY_EMOJI = {
    "electronics": "💻",
    "computers": "🖥️",
    "monitors": "🖥️",
    "furniture": "🪑",
    "desks": "🪑",
    "office chairs": "💺",
    "accessories": "⌨️",
    "clothing": "👕",
    "home": "🏠",
}


def category_emoji(name: str) -> str:
    return _CATEGORY_EMOJI.get(name.lower(), "📁")


def _row_title(name: str) -> str:
    if len(name) > MAX_ROW_TITLE:
        return name[: MAX_ROW_TITLE - 3] + "..."
    return name


def categories_list_content(
    categories: List[CategoryRecord],
    body_text: str | None = None,
    button_text: str | None = None,
) -> Dict[str, Any]:
    rows = [
        {
            "id": ALL_PRODUCTS,
            "title": "📦 All Products",
            "description": "View all available products",
        }
    ]
    for category in categories:
        rows.append(
            {
                "id": category.slug,
                "title": f"{category_emoji(category.name)} {category.name}",
                "description": category.description or f"Browse {category.name}",
            }
        )
    return {
        "type": "INTERACTIVE",
        "interactive_type": "list",
        "body": {
            "text": body_text
            or "🛍️ *Browse Our Products*\n\nSelect a category to view products:"
        },
        "action": {
            "button": button_text or "View Categories",
            "sections": [{"title": "Product Categories", "rows": rows}],
        },
    }


def products_list_content(products: List[ProductRecord], title: str) -> Dict[str, Any]:
    count = len(products)
    plural = "s" if count > 1 else ""
    return {
        "type": "INTERACTIVE",
        "interactive_type": "list",
        "body": {
            "text": f"🛍️ *{title}*\n\n{count} product{plural} available. Tap to view details:"
        },
        "action": {
            "button": "View Products",
            "sections": [
                {
                    "title": title,
                    "rows": [
                        {
                            "id": product.product_id,
                            "title": _row_title(product.name),
                            "description": f"{product.currency} {product.price} "
                            + ("✅" if product.in_stock else "❌ Out of stock"),
                        }
                        for product in products
                    ],
                }
            ],
        },
    }


class FetchCategoriesAction(BaseAction):
    type = "fetch_categories"

    def __init__(self, directory: Directory, send_message: SendMessageAction) -> None:
        self._directory = directory
        self._send_message = send_message

    async def execute(self, params: Dict[str, Any], context: WorkflowExecutionContext) -> Any:
        business_id = params.get("businessId") or context.business_id
        logger.info(f"Fetching categories for business {business_id}")
        categories = await self._directory.list_categories(business_id)

        if params.get("format", "whatsapp_list") != "whatsapp_list":
            return [category.model_dump() for category in categories]

        content = categories_list_content(
            categories, params.get("bodyText"), params.get("buttonText")
        )
        if params.get("sendMessage", True):
            await self._send_message.execute({"content": content}, context)
        return content


class FetchProductsAction(BaseAction):
    type = "fetch_products"

    def __init__(self, directory: Directory, send_message: SendMessageAction) -> None:
        self._directory = directory
        self._send_message = send_message

    async def execute(self, params: Dict[str, Any], context: WorkflowExecutionContext) -> Any:
        slug = params.get("categorySlug")
        business_id = params.get("businessId") or context.business_id
        send = params.get("sendMessage", True)
        logger.info(f"Fetching products for category {slug} in business {business_id}")

        category = None
        if slug and slug != ALL_PRODUCTS:
            category = await self._directory.find_category(business_id, slug)

        products = await self._directory.list_products(
            business_id,
            category_id=category.category_id if category else None,
            limit=MAX_LIST_ROWS,
        )

        if not products:
            content = {
                "type": "TEXT",
                "text": "😔 Sorry, no products found in this category at the moment.",
            }
            if send:
                await self._send_message.execute({"content": content}, context)
            return {"products": [], "message": "No products found"}

        if slug == ALL_PRODUCTS:
            title = "All Products"
        else:
            title = category.name if category else "Products"
        content = products_list_content(products, title)
        if send:
            await self._send_message.execute({"content": content}, context)
        return {
            "products": [product.model_dump() for product in products],
            "content": content,
        }


class SendCatalogAction(BaseAction):
    """Send a category's catalog products as a ``product_list`` message."""

    type = "send_catalog"

    def __init__(self, directory: Directory, send_message: SendMessageAction) -> None:
        self._directory = directory
        self._send_message = send_message

    async def _send_text(self, text: str, context: WorkflowExecutionContext) -> Any:
        return await self._send_message.execute(
            {"content": {"type": "TEXT", "text": text}}, context
        )

    async def execute(self, params: Dict[str, Any], context: WorkflowExecutionContext) -> Any:
        slug = params.get("categorySlug")
        logger.info(f"Sending catalog for category: {slug}")

        category = await self._directory.find_category(context.business_id, slug or "")
        if category is None:
            logger.warning(f"Category {slug} not found")
            return await self._send_text(
                "Sorry, this category is not available at the moment. "
                "Please try another category.",
                context,
            )

        products = await self._directory.list_products(
            context.business_id,
            category_id=category.category_id,
            limit=MAX_PRODUCT_LIST_ITEMS,
        )
        if not products:
            return await self._send_text(
                f"Sorry, no products are currently available in {category.name}. "
                "Please check other categories or contact us for assistance.",
                context,
            )

        content: Dict[str, Any] = {
            "type": "INTERACTIVE",
            "interactive_type": "product_list",
            "body": {
                "text": params.get("bodyText")
                or f"🛍️ *{category.name}*\n\nBrowse our {len(products)} products in "
                "this category. Tap on any product to see details."
            },
            "action": {
                "catalog_id": params.get("catalogId")
                or context.channel_config.get("catalogId"),
                "sections": [
                    {
                        "title": category.name,
                        "product_items": [
                            {"product_retailer_id": product.product_id}
                            for product in products
                        ],
                    }
                ],
            },
        }
        if params.get("headerText"):
            content["header"] = {"type": "text", "text": params["headerText"]}
        if params.get("footerText"):
            content["footer"] = {"text": params["footerText"]}

        await self._send_message.execute({"content": content}, context)
        logger.info(f"Sent catalog with {len(products)} products from {category.name}")
        return {"success": True, "category": category.name, "productCount": len(products)}


class HandleCategorySelectionAction(BaseAction):
    """Route an interactive list selection to the catalog or product list."""

    type = "handle_category_selection"

    def __init__(
        self, send_catalog: SendCatalogAction, fetch_products: FetchProductsAction
    ) -> None:
        self._send_catalog = send_catalog
        self._fetch_products = fetch_products

    async def execute(self, params: Dict[str, Any], context: WorkflowExecutionContext) -> Any:
        ai_entities = (context.ai_result or {}).get("entities") or {}
        selection = (
            context.entities.get("category_slug")
            or ai_entities.get("category_slug")
            or params.get("categorySlug")
        )
        logger.info(f"Handling category selection: {selection}")

        if not selection:
            logger.warning("No category selection found in context")
            return {"success": False, "error": "No category selected"}

        if selection == ALL_PRODUCTS:
            return await self._fetch_products.execute(
                {"categorySlug": ALL_PRODUCTS, "sendMessage": True}, context
            )

        return await self._send_catalog.execute(
            {
                "categorySlug": selection,
                "headerText": "Our Products",
                "bodyText": "Browse our catalog below. Tap on any product to see details.",
                "footerText": "Reply with product name or code to inquire",
            },
            context,
        )

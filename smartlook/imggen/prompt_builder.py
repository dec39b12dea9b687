"""Instruction texts and output schemas for every oracle call."""

from __future__ import annotations

from typing import Any, Iterable, Sequence

from smartlook.catalog import Brand
from smartlook.storage import Category

ANALYSIS_SYSTEM_INSTRUCTION = (
    "你是專業的智能櫥窗管理員。請分析圖片中的衣物。\n"
    "請嚴格按照以下 JSON 格式回傳，不要有 Markdown 標記。\n"
    "類別(category)只能是以下之一： " + ", ".join(f"'{value}'" for value in Category.values()) + "。"
)

ANALYSIS_REQUEST = "分析這件衣物。請提供類別、詳細描述(材質、風格)以及3個穿搭建議(包含場合)。"

ANALYSIS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "category": {"type": "string", "enum": Category.values()},
        "description": {"type": "string"},
        "stylingTips": {"type": "string"},
    },
    "required": ["category", "description", "stylingTips"],
    "additionalProperties": False,
}

SHOP_RECOMMENDATION_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "styleAnalysis": {"type": "string", "description": "對用戶風格的分析"},
        "items": {
            "type": "array",
            "minItems": 1,
            "items": {
                "type": "object",
                "properties": {
                    "brand": {"type": "string", "enum": Brand.values()},
                    "name": {"type": "string"},
                    "price": {"type": "number"},
                    "category": {"type": "string"},
                    "reason": {"type": "string"},
                    "purchaseUrl": {"type": "string", "description": "購買連結 (Google Search URL)"},
                },
                "required": ["brand", "name", "price", "category", "reason", "purchaseUrl"],
                "additionalProperties": False,
            },
        },
    },
    "required": ["styleAnalysis", "items"],
    "additionalProperties": False,
}


class PromptBuilder:
    """Builds the natural-language instructions sent alongside the images."""

    def wardrobe_tryon(self, garment_count: int, *, extra_instructions: Iterable[str] | None = None) -> str:
        """Instruction for dressing the portrait (first image) in the following garment images."""

        garment_lines = [f"{index}) 第 {index + 1} 張圖片中的衣物。" for index in range(1, garment_count + 1)]
        garments_text = "要試穿的衣物：\n" + "\n".join(garment_lines) if garment_lines else ""
        extras = " ".join(extra_instructions or [])
        return "\n".join(
            part
            for part in [
                "這是一位使用者的照片(第一張圖)以及他想嘗試的衣物(後續圖片)。",
                garments_text,
                "任務：",
                "1. 生成一張這名使用者穿著這些衣物的照片。請保持使用者的人臉特徵、體型和背景氛圍。",
                "2. 根據使用者的臉型和服裝風格，提供髮型建議。",
                "請回傳生成的圖片以及針對整體造型的文字建議。",
                extras,
            ]
            if part
        )

    def shop_recommendation(self, brands: Sequence[Brand]) -> str:
        """Instruction asking for a 2-3 piece outfit from the given brands."""

        brand_text = "、".join(brand.value for brand in brands)
        return (
            "分析這張用戶照片的風格、身形和膚色。\n"
            f"請從以下台灣品牌中：{brand_text}，挑選一套適合他的當季穿搭(2-3件單品)。\n"
            "請提供具體的商品名稱(不需要完全準確的型號，但要符合該品牌風格)、預估台幣價格、以及推薦理由。\n"
            "重要：請為每件商品生成一個 'purchaseUrl'。這應該是一個 Google 搜尋連結，格式為：\n"
            "'https://www.google.com/search?q=' 加上 '品牌 名稱' "
            "(例如：https://www.google.com/search?q=Uniqlo+Airism+T-shirt)。\n"
            "回傳格式必須為 JSON。"
        )

    def shop_tryon(self, items_description: str) -> str:
        """Instruction for dressing the portrait in text-described shop items."""

        return (
            "這是使用者的照片。請生成一張他穿著以下服裝的逼真照片：\n"
            f"{items_description}\n"
            "請保持：\n"
            "1. 使用者的人臉特徵和體型。\n"
            f"2. 服裝的質感與品牌風格 ({'/'.join(Brand.values())} 風格)。\n"
            "3. 自然的光影。\n"
            "只回傳圖片。"
        )


def describe_items(items: Sequence[Any]) -> str:
    """Join recommended items as ``<brand> 的 <name> (<category>)`` separated by commas."""

    lines: list[str] = []
    for item in items:
        brand = item.brand.value if isinstance(item.brand, Brand) else str(item.brand)
        lines.append(f"{brand} 的 {item.name} ({item.category})")
    return ", ".join(lines)

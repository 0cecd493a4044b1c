"""
Pydantic schemas for the Sikuwat API.

Request bodies accept the camelCase keys sent by the web client as well as
their snake_case field names.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from shared.constants import MAX_CHAT_MESSAGE_LENGTH
from shared.types import ChatDetail


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SignUpRequest(_Payload):
    email: Optional[str] = None
    password: Optional[str] = None
    name: Optional[str] = None
    role: Optional[str] = None


class SignInRequest(_Payload):
    email: Optional[str] = None
    password: Optional[str] = None


class MarketPricePayload(_Payload):
    commodity: Optional[str] = None
    price: Optional[float] = None
    unit: Optional[str] = None
    date: Optional[str] = None


class ArticlePayload(_Payload):
    title: Optional[str] = None
    content: Optional[str] = None
    source: Optional[str] = None
    url: Optional[str] = None
    image_url: Optional[str] = Field(default=None, alias="imageUrl")


class TipPayload(_Payload):
    title: Optional[str] = None
    content: Optional[str] = None
    category: Optional[str] = None


class PlantingPayload(_Payload):
    seed_type: Optional[str] = Field(default=None, alias="seedType")
    seed_count: Optional[float] = Field(default=None, alias="seedCount")
    planting_date: Optional[str] = Field(default=None, alias="plantingDate")
    harvest_date: Optional[str] = Field(default=None, alias="harvestDate")
    harvest_yield: Optional[float] = Field(default=None, alias="harvestYield")
    sales_amount: Optional[float] = Field(default=None, alias="salesAmount")


class HarvestPayload(_Payload):
    harvest_date: Optional[str] = Field(default=None, alias="harvestDate")
    harvest_yield: Optional[float] = Field(default=None, alias="harvestYield")
    selling_price: Optional[float] = Field(default=None, alias="sellingPrice")
    sales_amount: Optional[float] = Field(default=None, alias="salesAmount")


class ArticlePreviewRequest(BaseModel):
    url: str = Field(..., max_length=2048)


class ChatContext(BaseModel):
    articles: list[dict] = Field(default_factory=list)
    tips: list[dict] = Field(default_factory=list)


class ChatRequest(_Payload):
    message: Optional[str] = Field(default=None, max_length=MAX_CHAT_MESSAGE_LENGTH)
    system_prompt: Optional[str] = Field(default=None, alias="systemPrompt")
    context: Optional[ChatContext] = None
    detail: ChatDetail = ChatDetail.DETAILED


class ChatResponse(BaseModel):
    success: bool
    response: str
    is_local: bool
    model: str
    error: Optional[str] = None


class DataResponse(BaseModel):
    success: bool = True
    data: Any = None
    warnings: list[str] = Field(default_factory=list)


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class UploadResponse(BaseModel):
    success: bool = True
    url: str
    path: str

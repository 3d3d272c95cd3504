from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class EventFiltersModel(BaseModel):
    years: List[int] = Field(default_factory=list)
    categories: List[str] = Field(default_factory=list)
    languages: List[str] = Field(default_factory=list)
    prefectures: List[str] = Field(default_factory=list)
    offline_only: bool = False
    hybrid_only: bool = False
    format: Optional[Literal["any", "offline", "hybrid"]] = None
    search_query: str = ""
    venue_search_query: str = ""


class AddressCandidateModel(BaseModel):
    title: str
    lat: float
    lng: float
    description: Optional[str] = None


class AddressSearchResponse(BaseModel):
    query: str
    results: List[AddressCandidateModel]

from __future__ import annotations

from datetime import date
from typing import List, Literal, Optional, Tuple, get_args

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, model_validator
from pydantic.alias_generators import to_camel

Category = Literal[
    "Web",
    "Mobile",
    "Backend",
    "Frontend",
    "DevOps",
    "AI/ML",
    "Data",
    "Security",
    "Cloud",
    "General",
    "Design",
    "Testing",
    "IoT",
    "Game",
]

ProgrammingLanguage = Literal["JavaScript", "TypeScript", "PHP", "Ruby"]

# Declaration order doubles as display order for facet options.
CATEGORIES: Tuple[str, ...] = get_args(Category)
LANGUAGES: Tuple[str, ...] = get_args(ProgrammingLanguage)

# JIS X 0401 order (north to south).
PREFECTURES: Tuple[str, ...] = (
    "北海道",
    "青森県",
    "岩手県",
    "宮城県",
    "秋田県",
    "山形県",
    "福島県",
    "茨城県",
    "栃木県",
    "群馬県",
    "埼玉県",
    "千葉県",
    "東京都",
    "神奈川県",
    "新潟県",
    "富山県",
    "石川県",
    "福井県",
    "山梨県",
    "長野県",
    "岐阜県",
    "静岡県",
    "愛知県",
    "三重県",
    "滋賀県",
    "京都府",
    "大阪府",
    "兵庫県",
    "奈良県",
    "和歌山県",
    "鳥取県",
    "島根県",
    "岡山県",
    "広島県",
    "山口県",
    "徳島県",
    "香川県",
    "愛媛県",
    "高知県",
    "福岡県",
    "佐賀県",
    "長崎県",
    "熊本県",
    "大分県",
    "宮崎県",
    "鹿児島県",
    "沖縄県",
)


class _Record(BaseModel):
    """Read-only record; JSON keys are camelCase, attributes snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class Conference(_Record):
    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    description: str = ""
    category: List[Category] = Field(default_factory=list)
    programming_languages: List[ProgrammingLanguage] = Field(default_factory=list)
    website: Optional[HttpUrl] = None
    twitter: Optional[str] = None


class Venue(_Record):
    id: str = Field(min_length=1)
    name: str
    address: str
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    prefecture: str = Field(min_length=1)


class ConferenceEvent(_Record):
    conference_id: str = Field(min_length=1)
    name: str
    year: int
    start_date: date
    end_date: date
    venue_id: str = Field(min_length=1)
    is_hybrid: bool = False
    event_url: Optional[HttpUrl] = None

    @model_validator(mode="after")
    def _check_dates(self) -> "ConferenceEvent":
        if self.start_date > self.end_date:
            raise ValueError(f"startDate {self.start_date} is after endDate {self.end_date}")
        return self


class ConferenceEventWithVenue(ConferenceEvent):
    venue: Venue

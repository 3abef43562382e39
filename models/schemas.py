"""
Data Models / Schemas
定义统一的数据结构
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator


T = TypeVar("T")

NONE_EXIST_ERROR = "The corresponding resource does not exist."
DEFAULT_INTRODUCTION = "暂无相关剧情介绍"


class SourceType(str, Enum):
    """数据来源类型"""
    DOUBAN = "douban"
    BANGUMI = "bangumi"
    TMDB = "tmdb"


class ErrorKind(str, Enum):
    """流水线错误分类"""
    NOT_FOUND = "not_found"
    ANTI_BOT_BLOCKED = "anti_bot_blocked"
    NETWORK_FAILURE = "network_failure"
    PARSE_FAILURE = "parse_failure"
    UPSTREAM_DEPENDENCY = "upstream_dependency"
    INTERNAL = "internal"


class ReportStyle(str, Enum):
    """报告排版风格"""
    PLAIN = "plain-report"
    STRUCTURED = "structured-report"


class Rating(BaseModel):
    """单个评分来源"""
    model_config = ConfigDict(frozen=True)

    average: str = Field(..., description="平均分")
    votes: str = Field(..., description="评分人数")

    @classmethod
    def of(cls, average: Any, votes: Any) -> "Rating":
        return cls(average=str(average), votes=str(votes))

    @property
    def text(self) -> str:
        return f"{self.average}/10 from {self.votes} users"


class CanonicalRecord(BaseModel):
    """
    规范化条目
    与来源无关的单个影视/游戏条目表示；离开流水线后不可变
    """
    model_config = ConfigDict(frozen=True)

    # identity
    source: SourceType = Field(..., description="数据来源")
    sid: str = Field(..., description="来源内的条目 ID")
    link: str = Field(default="", description="条目规范链接")
    imdb_id: str = Field(default="", description="IMDb ID")
    imdb_link: str = Field(default="", description="IMDb 链接")

    # titling
    chinese_title: str = Field(default="", description="本地名")
    foreign_title: str = Field(default="", description="外文名")
    aka: List[str] = Field(default_factory=list, description="别名")
    trans_title: List[str] = Field(default_factory=lambda: [""], description="译名")
    this_title: List[str] = Field(default_factory=lambda: [""], description="片名")

    # classification
    year: str = Field(default="", description="年代 (保留来源中的前导空格)")
    region: List[str] = Field(default_factory=list, description="产地")
    genre: List[str] = Field(default_factory=list, description="类别")
    language: List[str] = Field(default_factory=list, description="语言")
    playdate: List[str] = Field(default_factory=list, description="上映日期")
    duration: str = Field(default="", description="片长")
    episodes: str = Field(default="", description="集数")
    seasons: str = Field(default="", description="季数")

    # people
    director: List[str] = Field(default_factory=list, description="导演")
    writer: List[str] = Field(default_factory=list, description="编剧")
    cast: List[str] = Field(default_factory=list, description="主演")
    staff: List[str] = Field(default_factory=list, description="其他制作人员")

    # ratings
    ratings: Dict[str, Rating] = Field(default_factory=dict, description="评分来源 -> 评分")

    # narrative
    introduction: str = Field(default="", description="简介")
    tags: List[str] = Field(default_factory=list, description="标签")
    awards: str = Field(default="", description="获奖情况")

    # media
    poster: str = Field(default="", description="海报")
    screenshots: List[str] = Field(default_factory=list, description="截图")

    # raw labeled lines (bangumi)
    info: List[str] = Field(default_factory=list, description="原始信息行")
    info_map: Dict[str, str] = Field(default_factory=dict, description="标签 -> 值 查找表")

    # outcome
    success: bool = Field(default=False)
    error: Optional[str] = Field(default=None)

    @model_validator(mode="after")
    def _check_outcome(self) -> "CanonicalRecord":
        if self.success and self.error:
            raise ValueError("a record cannot be both successful and failed")
        return self

    @property
    def is_terminal(self) -> bool:
        return self.success or bool(self.error)

    def rating(self, name: str) -> Optional[Rating]:
        return self.ratings.get(name)

    def to_payload(self) -> Dict[str, Any]:
        """
        转为对外的扁平字典

        评分展开为 ``<name>_rating_average`` / ``<name>_votes`` / ``<name>_rating``，
        空字段不输出。
        """
        payload: Dict[str, Any] = {"site": self.source.value, "sid": self.sid}
        data = self.model_dump(mode="json", exclude={"source", "sid", "ratings", "success", "error"})
        for key, value in data.items():
            if value in ("", None) or value == [] or value == {}:
                continue
            payload[key] = value

        for name, rating in self.ratings.items():
            payload[f"{name}_rating_average"] = rating.average
            payload[f"{name}_votes"] = rating.votes
            payload[f"{name}_rating"] = rating.text

        if self.link:
            payload[f"{self.source.value}_link"] = self.link

        if self.error:
            payload["error"] = self.error
        else:
            payload["success"] = self.success
        return payload


@dataclass
class StageResult(Generic[T]):
    """单个流水线阶段的结果: 成功值, 或 错误类型 + 信息"""

    value: Optional[T] = None
    kind: Optional[ErrorKind] = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.kind is None

    @classmethod
    def success(cls, value: T) -> "StageResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str) -> "StageResult[T]":
        return cls(kind=kind, message=message)


class SearchHit(BaseModel):
    """搜索结果条目"""
    year: str = Field(default="", description="年份")
    subtype: str = Field(default="", description="类型")
    title: str = Field(default="", description="标题")
    subtitle: str = Field(default="", description="副标题/原名")
    link: str = Field(..., description="条目链接")

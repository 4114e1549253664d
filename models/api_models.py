#!/usr/bin/env python3
"""
订阅请求验证模型

使用 Pydantic 在创建/编辑订阅时校验输入，非法周期等问题在这里被拒绝，不会进入调度引擎
"""
from datetime import date, datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, Field, field_validator


def _validate_iso_date(v: Optional[str]) -> Optional[str]:
    if v is None or v == '':
        return None
    try:
        date.fromisoformat(v[:10])
        return v
    except ValueError:
        raise ValueError('日期格式错误，应为 YYYY-MM-DD')


def _clean_tags(v: Optional[List[str]]) -> Optional[List[str]]:
    if v is None:
        return v
    result = []
    for tag in v:
        tag = tag.strip()
        if tag and tag not in result:
            result.append(tag)
    return result


class CreateSubscriptionRequest(BaseModel):
    """创建订阅请求"""
    name: str = Field(..., min_length=1, max_length=200, description="订阅名称")
    expiry_date: datetime = Field(..., description="到期时间（ISO 8601，无时区按 UTC）")
    period_value: int = Field(default=1, ge=1, le=1000, description="续期周期数值（>= 1）")
    period_unit: Literal['day', 'month', 'year'] = Field(default='month', description="续期周期单位")
    reminder_unit: Literal['day', 'hour'] = Field(default='day', description="提醒提前量单位")
    reminder_value: Optional[int] = Field(default=None, ge=0, le=8760, description="提醒提前量，0 表示到期时提醒")
    use_lunar: bool = Field(default=False, description="是否按农历续期")
    auto_renew: bool = Field(default=True, description="过期后是否自动续期")
    is_active: bool = Field(default=True, description="是否启用")
    custom_type: str = Field(default='', max_length=100, description="订阅类型")
    category: str = Field(default='', max_length=200, description="分类，可用 / , 空格分隔多个")
    tags: List[str] = Field(default_factory=list, description="标签")
    notes: str = Field(default='', max_length=2000, description="备注")
    start_date: Optional[str] = Field(default=None, description="开始日期（YYYY-MM-DD）")

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        """名称不能为空白"""
        v = v.strip()
        if not v:
            raise ValueError('订阅名称不能为空')
        return v

    @field_validator('start_date')
    @classmethod
    def validate_start_date(cls, v: Optional[str]) -> Optional[str]:
        return _validate_iso_date(v)

    @field_validator('tags')
    @classmethod
    def validate_tags(cls, v: List[str]) -> List[str]:
        return _clean_tags(v)

    class Config:
        json_schema_extra = {
            "example": {
                "name": "ChatGPT Plus",
                "expiry_date": "2024-01-31T00:00:00Z",
                "period_value": 1,
                "period_unit": "month",
                "reminder_unit": "day",
                "reminder_value": 3,
                "use_lunar": False,
                "auto_renew": True,
                "custom_type": "AI 工具",
                "category": "工作/订阅",
            }
        }


class UpdateSubscriptionRequest(BaseModel):
    """更新订阅请求，未提供的字段保持原值"""
    name: Optional[str] = Field(default=None, min_length=1, max_length=200, description="订阅名称")
    expiry_date: Optional[datetime] = Field(default=None, description="到期时间")
    period_value: Optional[int] = Field(default=None, ge=1, le=1000, description="续期周期数值")
    period_unit: Optional[Literal['day', 'month', 'year']] = Field(default=None, description="续期周期单位")
    reminder_unit: Optional[Literal['day', 'hour']] = Field(default=None, description="提醒提前量单位")
    reminder_value: Optional[int] = Field(default=None, ge=0, le=8760, description="提醒提前量")
    use_lunar: Optional[bool] = Field(default=None, description="是否按农历续期")
    auto_renew: Optional[bool] = Field(default=None, description="过期后是否自动续期")
    is_active: Optional[bool] = Field(default=None, description="是否启用")
    custom_type: Optional[str] = Field(default=None, max_length=100, description="订阅类型")
    category: Optional[str] = Field(default=None, max_length=200, description="分类")
    tags: Optional[List[str]] = Field(default=None, description="标签")
    notes: Optional[str] = Field(default=None, max_length=2000, description="备注")
    start_date: Optional[str] = Field(default=None, description="开始日期（YYYY-MM-DD）")

    @field_validator('start_date')
    @classmethod
    def validate_start_date(cls, v: Optional[str]) -> Optional[str]:
        return _validate_iso_date(v)

    @field_validator('tags')
    @classmethod
    def validate_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return _clean_tags(v)

"""
数据模型模块 (Data Model Module)
===============================

定义报价单提取流程中的核心数据结构：SheetText、Chunk、各类别的类型化记录、
以及最终输出的 AggregateDocument。
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class Category(str, Enum):
    """
    工作表语义类别（封闭枚举）。
    每个工作表按名称唯一映射到一个类别，未匹配时默认为 EXPENSES。
    """
    SUMMARY = "summary"
    EQUIPMENT = "equipment"
    SERVICES = "services"
    EXPENSES = "expenses"


class Tier(str, Enum):
    """
    升级层级，严格有序：BASELINE → REINFORCED → ESCALATED。
    """
    BASELINE = "baseline"
    REINFORCED = "reinforced"
    ESCALATED = "escalated"


class SheetText(BaseModel):
    """
    工作表文本模型：一个工作表转换为分隔文本后的结果，创建后不可变。

    属性:
        name: 工作表名称
        content: 分隔文本内容（首行为表头）
        row_count: 行数（含表头）
    """
    name: str
    content: str
    row_count: int

    class Config:
        frozen = True


class Chunk(BaseModel):
    """
    分块模型：工作表数据行的有界切片，首行为原表头的副本。

    属性:
        parent_sheet_name: 所属工作表名称
        content: 表头 + 本块数据行
        row_count: 行数（含表头）
        index: 块序号（从 0 开始）
        total_chunks: 该工作表的总块数
    """
    parent_sheet_name: str
    content: str
    row_count: int
    index: int = 0
    total_chunks: int = 1

    class Config:
        frozen = True

    @property
    def label(self) -> str:
        """日志与进度回调使用的可读标签。"""
        if self.total_chunks <= 1:
            return self.parent_sheet_name
        return f"{self.parent_sheet_name} ({self.index + 1}/{self.total_chunks})"


class ExtractionAttempt(BaseModel):
    """
    单次提取尝试的记录，由升级控制器创建，块结果确定后即丢弃。
    """
    chunk: Chunk
    tier: Tier
    service_model: str
    result_text: Optional[str] = None
    error: Optional[str] = None

    class Config:
        use_enum_values = True


# ---------------------------------------------------------------------------
# Typed records (one closed shape per category)
# ---------------------------------------------------------------------------

class SummaryRecord(BaseModel):
    """汇总表记录：项目、客户、币种及各类合计。"""
    project_name: str = ""
    client_name: str = ""
    currency: str = "USD"
    total_equipment: float = 0.0
    total_services: float = 0.0
    total_expenses: float = 0.0
    total: float = 0.0

    class Config:
        frozen = True


class EquipmentItem(BaseModel):
    """设备/材料明细行。"""
    code: str = ""
    description: str = ""
    category: str = "General"
    unit: str = "Und"
    brand: str = ""
    quantity: float = 1.0
    list_price: float = 0.0
    cost_factor: float = 1.0
    internal_price: float = 0.0
    sale_factor: float = 1.25
    client_price: float = 0.0

    class Config:
        frozen = True


class EquipmentGroup(BaseModel):
    """设备分组：逻辑分组名 + 明细行列表。"""
    name: str
    items: List[EquipmentItem] = Field(default_factory=list)

    class Config:
        frozen = True


class ServiceResource(BaseModel):
    """服务活动中的一项资源（人员）及其工时。"""
    resource_name: str
    hours: float = 0.0
    hourly_cost: float = 0.0
    location: str = "oficina"

    class Config:
        frozen = True


class ServiceActivity(BaseModel):
    """服务活动：名称、描述及资源×工时明细。"""
    name: str
    description: str = ""
    resources: List[ServiceResource] = Field(default_factory=list)

    class Config:
        frozen = True


class ServiceGroup(BaseModel):
    """服务分组：可附带建议的进度编码（EDT）、安全系数与利润系数。"""
    name: str
    suggested_schedule_code: str = ""
    safety_factor: float = 1.0
    margin: float = 1.35
    activities: List[ServiceActivity] = Field(default_factory=list)

    class Config:
        frozen = True


class ExpenseItem(BaseModel):
    """费用明细行。"""
    name: str
    description: str = ""
    quantity: float = 1.0
    unit_price: float = 0.0
    internal_cost: float = 0.0
    client_cost: float = 0.0

    class Config:
        frozen = True


class ExpenseGroup(BaseModel):
    """费用分组。"""
    name: str
    items: List[ExpenseItem] = Field(default_factory=list)

    class Config:
        frozen = True


class SheetFailure(BaseModel):
    """部分结果模式下记录的失败块。"""
    sheet_name: str
    chunk_index: int
    error: str
    preview: str = ""


class AggregateDocument(BaseModel):
    """
    聚合文档模型：一次流水线运行的唯一对外输出。

    属性:
        equipment_groups / service_groups / expense_groups: 按处理顺序追加的分组
        summary: 汇总记录（无汇总表时为空默认值）
        unique_resource_names: 服务记录中出现的资源名称（排序、去重）
        unique_schedule_codes: 服务记录中出现的建议进度编码（排序、去重）
        sheet_names: 实际处理的工作表名称
        failures: 部分结果模式下的失败记录（fail-fast 模式下恒为空）
    """
    equipment_groups: List[EquipmentGroup] = Field(default_factory=list)
    service_groups: List[ServiceGroup] = Field(default_factory=list)
    expense_groups: List[ExpenseGroup] = Field(default_factory=list)
    summary: SummaryRecord = Field(default_factory=SummaryRecord)
    unique_resource_names: List[str] = Field(default_factory=list)
    unique_schedule_codes: List[str] = Field(default_factory=list)
    sheet_names: List[str] = Field(default_factory=list)
    failures: List[SheetFailure] = Field(default_factory=list)

    def to_dict(self) -> dict:
        """转换为可直接 JSON 序列化的字典。"""
        return self.model_dump(mode="json")

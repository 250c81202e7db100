import datetime
from decimal import Decimal
from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

Kind = Literal["income", "expense"]
KindFilter = Literal["income", "expense", "all"]
SummarySourceName = Literal["remote", "local"]


class User(BaseModel):
    id: int
    name: str
    email: str
    role: Literal["user", "admin"] = "user"
    uuid: str | None = None


class Category(BaseModel):
    id: int
    name: str = Field(min_length=1)
    kind: Kind = Field(validation_alias=AliasChoices("kind", "type"))
    color: str | None = None
    icon: str | None = None
    is_default: bool = False


class UploadedFile(BaseModel):
    id: int | str = Field(validation_alias=AliasChoices("id", "file_id"))
    original_name: str | None = None
    mime_type: str | None = None
    size: int | None = None
    url: str | None = None


class NormalizedTransaction(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int | None = None
    kind: Kind
    amount: Decimal = Field(ge=0)
    date: datetime.date | None = None
    category_id: int | None = None
    description: str | None = None
    file_id: int | str | None = None

    @property
    def month(self) -> str | None:
        if self.date is None:
            return None
        return self.date.strftime("%Y-%m")


class CategoryTotal(BaseModel):
    label: str
    total: Decimal
    category_id: int | None = Field(default=None, serialization_alias="categoryId")
    color: str | None = None


class Summary(BaseModel):
    month: str | None = None
    income_total: Decimal = Field(ge=0, serialization_alias="incomeTotal")
    expense_total: Decimal = Field(ge=0, serialization_alias="expenseTotal")
    balance: Decimal
    by_category: list[CategoryTotal] = Field(default_factory=list, serialization_alias="byCategory")
    source: SummarySourceName = "local"


class TransactionCreate(BaseModel):
    kind: Kind
    amount: Decimal = Field(ge=0)
    date: datetime.date
    category_id: int | None = None
    description: str | None = None
    file_id: int | str | None = None

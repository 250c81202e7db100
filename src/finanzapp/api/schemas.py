from typing import Any

from pydantic import BaseModel, Field

from finanzapp.models import Kind, Summary


class LoginRequest(BaseModel):
    email: str
    password: str


class RegisterRequest(LoginRequest):
    name: str


class CategoryRequest(BaseModel):
    name: str = Field(min_length=1)
    kind: Kind
    color: str | None = None


class ChartData(BaseModel):
    labels: list[str]
    totals: list[float]
    colors: list[str]

    @classmethod
    def from_summary(cls, summary: Summary) -> "ChartData":
        # Charts take floats; the summary itself stays in Decimal
        return cls(
            labels=[entry.label for entry in summary.by_category],
            totals=[float(entry.total) for entry in summary.by_category],
            colors=[entry.color or "" for entry in summary.by_category],
        )


def summary_payload(summary: Summary) -> dict[str, Any]:
    return {
        "summary": summary.model_dump(mode="json", by_alias=True),
        "chart": ChartData.from_summary(summary).model_dump(),
    }

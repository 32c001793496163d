"""SQL table models used by the relational storage engine."""

from sqlmodel import SQLModel, Field


class TradeRecord(SQLModel, table=True):
    __tablename__ = "trade"
    # AUTOINCREMENT keeps ids monotonic: SQLite never reuses a deleted rowid
    __table_args__ = {"sqlite_autoincrement": True}

    id: int | None = Field(default=None, primary_key=True)
    result: float
    timestamp: str = Field(index=True)  # ISO-8601, UTC, microsecond precision
    created_at: str
    updated_at: str

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "result": self.result,
            "timestamp": self.timestamp,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


class AppSetting(SQLModel, table=True):
    """Flat key/value rows backing the SQL config store."""

    __tablename__ = "app_setting"

    key: str = Field(primary_key=True)
    value: str
    updated_at: str

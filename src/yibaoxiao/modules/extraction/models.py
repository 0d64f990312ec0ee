from __future__ import annotations

from sqlalchemy import JSON, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from yibaoxiao.core.db import Base, Timestamped


class RecognitionCache(Timestamped, Base):
    __tablename__ = "extraction_recognition_cache"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    request_hash: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    document_type: Mapped[str] = mapped_column(String(20), index=True)
    model: Mapped[str] = mapped_column(String(100), default="")
    schema_version: Mapped[int] = mapped_column(Integer, default=1)
    # Wrapped as {"result": ...} because recognition output may be a bare list.
    response_json: Mapped[dict] = mapped_column(JSON, default=dict)

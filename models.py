from datetime import datetime
from typing import List

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base


class ParagraphRecord(Base):
    __tablename__ = "paragraphs"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    text: Mapped[str] = mapped_column(Text)
    sentences: Mapped[List[str]] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)

    results: Mapped[List["ResultRecord"]] = relationship(
        back_populates="paragraph", cascade="all, delete-orphan"
    )


class ResultRecord(Base):
    __tablename__ = "results"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    paragraph_id: Mapped[str] = mapped_column(ForeignKey("paragraphs.id"), index=True)
    paragraph_text: Mapped[str] = mapped_column(Text, default="")
    rank: Mapped[str] = mapped_column(String(8))
    total_attempts: Mapped[int] = mapped_column(Integer, default=0)
    total_errors: Mapped[int] = mapped_column(Integer, default=0)
    sentence_progress: Mapped[list] = mapped_column(JSON)  # [{sentence, attempts, errors}]
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    elapsed_time: Mapped[int] = mapped_column(Integer, default=0)  # seconds

    paragraph: Mapped[ParagraphRecord] = relationship(back_populates="results")

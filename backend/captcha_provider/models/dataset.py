from datetime import UTC, datetime

from sqlalchemy import JSON, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from captcha_provider.database import Base


class Dataset(Base):
    __tablename__ = "datasets"

    dataset_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    dataset_content_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    format: Mapped[str] = mapped_column(String(32), nullable=False, default="SelectAll")
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(UTC).replace(tzinfo=None), nullable=False
    )


class StoredCaptcha(Base):
    __tablename__ = "captchas"

    captcha_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    captcha_content_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    dataset_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("datasets.dataset_id", ondelete="CASCADE"), nullable=False, index=True
    )
    target: Mapped[str] = mapped_column(String(256), nullable=False)
    items: Mapped[list] = mapped_column(JSON, nullable=False)
    solution: Mapped[list] = mapped_column(JSON, nullable=False)
    salt: Mapped[str] = mapped_column(String(64), nullable=False)
    proof: Mapped[list] = mapped_column(JSON, nullable=False)  # inclusion proof under the content root

from datetime import UTC, datetime

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from captcha_provider.database import Base

STATUS_APPROVED = "Approved"
STATUS_DISAPPROVED = "Disapproved"


class ImageCommitment(Base):
    """A solved image batch, keyed by the Merkle root of its hashed solutions."""

    __tablename__ = "image_commitments"

    commitment_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    dapp: Mapped[str] = mapped_column(String(64), nullable=False)
    dataset_id: Mapped[str] = mapped_column(String(64), nullable=False)
    request_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    requested_at_block: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(UTC).replace(tzinfo=None), nullable=False
    )
    server_checked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

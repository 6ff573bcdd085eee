from sqlalchemy import JSON, BigInteger, Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from captcha_provider.database import Base


class PendingCaptchaRequest(Base):
    __tablename__ = "pending_captcha_requests"

    request_hash: Mapped[str] = mapped_column(String(64), primary_key=True)
    user: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    dapp: Mapped[str] = mapped_column(String(64), nullable=False)
    dataset_id: Mapped[str] = mapped_column(String(64), nullable=False)
    salt: Mapped[str] = mapped_column(String(64), nullable=False)
    captcha_ids: Mapped[list] = mapped_column(JSON, nullable=False)
    deadline_timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)  # Unix ms
    requested_at_block: Mapped[int] = mapped_column(Integer, nullable=False)
    pending: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

import secrets

import structlog
from sqlalchemy.orm import Session

from captcha_provider.core.hashing import ItemLoader, compute_item_hash, hash_captcha
from captcha_provider.core.merkle import MerkleTree
from captcha_provider.models.dataset import Dataset, StoredCaptcha
from captcha_provider.schemas.captcha import Captcha, CaptchaItem
from captcha_provider.schemas.dataset import DatasetCreate

logger = structlog.get_logger()


def prepare_captchas(dataset: DatasetCreate, loader: ItemLoader | None = None) -> list[Captcha]:
    """Recompute item hashes and assign salts, content ids and captcha ids."""
    captchas = []
    for raw in dataset.captchas:
        if any(index < 0 or index >= len(raw.items) for index in raw.solution):
            raise ValueError(f"Solution indices out of range for captcha '{raw.target}'")
        items = [
            CaptchaItem(hash=compute_item_hash(item, loader=loader), data=item.data, type=item.type)
            for item in raw.items
        ]
        captcha = Captcha(
            items=items,
            target=raw.target,
            solution=sorted(set(raw.solution)),
            salt=raw.salt or secrets.token_hex(16),
        )
        captcha.captcha_content_id = hash_captcha(captcha)
        captcha.captcha_id = hash_captcha(captcha, include_solution=True)
        captchas.append(captcha)
    return captchas


def load_dataset(db: Session, dataset: DatasetCreate, loader: ItemLoader | None = None) -> Dataset:
    """
    Store a solved dataset and the proofs served with its captchas.

    The dataset content root is the Merkle root over the captcha content ids
    (what clients check served captchas against). The dataset id is the root
    over the captcha ids, which also cover each solution and salt.
    """
    captchas = prepare_captchas(dataset, loader=loader)

    content_ids = [c.captcha_content_id for c in captchas]
    if len(set(content_ids)) != len(content_ids):
        raise ValueError("Dataset contains duplicate captchas")

    content_tree = MerkleTree.build(content_ids)
    dataset_id = MerkleTree.build([c.captcha_id for c in captchas]).root.hash

    existing = db.query(Dataset).filter(Dataset.dataset_content_id == content_tree.root.hash).first()
    if existing is not None:
        logger.info("dataset_already_loaded", dataset_id=existing.dataset_id)
        return existing

    record = Dataset(
        dataset_id=dataset_id,
        dataset_content_id=content_tree.root.hash,
        format=dataset.format,
    )
    db.add(record)
    for index, captcha in enumerate(captchas):
        db.add(
            StoredCaptcha(
                captcha_id=captcha.captcha_id,
                captcha_content_id=captcha.captcha_content_id,
                dataset_id=dataset_id,
                target=captcha.target,
                items=[item.model_dump() for item in captcha.items],
                solution=captcha.solution,
                salt=captcha.salt,
                proof=content_tree.proof(index),
            )
        )
    db.commit()
    db.refresh(record)

    logger.info(
        "dataset_loaded",
        dataset_id=dataset_id,
        dataset_content_id=record.dataset_content_id,
        captcha_count=len(captchas),
    )
    return record


def list_datasets(db: Session) -> list[tuple[Dataset, int]]:
    """All datasets with their captcha counts."""
    return [
        (dataset, db.query(StoredCaptcha).filter(StoredCaptcha.dataset_id == dataset.dataset_id).count())
        for dataset in db.query(Dataset).order_by(Dataset.created_at).all()
    ]


def to_captcha(stored: StoredCaptcha, include_solution: bool = False) -> Captcha:
    return Captcha(
        captcha_id=stored.captcha_id if include_solution else None,
        captcha_content_id=stored.captcha_content_id,
        dataset_id=stored.dataset_id,
        items=[CaptchaItem.model_validate(item) for item in stored.items],
        target=stored.target,
        solution=stored.solution if include_solution else None,
        salt=stored.salt if include_solution else "",
    )

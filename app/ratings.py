from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

import models_sqlalchemy as models


def average_rating(db: Session, spot_id: int) -> Optional[float]:
    """Mean star rating of a spot, or None when it has no reviews."""
    value = db.query(func.avg(models.Review.stars)).filter(models.Review.spot_id == spot_id).scalar()
    return float(value) if value is not None else None


def review_count(db: Session, spot_id: int) -> int:
    return db.query(func.count(models.Review.id)).filter(models.Review.spot_id == spot_id).scalar() or 0

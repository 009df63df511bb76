# backend/routes/favorites.py
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from database import get_db
from models.product import Favorite, Part
from models.users import User
from routes.parts import part_to_out
from schemas.product import FavoriteCreate, PartOut
from utils.errors import NotFoundError
from utils.permissions import price_visible
from utils.guards import require_auth

router = APIRouter(prefix="/favorites", tags=["Favorites"])


@router.get("", response_model=List[PartOut])
def list_favorites(db: Session = Depends(get_db), current_user: User = Depends(require_auth)):
    parts = (
        db.query(Part)
        .join(Favorite, Favorite.part_id == Part.id)
        .filter(Favorite.user_id == current_user.id)
        .order_by(Favorite.added_at.desc())
        .all()
    )
    show = price_visible(current_user)
    return [part_to_out(p, show) for p in parts]


# Adding an existing favorite is a no-op
@router.post("", status_code=status.HTTP_201_CREATED)
def add_favorite(payload: FavoriteCreate, db: Session = Depends(get_db),
                 current_user: User = Depends(require_auth)):
    if not db.query(Part).filter(Part.id == payload.part_id).first():
        raise NotFoundError("Part not found")
    favorite = db.query(Favorite).filter(
        Favorite.user_id == current_user.id, Favorite.part_id == payload.part_id
    ).first()
    if favorite is None:
        favorite = Favorite(user_id=current_user.id, part_id=payload.part_id)
        db.add(favorite)
        db.commit()
        db.refresh(favorite)
    return {"id": favorite.id, "part_id": favorite.part_id, "added_at": favorite.added_at}


@router.delete("/{part_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_favorite(part_id: int, db: Session = Depends(get_db),
                    current_user: User = Depends(require_auth)):
    deleted = db.query(Favorite).filter(
        Favorite.user_id == current_user.id, Favorite.part_id == part_id
    ).delete()
    if not deleted:
        raise NotFoundError("Favorite not found")
    db.commit()

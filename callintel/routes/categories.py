# callintel/routes/categories.py
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..db import get_db
from ..models import Category
from ..schemas import CategoryOut, CategoryUpdate
from ..services.recategorize import recategorize_all

router = APIRouter(prefix="/api/categories", tags=["categories"])


@router.get("", response_model=list[CategoryOut])
def list_categories(db: Session = Depends(get_db)):
    return (
        db.query(Category)
        .order_by(Category.is_fixed.desc(), Category.id.asc())
        .all()
    )


@router.patch("/{category_id}", response_model=CategoryOut)
def update_category(category_id: int, body: CategoryUpdate, db: Session = Depends(get_db)):
    """Only the playbook text and color of fixed categories are editable; names stay as the classifier knows them."""
    category = db.get(Category, category_id)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    if not category.is_fixed:
        raise HTTPException(status_code=400, detail="Only fixed categories can be edited")

    if body.description is not None:
        category.description = body.description.strip()
    if body.color is not None:
        category.color = body.color.strip()
    db.commit()
    db.refresh(category)
    return category


@router.post("/recategorize")
def recategorize(db: Session = Depends(get_db)):
    return recategorize_all(db).as_dict()

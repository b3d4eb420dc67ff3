"""Category endpoints. Reads are public, writes are admin-only."""

from fastapi import APIRouter, Depends
from sqlmodel import Session

from .. import models, services
from ..auth import require_role
from ..database import get_session
from ..schemas import CategoryIn, CategoryUpdateIn
from ..serializers import category_out

router = APIRouter(tags=["Categories"])


@router.get('')
def list_categories(active: bool = False, db: Session = Depends(get_session)):
    categories = services.CategoryService(db).list(active_only=active)
    return {'count': len(categories), 'categories': [category_out(c) for c in categories]}


@router.post('/seed')
def seed_categories(db: Session = Depends(get_session), admin: models.User = Depends(require_role('admin'))):
    """Create the default categories; existing names are skipped."""
    return services.CategoryService(db).seed_defaults(admin)


@router.get('/{category_id}')
def get_category(category_id: int, db: Session = Depends(get_session)):
    return {'category': category_out(services.CategoryService(db).get(category_id))}


@router.post('', status_code=201)
def create_category(payload: CategoryIn, db: Session = Depends(get_session),
                    admin: models.User = Depends(require_role('admin'))):
    category = services.CategoryService(db).create(
        admin, payload.name, payload.description, icon=payload.icon, color=payload.color)
    return {'category': category_out(category)}


@router.put('/{category_id}')
def update_category(category_id: int, payload: CategoryUpdateIn, db: Session = Depends(get_session),
                    admin: models.User = Depends(require_role('admin'))):
    category = services.CategoryService(db).update(
        category_id, name=payload.name, description=payload.description,
        icon=payload.icon, color=payload.color, is_active=payload.is_active,
    )
    return {'category': category_out(category)}


@router.delete('/{category_id}')
def delete_category(category_id: int, db: Session = Depends(get_session),
                    admin: models.User = Depends(require_role('admin'))):
    """Delete a category that no quiz uses (409 otherwise)."""
    services.CategoryService(db).delete(category_id)
    return {'message': 'Category deleted successfully'}

# Reviews Router for the Creator Marketplace
# Mutual reviews on completed contracts; the second review releases payment

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List

from database.config import get_db
from database.models import User
from schemas.marketplace import ReviewCreate, ReviewResponse, UserReviewsResponse
from auth.roles import UserType as UserTypeRole
from auth.decorators import require_user_type
from services.review_service import ReviewService

router = APIRouter(prefix="/reviews", tags=["Reviews"])


def review_response(review) -> ReviewResponse:
    response = ReviewResponse.model_validate(review)
    response.reviewer_name = review.reviewer.name if review.reviewer else None
    return response


# ============================================================================
# REVIEW ENDPOINTS
# ============================================================================

@router.post("", response_model=ReviewResponse, status_code=status.HTTP_201_CREATED)
async def create_review(
    review_data: ReviewCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_user_type(UserTypeRole.BRAND, UserTypeRole.CREATOR))
):
    """
    Review the other party of a completed contract.
    Once brand and creator have both reviewed, the creator's payment becomes available.
    """
    categories = review_data.rating_categories.model_dump(exclude_none=True) if review_data.rating_categories else None
    review = ReviewService(db).submit_review(
        contract_id=review_data.contract_id,
        reviewer=current_user,
        rating=review_data.rating,
        comment=review_data.comment,
        rating_categories=categories,
        is_public=review_data.is_public,
    )
    return review_response(review)


@router.get("/contract/{contract_id}", response_model=List[ReviewResponse])
async def get_contract_reviews(
    contract_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_user_type(UserTypeRole.BRAND, UserTypeRole.CREATOR))
):
    """Get both reviews of a contract (parties and admins only)."""
    reviews = ReviewService(db).list_contract_reviews(contract_id, current_user)
    return [review_response(r) for r in reviews]


@router.get("/user/{user_id}", response_model=UserReviewsResponse)
async def get_user_reviews(
    user_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db)
):
    """Public reviews received by a user."""
    reviews, total, average = ReviewService(db).list_user_reviews(user_id, page, limit)
    return UserReviewsResponse(
        reviews=[review_response(r) for r in reviews],
        average_rating=average,
        pagination={
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": (total + limit - 1) // limit,
        },
    )

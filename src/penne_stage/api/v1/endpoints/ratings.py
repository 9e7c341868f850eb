"""Hall rating endpoints."""

from fastapi import APIRouter, Response, status

from penne_stage.schemas.rating import RatingCreate

from ..dependencies import CurrentUserIdDep, RatingServiceDep, remote_errors

router = APIRouter(prefix="/ratings", tags=["ratings"])


@router.post("/", status_code=status.HTTP_201_CREATED)
async def submit_rating(
    rating_data: RatingCreate,
    current_user_id: CurrentUserIdDep,
    ratings: RatingServiceDep,
    response: Response,
) -> dict[str, str | int]:
    """Store the caller's rating; success is only reported once the store confirms."""
    with remote_errors("Failed to submit rating"):
        stored = await ratings.submit_rating(
            rating_data.dining_hall_name,
            current_user_id,
            rating_data.score,
        )

    if stored is None:
        response.status_code = status.HTTP_202_ACCEPTED
        return {"status": "ignored"}

    return {
        "status": "success",
        "dining_hall_name": stored.dining_hall_name,
        "score": stored.score,
    }

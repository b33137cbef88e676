from fastapi import APIRouter, Depends, HTTPException

from mispark.utils.app_state import get_leaderboard
from mispark.utils.auth_helper import get_current_user_required


router = APIRouter()


@router.get("")
async def get_leaderboard_entries(
    refresh: bool = False,
    leaderboard=Depends(get_leaderboard),
    current_user=Depends(get_current_user_required),
):
    if refresh or not leaderboard.loaded:
        await leaderboard.refresh()

    if not leaderboard.loaded:
        raise HTTPException(status_code=502, detail="Failed to load the leaderboard")

    return {
        "top_three": leaderboard.top_three(),
        "entries": leaderboard.entries,
    }


@router.get("/me")
async def get_my_ranking(
    leaderboard=Depends(get_leaderboard),
    current_user=Depends(get_current_user_required),
):
    ranking = await leaderboard.ranking_for(current_user["sub"])

    return {"ranking": ranking}

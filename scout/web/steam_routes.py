# web/steam_routes.py – Proxy Steam (search, details, top games)

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from scout.web.deps import rate_limit, require_user

router = APIRouter(
    prefix="/api/steam",
    tags=["steam"],
    dependencies=[Depends(require_user), Depends(rate_limit("read")), Depends(rate_limit("steam"))],
)


@router.get("/search")
async def search(request: Request, term: Optional[str] = Query(None)) -> List[Dict[str, Any]]:
    if not term or not term.strip():
        raise HTTPException(status_code=400, detail="Search term required")
    results = await request.app.state.proxy.search_games(term.strip())
    return [r.to_dict() for r in results]


@router.get("/app/{appid}")
async def details(request: Request, appid: int) -> Dict[str, Any]:
    game = await request.app.state.proxy.get_game_details(appid)
    return game.to_dict()


@router.get("/top")
async def top_games(request: Request) -> Dict[str, Any]:
    top = await request.app.state.proxy.get_top_games()
    return top.to_dict()

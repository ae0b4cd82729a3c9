from fastapi import APIRouter

from feedline.api import match_router, subject_router, sweep_router

router = APIRouter()

router.include_router(subject_router.router, tags=["subjects"])
router.include_router(sweep_router.router, tags=["sweeps"])
router.include_router(match_router.router, tags=["matches"])

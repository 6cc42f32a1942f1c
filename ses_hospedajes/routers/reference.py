from fastapi import APIRouter, HTTPException

from ..services import catalog

router = APIRouter()


@router.get("/codelists")
def list_codelists():
    return sorted(catalog.codelists().keys())


@router.get("/codelists/{name}")
def get_codelist(name: str):
    lists = catalog.codelists()
    if name not in lists:
        raise HTTPException(status_code=404, detail="Codelist not found")
    return lists[name]


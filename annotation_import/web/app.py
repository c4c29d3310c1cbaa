import logging
from dataclasses import asdict
from pathlib import Path
from typing import List, Literal, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, Response
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel, ConfigDict

from annotation_import.config import ImporterSettings, get_vault_dir, load_settings, save_settings
from annotation_import.core.importer import AnnotationImporter
from annotation_import.core.models import ImportSummary
from annotation_import.core.obsidian import Vault
from annotation_import.integrations.apple_books import AppleBooksStore, LibraryFetchError
from annotation_import.integrations.epub_metadata import read_container_metadata

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

app = FastAPI(title="Apple Books annotation import")
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))


class SelectedImport(BaseModel):
    asset_ids: List[str]


class SettingsUpdate(BaseModel):
    """Partial settings change. Omitted or null fields keep their stored value."""
    model_config = ConfigDict(extra="forbid")

    output_folder: Optional[str] = None
    include_covers: Optional[bool] = None
    include_extended_frontmatter: Optional[bool] = None
    include_extended_in_note: Optional[bool] = None
    overwrite_existing: Optional[Literal["true", "false", "smart"]] = None
    add_tags: Optional[bool] = None
    custom_tags: Optional[str] = None
    include_chapter_info: Optional[bool] = None
    sort_annotations: Optional[bool] = None
    include_annotation_dates: Optional[bool] = None
    include_annotation_styles: Optional[bool] = None
    include_reading_progress: Optional[bool] = None
    create_author_pages: Optional[bool] = None
    include_citations: Optional[bool] = None
    save_cover_to_attachment_folder: Optional[bool] = None
    attachment_folder: Optional[str] = None


def get_store() -> AppleBooksStore:
    return AppleBooksStore()


def get_vault_root() -> Path:
    return get_vault_dir()


def get_importer(store: AppleBooksStore = Depends(get_store), vault_root: Path = Depends(get_vault_root)) -> AnnotationImporter:
    can_access, error = store.check_database_access()
    if not can_access:
        raise HTTPException(status_code=503, detail=error)
    settings = load_settings()
    return AnnotationImporter(settings, store, Vault(vault_root, settings))


def _summary_payload(summary: ImportSummary) -> dict:
    payload = asdict(summary)
    payload["message"] = summary.message
    return payload


@app.get("/", response_class=HTMLResponse)
async def book_selection(request: Request, importer: AnnotationImporter = Depends(get_importer)):
    """Lists books with highlights so the user can pick what to import."""
    try:
        listings = importer.list_books()
    except LibraryFetchError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return templates.TemplateResponse(request, "books.html", {"request": request, "books": listings})


@app.get("/api/books")
async def list_books(importer: AnnotationImporter = Depends(get_importer)):
    try:
        listings = importer.list_books()
    except LibraryFetchError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return [
        {
            "asset_id": item.book.asset_id,
            "title": item.book.display_title,
            "author": item.book.author,
            "annotation_count": item.annotation_count,
        }
        for item in listings
    ]


@app.get("/api/books/{asset_id}/cover")
async def book_cover(asset_id: str, importer: AnnotationImporter = Depends(get_importer)):
    book = next((b for b in importer.store.get_book_details() if b.asset_id == asset_id), None)
    if book is None:
        raise HTTPException(status_code=404, detail="Book not found")
    metadata = read_container_metadata(book.path, asset_id) if book.path else None
    if metadata is None or not metadata.cover:
        raise HTTPException(status_code=404, detail="Cover not found")
    return Response(content=metadata.cover, media_type="image/jpeg")


@app.post("/api/import")
async def import_all(importer: AnnotationImporter = Depends(get_importer)):
    try:
        summary = importer.import_all_books()
    except LibraryFetchError as e:
        raise HTTPException(status_code=500, detail=f"Import failed: {e}")
    return _summary_payload(summary)


@app.post("/api/import/selected")
async def import_selected(selection: SelectedImport, importer: AnnotationImporter = Depends(get_importer)):
    if not selection.asset_ids:
        raise HTTPException(status_code=400, detail="No books selected for import.")
    try:
        summary = importer.import_selected_books(selection.asset_ids)
    except LibraryFetchError as e:
        raise HTTPException(status_code=500, detail=f"Import failed: {e}")
    return _summary_payload(summary)


@app.get("/api/settings")
async def get_settings():
    return asdict(load_settings())


@app.put("/api/settings")
async def update_settings(update: SettingsUpdate):
    current = asdict(load_settings())
    current.update(update.model_dump(exclude_unset=True, exclude_none=True))
    settings = ImporterSettings(**current)
    save_settings(settings)
    return asdict(settings)


def start_server(host: str = "127.0.0.1", port: int = 8123):
    import uvicorn
    uvicorn.run(app, host=host, port=port)
